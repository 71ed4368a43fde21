"""Tests for sender screening decisions."""

import pytest

from gmail_gatekeeper.constants import (
    KEY_SCREENER_ENABLED,
    KEY_SCREENER_FILTER_ID,
    KEY_SWEEP_CAP,
    LABEL_ALLOWED,
    LABEL_SCREENER,
)
from gmail_gatekeeper.models import SenderDecision


def _screened(fake, resolver, sender, count=1):
    screener_id = resolver.resolve(LABEL_SCREENER)
    return [fake.add_message(label_ids=[screener_id], sender=sender)["id"] for _ in range(count)]


def test_allow_creates_filter_and_moves_screened_mail(fake, resolver, screener):
    ids = _screened(fake, resolver, "Bob <bob@example.com>", count=2)
    other = _screened(fake, resolver, "carol@example.com")

    result = screener.allow("Bob@Example.com")

    allowed_id = resolver.resolve(LABEL_ALLOWED)
    screener_id = resolver.resolve(LABEL_SCREENER)
    assert result.decision is SenderDecision.APPROVED
    assert result.target == "bob@example.com"
    assert sorted(result.moved_ids) == sorted(ids)
    for msg_id in ids:
        labels = fake.labels_of(msg_id)
        assert allowed_id in labels
        assert "INBOX" in labels
        assert screener_id not in labels
    assert screener_id in fake.labels_of(other[0])

    f = fake.filters[result.filter_id]
    assert f["criteria"] == {"from": "bob@example.com"}
    assert f["action"] == {"addLabelIds": [allowed_id], "removeLabelIds": [screener_id]}


def test_undo_allow_touches_only_moved_messages(fake, resolver, screener):
    ids = _screened(fake, resolver, "bob@example.com", count=2)
    result = screener.allow("bob@example.com")

    allowed_id = resolver.resolve(LABEL_ALLOWED)
    late = fake.add_message(label_ids=[allowed_id, "INBOX"], sender="bob@example.com")["id"]

    undone = screener.undo_allow("bob@example.com", result.moved_ids, result.filter_id)

    screener_id = resolver.resolve(LABEL_SCREENER)
    assert undone.decision is SenderDecision.UNSCREENED
    assert sorted(undone.moved_ids) == sorted(ids)
    for msg_id in ids:
        assert fake.labels_of(msg_id) == [screener_id]
    assert allowed_id in fake.labels_of(late)
    assert fake.filters == {}


def test_undo_allow_without_filter_id_retires_approval(fake, resolver, screener):
    result = screener.allow("bob@example.com")
    screener.undo_allow("bob@example.com", result.moved_ids)
    assert result.filter_id not in fake.filters


def test_allow_replaces_prior_decision(fake, screener):
    denied = screener.deny("bob@example.com")
    allowed = screener.allow("bob@example.com")

    assert denied.filter_id not in fake.filters
    assert list(fake.filters) == [allowed.filter_id]
    assert screener.decision_for("bob@example.com") is SenderDecision.APPROVED


def test_allow_twice_keeps_one_filter(fake, screener):
    screener.allow("bob@example.com")
    second = screener.allow("bob@example.com")
    assert list(fake.filters) == [second.filter_id]


def test_allow_respects_sweep_cap(fake, resolver, store, screener):
    store.set(KEY_SWEEP_CAP, 3)
    ids = _screened(fake, resolver, "bob@example.com", count=5)

    result = screener.allow("bob@example.com")

    assert len(result.moved_ids) == 3
    # newest first
    assert result.moved_ids == list(reversed(ids))[:3]


def test_allow_rejects_bad_target(screener):
    with pytest.raises(ValueError):
        screener.allow("not-an-address")
    with pytest.raises(ValueError):
        screener.allow("bob@")


def test_remove_allowed_moves_mail_back_to_screener(fake, resolver, screener):
    ids = _screened(fake, resolver, "bob@example.com", count=2)
    screener.allow("bob@example.com")

    result = screener.remove_allowed("bob@example.com")

    screener_id = resolver.resolve(LABEL_SCREENER)
    assert result.decision is SenderDecision.UNSCREENED
    assert sorted(result.moved_ids) == sorted(ids)
    for msg_id in ids:
        assert fake.labels_of(msg_id) == [screener_id]
    assert fake.filters == {}


def test_remove_allowed_without_approval_is_noop(fake, resolver, screener):
    allowed_id = resolver.resolve(LABEL_ALLOWED)
    msg = fake.add_message(label_ids=[allowed_id, "INBOX"], sender="bob@example.com")["id"]
    fake.reset_calls()

    result = screener.remove_allowed("bob@example.com")

    assert result.moved_ids == []
    assert result.filter_id is None
    assert fake.calls_to("batch_modify") == []
    assert allowed_id in fake.labels_of(msg)


def test_deny_archives_screened_and_allowed_mail(fake, resolver, screener):
    screened = _screened(fake, resolver, "spam@example.com")
    allowed_id = resolver.resolve(LABEL_ALLOWED)
    allowed = fake.add_message(label_ids=[allowed_id, "INBOX"], sender="spam@example.com")["id"]

    result = screener.deny("spam@example.com")

    assert result.decision is SenderDecision.DENIED
    assert sorted(result.moved_ids) == sorted(screened + [allowed])
    for msg_id in result.moved_ids:
        assert fake.labels_of(msg_id) == []
    assert screener.list_screened_out() == ["spam@example.com"]


def test_deny_cap_applies_across_both_labels(fake, resolver, store, screener):
    store.set(KEY_SWEEP_CAP, 2)
    oldest, older = _screened(fake, resolver, "spam@example.com", count=2)
    allowed_id = resolver.resolve(LABEL_ALLOWED)
    newest = fake.add_message(label_ids=[allowed_id, "INBOX"], sender="spam@example.com")["id"]

    result = screener.deny("spam@example.com")

    assert result.moved_ids == [newest, older]
    assert fake.labels_of(oldest) == [resolver.resolve(LABEL_SCREENER)]
    assert len(fake.calls_to("search_messages")) == 1


def test_allow_after_deny_restores_archived_mail(fake, resolver, screener):
    screened = _screened(fake, resolver, "bob@example.com")
    screener.deny("bob@example.com")
    assert fake.labels_of(screened[0]) == []

    result = screener.allow("bob@example.com")

    assert result.moved_ids == screened
    assert set(fake.labels_of(screened[0])) == {resolver.resolve(LABEL_ALLOWED), "INBOX"}
    assert screener.list_screened_out() == []
    assert screener.list_allowed() == ["bob@example.com"]


def test_undo_deny_returns_mail_to_screener(fake, resolver, screener):
    screened = _screened(fake, resolver, "spam@example.com")
    result = screener.deny("spam@example.com")

    screener.undo_deny("spam@example.com", result.moved_ids, result.filter_id)

    assert fake.labels_of(screened[0]) == [resolver.resolve(LABEL_SCREENER)]
    assert screener.list_screened_out() == []


def test_remove_denied_deletes_filter_only(fake, resolver, screener):
    screened = _screened(fake, resolver, "spam@example.com")
    denied = screener.deny("spam@example.com")

    result = screener.remove_denied("spam@example.com")

    assert result.filter_id == denied.filter_id
    assert fake.filters == {}
    assert fake.labels_of(screened[0]) == []


def test_wildcard_allow_matches_domain(fake, resolver, screener):
    ids = _screened(fake, resolver, "a@example.com") + _screened(fake, resolver, "b@example.com")
    other = _screened(fake, resolver, "a@example.org")

    result = screener.allow("@Example.com")

    assert result.target == "@example.com"
    assert sorted(result.moved_ids) == sorted(ids)
    assert resolver.resolve(LABEL_SCREENER) in fake.labels_of(other[0])


def test_decision_for_prefers_exact_over_wildcard(screener):
    screener.deny("@example.com")
    screener.allow("boss@example.com")

    assert screener.decision_for("boss@example.com") is SenderDecision.APPROVED
    assert screener.decision_for("intern@example.com") is SenderDecision.DENIED
    assert screener.decision_for("friend@example.org") is SenderDecision.UNSCREENED


def test_list_allowed_and_screened_out(screener):
    screener.allow("b@example.com")
    screener.allow("a@example.com")
    screener.deny("@spam.example")

    assert screener.list_allowed() == ["a@example.com", "b@example.com"]
    assert screener.list_screened_out() == ["@spam.example"]


def test_list_allowed_without_labels_makes_no_filter_call(fake, screener):
    assert screener.list_allowed() == []
    assert fake.calls_to("list_filters") == []


def test_enable_screener_sweeps_unknown_inbox_mail(fake, resolver, store, screener):
    allowed_id = resolver.resolve(LABEL_ALLOWED)
    unknown = fake.add_message(sender="stranger@example.com")["id"]
    known = fake.add_message(label_ids=["INBOX", allowed_id], sender="friend@example.com")["id"]
    chat = fake.add_message(label_ids=["INBOX", "CHATS"], sender="buddy@example.com")["id"]

    result = screener.enable_screener(sweep_inbox=True)

    screener_id = resolver.resolve(LABEL_SCREENER)
    assert result.enabled is True
    assert result.moved_ids == [unknown]
    assert fake.labels_of(unknown) == [screener_id]
    assert "INBOX" in fake.labels_of(known)
    assert "INBOX" in fake.labels_of(chat)
    assert store.get(KEY_SCREENER_ENABLED) is True
    assert fake.filters[result.filter_id]["criteria"] == {"query": "-in:chats"}


def test_enable_screener_is_idempotent(fake, screener):
    first = screener.enable_screener()
    second = screener.enable_screener()
    assert first.filter_id == second.filter_id
    assert len(fake.filters) == 1


def test_enable_screener_recreates_deleted_routing_filter(fake, store, screener):
    first = screener.enable_screener()
    fake.delete_filter(first.filter_id)

    second = screener.enable_screener()

    assert second.filter_id != first.filter_id
    assert store.get(KEY_SCREENER_FILTER_ID) == second.filter_id


def test_disable_screener_restores_mail(fake, resolver, store, screener):
    screener.enable_screener()
    screened = _screened(fake, resolver, "stranger@example.com")

    result = screener.disable_screener(restore_to_inbox=True)

    assert result.enabled is False
    assert result.moved_ids == screened
    assert fake.labels_of(screened[0]) == ["INBOX"]
    assert fake.filters == {}
    assert store.get(KEY_SCREENER_ENABLED) is False
    assert store.get(KEY_SCREENER_FILTER_ID) is None
