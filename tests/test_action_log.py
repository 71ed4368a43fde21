"""Tests for the undo action log."""

import json

import pytest

import gmail_gatekeeper.constants as constants
from gmail_gatekeeper.action_log import last_action, pop_last_action, record_action
from gmail_gatekeeper.models import ScreeningResult, SenderDecision


@pytest.fixture
def log_path(tmp_path, monkeypatch):
    path = tmp_path / "nested" / "action_log.json"
    monkeypatch.setattr(constants, "ACTION_LOG_PATH", path)
    return path


def test_record_and_pop(log_path):
    record_action("allow", ScreeningResult("a@example.com", SenderDecision.APPROVED, "f1", ["m1"]))
    record_action("deny", ScreeningResult("@spam.example", SenderDecision.DENIED, "f2", []))

    assert last_action()["target"] == "@spam.example"
    entry = pop_last_action()
    assert entry["action"] == "deny"
    assert last_action() == {
        "date": last_action()["date"],
        "action": "allow",
        "target": "a@example.com",
        "filterId": "f1",
        "movedIds": ["m1"],
    }
    assert len(json.loads(log_path.read_text())) == 1


def test_empty_or_corrupt_log(log_path):
    assert last_action() is None
    assert pop_last_action() is None

    log_path.parent.mkdir(parents=True)
    log_path.write_text("{not json")
    assert last_action() is None
