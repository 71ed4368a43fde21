"""Shared fixtures for tests."""

from __future__ import annotations

import pytest

from fakes import FakeGmail
from gmail_gatekeeper.cleanup import CleanupSync
from gmail_gatekeeper.constants import KEY_SCREENER_ENABLED
from gmail_gatekeeper.engine import Gatekeeper
from gmail_gatekeeper.labels import LabelResolver
from gmail_gatekeeper.screener import SenderScreener
from gmail_gatekeeper.store import KeyValueStore
from gmail_gatekeeper.triage import ThreadTriage


@pytest.fixture
def fake() -> FakeGmail:
    return FakeGmail()


@pytest.fixture
def store(tmp_path) -> KeyValueStore:
    kv = KeyValueStore(db_path=tmp_path / "state.db")
    yield kv
    kv.close()


@pytest.fixture
def resolver(fake: FakeGmail, store: KeyValueStore) -> LabelResolver:
    return LabelResolver(fake, store)


@pytest.fixture
def screener(fake: FakeGmail, resolver: LabelResolver, store: KeyValueStore) -> SenderScreener:
    return SenderScreener(fake, resolver, store)


@pytest.fixture
def triage(fake: FakeGmail, resolver: LabelResolver) -> ThreadTriage:
    return ThreadTriage(fake, resolver)


@pytest.fixture
def cleanup(fake: FakeGmail, resolver: LabelResolver, store: KeyValueStore) -> CleanupSync:
    store.set(KEY_SCREENER_ENABLED, True)
    return CleanupSync(fake, resolver, store)


@pytest.fixture
def engine(fake: FakeGmail, store: KeyValueStore) -> Gatekeeper:
    return Gatekeeper(fake, store)
