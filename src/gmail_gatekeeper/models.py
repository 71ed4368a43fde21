"""Data models for Gmail Gatekeeper."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from .constants import (
    DEFAULT_BASE_FILTER,
    DEFAULT_SWEEP_CAP,
    KEY_BASE_FILTER,
    KEY_CLEAR_SET_ASIDE_ON_REPLY,
    KEY_SCREENER_ENABLED,
    KEY_SWEEP_CAP,
)
from .errors import PartialFailure

_ADDRESS_RE = re.compile(r"<([^>]+)>")


def normalize_target(raw: str) -> str:
    """Normalize a sender address or ``@domain`` wildcard.

    Accepts a bare address, a full From header value, or a wildcard:
      "Alice <Alice@Example.com>" -> "alice@example.com"
      "@Example.com"              -> "@example.com"

    Raises ValueError when the result is not usable as a filter target.
    """
    value = (raw or "").strip()
    m = _ADDRESS_RE.search(value)
    if m:
        value = m.group(1)
    value = value.strip().strip('"').lower()
    if "@" not in value or " " in value or value.endswith("@"):
        raise ValueError(f"Not a sender address or @domain: {raw!r}")
    return value


def is_wildcard(target: str) -> bool:
    return target.startswith("@")


def matches_target(address: str, target: str) -> bool:
    """True when ``address`` falls under ``target``.

    Wildcards match any address that ends with the domain part; plain targets
    must match the whole address. Comparison is case-insensitive.
    """
    address = (address or "").strip().lower()
    target = target.strip().lower()
    if is_wildcard(target):
        return address.endswith(target)
    return address == target


class SenderDecision(str, Enum):
    UNSCREENED = "unscreened"
    APPROVED = "approved"
    DENIED = "denied"


class TriageState(str, Enum):
    INBOX = "inbox"
    REPLY_LATER = "reply_later"
    SET_ASIDE = "set_aside"
    ARCHIVED = "archived"


@dataclass
class ScreeningResult:
    """Outcome of one screening action.

    ``moved_ids`` is the Moved-Message Set: exactly the messages whose labels
    were changed, never the messages that merely matched.
    """

    target: str
    decision: SenderDecision
    filter_id: str | None = None
    moved_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": True,
            "target": self.target,
            "decision": self.decision.value,
            "filterId": self.filter_id,
            "movedIds": list(self.moved_ids),
        }


@dataclass
class SweepResult:
    """Outcome of enabling or disabling screener mode."""

    enabled: bool
    filter_id: str | None = None
    moved_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": True,
            "enabled": self.enabled,
            "filterId": self.filter_id,
            "sweepResult": {"moved": len(self.moved_ids), "movedIds": list(self.moved_ids)},
        }


@dataclass
class TriageResult:
    """Outcome of a triage transition over one or more threads."""

    state: TriageState
    moved_ids: list[str] = field(default_factory=list)
    failed_ids: list[str] = field(default_factory=list)
    failed_threads: list[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failed_ids or self.failed_threads)

    def merge(self, other: TriageResult) -> None:
        self.moved_ids.extend(other.moved_ids)
        self.failed_ids.extend(other.failed_ids)
        self.failed_threads.extend(other.failed_threads)

    def raise_for_failures(self) -> None:
        if self.partial:
            raise PartialFailure(self.failed_ids + self.failed_threads)

    def to_dict(self) -> dict:
        return {
            "success": True,
            "state": self.state.value,
            "movedIds": list(self.moved_ids),
            "failedIds": list(self.failed_ids),
            "failedThreads": list(self.failed_threads),
        }


@dataclass
class SyncOutcome:
    """Result of a single cleanup sync run."""

    action: str  # disabled, skipped, seeded, reseeded, reconciled, failed
    cursor: int | None = None
    cleared_ids: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def skipped(self) -> bool:
        return self.action == "skipped"

    def to_dict(self) -> dict:
        return {
            "success": self.action != "failed",
            "action": self.action,
            "cursor": self.cursor,
            "clearedIds": list(self.cleared_ids),
            "error": self.error,
        }


@dataclass
class ThreadSummary:
    """Display-oriented view of a thread carrying a gatekeeper label."""

    thread_id: str
    sender: str
    sender_email: str
    subject: str
    snippet: str = ""
    message_count: int = 0
    date: str = ""

    def to_dict(self) -> dict:
        return {
            "threadId": self.thread_id,
            "from": self.sender,
            "fromEmail": self.sender_email,
            "subject": self.subject,
            "snippet": self.snippet,
            "messageCount": self.message_count,
            "date": self.date,
        }


@dataclass
class Settings:
    """Runtime settings persisted in the key/value store."""

    screener_enabled: bool = False
    sweep_cap: int = DEFAULT_SWEEP_CAP
    base_filter: str = DEFAULT_BASE_FILTER
    clear_set_aside_on_reply: bool = False

    @classmethod
    def load(cls, store) -> Settings:
        sweep_cap = store.get(KEY_SWEEP_CAP, DEFAULT_SWEEP_CAP)
        if not isinstance(sweep_cap, int) or sweep_cap <= 0:
            sweep_cap = DEFAULT_SWEEP_CAP
        base_filter = store.get(KEY_BASE_FILTER, DEFAULT_BASE_FILTER)
        if base_filter is None:
            base_filter = DEFAULT_BASE_FILTER
        return cls(
            screener_enabled=bool(store.get(KEY_SCREENER_ENABLED, False)),
            sweep_cap=sweep_cap,
            base_filter=str(base_filter).strip(),
            clear_set_aside_on_reply=bool(store.get(KEY_CLEAR_SET_ASIDE_ON_REPLY, False)),
        )

    def save(self, store) -> None:
        store.set(KEY_SCREENER_ENABLED, self.screener_enabled)
        store.set(KEY_SWEEP_CAP, self.sweep_cap)
        store.set(KEY_BASE_FILTER, self.base_filter)
        store.set(KEY_CLEAR_SET_ASIDE_ON_REPLY, self.clear_set_aside_on_reply)
