"""Thread triage: Reply Later / Set Aside / back to Inbox / Archive."""

from __future__ import annotations

import logging

from gmail_gatekeeper.constants import (
    LABEL_INBOX,
    LABEL_REPLY_LATER,
    LABEL_SCREENER,
    LABEL_SET_ASIDE,
    LABELED_THREADS_LIMIT,
    TRIAGE_LABELS,
)
from gmail_gatekeeper.errors import GatekeeperError, NotFound, PermissionDenied
from gmail_gatekeeper.gmail_client import message_headers, parse_from_header
from gmail_gatekeeper.models import ThreadSummary, TriageResult, TriageState

logger = logging.getLogger(__name__)

_STATE_LABELS = {
    TriageState.REPLY_LATER: LABEL_REPLY_LATER,
    TriageState.SET_ASIDE: LABEL_SET_ASIDE,
}


class ThreadTriage:
    """Moves whole threads between the Inbox and the triage queues.

    Each message gets one combined modify call (add target, remove the other
    triage label and INBOX), so no reader ever sees a thread carrying both
    triage labels. Messages already in the target state are skipped.
    """

    def __init__(self, gateway, resolver) -> None:
        self.gateway = gateway
        self.resolver = resolver

    def _plan(self, state: TriageState) -> tuple[list[str], list[str]]:
        triage_ids = {name: self.resolver.resolve(name) for name in TRIAGE_LABELS}
        if state in _STATE_LABELS:
            target = _STATE_LABELS[state]
            others = [label_id for name, label_id in triage_ids.items() if name != target]
            return [triage_ids[target]], others + [LABEL_INBOX]
        if state is TriageState.INBOX:
            return [LABEL_INBOX], list(triage_ids.values())
        return [], list(triage_ids.values()) + [LABEL_INBOX]

    def transition(self, thread_ids: list[str], state: TriageState) -> TriageResult:
        if not thread_ids:
            raise ValueError("No threads specified")

        add, remove = self._plan(state)
        result = TriageResult(state)
        for thread_id in thread_ids:
            result.merge(self._apply(thread_id, state, add, remove))

        if result.partial:
            logger.warning(
                "%s: %d message(s) and %d thread(s) failed",
                state.value, len(result.failed_ids), len(result.failed_threads),
            )
        return result

    def _apply(self, thread_id: str, state: TriageState, add: list[str], remove: list[str]) -> TriageResult:
        result = TriageResult(state)
        try:
            thread = self.gateway.get_thread(thread_id)
        except NotFound:
            logger.warning("Thread %s not found", thread_id)
            result.failed_threads.append(thread_id)
            return result

        stale = False
        for message in thread.get("messages", []):
            labels = set(message.get("labelIds", []) or [])
            if labels.issuperset(add) and not labels.intersection(remove):
                continue
            try:
                self.gateway.modify_message(message["id"], add=add, remove=remove)
            except PermissionDenied:
                raise
            except GatekeeperError as exc:
                logger.warning("Could not modify message %s: %s", message["id"], exc)
                result.failed_ids.append(message["id"])
                stale = stale or "invalid label" in str(exc).lower()
            else:
                result.moved_ids.append(message["id"])

        if stale:
            for name in TRIAGE_LABELS:
                self.resolver.forget(name)
        return result

    def reply_later(self, thread_ids: list[str]) -> TriageResult:
        return self.transition(thread_ids, TriageState.REPLY_LATER)

    def set_aside(self, thread_ids: list[str]) -> TriageResult:
        return self.transition(thread_ids, TriageState.SET_ASIDE)

    def move_to_inbox(self, thread_ids: list[str]) -> TriageResult:
        return self.transition(thread_ids, TriageState.INBOX)

    def archive(self, thread_ids: list[str]) -> TriageResult:
        return self.transition(thread_ids, TriageState.ARCHIVED)

    def move_back(self, label_name: str, thread_ids: list[str]) -> TriageResult:
        """Return threads parked under ``label_name`` to the Inbox."""
        if label_name not in TRIAGE_LABELS:
            raise ValueError(f"Not a triage label: {label_name!r}")
        return self.move_to_inbox(thread_ids)

    # --- queries ---

    def label_counts(self) -> dict[str, int]:
        counts = {}
        for key, name in (
            ("replyLater", LABEL_REPLY_LATER),
            ("setAside", LABEL_SET_ASIDE),
            ("screener", LABEL_SCREENER),
        ):
            counts[key] = self._thread_total(name)
        return counts

    def _thread_total(self, name: str) -> int:
        label_id = self.resolver.lookup(name)
        if label_id is None:
            return 0
        try:
            label = self.gateway.get_label(label_id)
        except NotFound:
            self.resolver.forget(name)
            return 0
        return int(label.get("threadsTotal", 0))

    def labeled_threads(self, label_name: str, max_results: int = LABELED_THREADS_LIMIT) -> list[ThreadSummary]:
        label_id = self.resolver.lookup(label_name)
        if label_id is None:
            return []

        summaries = []
        for thread_id in self.gateway.search_threads(label_ids=[label_id], max_results=max_results):
            try:
                thread = self.gateway.get_thread(thread_id, fmt="metadata")
            except NotFound:
                continue
            messages = thread.get("messages", [])
            if not messages:
                continue
            headers = message_headers(messages[-1])
            from_value = headers.get("From", "")
            _, email = parse_from_header(from_value)
            summaries.append(
                ThreadSummary(
                    thread_id=thread_id,
                    sender=from_value,
                    sender_email=email.lower(),
                    subject=headers.get("Subject", "") or "(no subject)",
                    snippet=thread.get("snippet") or messages[-1].get("snippet", ""),
                    message_count=len(messages),
                    date=headers.get("Date", ""),
                )
            )
        return summaries
