"""History-cursor cleanup: retract Reply Later once the user has replied.

The job consumes Gmail's change log from a persisted ``historyId``:

    UNINITIALIZED --seed--> SEEDED --run--> RECONCILING --advance--> SEEDED
                                              |
                                              +--cursor expired--> re-seed --> SEEDED

A seed run only records the provider's current position. A reconcile run
looks for messages added with the SENT label; when the thread they belong to
still carries Reply Later, the label is removed from those messages.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum

from gmail_gatekeeper.constants import (
    CLEANUP_INTERVAL_SECONDS,
    KEY_LAST_HISTORY_ID,
    LABEL_REPLY_LATER,
    LABEL_SENT,
    LABEL_SET_ASIDE,
)
from gmail_gatekeeper.errors import CursorExpired, NotFound
from gmail_gatekeeper.models import Settings, SyncOutcome

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    UNINITIALIZED = "uninitialized"
    SEEDED = "seeded"
    RECONCILING = "reconciling"


class CleanupSync:
    """One account's cleanup job. :meth:`run` never raises."""

    def __init__(self, gateway, resolver, store) -> None:
        self.gateway = gateway
        self.resolver = resolver
        self.store = store
        self._run_lock = threading.Lock()
        self.state = SyncState.SEEDED if self.cursor() is not None else SyncState.UNINITIALIZED

    def cursor(self) -> int | None:
        value = self.store.get(KEY_LAST_HISTORY_ID)
        return int(value) if value is not None else None

    def save_cursor(self, history_id: int) -> int:
        """Persist ``history_id`` unless it would move the cursor backward."""
        current = self.cursor()
        if current is not None and history_id < current:
            logger.warning("Ignoring history id %s older than cursor %s", history_id, current)
            return current
        self.store.set(KEY_LAST_HISTORY_ID, str(history_id))
        return history_id

    def run(self) -> SyncOutcome:
        if not self._run_lock.acquire(blocking=False):
            logger.info("Cleanup sync already in flight, skipping this tick")
            return SyncOutcome("skipped", cursor=self.cursor())
        try:
            settings = Settings.load(self.store)
            if not settings.screener_enabled:
                return SyncOutcome("disabled", cursor=self.cursor())
            return self._step(settings)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Cleanup sync failed")
            return SyncOutcome("failed", cursor=self.cursor(), error=str(exc))
        finally:
            self.state = SyncState.SEEDED if self.cursor() is not None else SyncState.UNINITIALIZED
            self._run_lock.release()

    def _step(self, settings: Settings) -> SyncOutcome:
        cursor = self.cursor()
        if cursor is None:
            self.state = SyncState.UNINITIALIZED
            return self._seed("seeded")

        self.state = SyncState.RECONCILING
        try:
            records, history_id = self.gateway.list_history(cursor, history_types=["messageAdded"])
        except CursorExpired:
            logger.warning("History cursor %s expired, re-seeding", cursor)
            return self._seed("reseeded")

        cleared = self._reconcile(records, settings)
        cursor = self.save_cursor(history_id)
        logger.info("Cleanup sync advanced cursor to %s, cleared %d message(s)", cursor, len(cleared))
        return SyncOutcome("reconciled", cursor=cursor, cleared_ids=cleared)

    def _seed(self, action: str) -> SyncOutcome:
        history_id = self.gateway.current_history_id()
        cursor = self.save_cursor(history_id)
        logger.info("Cleanup sync %s cursor at %s", action, cursor)
        return SyncOutcome(action, cursor=cursor)

    @staticmethod
    def _replied_threads(records: list[dict]) -> list[str]:
        thread_ids: list[str] = []
        for record in records:
            for added in record.get("messagesAdded", []) or []:
                message = added.get("message", {})
                if LABEL_SENT not in (message.get("labelIds") or []):
                    continue
                thread_id = message.get("threadId")
                if thread_id and thread_id not in thread_ids:
                    thread_ids.append(thread_id)
        return thread_ids

    def _reconcile(self, records: list[dict], settings: Settings) -> list[str]:
        thread_ids = self._replied_threads(records)
        if not thread_ids:
            return []

        names = [LABEL_REPLY_LATER]
        if settings.clear_set_aside_on_reply:
            names.append(LABEL_SET_ASIDE)
        label_ids = [label_id for label_id in map(self.resolver.lookup, names) if label_id]
        if not label_ids:
            return []

        cleared: list[str] = []
        for thread_id in thread_ids:
            try:
                thread = self.gateway.get_thread(thread_id)
            except NotFound:
                continue
            for message in thread.get("messages", []):
                carried = [label_id for label_id in label_ids if label_id in (message.get("labelIds") or [])]
                if not carried:
                    continue
                try:
                    self.gateway.modify_message(message["id"], remove=carried)
                except NotFound:
                    continue
                cleared.append(message["id"])
        return cleared


class CleanupWorker:
    """Runs a :class:`CleanupSync` on a fixed interval in a daemon thread."""

    def __init__(self, sync: CleanupSync, interval: float = CLEANUP_INTERVAL_SECONDS) -> None:
        self.sync = sync
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="gatekeeper-cleanup-sync", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 2) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop_event.is_set():
            self.sync.run()
            self._stop_event.wait(self.interval)

    def run_once(self) -> threading.Thread:
        """Trigger an extra run; it is skipped if a run is already in flight."""
        thread = threading.Thread(target=self.sync.run, daemon=True)
        thread.start()
        return thread
