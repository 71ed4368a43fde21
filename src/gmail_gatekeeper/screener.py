"""Sender screening: Allow / Deny / Undo through standing Gmail filters.

A decision lives remotely as one filter whose criteria is ``from:<target>``;
there is no local ledger. Every decision also relabels mail that already
arrived, and returns the exact ids it touched so an undo can reverse those
messages and nothing else.

Label transitions (retroactive part):

    allow          Screener        -> Allowed + INBOX
                   (after a deny: any non-Inbox mail -> Allowed + INBOX)
    remove_allowed Allowed + INBOX -> Screener
    undo_allow     moved ids       -> Screener
    deny           Screener/Allowed/INBOX removed (archived)
    undo_deny      moved ids       -> Screener
"""

from __future__ import annotations

import logging

from gmail_gatekeeper.constants import (
    DEFAULT_BASE_FILTER,
    KEY_SCREENER_ENABLED,
    KEY_SCREENER_FILTER_ID,
    LABEL_ALLOWED,
    LABEL_INBOX,
    LABEL_SCREENER,
)
from gmail_gatekeeper.errors import NotFound
from gmail_gatekeeper.labels import label_query
from gmail_gatekeeper.models import (
    ScreeningResult,
    SenderDecision,
    Settings,
    SweepResult,
    is_wildcard,
    matches_target,
    normalize_target,
)

logger = logging.getLogger(__name__)


def _filter_target(f: dict) -> str:
    return (f.get("criteria", {}).get("from") or "").strip().lower()


class SenderScreener:
    """Allow, deny and undo decisions for senders and ``@domain`` wildcards."""

    def __init__(self, gateway, resolver, store) -> None:
        self.gateway = gateway
        self.resolver = resolver
        self.store = store

    # --- helpers ---

    def _label_ids(self) -> tuple[str, str]:
        return self.resolver.resolve(LABEL_ALLOWED), self.resolver.resolve(LABEL_SCREENER)

    @staticmethod
    def _decision_of(f: dict, allowed_id: str | None, screener_id: str | None) -> SenderDecision | None:
        action = f.get("action", {})
        add = action.get("addLabelIds", []) or []
        remove = action.get("removeLabelIds", []) or []
        if allowed_id and allowed_id in add:
            return SenderDecision.APPROVED
        if screener_id and screener_id in remove and LABEL_INBOX in remove:
            return SenderDecision.DENIED
        return None

    def _decision_filters(
        self,
        target: str,
        allowed_id: str | None,
        screener_id: str | None,
        decision: SenderDecision | None = None,
    ) -> list[dict]:
        """Filters recording a decision for exactly ``target``."""
        matches = []
        for f in self.gateway.list_filters():
            if _filter_target(f) != target:
                continue
            found = self._decision_of(f, allowed_id, screener_id)
            if found is None or (decision is not None and found != decision):
                continue
            matches.append(f)
        return matches

    def _delete_filter(self, filter_id: str) -> bool:
        try:
            self.gateway.delete_filter(filter_id)
        except NotFound:
            logger.debug("Filter %s already gone", filter_id)
            return False
        logger.info("Deleted filter %s", filter_id)
        return True

    def _retire(self, target: str, allowed_id: str, screener_id: str,
                decision: SenderDecision | None = None) -> list[str]:
        retired = []
        for f in self._decision_filters(target, allowed_id, screener_id, decision):
            self._delete_filter(f["id"])
            retired.append(f["id"])
        return retired

    def _search(self, query: str, cap: int) -> list[str]:
        """At most ``cap`` ids matching ``query``, newest first."""
        return self.gateway.search_messages(query, max_results=cap)[:cap]

    def _relabel(self, message_ids: list[str], add: list[str], remove: list[str]) -> list[str]:
        if message_ids:
            self.gateway.batch_modify(message_ids, add=add, remove=remove)
            logger.info("Relabeled %d message(s): +%s -%s", len(message_ids), add, remove)
        return list(message_ids)

    # --- decisions ---

    def allow(self, target: str) -> ScreeningResult:
        target = normalize_target(target)
        allowed_id, screener_id = self._label_ids()
        settings = Settings.load(self.store)

        was_denied = self._retire(target, allowed_id, screener_id, SenderDecision.DENIED)
        self._retire(target, allowed_id, screener_id, SenderDecision.APPROVED)
        created = self.gateway.create_filter(
            {"from": target},
            {"addLabelIds": [allowed_id], "removeLabelIds": [screener_id]},
        )
        logger.info("Allowed %s with filter %s", target, created["id"])

        if was_denied:
            # archived screened-out mail and Screener mail are both outside the Inbox
            query = f"from:{target} -in:inbox -{label_query(LABEL_ALLOWED)}"
        else:
            query = f"from:{target} {label_query(LABEL_SCREENER)}"
        ids = self._search(query, settings.sweep_cap)
        moved = self._relabel(ids, add=[allowed_id, LABEL_INBOX], remove=[screener_id])
        return ScreeningResult(target, SenderDecision.APPROVED, created["id"], moved)

    def remove_allowed(self, target: str) -> ScreeningResult:
        target = normalize_target(target)
        allowed_id, screener_id = self._label_ids()

        retired = self._retire(target, allowed_id, screener_id, SenderDecision.APPROVED)
        if not retired:
            return ScreeningResult(target, SenderDecision.UNSCREENED)

        settings = Settings.load(self.store)
        ids = self._search(f"from:{target} {label_query(LABEL_ALLOWED)}", settings.sweep_cap)
        moved = self._relabel(ids, add=[screener_id], remove=[allowed_id, LABEL_INBOX])
        return ScreeningResult(target, SenderDecision.UNSCREENED, retired[0], moved)

    def undo_allow(self, target: str, moved_ids: list[str], filter_id: str | None = None) -> ScreeningResult:
        """Reverse an :meth:`allow` on exactly ``moved_ids``.

        Mail from ``target`` that arrived after the allow is left alone, even
        though a fresh search would match it.
        """
        target = normalize_target(target)
        allowed_id, screener_id = self._label_ids()

        if filter_id:
            self._delete_filter(filter_id)
        else:
            self._retire(target, allowed_id, screener_id, SenderDecision.APPROVED)

        moved = self._relabel(list(moved_ids or []), add=[screener_id], remove=[allowed_id, LABEL_INBOX])
        return ScreeningResult(target, SenderDecision.UNSCREENED, filter_id, moved)

    def deny(self, target: str) -> ScreeningResult:
        target = normalize_target(target)
        allowed_id, screener_id = self._label_ids()
        settings = Settings.load(self.store)

        self._retire(target, allowed_id, screener_id)
        created = self.gateway.create_filter(
            {"from": target},
            {"removeLabelIds": [LABEL_INBOX, screener_id]},
        )
        logger.info("Screened out %s with filter %s", target, created["id"])

        # {a b} is an OR group: one newest-first list across both labels
        query = f"from:{target} {{{label_query(LABEL_SCREENER)} {label_query(LABEL_ALLOWED)}}}"
        ids = self._search(query, settings.sweep_cap)
        moved = self._relabel(ids, add=[], remove=[screener_id, allowed_id, LABEL_INBOX])
        return ScreeningResult(target, SenderDecision.DENIED, created["id"], moved)

    def undo_deny(self, target: str, moved_ids: list[str], filter_id: str | None = None) -> ScreeningResult:
        target = normalize_target(target)
        allowed_id, screener_id = self._label_ids()

        if filter_id:
            self._delete_filter(filter_id)
        else:
            self._retire(target, allowed_id, screener_id, SenderDecision.DENIED)

        moved = self._relabel(list(moved_ids or []), add=[screener_id], remove=[])
        return ScreeningResult(target, SenderDecision.UNSCREENED, filter_id, moved)

    def remove_denied(self, target: str) -> ScreeningResult:
        target = normalize_target(target)
        allowed_id, screener_id = self._label_ids()
        retired = self._retire(target, allowed_id, screener_id, SenderDecision.DENIED)
        return ScreeningResult(target, SenderDecision.UNSCREENED, retired[0] if retired else None)

    # --- queries ---

    def _targets(self, decision: SenderDecision) -> list[str]:
        allowed_id = self.resolver.lookup(LABEL_ALLOWED)
        screener_id = self.resolver.lookup(LABEL_SCREENER)
        if allowed_id is None and screener_id is None:
            return []
        targets = {
            _filter_target(f)
            for f in self.gateway.list_filters()
            if _filter_target(f) and self._decision_of(f, allowed_id, screener_id) == decision
        }
        return sorted(targets)

    def list_allowed(self) -> list[str]:
        return self._targets(SenderDecision.APPROVED)

    def list_screened_out(self) -> list[str]:
        return self._targets(SenderDecision.DENIED)

    def decision_for(self, address: str) -> SenderDecision:
        """Evaluate the standing decision for one address.

        An exact address decision wins over a wildcard decision for its domain.
        """
        address = normalize_target(address)
        allowed_id = self.resolver.lookup(LABEL_ALLOWED)
        screener_id = self.resolver.lookup(LABEL_SCREENER)
        wildcard: SenderDecision | None = None
        for f in self.gateway.list_filters():
            target = _filter_target(f)
            if not target or not matches_target(address, target):
                continue
            found = self._decision_of(f, allowed_id, screener_id)
            if found is None:
                continue
            if not is_wildcard(target):
                return found
            wildcard = wildcard or found
        return wildcard or SenderDecision.UNSCREENED

    # --- screener mode ---

    def enable_screener(self, sweep_inbox: bool = False) -> SweepResult:
        """Route future unknown mail to Screener, optionally sweeping the Inbox."""
        allowed_id, screener_id = self._label_ids()
        settings = Settings.load(self.store)

        filter_id = self.store.get(KEY_SCREENER_FILTER_ID)
        if filter_id and not any(f["id"] == filter_id for f in self.gateway.list_filters()):
            filter_id = None
        if not filter_id:
            created = self.gateway.create_filter(
                {"query": settings.base_filter or DEFAULT_BASE_FILTER},
                {"addLabelIds": [screener_id], "removeLabelIds": [LABEL_INBOX]},
            )
            filter_id = created["id"]
            self.store.set(KEY_SCREENER_FILTER_ID, filter_id)
            logger.info("Created screener routing filter %s", filter_id)
        self.store.set(KEY_SCREENER_ENABLED, True)

        moved: list[str] = []
        if sweep_inbox:
            query = " ".join(
                part for part in ("in:inbox", settings.base_filter, f"-{label_query(LABEL_ALLOWED)}") if part
            )
            ids = self._search(query, settings.sweep_cap)
            moved = self._relabel(ids, add=[screener_id], remove=[LABEL_INBOX])
        return SweepResult(True, filter_id, moved)

    def disable_screener(self, restore_to_inbox: bool = False) -> SweepResult:
        filter_id = self.store.get(KEY_SCREENER_FILTER_ID)
        if filter_id:
            self._delete_filter(filter_id)
            self.store.delete(KEY_SCREENER_FILTER_ID)
        self.store.set(KEY_SCREENER_ENABLED, False)

        moved: list[str] = []
        screener_id = self.resolver.lookup(LABEL_SCREENER)
        if restore_to_inbox and screener_id:
            settings = Settings.load(self.store)
            ids = self._search(label_query(LABEL_SCREENER), settings.sweep_cap)
            moved = self._relabel(ids, add=[LABEL_INBOX], remove=[screener_id])
        return SweepResult(False, filter_id, moved)
