"""Per-account engine and the request/response intent protocol."""

from __future__ import annotations

import logging
from typing import Callable

from gmail_gatekeeper.cleanup import CleanupSync
from gmail_gatekeeper.constants import USER_ID
from gmail_gatekeeper.errors import GatekeeperError
from gmail_gatekeeper.gmail_client import GmailGateway
from gmail_gatekeeper.labels import LabelResolver
from gmail_gatekeeper.screener import SenderScreener
from gmail_gatekeeper.store import KeyValueStore
from gmail_gatekeeper.triage import ThreadTriage

logger = logging.getLogger(__name__)


def account_namespace(gateway) -> str:
    """Store namespace of the mailbox behind ``gateway``: its lowercased address."""
    return gateway.get_profile()["emailAddress"].strip().lower()


def _target(intent: dict) -> str:
    target = intent.get("target") or intent.get("email")
    if not target:
        raise ValueError("No sender specified")
    return target


class Gatekeeper:
    """Wires the services of one mailbox account around a gateway and a store."""

    def __init__(self, gateway, store) -> None:
        self.gateway = gateway
        self.store = store
        self.labels = LabelResolver(gateway, store)
        self.screener = SenderScreener(gateway, self.labels, store)
        self.triage = ThreadTriage(gateway, self.labels)
        self.cleanup = CleanupSync(gateway, self.labels, store)

    @classmethod
    def for_service(cls, service, db_path=None, user_id: str = USER_ID) -> Gatekeeper:
        """Bind to the authenticated mailbox; its state lives in a namespace named after the address."""
        gateway = GmailGateway(service, user_id=user_id)
        return cls(gateway, KeyValueStore(db_path=db_path, namespace=account_namespace(gateway)))

    def close(self) -> None:
        self.store.close()

    def __enter__(self) -> Gatekeeper:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()

    def _handlers(self) -> dict[str, Callable[[dict], dict]]:
        return {
            "ALLOW": lambda m: self.screener.allow(_target(m)).to_dict(),
            "REMOVE_ALLOWED": lambda m: self.screener.remove_allowed(_target(m)).to_dict(),
            "UNDO_ALLOW": lambda m: self.screener.undo_allow(
                _target(m), m.get("movedIds") or [], m.get("filterId")
            ).to_dict(),
            "SCREEN_OUT": lambda m: self.screener.deny(_target(m)).to_dict(),
            "UNDO_SCREEN_OUT": lambda m: self.screener.undo_deny(
                _target(m), m.get("movedIds") or [], m.get("filterId")
            ).to_dict(),
            "REMOVE_BLOCKED": lambda m: self.screener.remove_denied(_target(m)).to_dict(),
            "REPLY_LATER": lambda m: self.triage.reply_later(m.get("threadIds") or []).to_dict(),
            "SET_ASIDE": lambda m: self.triage.set_aside(m.get("threadIds") or []).to_dict(),
            "MOVE_BACK": lambda m: self.triage.move_back(
                m.get("labelName", ""), m.get("threadIds") or []
            ).to_dict(),
            "ARCHIVE": lambda m: self.triage.archive(m.get("threadIds") or []).to_dict(),
            "SEND_REPLY": lambda m: self.triage.archive(m.get("threadIds") or []).to_dict(),
            "GET_ALLOWED": lambda m: {"success": True, "allowed": self.screener.list_allowed()},
            "GET_SCREENED_OUT": lambda m: {"success": True, "screenedOut": self.screener.list_screened_out()},
            "GET_LABEL_COUNTS": lambda m: {"success": True, **self.triage.label_counts()},
            "GET_LABELED_THREADS": lambda m: {
                "success": True,
                "threads": [t.to_dict() for t in self.triage.labeled_threads(m.get("labelName", ""))],
            },
            "ENABLE_SCREENER": lambda m: self.screener.enable_screener(bool(m.get("sweepInbox"))).to_dict(),
            "DISABLE_SCREENER": lambda m: self.screener.disable_screener(
                bool(m.get("restoreToInbox"))
            ).to_dict(),
            "RUN_CLEANUP": lambda m: self.cleanup.run().to_dict(),
        }

    def handle(self, intent: dict) -> dict:
        """Answer one intent with ``{"success": bool, ...}``.

        Engine and validation errors come back as ``{"success": False, "error": ...}``.
        """
        kind = intent.get("type")
        handler = self._handlers().get(kind)
        if handler is None:
            return {"success": False, "error": f"Unknown message type: {kind}"}
        try:
            return handler(intent)
        except (GatekeeperError, ValueError) as exc:
            logger.warning("%s failed: %s", kind, exc)
            return {"success": False, "error": str(exc)}
