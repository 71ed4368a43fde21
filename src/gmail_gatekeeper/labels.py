"""Label name -> Gmail label id resolution with a persistent cache.

Gmail assigns label ids on creation, so every gatekeeper label is looked up
(or created) by name once per account and the id is kept in the key/value
store. The resolver guarantees one id per name:

* calls for the same uncached name inside one process are serialized by a
  per-name lock, so only the first caller talks to Gmail;
* callers in other processes may still race on ``labels.create``. Gmail
  rejects the loser with a conflict, and the loser re-lists the labels and
  adopts the winner's id instead of failing.
"""

from __future__ import annotations

import logging
import threading

from gmail_gatekeeper.constants import LABEL_CACHE_PREFIX
from gmail_gatekeeper.errors import LabelConflict

logger = logging.getLogger(__name__)


def label_query(name: str) -> str:
    """Return a Gmail search predicate for a label name.

    Names containing a slash or a space are quoted:
      "Allowed"              -> label:Allowed
      "Gatekeeper/Set Aside" -> label:"Gatekeeper/Set Aside"
    """
    if "/" in name or " " in name:
        return f'label:"{name}"'
    return f"label:{name}"


def safe_storage_key(name: str) -> str:
    return name.replace("/", "_").replace(" ", "_")


def storage_key_for_label(name: str) -> str:
    return f"{LABEL_CACHE_PREFIX}{safe_storage_key(name)}"


class LabelResolver:
    """Resolve-or-create cache for Gmail label ids."""

    def __init__(self, gateway, store) -> None:
        self.gateway = gateway
        self.store = store
        self._memory: dict[str, str] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, name: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(name, threading.Lock())

    def cached(self, name: str) -> str | None:
        """Return the cached id for ``name`` without any remote call."""
        label_id = self._memory.get(name)
        if label_id:
            return label_id
        label_id = self.store.get(storage_key_for_label(name))
        if label_id:
            self._memory[name] = label_id
        return label_id

    def resolve(self, name: str) -> str:
        label_id = self.cached(name)
        if label_id:
            return label_id

        with self._lock_for(name):
            label_id = self.cached(name)
            if label_id:
                return label_id

            label_id = self._find_remote(name)
            if label_id is None:
                label_id = self._create(name)
            self._memory[name] = label_id
            self.store.set(storage_key_for_label(name), label_id)

        return label_id

    def lookup(self, name: str) -> str | None:
        """Like :meth:`resolve` but never creates the label."""
        label_id = self.cached(name)
        if label_id:
            return label_id
        label_id = self._find_remote(name)
        if label_id is not None:
            self._memory[name] = label_id
            self.store.set(storage_key_for_label(name), label_id)
        return label_id

    def _find_remote(self, name: str) -> str | None:
        for label in self.gateway.list_labels():
            if label.get("name") == name:
                return label["id"]
        return None

    def _create(self, name: str) -> str:
        try:
            created = self.gateway.create_label(name)
        except LabelConflict:
            label_id = self._find_remote(name)
            if label_id is None:
                raise
            logger.warning("Label %r was created concurrently, adopting id %s", name, label_id)
            return label_id
        logger.info("Created label %r (%s)", name, created["id"])
        return created["id"]

    def forget(self, name: str) -> None:
        """Drop one cached id, e.g. after Gmail reported it as missing."""
        self._memory.pop(name, None)
        self.store.delete(storage_key_for_label(name))

    def clear_cache(self) -> None:
        self._memory.clear()
        removed = self.store.delete_prefix(LABEL_CACHE_PREFIX)
        logger.info("Cleared label cache (%d persisted entries)", removed)
