"""Audit log of reversible CLI actions, used by ``gatekeeper undo``."""

from __future__ import annotations

import json
from datetime import datetime

from gmail_gatekeeper import constants
from .models import ScreeningResult


def _load() -> list:
    path = constants.ACTION_LOG_PATH
    if not path.exists():
        return []
    with open(path) as f:
        try:
            log = json.load(f)
        except json.JSONDecodeError:
            return []
    return log if isinstance(log, list) else []


def _write(log: list) -> None:
    constants.ACTION_LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
    with open(constants.ACTION_LOG_PATH, "w") as f:
        json.dump(log, f, indent=2)


def record_action(action: str, result: ScreeningResult) -> dict:
    """Append a screening action and the exact ids it moved."""
    entry = {
        "date": datetime.now().isoformat(),
        "action": action,
        "target": result.target,
        "filterId": result.filter_id,
        "movedIds": list(result.moved_ids),
    }
    log = _load()
    log.append(entry)
    _write(log)
    return entry


def last_action() -> dict | None:
    log = _load()
    return log[-1] if log else None


def pop_last_action() -> dict | None:
    """Remove and return the most recent entry."""
    log = _load()
    if not log:
        return None
    entry = log.pop()
    _write(log)
    return entry
