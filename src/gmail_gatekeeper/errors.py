"""Error types raised by the gatekeeper engine."""

from __future__ import annotations


class GatekeeperError(Exception):
    """Base class for every failure surfaced by the engine."""


class NotFound(GatekeeperError):
    """A label, thread, message or filter does not exist remotely."""


class PermissionDenied(GatekeeperError):
    """The credential is not allowed to perform the request."""


class RemoteUnavailable(GatekeeperError):
    """Gmail could not be reached after the retry policy gave up."""


class RateLimited(RemoteUnavailable):
    """Gmail kept rejecting requests for quota reasons."""


class CursorExpired(GatekeeperError):
    """Gmail no longer serves history from the requested position."""


class LabelConflict(GatekeeperError):
    """A label with the requested name already exists."""


class PartialFailure(GatekeeperError):
    """Some messages of a bulk operation could not be modified."""

    def __init__(self, failed_ids: list[str], message: str | None = None) -> None:
        self.failed_ids = list(failed_ids)
        super().__init__(message or f"{len(self.failed_ids)} message(s) could not be modified")
