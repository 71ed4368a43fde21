"""Gmail API gateway: the only place that talks to the remote mailbox."""

from __future__ import annotations

import json
import logging
import re

import httplib2
from googleapiclient.errors import HttpError
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from gmail_gatekeeper.constants import (
    HISTORY_PAGE_SIZE,
    METADATA_HEADERS,
    MODIFY_BATCH_SIZE,
    PAGE_SIZE,
    RATE_LIMIT_REASONS,
    RETRYABLE_STATUSES,
    USER_ID,
)
from gmail_gatekeeper.errors import (
    CursorExpired,
    GatekeeperError,
    LabelConflict,
    NotFound,
    PermissionDenied,
    RateLimited,
    RemoteUnavailable,
)

logger = logging.getLogger(__name__)

_FROM_RE = re.compile(r"^(.*?)\s*<([^>]+)>$")
_TRANSPORT_ERRORS = (OSError, httplib2.HttpLib2Error)


def _error_reason(exc: HttpError) -> str:
    """Return the first machine-readable reason of a Gmail error payload."""
    try:
        content = exc.content.decode("utf-8") if isinstance(exc.content, bytes) else exc.content
        data = json.loads(content or "{}")
    except (ValueError, AttributeError):
        return ""
    errors = data.get("error", {}).get("errors") or []
    if errors and isinstance(errors[0], dict):
        return errors[0].get("reason", "")
    return ""


def _error_message(exc: HttpError) -> str:
    try:
        content = exc.content.decode("utf-8") if isinstance(exc.content, bytes) else exc.content
        message = json.loads(content or "{}").get("error", {}).get("message")
    except (ValueError, AttributeError):
        message = None
    return message or getattr(exc.resp, "reason", "") or "unknown error"


def _status(exc: HttpError) -> int:
    return int(exc.resp.status)


def _is_rate_limit(exc: HttpError) -> bool:
    status = _status(exc)
    return status == 429 or (status == 403 and _error_reason(exc) in RATE_LIMIT_REASONS)


def _is_retryable_error(exc: BaseException) -> bool:
    if isinstance(exc, HttpError):
        return _status(exc) in RETRYABLE_STATUSES or _is_rate_limit(exc)
    return isinstance(exc, _TRANSPORT_ERRORS)


def _translate_http_error(exc: HttpError, not_found: type[GatekeeperError] = NotFound) -> GatekeeperError:
    status = _status(exc)
    message = f"Gmail API {status}: {_error_message(exc)}"
    if _is_rate_limit(exc):
        return RateLimited(message)
    if status == 404:
        return not_found(message)
    if status in (401, 403):
        return PermissionDenied(message)
    if status == 409:
        return LabelConflict(message)
    if status >= 500:
        return RemoteUnavailable(message)
    return GatekeeperError(message)


def default_retrying() -> Retrying:
    return Retrying(
        retry=retry_if_exception(_is_retryable_error),
        wait=wait_exponential(multiplier=1, min=1, max=60),
        stop=stop_after_attempt(5),
        reraise=True,
    )


def parse_from_header(from_value: str) -> tuple[str, str]:
    """Parse a From header into (display name, email address).

    Handles formats like:
      "John Doe <john@example.com>" -> ("John Doe", "john@example.com")
      "<john@example.com>"          -> ("", "john@example.com")
      "john@example.com"            -> ("", "john@example.com")
    """
    if not from_value:
        return ("", "")
    m = _FROM_RE.match(from_value.strip())
    if m:
        name = m.group(1).strip().strip('"').strip("'")
        return (name, m.group(2).strip())
    email = from_value.strip().strip("<>")
    return ("", email)


def message_headers(message: dict) -> dict[str, str]:
    headers = {}
    for h in message.get("payload", {}).get("headers", []):
        headers[h["name"]] = h["value"]
    return headers


class GmailGateway:
    """Narrow wrapper over the Gmail REST resource.

    Every request goes through one retry policy; errors leave this class only
    as :mod:`gmail_gatekeeper.errors` types.
    """

    def __init__(self, service, user_id: str = USER_ID, retrying: Retrying | None = None) -> None:
        self.service = service
        self.user_id = user_id
        self._retrying = retrying or default_retrying()

    def _execute(self, request, not_found: type[GatekeeperError] = NotFound):
        try:
            return self._retrying(request.execute)
        except HttpError as exc:
            raise _translate_http_error(exc, not_found) from exc
        except _TRANSPORT_ERRORS as exc:
            raise RemoteUnavailable(f"Gmail unreachable: {exc}") from exc

    @property
    def _users(self):
        return self.service.users()

    # --- profile / history ---

    def get_profile(self) -> dict:
        return self._execute(self._users.getProfile(userId=self.user_id))

    def current_history_id(self) -> int:
        return int(self.get_profile()["historyId"])

    def list_history(
        self,
        start_history_id: int,
        history_types: list[str] | None = None,
    ) -> tuple[list[dict], int]:
        """Fetch every history record after ``start_history_id``.

        Returns ``(records, history_id)`` where ``history_id`` is the
        provider's current position. Raises CursorExpired when Gmail no longer
        holds history that far back.
        """
        records: list[dict] = []
        page_token: str | None = None
        history_id = start_history_id

        while True:
            kwargs: dict = {
                "userId": self.user_id,
                "startHistoryId": str(start_history_id),
                "maxResults": HISTORY_PAGE_SIZE,
            }
            if history_types:
                kwargs["historyTypes"] = list(history_types)
            if page_token:
                kwargs["pageToken"] = page_token

            resp = self._execute(self._users.history().list(**kwargs), not_found=CursorExpired)
            records.extend(resp.get("history", []))
            history_id = int(resp.get("historyId", history_id))

            page_token = resp.get("nextPageToken")
            if not page_token:
                break

        return records, history_id

    # --- messages / threads ---

    def search_messages(self, query: str | None = None, max_results: int | None = None) -> list[str]:
        """List message IDs matching the query, newest first, handling pagination."""
        ids: list[str] = []
        page_token: str | None = None

        while True:
            kwargs: dict = {
                "userId": self.user_id,
                "maxResults": min(PAGE_SIZE, max_results) if max_results else PAGE_SIZE,
                "fields": "messages/id,nextPageToken",
            }
            if query:
                kwargs["q"] = query
            if page_token:
                kwargs["pageToken"] = page_token

            resp = self._execute(self._users.messages().list(**kwargs))
            for msg in resp.get("messages", []):
                ids.append(msg["id"])
                if max_results and len(ids) >= max_results:
                    return ids[:max_results]

            page_token = resp.get("nextPageToken")
            if not page_token:
                break

        return ids

    def search_threads(
        self,
        query: str | None = None,
        label_ids: list[str] | None = None,
        max_results: int | None = None,
    ) -> list[str]:
        ids: list[str] = []
        page_token: str | None = None

        while True:
            kwargs: dict = {
                "userId": self.user_id,
                "maxResults": min(PAGE_SIZE, max_results) if max_results else PAGE_SIZE,
            }
            if query:
                kwargs["q"] = query
            if label_ids:
                kwargs["labelIds"] = list(label_ids)
            if page_token:
                kwargs["pageToken"] = page_token

            resp = self._execute(self._users.threads().list(**kwargs))
            for thread in resp.get("threads", []) or []:
                ids.append(thread["id"])
                if max_results and len(ids) >= max_results:
                    return ids[:max_results]

            page_token = resp.get("nextPageToken")
            if not page_token:
                break

        return ids

    def get_thread(self, thread_id: str, fmt: str = "minimal") -> dict:
        kwargs: dict = {"userId": self.user_id, "id": thread_id, "format": fmt}
        if fmt == "metadata":
            kwargs["metadataHeaders"] = METADATA_HEADERS
        return self._execute(self._users.threads().get(**kwargs))

    def modify_message(
        self,
        message_id: str,
        add: list[str] | None = None,
        remove: list[str] | None = None,
    ) -> dict:
        return self._execute(
            self._users.messages().modify(
                userId=self.user_id,
                id=message_id,
                body={"addLabelIds": list(add or []), "removeLabelIds": list(remove or [])},
            )
        )

    def batch_modify(
        self,
        message_ids: list[str],
        add: list[str] | None = None,
        remove: list[str] | None = None,
    ) -> int:
        """Apply one label change to many messages in batchModify chunks."""
        modified = 0
        for start in range(0, len(message_ids), MODIFY_BATCH_SIZE):
            chunk = message_ids[start:start + MODIFY_BATCH_SIZE]
            self._execute(
                self._users.messages().batchModify(
                    userId=self.user_id,
                    body={
                        "ids": chunk,
                        "addLabelIds": list(add or []),
                        "removeLabelIds": list(remove or []),
                    },
                )
            )
            modified += len(chunk)
        return modified

    # --- labels ---

    def list_labels(self) -> list[dict]:
        return self._execute(self._users.labels().list(userId=self.user_id)).get("labels", [])

    def get_label(self, label_id: str) -> dict:
        return self._execute(self._users.labels().get(userId=self.user_id, id=label_id))

    def create_label(self, name: str) -> dict:
        try:
            return self._execute(
                self._users.labels().create(
                    userId=self.user_id,
                    body={
                        "name": name,
                        "labelListVisibility": "labelShow",
                        "messageListVisibility": "show",
                    },
                )
            )
        except GatekeeperError as exc:
            text = str(exc).lower()
            if type(exc) is GatekeeperError and ("exists" in text or "conflict" in text):
                raise LabelConflict(str(exc)) from exc
            raise

    # --- filters ---

    def list_filters(self) -> list[dict]:
        resp = self._execute(self._users.settings().filters().list(userId=self.user_id))
        return resp.get("filter", []) or []

    def create_filter(self, criteria: dict, action: dict) -> dict:
        return self._execute(
            self._users.settings().filters().create(
                userId=self.user_id,
                body={"criteria": criteria, "action": action},
            )
        )

    def delete_filter(self, filter_id: str) -> None:
        self._execute(self._users.settings().filters().delete(userId=self.user_id, id=filter_id))
