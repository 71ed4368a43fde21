"""Authentication helpers for Gmail API."""

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build, Resource

from gmail_gatekeeper import constants


def get_gmail_service(interactive: bool = True) -> Resource:
    """Return an authenticated Gmail API service object.

    The cached token is refreshed silently when expired. Without a usable
    token an OAuth browser flow is launched, which needs credentials.json
    in the config directory; with ``interactive=False`` a missing token is an
    error instead (used by the background ``watch`` loop).
    """
    constants.CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    creds: Credentials | None = None

    if constants.TOKEN_PATH.exists():
        creds = Credentials.from_authorized_user_file(str(constants.TOKEN_PATH), constants.SCOPES)

    if creds and creds.expired and creds.refresh_token:
        creds.refresh(Request())
    elif not creds or not creds.valid:
        if not constants.CREDENTIALS_PATH.exists():
            raise FileNotFoundError(
                f"Credentials file not found at {constants.CREDENTIALS_PATH}.\n"
                "Download your OAuth client credentials from the Google Cloud Console "
                "and save them as:\n"
                f"  {constants.CREDENTIALS_PATH}"
            )
        if not interactive:
            raise PermissionError("No valid Gmail token; run 'gatekeeper auth' first.")
        flow = InstalledAppFlow.from_client_secrets_file(str(constants.CREDENTIALS_PATH), constants.SCOPES)
        creds = flow.run_local_server(port=0)

    constants.TOKEN_PATH.write_text(creds.to_json())

    return build("gmail", "v1", credentials=creds, cache_discovery=False)


def check_auth() -> tuple[str | None, str | None]:
    """Test whether Gmail authentication is working.

    Returns ``(email_address, None)`` on success and ``(None, reason)``
    otherwise.
    """
    try:
        service = get_gmail_service()
        profile = service.users().getProfile(userId="me").execute()
    except Exception as exc:  # noqa: BLE001
        return None, str(exc)
    return profile["emailAddress"], None
