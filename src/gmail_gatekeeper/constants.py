"""Constants for Gmail Gatekeeper."""

from pathlib import Path

# --- Config paths ---
CONFIG_DIR = Path.home() / ".gmail-gatekeeper"
CREDENTIALS_PATH = CONFIG_DIR / "credentials.json"
TOKEN_PATH = CONFIG_DIR / "token.json"
STATE_DB_PATH = CONFIG_DIR / "state.db"
ACTION_LOG_PATH = CONFIG_DIR / "action_log.json"

# --- Gmail API ---
SCOPES = [
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.settings.basic",
]
USER_ID = "me"
PAGE_SIZE = 500  # messages per list page
MODIFY_BATCH_SIZE = 1000  # ids per batchModify call
HISTORY_PAGE_SIZE = 500
RETRYABLE_STATUSES = (429, 500, 502, 503, 504)
RATE_LIMIT_REASONS = ("rateLimitExceeded", "userRateLimitExceeded")

# --- System labels ---
LABEL_INBOX = "INBOX"
LABEL_SENT = "SENT"

# --- Gatekeeper labels ---
LABEL_PREFIX = "Gatekeeper"
LABEL_SCREENER = f"{LABEL_PREFIX}/Screener"
LABEL_REPLY_LATER = f"{LABEL_PREFIX}/Reply Later"
LABEL_SET_ASIDE = f"{LABEL_PREFIX}/Set Aside"
LABEL_ALLOWED = "Allowed"
TRIAGE_LABELS = (LABEL_REPLY_LATER, LABEL_SET_ASIDE)

# --- Store keys ---
GLOBAL_NAMESPACE = "_global"  # state shared by all accounts
KEY_ACTIVE_ACCOUNT = "activeAccount"
LABEL_CACHE_PREFIX = "labelId_"
KEY_LAST_HISTORY_ID = "lastHistoryId"
KEY_SCREENER_ENABLED = "screenerEnabled"
KEY_SCREENER_FILTER_ID = "screenerFilterId"
KEY_SWEEP_CAP = "sweepCap"
KEY_BASE_FILTER = "baseFilter"
KEY_CLEAR_SET_ASIDE_ON_REPLY = "clearSetAsideOnReply"

# --- Defaults ---
DEFAULT_SWEEP_CAP = 200
DEFAULT_BASE_FILTER = "-in:chats"
CLEANUP_INTERVAL_SECONDS = 5 * 60
LABELED_THREADS_LIMIT = 50
METADATA_HEADERS = ["From", "Subject", "Date"]

# --- Logging ---
LOG_LEVEL_ENV_VAR = "GATEKEEPER_LOG_LEVEL"
