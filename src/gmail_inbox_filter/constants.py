"""Constants for Gmail Inbox Filter."""

from pathlib import Path

# --- Config paths ---
CONFIG_DIR = Path.home() / ".gmail-inbox-filter"
CREDENTIALS_PATH = CONFIG_DIR / "credentials.json"
TOKEN_PATH = CONFIG_DIR / "token.json"
CHECKPOINT_DB_PATH = CONFIG_DIR / "checkpoint.db"
REPORTS_DIR = CONFIG_DIR / "reports"

# --- Gmail API ---
SCOPES = [
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.settings.basic",
]
PAGE_SIZE = 100  # message ids per list page
DEFAULT_MAX_MESSAGES = 500  # messages per run
MUTATION_CHUNK_SIZE = 50  # message ids per batchModify call
METADATA_HEADERS = ["From", "Subject", "Date", "List-Unsubscribe", "List-ID"]
INBOX_LABEL = "INBOX"
TRASH_LABEL = "TRASH"

# --- Throttling ---
REQUESTS_PER_SECOND = 10
MAX_RETRIES = 3
BASE_DELAY = 1.0  # seconds
FETCH_WORKERS = 10
MUTATION_WORKERS = 4

# --- Rule synthesis thresholds ---
MIN_CATEGORY_SIZE = 5  # category must have more than this many messages
MIN_SENDER_FREQUENCY = 3

# --- Classification patterns ---
AUTOMATED_SENDER_TERMS = [
    "noreply",
    "no-reply",
    "donotreply",
    "automated",
    "notification",
    "alert",
    "system",
]

NEWSLETTER_SUBJECT_PATTERNS = [
    r"newsletter",
    r"weekly digest",
    r"daily digest",
    r"update from",
    r"news from",
]

RECEIPT_SUBJECT_PATTERNS = [
    r"receipt",
    r"payment",
    r"invoice",
    r"charged",
    r"your purchase",
    r"order.*shipped",
    r"order.*delivered",
]

CONFIRMATION_SUBJECT_PATTERNS = [
    r"confirmation",
    r"confirmed",
    r"appointment",
    r"reservation",
    r"scheduled",
    r"registration",
]

TRANSACTIONAL_DOMAINS = ["paypal.com", "amazon.com"]
TRANSACTIONAL_SENDER_TERMS = ["invoice"]

# --- Protection ---
DEFAULT_PROTECTED_DOMAINS = [
    "chase.com",
    "capitalone.com",
    "paypal.com",
    "venmo.com",
    "mercury.com",
    "rippling.com",
    "uber.com",
    "lyft.com",
    "doordash.com",
    "google.com",
    "github.com",
    "apple.com",
    "citi.com",
    "amex.com",
    "americanexpress.com",
    "wellsfargo.com",
    "bankofamerica.com",
    "sutterhealth.org",
    "united.com",
    "delta.com",
    "southwest.com",
    "aa.com",
]

# --- Read-mail archiving ---
READ_INBOX_QUERY = "in:inbox -is:unread"
ARCHIVE_READ_MAX_MESSAGES = 1000
ARCHIVE_READ_MIN_AGE_DAYS = 7  # newer mail stays in the inbox
ARCHIVE_READ_KEEP_KEYWORDS = [
    "invoice",
    "receipt",
    "payment",
    "confirmation",
    "appointment",
    "meeting",
    "interview",
    "urgent",
    "important",
    "action required",
    "deadline",
]

# --- Rule audit ---
# Sender prefixes with no real domain that match far more mail than intended.
OVERLY_BROAD_PREFIXES = [
    "hello@",
    "info@",
    "noreply@",
    "no-reply@",
    "donotreply@",
    "support@",
    "service@",
    "team@",
    "marketing@",
    "updates@",
    "reminders@",
    "notification@",
    "notify@",
    "alerts@",
    "news@",
    "partners@",
    "members@",
    "verify@",
]
