"""Shared constants for okra.

Table and column names are part of the on-disk layout; changing them
orphans existing ledger files.
"""

# --- Time ---
MILLIS_PER_SECOND = 1000
SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 60 * SECONDS_PER_MINUTE
SECONDS_PER_DAY = 24 * SECONDS_PER_HOUR
SECONDS_PER_WEEK = 7 * SECONDS_PER_DAY
SECONDS_PER_MONTH = 30 * SECONDS_PER_DAY
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY

# --- Sessions ---
DEFAULT_SESSION_LIFETIME_SECONDS = 7 * SECONDS_PER_DAY
AUTH_COOKIE = "auth"
# Expiry is an unsigned 128-bit millisecond count on the wire.
MAX_EXPIRY_DIGITS = 39
EXPIRY_LIMIT = 2**128
TOKEN_SALT = "okra-session-token"
COOKIE_SALT = "okra-auth-cookie"

# --- Paging ---
DEFAULT_PAGE_SIZE = 20
DEFAULT_MAX_PAGE_SIZE = 100

# --- Ledger layout ---
ACTION_HIERARCHY_TABLE = "actionHierarchy"
ACTION_TABLE = "actions"
ACTIVITY_TABLE = "activities"
NOTATIONS_TABLE = "notations"
NOTE_TABLE = "notes"

ACTION_COLUMN = "actionName"
CHILD_COLUMN = "child"
NOTE_COLUMN = "note"
PARENT_COLUMN = "parent"
TIME_COLUMN = "time"

LEDGER_SUFFIX = ".sqlite"
LEDGER_DIR_NAME = "ledgers"

# --- Identity layout ---
USERS_TABLE = "users"
USERNAME_COLUMN = "username"
SECRET_COLUMN = "secret"
USERS_DB_NAME = "users.sqlite"

# Usernames double as ledger file stems, so they are restricted to a
# filesystem-safe alphabet and must not start with a dot.
USERNAME_PATTERN = r"[A-Za-z0-9][A-Za-z0-9_.-]{0,63}"
