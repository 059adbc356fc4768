"""Configuration constants for the ProSBC file client."""

import os
import re

# Credentials and target can also be supplied via PROSBC_* env vars
DEFAULT_BASE_URL = os.environ.get("PROSBC_BASE_URL", "")
DEFAULT_USER = os.environ.get("PROSBC_USERNAME", "admin")
DEFAULT_PASSWORD = os.environ.get("PROSBC_PASSWORD", "")
DEFAULT_FILE_DB_ID = 1

LISTING_PAGE   = "/file_dbs/{db}/edit"
COLLECTION_URL = "/file_dbs/{db}/{collection}"
NEW_FORM_URL   = COLLECTION_URL + "/new"
RECORD_URL     = COLLECTION_URL + "/{id}"
EDIT_FORM_URL  = RECORD_URL + "/edit"
EXPORT_URL     = RECORD_URL + "/export"
DASHBOARD_URL  = "/dashboard"

REQUEST_TIMEOUT       = 120   # seconds; large CSV uploads are slow on the appliance
STATUS_TIMEOUT        = 10
MAX_RETRIES           = 3     # attempts per logical write operation
RETRY_DELAY           = 1.0   # seconds between session-error retries
SESSION_TTL_SECONDS   = 30 * 60
UPDATE_HISTORY_SIZE   = 20
EXCERPT_LENGTH        = 500

# Local upload checks
MAX_UPLOAD_BYTES   = 10 * 1024 * 1024
ALLOWED_EXTENSIONS = (".csv", ".txt", ".json")

# Name of the Rails CSRF field on every state-changing form
TOKEN_FIELD = "authenticity_token"
META_TOKEN_NAME = "csrf-token"

# Lower-cased body fragments that confirm a write was accepted
POSITIVE_MARKERS = (
    "successfully",
    "imported",
    "updated",
    "upload successful",
    "deleted",
)

# Markers of the appliance login form (session gone)
LOGIN_MARKERS = ("login_form", "please log in", "<title>login</title>")
LOGIN_PATH_RE = re.compile(r"/login(?:/check)?/?$", re.IGNORECASE)

# Lower-cased error-message fragments that classify a failure as session related
SESSION_ERROR_INDICATORS = (
    "session expired",
    "authentication failed",
    "redirected to login",
    "authenticity token",
    "unauthorized",
    "forbidden",
)

# Server responses that mean the submitted token was rejected
INVALID_TOKEN_MARKERS = ("invalidauthenticitytoken", "invalid authenticity token")

# Network error text that a cross-origin, already-completed redirect surfaces as
OPAQUE_REDIRECT_PATTERNS = ("failed to fetch", "networkerror", "network error", "cors")
