"""Constants for clawdrop."""

APP_NAME = "Clawdrop"

# Control plane
DEFAULT_API_BASE_URL = "https://raccreativegames.com/api"
GAMES_LIST_PATH = "/games/developed"
REQUEST_UPLOAD_PATH = "/games/{id}/request-differential-upload"
VERIFY_UPLOAD_PATH = "/games/{id}/verify-differential-upload"
COMPLETE_PUSH_PATH = "/games/{id}/complete-push"
API_KEY_HEADER = "x-api-key"
API_KEY_ENV = "CLAWDROP_API_KEY"

# Configuration files (inside the config directory)
CONFIG_FILE = "config.yaml"
TARGET_FILE = "target.json"

# Protocol-owned artifacts
MANIFEST_NAME = "manifest.json"
FILEINDEX_NAME = "fileindex.json"

# Indexing
HASH_CHUNK_SIZE = 256 * 1024
DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Transfers
DEFAULT_UPLOAD_CONCURRENCY = 8
DEFAULT_REQUEST_TIMEOUT = 60.0

# Push parameters
SUPPORTED_PLATFORMS = ("windows", "linux", "mac", "html")
DEFAULT_VERSION = "0.0.1"
