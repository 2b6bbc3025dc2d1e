import os
from dotenv import load_dotenv

load_dotenv()

# === Raw environment values ===

GITHUB_WEBHOOK_SECRET = os.getenv("GITHUB_WEBHOOK_SECRET")

# GitHub App authentication
GITHUB_APP_ID = os.getenv("GITHUB_APP_ID")
GITHUB_PRIVATE_KEY_PATH = os.getenv("GITHUB_PRIVATE_KEY_PATH")
GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com").rstrip("/")

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Marking configuration
GITPOD_URL = os.getenv("GITPOD_URL", "https://gitpod.io").rstrip("/")
CONFIG_FILE_NAME = os.getenv("CONFIG_FILE_NAME", "gitpod.yml")
SEARCH_PAGE_SIZE = int(os.getenv("SEARCH_PAGE_SIZE", "100"))

# Schedule configuration
SCHEDULE_INTERVAL_SECONDS = float(
    os.getenv("SCHEDULE_INTERVAL_SECONDS", "3600")
)
SCHEDULE_SCAN_INTERVAL_SECONDS = float(
    os.getenv("SCHEDULE_SCAN_INTERVAL_SECONDS", "60")
)

# Default comment suffixes

PULLS_COMMENT = (
    " - starts a development workspace for this pull request"
    " in code review mode and opens it in a browser IDE."
)

ISSUES_COMMENT = (
    " - starts a development workspace with a preconfigured issue branch"
    " and opens it in a browser IDE."
)


def validate_github_settings() -> None:
    """
    Validate required GitHub App configuration.

    Raises RuntimeError if required values are missing or invalid.
    """
    if not GITHUB_APP_ID:
        raise RuntimeError("GITHUB_APP_ID is not set")

    if not GITHUB_PRIVATE_KEY_PATH:
        raise RuntimeError("GITHUB_PRIVATE_KEY_PATH is not set")

    if not os.path.exists(GITHUB_PRIVATE_KEY_PATH):
        raise RuntimeError(
            f"GITHUB_PRIVATE_KEY_PATH does not exist: {GITHUB_PRIVATE_KEY_PATH}"
        )
