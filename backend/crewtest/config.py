"""
Environment-driven settings.

Every value is read once at import time. Defaults are tuned for local
development against SQLite.
"""

import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Fallback to SQLite for local development when PostgreSQL is not available
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./crew_testing.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Attempts
SUBMISSION_GRACE_SECONDS = int(os.getenv("SUBMISSION_GRACE_SECONDS", "30"))

# Random tests
DEFAULT_RANDOM_QUESTIONS = int(os.getenv("DEFAULT_RANDOM_QUESTIONS", "10"))
MAX_RANDOM_QUESTIONS = int(os.getenv("MAX_RANDOM_QUESTIONS", "50"))

# Spreadsheet import
FUZZY_MAX_DISTANCE = int(os.getenv("FUZZY_MAX_DISTANCE", "3"))
IMPORT_CREATE_CATEGORIES = _env_bool("IMPORT_CREATE_CATEGORIES", True)
IMPORT_CREATE_POSITIONS = _env_bool("IMPORT_CREATE_POSITIONS", False)
IMPORT_CREATE_SHIP_TYPES = _env_bool("IMPORT_CREATE_SHIP_TYPES", False)
