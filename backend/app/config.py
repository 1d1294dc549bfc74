"""
Runtime configuration read from environment variables.

Everything here is resolved once at import time. Values that differ
between deployments (status vocabulary, log time window, grade names)
live here instead of being hardcoded in the ranking services.
"""

import os


def _get_list_env(key: str, default: str) -> list:
    """Read a comma-separated environment variable into a list of lowercase strings."""
    raw = os.getenv(key, default)
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


def _get_int_env(key: str, default: int) -> int:
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


def _get_float_env(key: str, default: float) -> float:
    try:
        return float(os.getenv(key, str(default)))
    except ValueError:
        return default


# ──────────────────────────────────────────────────────────────
# Ranking vocabulary
#
# Project records coming from different sync revisions use either
# "success" or "finished" for a validated project. One deployment
# should pin the vocabulary it actually stores.
# ──────────────────────────────────────────────────────────────
PROJECT_SUCCESS_STATUSES = _get_list_env("PROJECT_SUCCESS_STATUSES", "success,finished")

CHEAT_SCORE = -42    # Score sentinel for an academic-integrity flag

# Student grade stored for the "cadet" and "transcender" status filters
GRADE_BY_STATUS = {
    "cadet": os.getenv("GRADE_CADET", "Member"),
    "transcender": os.getenv("GRADE_TRANSCENDER", "Learner"),
}

# Months of attendance history counted by the log_time ranking (0 = all)
LOG_TIME_WINDOW_MONTHS = _get_int_env("LOG_TIME_WINDOW_MONTHS", 0)

# ──────────────────────────────────────────────────────────────
# Record encodings: "auto" inspects the store until a table holds rows
# ──────────────────────────────────────────────────────────────
ATTENDANCE_ENCODING = os.getenv("ATTENDANCE_ENCODING", "auto").lower()   # auto | months | sessions
PATRONAGE_ENCODING = os.getenv("PATRONAGE_ENCODING", "auto").lower()     # auto | tree | edge

# ──────────────────────────────────────────────────────────────
# Pagination and execution budget
# ──────────────────────────────────────────────────────────────
DEFAULT_LIMIT = 50
MAX_LIMIT = 500
MAX_SKIP = 100000
STUDENT_LIST_MAX_LIMIT = _get_int_env("STUDENT_LIST_MAX_LIMIT", 50)
QUERY_TIMEOUT_SECONDS = _get_float_env("QUERY_TIMEOUT_SECONDS", 10.0)

# Statements slower than this are logged on the db channel
SLOW_QUERY_MS = _get_float_env("SLOW_QUERY_MS", 500.0)
