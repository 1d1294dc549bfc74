"""
Input validation and sanitization for directory query parameters.

Every validator takes the raw query-string value (or None) and either
returns a normalized value or raises InvalidArgument.
"""

import re
from typing import Optional

from app.config import DEFAULT_LIMIT, MAX_LIMIT, MAX_SKIP
from app.errors import InvalidArgument
from app.services.filters import PoolFilter

MONTH_NAMES = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]

VALID_STATUSES = (
    "active", "inactive", "staff", "alumni", "blackholed", "sinker",
    "freeze", "test", "piscine", "cadet", "transcender",
)

SEARCH_MAX_LENGTH = 100
LOGIN_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,50}$")
SEARCH_FORBIDDEN = re.compile(r"[^a-zA-Z0-9\s._-]")


def _parse_int(value) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def validate_campus_id(campus_id) -> Optional[int]:
    """Empty or "all" means every campus; otherwise an integer in [0, 999999]."""
    if campus_id is None or campus_id == "" or campus_id == "all":
        return None
    parsed = _parse_int(campus_id)
    if parsed is None or parsed < 0 or parsed > 999999:
        raise InvalidArgument("Invalid campusId: must be a positive integer")
    return parsed


def validate_login(login) -> str:
    """Login must be 1-50 characters of letters, digits, hyphens and underscores."""
    if not login or not isinstance(login, str):
        raise InvalidArgument("Invalid login: must be a non-empty string")
    login = login.strip()
    if not LOGIN_PATTERN.match(login):
        raise InvalidArgument("Invalid login format: only alphanumeric, hyphens, and underscores allowed")
    return login


def validate_search(search) -> str:
    """Strip everything outside [A-Za-z0-9 ._-] and truncate to 100 characters."""
    if not search or not isinstance(search, str):
        return ""
    sanitized = SEARCH_FORBIDDEN.sub("", search).strip()
    return sanitized[:SEARCH_MAX_LENGTH]


def _normalize_month(month: str) -> str:
    month_lower = month.strip().lower()
    if month_lower in MONTH_NAMES:
        return month_lower
    if re.fullmatch(r"\d{1,2}", month_lower):
        number = int(month_lower)
        if 1 <= number <= 12:
            return MONTH_NAMES[number - 1]
    raise InvalidArgument("Invalid pool month")


def validate_pool(pool=None, month=None, year=None) -> Optional[PoolFilter]:
    """
    Validate a pool given as a "month-year" token or as separate fields.

    Month and year must be given together. Numeric months are normalized
    to the lowercase English name stored on students.
    """
    if pool:
        if "-" not in pool:
            raise InvalidArgument("Invalid pool: expected month-year")
        month, year = pool.rsplit("-", 1)

    if not month and not year:
        return None
    if not month:
        raise InvalidArgument("Invalid pool month: must be a non-empty string")
    if not year:
        raise InvalidArgument("Invalid pool year: must be a non-empty string")

    year_number = _parse_int(year)
    if year_number is None or year_number < 2000 or year_number > 2100:
        raise InvalidArgument("Invalid pool year: must be between 2000-2100")

    return PoolFilter(month=_normalize_month(month), year=str(year_number))


def validate_status(status) -> Optional[str]:
    if not status or status == "all":
        return None
    if status not in VALID_STATUSES:
        raise InvalidArgument("Invalid status filter")
    return status


def validate_sort(sort) -> str:
    """Missing sort falls back to login; unknown keys are rejected by the ranking layer."""
    if not sort:
        return "login"
    return sort


def validate_order(order) -> str:
    if not order:
        return "asc"
    if order not in ("asc", "desc"):
        raise InvalidArgument("Invalid order: must be asc or desc")
    return order


def validate_limit(limit, maximum: int = MAX_LIMIT) -> int:
    """Default 50; clamped into [1, maximum]."""
    parsed = _parse_int(limit) if limit is not None else None
    if parsed is None:
        return min(DEFAULT_LIMIT, maximum)
    return max(1, min(parsed, maximum))


def validate_skip(skip) -> Optional[int]:
    """None when absent; negative values read as 0; beyond 100000 is an error."""
    if skip is None or skip == "":
        return None
    parsed = _parse_int(skip)
    if parsed is None or parsed < 0:
        return 0
    if parsed > MAX_SKIP:
        raise InvalidArgument("Invalid skip: maximum offset exceeded")
    return parsed


def validate_page(page) -> int:
    parsed = _parse_int(page) if page is not None else None
    if parsed is None or parsed < 1:
        return 1
    return parsed
