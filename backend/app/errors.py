"""
Error taxonomy for the campus analytics API.

Every error the ranking engine can surface carries an HTTP status code
and renders as {"error": ..., "message": ...}:

- InvalidArgument  (400): malformed or out-of-range input
- InvalidSortKey   (400): sort key outside the closed enumeration
- StudentNotFound  (404): unknown login on the detail view
- JoinFailure      (500): a secondary collection could not be joined;
                          aggregators absorb it and degrade to 0
- QueryTimeout     (504): the store exceeded the execution budget
- StoreUnavailable (503): the store could not be reached at all
"""

from contextlib import contextmanager

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy import exc as sa_exc

from app.logging_config import get_logger, log_with_context

logger = get_logger("http")


class CampusAnalyticsError(Exception):
    """Base API exception with a consistent response structure."""

    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.error, "message": self.message}


class InvalidArgument(CampusAnalyticsError):
    status_code = 400
    error = "Bad Request"


class InvalidSortKey(InvalidArgument):
    error = "Invalid Sort Key"


class StudentNotFound(CampusAnalyticsError):
    status_code = 404
    error = "Not Found"


class JoinFailure(CampusAnalyticsError):
    error = "Join Failure"


class QueryTimeout(CampusAnalyticsError):
    status_code = 504
    error = "Query Timeout"


class StoreUnavailable(CampusAnalyticsError):
    status_code = 503
    error = "Service Unavailable"


# Driver messages for a statement stopped by its budget or by a cancel request
TIMEOUT_MARKERS = ("statement timeout", "timed out", "interrupted", "canceling statement")


def _is_timeout(error: Exception) -> bool:
    text = str(getattr(error, "orig", error)).lower()
    return any(marker in text for marker in TIMEOUT_MARKERS)


@contextmanager
def translate_store_errors(operation: str):
    """
    Map SQLAlchemy driver errors raised inside the block to the API taxonomy.

    Timeouts become QueryTimeout; connection-level failures become
    StoreUnavailable. Anything else propagates unchanged.
    """
    try:
        yield
    except sa_exc.TimeoutError as e:
        # Connection pool exhausted: the store is effectively unreachable
        raise StoreUnavailable("Database connection pool timed out during {}".format(operation)) from e
    except (sa_exc.OperationalError, sa_exc.InterfaceError) as e:
        if _is_timeout(e):
            raise QueryTimeout("Query exceeded its execution budget during {}".format(operation)) from e
        raise StoreUnavailable("Database unavailable during {}".format(operation)) from e


async def campus_analytics_error_handler(request: Request, exc: CampusAnalyticsError):
    """Render taxonomy errors as {"error", "message"} with their status code."""
    level = "WARNING" if exc.status_code < 500 else "ERROR"
    log_with_context(logger, level,
        "{} on {} {}: {}".format(type(exc).__name__, request.method, request.url.path, exc.message),
        extra_data={"status_code": exc.status_code})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
