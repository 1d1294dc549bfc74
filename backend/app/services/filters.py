"""
Filter Builder - turns validated query parameters into Student criteria.

The result is a list of SQLAlchemy boolean expressions that callers pass
to Query.filter(*criteria). Values are always bound as parameters; search
text additionally has its LIKE wildcards escaped.
"""

from typing import Optional
from pydantic import BaseModel
from sqlalchemy import or_, true, false

from app.config import GRADE_BY_STATUS
from app.models.student import Student

LIKE_ESCAPE = "\\"

SEARCH_COLUMNS = (
    Student.login,
    Student.first_name,
    Student.last_name,
    Student.displayname,
    Student.email,
)


class PoolFilter(BaseModel):
    """A pool cohort: lowercase month name and four-digit year."""
    month: str
    year: str


def _flag(column):
    return lambda: [column == true()]


# Status name -> criteria factory. Each entry tests exactly one stored
# flag (plus "active" for grade-based statuses).
STATUS_CRITERIA = {
    "active": _flag(Student.active),
    "inactive": lambda: [Student.active == false()],
    "staff": _flag(Student.staff),
    "alumni": _flag(Student.alumni),
    "blackholed": _flag(Student.blackholed),
    "sinker": _flag(Student.sinker),
    "freeze": _flag(Student.freeze),
    "test": _flag(Student.is_test),
    "piscine": _flag(Student.is_piscine),
    "cadet": lambda: [Student.grade == GRADE_BY_STATUS["cadet"], Student.active == true()],
    "transcender": lambda: [Student.grade == GRADE_BY_STATUS["transcender"], Student.active == true()],
}


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value only ever matches literally."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def search_criterion(search: str):
    """Case-insensitive substring match OR'd across the searchable columns."""
    pattern = "%{}%".format(escape_like(search))
    return or_(*[column.ilike(pattern, escape=LIKE_ESCAPE) for column in SEARCH_COLUMNS])


def build_student_filter(campus_id: Optional[int] = None,
                         pool: Optional[PoolFilter] = None,
                         search: Optional[str] = None,
                         status: Optional[str] = None) -> list:
    """
    Build the Student criteria for a directory query.

    Args:
        campus_id: Exact campus match, None for all campuses
        pool: Pool cohort, matched exactly on both month and year
        search: Sanitized free text, empty for no constraint
        status: Status category; unknown values add no constraint

    Returns:
        List of SQLAlchemy boolean expressions (empty for no filter)
    """
    criteria = []

    if campus_id is not None:
        criteria.append(Student.campus_id == campus_id)

    if pool is not None and pool.month and pool.year:
        criteria.append(Student.pool_month == pool.month)
        criteria.append(Student.pool_year == pool.year)

    if search:
        criteria.append(search_criterion(search))

    factory = STATUS_CRITERIA.get(status) if status else None
    if factory is not None:
        criteria.extend(factory())

    return criteria
