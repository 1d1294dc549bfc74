"""
Join Aggregators - one strategy per derived sort key.

Every aggregator answers the same question: for the students matching a
filter, what is the derived value, in which order, and how many students
does the joined population hold?

    aggregate(db, criteria, order, offset, limit) -> AggregateResult

Two families:
1. SqlJoinAggregator: the derived value comes from a grouped subquery
   over a secondary table; join, sort, paging and count run in the store.
2. SourceJoinAggregator: the derived value comes from an adapter
   (attendance or mentorship); the filtered population is sorted and
   paged in memory.

Ordering is always (derived value in the requested direction, login
ascending), so equal values keep a stable order across requests.
A secondary table that is missing degrades every value to 0 instead of
failing the ranking.
"""

import time
from datetime import date
from typing import NamedTuple
from sqlalchemy import select, func
from sqlalchemy.orm import Session

from app.config import PROJECT_SUCCESS_STATUSES, CHEAT_SCORE, LOG_TIME_WINDOW_MONTHS
from app.errors import JoinFailure
from app.logging_config import get_logger, log_with_context
from app.models.student import Student
from app.models.project import Project
from app.models.feedback import Feedback
from app.services.sources import Sources, table_exists

logger = get_logger("ranking")


class AggregateResult(NamedTuple):
    rows: list      # [(Student, derived_value)]
    total: int      # size of the joined, filtered population


def _record_join_failure(field: str, reason: str):
    log_with_context(logger, "WARNING",
        "Join failed for {}, derived values default to 0: {}".format(field, reason),
        context={"sort": field})


class JoinAggregator:
    """Common contract for derived sort keys."""

    field = None
    # Exclusionary aggregators drop students whose derived value is 0
    exclusive = False

    def aggregate(self, db: Session, criteria: list, order: str,
                  offset: int, limit: int, sources: Sources = None) -> AggregateResult:
        raise NotImplementedError

    def _degraded(self, db: Session, criteria: list, offset: int, limit: int) -> AggregateResult:
        """Base students with a zero derived value, login order."""
        if self.exclusive:
            return AggregateResult(rows=[], total=0)
        query = db.query(Student).filter(*criteria)
        total = query.count()
        students = query.order_by(Student.login.asc()).offset(offset).limit(limit).all()
        return AggregateResult(rows=[(s, 0) for s in students], total=total)


class SqlJoinAggregator(JoinAggregator):
    """Outer-join a grouped (login, value) subquery onto the filtered students."""

    table = None
    default = 0

    def subquery(self):
        raise NotImplementedError

    def aggregate(self, db, criteria, order, offset, limit, sources=None):
        if not table_exists(db, self.table):
            _record_join_failure(self.field, "table {} is missing".format(self.table))
            return self._degraded(db, criteria, offset, limit)

        sub = self.subquery()
        value = func.coalesce(sub.c.value, self.default)

        query = db.query(Student, value.label(self.field)).outerjoin(
            sub, sub.c.login == Student.login
        ).filter(*criteria)
        if self.exclusive:
            query = query.filter(sub.c.value > 0)

        total = query.order_by(None).count()
        direction = value.desc() if order == "desc" else value.asc()
        rows = query.order_by(direction, Student.login.asc()).offset(offset).limit(limit).all()

        return AggregateResult(rows=[(student, derived) for student, derived in rows], total=total)


class ProjectCountAggregator(SqlJoinAggregator):
    """Projects whose status belongs to the configured success vocabulary."""

    field = "project_count"
    table = Project.__tablename__

    def __init__(self, success_statuses=None):
        # Compared against lower(status)
        self.success_statuses = [s.lower() for s in (success_statuses or PROJECT_SUCCESS_STATUSES)]

    def subquery(self):
        return (
            select(
                Project.login.label("login"),
                func.count(Project.id).label("value"),
            )
            .where(func.lower(Project.status).in_(self.success_statuses))
            .group_by(Project.login)
            .subquery()
        )


class CheatCountAggregator(SqlJoinAggregator):
    """Project records carrying the -42 sentinel; students without one are left out."""

    field = "cheat_count"
    table = Project.__tablename__
    exclusive = True

    def subquery(self):
        return (
            select(
                Project.login.label("login"),
                func.count(Project.id).label("value"),
            )
            .where(Project.score == CHEAT_SCORE)
            .group_by(Project.login)
            .subquery()
        )


class FeedbackCountAggregator(SqlJoinAggregator):
    field = "feedback_count"
    table = Feedback.__tablename__

    def subquery(self):
        return (
            select(
                Feedback.evaluated.label("login"),
                func.count(Feedback.id).label("value"),
            )
            .group_by(Feedback.evaluated)
            .subquery()
        )


class AverageRatingAggregator(SqlJoinAggregator):
    """Mean of non-null ratings received; students never rated rank with 0."""

    field = "avg_rating"
    table = Feedback.__tablename__
    default = 0.0

    def subquery(self):
        return (
            select(
                Feedback.evaluated.label("login"),
                func.avg(Feedback.rating).label("value"),
            )
            .where(Feedback.rating.isnot(None))
            .group_by(Feedback.evaluated)
            .subquery()
        )


class SourceJoinAggregator(JoinAggregator):
    """Derived values from a record-encoding adapter, sorted and paged in memory."""

    def values(self, db: Session, sources: Sources, logins: list) -> dict:
        raise NotImplementedError

    def aggregate(self, db, criteria, order, offset, limit, sources=None):
        start_time = time.time()
        students = db.query(Student).filter(*criteria).order_by(Student.login.asc()).all()

        try:
            values = self.values(db, sources, [s.login for s in students])
        except JoinFailure as e:
            _record_join_failure(self.field, e.message)
            values = {}

        rows = [(s, values.get(s.login, 0) or 0) for s in students]
        if self.exclusive:
            rows = [row for row in rows if row[1] > 0]
        # Students arrive in login order; a stable sort keeps it as the tie-break
        rows.sort(key=lambda row: row[1], reverse=(order == "desc"))

        duration_ms = (time.time() - start_time) * 1000
        log_with_context(logger, "DEBUG",
            "In-memory join for {} over {} students".format(self.field, len(students)),
            context={"sort": self.field},
            extra_data={"duration_ms": round(duration_ms, 2)})

        return AggregateResult(rows=rows[offset:offset + limit], total=len(rows))


class MentorshipCountAggregator(SourceJoinAggregator):
    def __init__(self, field: str, kind: str):
        self.field = field
        self.kind = kind

    def values(self, db, sources, logins):
        return sources.mentorship.counts(db, self.kind, logins)


def window_start(months: int, today: date = None):
    """First month ("YYYY-MM") of a window covering the last N months, None for all history."""
    if not months or months <= 0:
        return None
    today = today or date.today()
    index = today.year * 12 + (today.month - 1) - (months - 1)
    return "{:04d}-{:02d}".format(index // 12, index % 12 + 1)


class LogTimeAggregator(SourceJoinAggregator):
    """Total logged seconds over the configured window of months."""

    field = "log_time"

    def __init__(self, window_months: int = None, today: date = None):
        self.window_months = LOG_TIME_WINDOW_MONTHS if window_months is None else window_months
        self.today = today

    def values(self, db, sources, logins):
        since = window_start(self.window_months, self.today)
        return sources.attendance.totals(db, logins, since=since)


# Sort key -> aggregator. Raw Student columns are not listed here.
AGGREGATORS = {
    "project_count": ProjectCountAggregator(),
    "cheat_count": CheatCountAggregator(),
    "godfather_count": MentorshipCountAggregator("godfather_count", "godfathers"),
    "children_count": MentorshipCountAggregator("children_count", "children"),
    "log_time": LogTimeAggregator(),
    "feedback_count": FeedbackCountAggregator(),
    "avg_rating": AverageRatingAggregator(),
}
