"""
Record-encoding adapters for attendance and mentorship data.

Attendance and patronage records exist in two shapes each, depending on
the sync revision that wrote them. Aggregators and the detail view only
talk to the narrow interfaces below; which implementation backs them is
decided once by detect_sources().

- AttendanceSource: MonthMapAttendanceSource | IntervalAttendanceSource
- MentorshipSource: TreePatronageSource | EdgePatronageSource

When no usable table exists the Unavailable* adapters raise JoinFailure,
which aggregators turn into a zero derived value.
"""

from collections import defaultdict, namedtuple
from datetime import datetime
from sqlalchemy import inspect, func, distinct
from sqlalchemy.orm import Session

from app.config import ATTENDANCE_ENCODING, PATRONAGE_ENCODING
from app.errors import JoinFailure
from app.logging_config import get_logger, log_with_context
from app.models.location import LocationStats, LocationSession
from app.models.patronage import Patronage, PatronageEdge
from app.services.duration import total_seconds, iter_days, interval_seconds, parse_month_key

logger = get_logger("sources")

# Bound the size of IN (...) lists sent to the store
IN_CLAUSE_CHUNK = 500

MENTORSHIP_KINDS = ("godfathers", "children")

# settled: every family was pinned or matched a table holding rows.
# An unsettled choice is a guess made before ingestion and is detected again later.
Sources = namedtuple("Sources", ["attendance", "mentorship", "settled"], defaults=(True,))


def _chunks(items, size=IN_CLAUSE_CHUNK):
    items = list(items)
    for start in range(0, len(items), size):
        yield items[start:start + size]


def table_exists(db: Session, table_name: str) -> bool:
    return inspect(db.get_bind()).has_table(table_name)


def _has_rows(db: Session, model) -> bool:
    return db.query(model.id).first() is not None


# ──────────────────────────────────────────────────────────────
# Attendance
# ──────────────────────────────────────────────────────────────

class AttendanceSource:
    """Total and per-day logged time per student."""

    encoding = None

    def totals(self, db: Session, logins, since: str = None) -> dict:
        """Map login -> total logged seconds since the "YYYY-MM" month (inclusive)."""
        raise NotImplementedError

    def days(self, db: Session, login: str) -> list:
        """Sorted list of (date_key, seconds) for every day with logged time."""
        raise NotImplementedError


class MonthMapAttendanceSource(AttendanceSource):
    encoding = "months"

    def totals(self, db, logins, since=None):
        result = defaultdict(int)
        for chunk in _chunks(logins):
            rows = db.query(LocationStats).filter(LocationStats.login.in_(chunk)).all()
            for row in rows:
                result[row.login] += total_seconds(row.months_dict, since=since)
        return dict(result)

    def days(self, db, login):
        per_day = defaultdict(int)
        for row in db.query(LocationStats).filter(LocationStats.login == login).all():
            for date_key, seconds in iter_days(row.months_dict):
                per_day[date_key] += seconds
        return sorted(per_day.items())


class IntervalAttendanceSource(AttendanceSource):
    encoding = "sessions"

    def totals(self, db, logins, since=None):
        since_dt = None
        if since is not None and parse_month_key(since) is not None:
            year, month = parse_month_key(since)
            since_dt = datetime(year, month, 1)

        result = defaultdict(int)
        for chunk in _chunks(logins):
            query = db.query(
                LocationSession.login, LocationSession.begin_at, LocationSession.end_at
            ).filter(LocationSession.login.in_(chunk))
            if since_dt is not None:
                query = query.filter(LocationSession.begin_at >= since_dt)
            for login, begin_at, end_at in query.all():
                result[login] += interval_seconds(begin_at, end_at)
        return dict(result)

    def days(self, db, login):
        per_day = defaultdict(int)
        sessions = db.query(LocationSession.begin_at, LocationSession.end_at).filter(
            LocationSession.login == login
        ).all()
        for begin_at, end_at in sessions:
            seconds = interval_seconds(begin_at, end_at)
            if seconds > 0:
                per_day[begin_at.date().isoformat()] += seconds
        return sorted(per_day.items())


class UnavailableAttendanceSource(AttendanceSource):
    def totals(self, db, logins, since=None):
        raise JoinFailure("No attendance collection is available")

    def days(self, db, login):
        raise JoinFailure("No attendance collection is available")


# ──────────────────────────────────────────────────────────────
# Mentorship
# ──────────────────────────────────────────────────────────────

class MentorshipSource:
    """Mentor (godfather) and mentee (children) relations per student."""

    encoding = None

    def counts(self, db: Session, kind: str, logins) -> dict:
        """Map login -> number of distinct logins of the given kind."""
        raise NotImplementedError

    def relations(self, db: Session, login: str) -> dict:
        """{"godfathers": [...], "children": [...]} as sorted login lists."""
        raise NotImplementedError


class TreePatronageSource(MentorshipSource):
    encoding = "tree"

    def _collect(self, rows):
        collected = defaultdict(lambda: {"godfathers": set(), "children": set()})
        for row in rows:
            collected[row.login]["godfathers"].update(row.godfather_logins)
            collected[row.login]["children"].update(row.children_logins)
        return collected

    def counts(self, db, kind, logins):
        result = {}
        for chunk in _chunks(logins):
            rows = db.query(Patronage).filter(Patronage.login.in_(chunk)).all()
            for login, relations in self._collect(rows).items():
                result[login] = len(relations[kind])
        return result

    def relations(self, db, login):
        rows = db.query(Patronage).filter(Patronage.login == login).all()
        relations = self._collect(rows).get(login, {"godfathers": set(), "children": set()})
        return {kind: sorted(relations[kind]) for kind in MENTORSHIP_KINDS}


class EdgePatronageSource(MentorshipSource):
    encoding = "edge"

    # kind -> (column identifying the student, column counted)
    _COLUMNS = {
        "godfathers": (PatronageEdge.user_login, PatronageEdge.godfather_login),
        "children": (PatronageEdge.godfather_login, PatronageEdge.user_login),
    }

    def counts(self, db, kind, logins):
        owner, counted = self._COLUMNS[kind]
        result = {}
        for chunk in _chunks(logins):
            rows = db.query(owner, func.count(distinct(counted))).filter(
                owner.in_(chunk)
            ).group_by(owner).all()
            result.update({login: count for login, count in rows})
        return result

    def relations(self, db, login):
        relations = {}
        for kind, (owner, counted) in self._COLUMNS.items():
            rows = db.query(distinct(counted)).filter(owner == login).all()
            relations[kind] = sorted(value for (value,) in rows)
        return relations


class UnavailableMentorshipSource(MentorshipSource):
    def counts(self, db, kind, logins):
        raise JoinFailure("No patronage collection is available")

    def relations(self, db, login):
        raise JoinFailure("No patronage collection is available")


# ──────────────────────────────────────────────────────────────
# Detection
# ──────────────────────────────────────────────────────────────

def _pick(db: Session, encoding: str, candidates: list, unavailable):
    """
    Choose an adapter from (name, model, adapter_class) candidates.

    A pinned encoding only needs its table to exist. "auto" prefers the
    first candidate holding rows, then the first existing table.

    Returns:
        (adapter, settled) where settled is False for an "auto" choice
        that no populated table backs
    """
    existing = [c for c in candidates if table_exists(db, c[1].__tablename__)]

    if encoding != "auto":
        for name, model, adapter in existing:
            if name == encoding:
                return adapter(), True
        return unavailable(), True

    for name, model, adapter in existing:
        if _has_rows(db, model):
            return adapter(), True
    if existing:
        return existing[0][2](), False
    return unavailable(), False


def detect_sources(db: Session, attendance_encoding: str = ATTENDANCE_ENCODING,
                   patronage_encoding: str = PATRONAGE_ENCODING) -> Sources:
    """
    Inspect the store and pick one adapter per record family.

    Session/edge encodings are listed first, so they win when both
    encodings hold rows. Callers cache the result only when it is settled.
    """
    attendance, attendance_settled = _pick(db, attendance_encoding, [
        ("sessions", LocationSession, IntervalAttendanceSource),
        ("months", LocationStats, MonthMapAttendanceSource),
    ], UnavailableAttendanceSource)

    mentorship, mentorship_settled = _pick(db, patronage_encoding, [
        ("edge", PatronageEdge, EdgePatronageSource),
        ("tree", Patronage, TreePatronageSource),
    ], UnavailableMentorshipSource)

    settled = attendance_settled and mentorship_settled
    log_with_context(logger, "INFO" if settled else "DEBUG",
        "Record sources selected: attendance={}, mentorship={}".format(
            attendance.encoding, mentorship.encoding),
        context={"settled": settled},
        extra_data={"attendance_encoding": attendance_encoding,
                    "patronage_encoding": patronage_encoding})

    return Sources(attendance=attendance, mentorship=mentorship, settled=settled)
