"""
Ranking Orchestrator - sorted, filtered, paginated student directory.

Flow for one request:
1. Check the sort key, order and page window
2. Build the Student criteria (Filter Builder)
3. Raw keys: sort the filtered Student query directly
   Derived keys: dispatch to the registered Join Aggregator
4. Normalize rows and compute pagination from the joined population

The total reported in the pagination block is always the size of the
filtered (and, for exclusionary keys, joined) population, so paging
through every page yields each student exactly once.
"""

import math
import time
from typing import Optional
from pydantic import BaseModel
from sqlalchemy import case
from sqlalchemy.orm import Session

from app.config import MAX_LIMIT, MAX_SKIP
from app.errors import InvalidArgument, InvalidSortKey, translate_store_errors
from app.logging_config import get_logger, log_with_context
from app.models.student import Student
from app.services.aggregators import AGGREGATORS
from app.services.filters import PoolFilter, build_student_filter
from app.services.normalizer import serialize_student
from app.services.sources import Sources, detect_sources

logger = get_logger("ranking")

RAW_SORT_COLUMNS = {
    "login": Student.login,
    "level": Student.level,
    "wallet": Student.wallet,
    "correction_point": Student.correction_point,
}

SORT_KEYS = tuple(RAW_SORT_COLUMNS) + tuple(AGGREGATORS)


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    totalPages: int


def _raw_order(sort: str, order: str) -> list:
    """Order clauses treating NULL as the lowest value, login as tie-break."""
    column = RAW_SORT_COLUMNS[sort]
    null_rank = case((column.is_(None), 0), else_=1)
    if order == "desc":
        clauses = [null_rank.desc(), column.desc()]
    else:
        clauses = [null_rank.asc(), column.asc()]
    if sort != "login":
        clauses.append(Student.login.asc())
    return clauses


def _rank_raw(db: Session, sort: str, criteria: list, order: str, offset: int, limit: int):
    query = db.query(Student).filter(*criteria)
    total = query.count()
    students = query.order_by(*_raw_order(sort, order)).offset(offset).limit(limit).all()
    return [serialize_student(s) for s in students], total


def _check_window(order: str, page: int, limit: int, skip: Optional[int]) -> int:
    """Validate order and paging again at the engine boundary; return the offset."""
    if order not in ("asc", "desc"):
        raise InvalidArgument("Invalid order: must be asc or desc")
    if not isinstance(limit, int) or limit < 1 or limit > MAX_LIMIT:
        raise InvalidArgument("Invalid limit: must be between 1 and {}".format(MAX_LIMIT))
    if skip is None:
        if not isinstance(page, int) or page < 1:
            raise InvalidArgument("Invalid page: must be a positive integer")
        offset = (page - 1) * limit
    else:
        offset = skip
    if offset < 0 or offset > MAX_SKIP:
        raise InvalidArgument("Invalid skip: maximum offset exceeded")
    return offset


def rank(db: Session, sort: str = "login", campus_id: Optional[int] = None,
         status: Optional[str] = None, pool: Optional[PoolFilter] = None,
         search: Optional[str] = None, order: str = "asc", page: int = 1,
         limit: int = 50, skip: Optional[int] = None,
         sources: Optional[Sources] = None) -> dict:
    """
    Rank students by a raw or derived sort key.

    Args:
        db: Database session
        sort: One of SORT_KEYS
        campus_id, status, pool, search: Filter parameters (see Filter Builder)
        order: "asc" or "desc"
        page: 1-based page number, ignored when skip is given
        limit: Page size in [1, 500]
        skip: Explicit row offset
        sources: Record-encoding adapters; detected when omitted

    Returns:
        {"students": [...], "pagination": {"total", "page", "limit", "totalPages"}}

    Raises:
        InvalidSortKey: sort is not a known key
        InvalidArgument: order or paging out of range
        QueryTimeout, StoreUnavailable: the store failed
    """
    if sort not in SORT_KEYS:
        raise InvalidSortKey("Invalid sort key '{}': must be one of {}".format(sort, ", ".join(SORT_KEYS)))
    offset = _check_window(order, page, limit, skip)

    start_time = time.time()
    criteria = build_student_filter(campus_id=campus_id, pool=pool, search=search, status=status)

    with translate_store_errors("ranking by {}".format(sort)):
        if sort in RAW_SORT_COLUMNS:
            students, total = _rank_raw(db, sort, criteria, order, offset, limit)
        else:
            aggregator = AGGREGATORS[sort]
            if sources is None:
                sources = detect_sources(db)
            result = aggregator.aggregate(db, criteria, order, offset, limit, sources=sources)
            students = [serialize_student(s, sort, value) for s, value in result.rows]
            total = result.total

    pagination = Pagination(
        total=total,
        page=offset // limit + 1,
        limit=limit,
        totalPages=math.ceil(total / limit),
    )

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO",
        "Ranked {} of {} students by {} {}".format(len(students), total, sort, order),
        context={"sort": sort, "campus_id": campus_id, "status": status},
        extra_data={"duration_ms": round(duration_ms, 2), "offset": offset, "limit": limit})

    return {"students": students, "pagination": pagination.model_dump()}
