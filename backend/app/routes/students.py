"""
Students API routes - directory ranking, pool overview and student detail.

Provides endpoints for:
- Listing students with filters, raw/derived sorting and pagination
- Counting students per pool cohort
- Viewing one student with projects, patronage, feedback and attendance
"""

import asyncio
import time
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import QUERY_TIMEOUT_SECONDS, STUDENT_LIST_MAX_LIMIT, CHEAT_SCORE
from app.database import (
    get_db, get_session_factory, run_in_worker_session, StatementCanceller
)
from app.errors import QueryTimeout, StudentNotFound, JoinFailure, translate_store_errors
from app.models.student import Student
from app.models.project import Project
from app.models.feedback import Feedback
from app.services.duration import DAY_NAMES, bucket_for
from app.services.normalizer import serialize_student
from app.services.ranking import rank
from app.services.sources import detect_sources
from app.services import validation
from app.logging_config import get_logger, log_with_context

router = APIRouter()
logger = get_logger("http")


def get_sources(request: Request, db: Session = Depends(get_db)):
    """
    FastAPI dependency returning the record-encoding adapters.

    Detection runs on the first request. A settled choice is kept on
    app.state for the lifetime of the process; a guess made while the
    attendance or patronage tables are still empty is detected again on the
    next request.
    """
    sources = getattr(request.app.state, "sources", None)
    if sources is None:
        with translate_store_errors("source detection"):
            sources = detect_sources(db)
        if sources.settled:
            request.app.state.sources = sources
    return sources


@router.get("/api/students")
async def list_students(
    campusId: Optional[str] = Query(None, description="Campus ID or 'all'"),
    search: Optional[str] = Query(None, description="Search login, names and email"),
    pool: Optional[str] = Query(None, description="Pool as month-year"),
    poolMonth: Optional[str] = Query(None, description="Pool month (with poolYear)"),
    poolYear: Optional[str] = Query(None, description="Pool year (with poolMonth)"),
    status: Optional[str] = Query(None, description="Status category"),
    sort: Optional[str] = Query(None, description="Sort key, raw or derived"),
    order: Optional[str] = Query(None, description="asc or desc"),
    limit: Optional[str] = Query(None, description="Results per page"),
    page: Optional[str] = Query(None, description="Page number"),
    skip: Optional[str] = Query(None, description="Row offset (overrides page)"),
    session_factory=Depends(get_session_factory),
    sources=Depends(get_sources),
):
    """
    List students ranked by a raw or derived field.

    The ranking runs in a worker thread with its own session. When the
    budget expires the worker's statements are cancelled and the client
    gets a 504 right away.
    """
    params = dict(
        campus_id=validation.validate_campus_id(campusId),
        search=validation.validate_search(search),
        pool=validation.validate_pool(pool=pool, month=poolMonth, year=poolYear),
        status=validation.validate_status(status),
        sort=validation.validate_sort(sort),
        order=validation.validate_order(order),
        limit=validation.validate_limit(limit, maximum=STUDENT_LIST_MAX_LIMIT),
        page=validation.validate_page(page),
        skip=validation.validate_skip(skip),
    )

    canceller = StatementCanceller()
    # Fires even if the threadpool await outlives the budget
    deadline = asyncio.get_running_loop().call_later(QUERY_TIMEOUT_SECONDS, canceller.cancel)
    try:
        return await asyncio.wait_for(
            run_in_threadpool(run_in_worker_session, session_factory, canceller, rank,
                              sources=sources, **params),
            timeout=QUERY_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        canceller.cancel()
        raise QueryTimeout("Ranking by {} exceeded {}s".format(params["sort"], QUERY_TIMEOUT_SECONDS))
    finally:
        deadline.cancel()


@router.get("/api/students/pools")
def list_pools(
    campusId: Optional[str] = Query(None, description="Campus ID or 'all'"),
    db: Session = Depends(get_db),
):
    """Count students per pool (month + year)."""
    campus_id = validation.validate_campus_id(campusId)

    query = db.query(Student.pool_month, Student.pool_year, func.count(Student.id)).filter(
        Student.pool_month.isnot(None), Student.pool_month != "",
        Student.pool_year.isnot(None), Student.pool_year != "",
    )
    if campus_id is not None:
        query = query.filter(Student.campus_id == campus_id)

    with translate_store_errors("pool listing"):
        rows = query.group_by(Student.pool_month, Student.pool_year).all()

    month_index = {name: i for i, name in enumerate(validation.MONTH_NAMES)}
    pools = sorted(
        ({"month": month, "year": year, "count": count} for month, year, count in rows),
        key=lambda p: (p["year"], month_index.get(p["month"], 12), p["month"]),
    )
    return {"pools": pools}


def _attendance(db: Session, sources, login: str) -> dict:
    """Per-day log times plus weekday and hour attribution for one student."""
    try:
        days = sources.attendance.days(db, login)
    except JoinFailure as e:
        log_with_context(logger, "WARNING", "Attendance unavailable: {}".format(e.message),
                         context={"login": login})
        days = []

    per_weekday = {name: [] for name in DAY_NAMES}
    hourly = [0] * 24
    log_times = []
    total = 0
    for date_key, seconds in days:
        total += seconds
        log_times.append({"date": date_key, "duration": seconds // 60})
        bucket = bucket_for(date_key, seconds)
        if bucket["day_of_week"] is None:
            continue
        per_weekday[bucket["day_of_week"]].append(seconds / 3600)
        if bucket["hour_range"]:
            start, end = bucket["hour_range"]
            for hour in range(start, min(end, 24)):
                hourly[hour] += 1

    attendance_days = [
        {"day": day, "avgHours": round(sum(hours) / len(hours), 2) if hours else 0}
        for day, hours in per_weekday.items()
    ]
    hourly_activity = [
        {"hour": "{:02d}:00".format(hour), "count": count}
        for hour, count in enumerate(hourly)
    ]
    return {
        "logTimes": log_times,
        "totalLogTime": total,
        "attendanceDays": attendance_days,
        "hourlyActivity": hourly_activity,
    }


def _patronage(db: Session, sources, login: str) -> dict:
    try:
        return sources.mentorship.relations(db, login)
    except JoinFailure as e:
        log_with_context(logger, "WARNING", "Patronage unavailable: {}".format(e.message),
                         context={"login": login})
        return {"godfathers": [], "children": []}


@router.get("/api/students/{login}")
def get_student(login: str, db: Session = Depends(get_db), sources=Depends(get_sources)):
    """Get one student with projects, patronage, feedback and attendance."""
    start_time = time.time()
    login = validation.validate_login(login)

    with translate_store_errors("student detail"):
        student = db.query(Student).filter(Student.login == login).first()
        if not student:
            raise StudentNotFound("Student '{}' not found".format(login))

        projects = db.query(Project).filter(Project.login == login).order_by(
            Project.date.desc(), Project.project.asc()
        ).all()
        ratings = [
            rating for (rating,) in db.query(Feedback.rating).filter(Feedback.evaluated == login).all()
        ]
        patronage = _patronage(db, sources, login)
        attendance = _attendance(db, sources, login)

    rated = [r for r in ratings if r is not None]
    avg_rating = round(sum(rated) / len(rated), 2) if rated else 0

    result = serialize_student(student)
    result.update({
        "staff?": bool(student.staff),
        "is_piscine": bool(student.is_piscine),
        "is_trans": bool(student.is_trans),
        "project_count": len(projects),
        "cheat_count": sum(1 for p in projects if p.score == CHEAT_SCORE),
        "projects": [
            {
                "project": p.project,
                "score": p.score,
                "status": p.status,
                "date": p.date,
                "campusId": p.campus_id,
            }
            for p in projects
        ],
        "patronage": patronage,
        "feedbackCount": len(ratings),
        "avgRating": avg_rating,
        **attendance,
    })

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO", "Student detail served for {}".format(login),
                     context={"login": login},
                     extra_data={"duration_ms": round(duration_ms, 2), "projects": len(projects)})

    return {"student": result}
