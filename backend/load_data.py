"""
Data Loader Script - Loads a campus snapshot JSON file into the database.

The snapshot mirrors what the external sync writes; this script exists for
local development and demos. Top-level keys (all optional):

    students, projects, location_stats, location_sessions,
    feedbacks, patronages, patronage_edges

Usage:
    python load_data.py                          # Uses ./campus_snapshot.json
    python load_data.py path/to/snapshot.json    # Custom file
"""

import json
import sys
import os
from datetime import datetime

from app.database import SessionLocal, create_tables
from app.models.student import Student
from app.models.project import Project
from app.models.location import LocationStats, LocationSession
from app.models.feedback import Feedback
from app.models.patronage import Patronage, PatronageEdge
from app.logging_config import setup_logging, get_logger, log_with_context

logger = get_logger("db")

STUDENT_FLAGS = {
    "active": ("active?", "active"),
    "alumni": ("alumni?", "alumni"),
    "staff": ("staff?", "staff"),
    "blackholed": ("blackholed",),
    "freeze": ("freeze",),
    "sinker": ("sinker",),
    "is_test": ("is_test",),
    "is_piscine": ("is_piscine",),
    "is_trans": ("is_trans",),
}


def _json_text(value, default):
    """Store JSON-bearing fields as text, the way the sync does."""
    if value is None:
        value = default
    return value if isinstance(value, str) else json.dumps(value)


def _timestamp(value):
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    # Naive UTC for SQLite compatibility
    return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed


def _student(raw: dict) -> Student:
    flags = {}
    for column, keys in STUDENT_FLAGS.items():
        value = next((raw[k] for k in keys if k in raw), None)
        # Sync payloads carry null for unset flags
        flags[column] = bool(value) if column != "active" else value is not False
    return Student(
        id=raw["id"],
        login=raw["login"],
        campus_id=raw.get("campusId", raw.get("campus_id")),
        email=raw.get("email"),
        first_name=raw.get("first_name"),
        last_name=raw.get("last_name"),
        usual_full_name=raw.get("usual_full_name"),
        displayname=raw.get("displayname"),
        image=_json_text(raw["image"], None) if raw.get("image") is not None else None,
        level=raw.get("level"),
        wallet=raw.get("wallet"),
        correction_point=raw.get("correction_point"),
        grade=raw.get("grade"),
        pool_month=(raw.get("pool_month") or "").lower() or None,
        pool_year=raw.get("pool_year"),
        **flags
    )


def _project(raw: dict) -> Project:
    return Project(
        campus_id=raw.get("campusId", raw.get("campus_id")),
        login=raw["login"],
        project=raw["project"],
        score=raw.get("score", 0),
        status=raw["status"],
        date=raw["date"],
    )


def _location_stats(raw: dict) -> LocationStats:
    return LocationStats(
        login=raw["login"],
        campus_id=raw.get("campusId", raw.get("campus_id")),
        months=_json_text(raw.get("months"), {}),
    )


def _location_session(raw: dict) -> LocationSession:
    return LocationSession(
        login=raw["login"],
        campus_id=raw.get("campusId", raw.get("campus_id")),
        host=raw.get("host"),
        begin_at=_timestamp(raw["begin_at"]),
        end_at=_timestamp(raw.get("end_at")),
    )


def _feedback(raw: dict) -> Feedback:
    return Feedback(
        campus_id=raw.get("campusId", raw.get("campus_id")),
        evaluator=raw["evaluator"],
        evaluated=raw["evaluated"],
        project=raw.get("project"),
        date=raw.get("date"),
        rating=raw.get("rating"),
        comment=raw.get("comment"),
    )


def _patronage(raw: dict) -> Patronage:
    return Patronage(
        login=raw["login"],
        campus_id=raw.get("campusId", raw.get("campus_id")),
        godfathers=_json_text(raw.get("godfathers"), []),
        children=_json_text(raw.get("children"), []),
    )


def _patronage_edge(raw: dict) -> PatronageEdge:
    return PatronageEdge(
        campus_id=raw.get("campusId", raw.get("campus_id")),
        user_login=raw["user_login"],
        godfather_login=raw["godfather_login"],
    )


BUILDERS = {
    "students": _student,
    "projects": _project,
    "location_stats": _location_stats,
    "location_sessions": _location_session,
    "feedbacks": _feedback,
    "patronages": _patronage,
    "patronage_edges": _patronage_edge,
}


def load_snapshot(db, data: dict) -> dict:
    """
    Insert every record of a snapshot and commit once.

    Returns:
        Dict mapping each snapshot key to the number of rows inserted
    """
    counts = {}
    for key, builder in BUILDERS.items():
        records = data.get(key) or []
        db.add_all([builder(raw) for raw in records])
        counts[key] = len(records)
    db.commit()

    log_with_context(logger, "INFO", "Snapshot loaded",
                     extra_data={"counts": counts})
    return counts


def main():
    setup_logging()

    data_file = sys.argv[1] if len(sys.argv) > 1 else os.getenv("SNAPSHOT_FILE", "campus_snapshot.json")
    if not os.path.exists(data_file):
        print(f"Error: Could not find {data_file}")
        sys.exit(1)

    print(f"Loading data from: {data_file}")
    with open(data_file, 'r') as f:
        data = json.load(f)

    create_tables()
    db = SessionLocal()
    try:
        counts = load_snapshot(db, data)
    finally:
        db.close()

    print("=" * 60)
    print("SNAPSHOT SUMMARY")
    print("=" * 60)
    for key, count in counts.items():
        print(f"  {key:<20} {count}")
    print("=" * 60)


if __name__ == "__main__":
    main()
