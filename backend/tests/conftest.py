"""
Shared fixtures: an in-memory SQLite store per test, a TestClient wired to
it, and a small campus snapshot used across the ranking tests.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import json
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db, get_session_factory
from app.main import app
from app.models.student import Student
from app.models.project import Project
from app.models.location import LocationStats, LocationSession
from app.models.feedback import Feedback
from app.models.patronage import Patronage, PatronageEdge


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def client(db, engine):
    def override_get_db():
        yield db

    worker_sessions = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: worker_sessions
    app.state.sources = None
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    app.state.sources = None


@pytest.fixture
def make_student(db):
    """Insert one student; flags and fields default to an active cadet-less row."""
    next_id = iter(range(1000, 100000))

    def make(login, campus_id=1, **fields):
        student = Student(id=fields.pop("id", next(next_id)), login=login,
                          campus_id=campus_id, **fields)
        db.add(student)
        db.commit()
        return student

    return make


def _months(value):
    return json.dumps(value)


def _logins(*logins):
    return json.dumps([{"login": login} for login in logins])


@pytest.fixture
def campus(db):
    """
    Five students, four on campus 1:

    login  pool            level wallet cp  flags            grade
    alice  march-2024      5.0   10     3   active           Member
    bob    march-2024      3.0   50     5   active
    carol  september-2023  8.2   None   1   active, alumni
    dave   march-2024      3.0   20     0   inactive
    erin   september-2023  1.0   5      2   active (campus 2) Learner
    """
    db.add_all([
        Student(id=1, login="alice", campus_id=1, first_name="Alice", last_name="Martin",
                displayname="Alice Martin", pool_month="march", pool_year="2024",
                level=5.0, wallet=10, correction_point=3, grade="Member",
                image=json.dumps({"link": "https://cdn.example/alice.jpg"})),
        Student(id=2, login="bob", campus_id=1, first_name="Bob", last_name="Durand",
                pool_month="march", pool_year="2024",
                level=3.0, wallet=50, correction_point=5),
        Student(id=3, login="carol", campus_id=1, first_name="Carol", last_name="Petit",
                pool_month="september", pool_year="2023",
                level=8.2, wallet=None, correction_point=1, alumni=True),
        Student(id=4, login="dave", campus_id=1, first_name="Dave", last_name="Moreau",
                pool_month="march", pool_year="2024",
                level=3.0, wallet=20, correction_point=0, active=False),
        Student(id=5, login="erin", campus_id=2, first_name="Erin", last_name="Roux",
                pool_month="september", pool_year="2023",
                level=1.0, wallet=5, correction_point=2, grade="Learner"),
    ])

    db.add_all([
        Project(campus_id=1, login="alice", project="libft", score=80, status="success", date="2024-03-10"),
        Project(campus_id=1, login="alice", project="ft_printf", score=-42, status="fail", date="2024-03-15"),
        Project(campus_id=1, login="alice", project="get_next_line", score=90, status="success", date="2024-03-20"),
        Project(campus_id=1, login="bob", project="libft", score=100, status="finished", date="2024-03-11"),
        Project(campus_id=1, login="carol", project="libft", score=125, status="success", date="2023-10-01"),
        Project(campus_id=1, login="carol", project="born2beroot", score=100, status="success", date="2023-10-20"),
        Project(campus_id=1, login="carol", project="ft_printf", score=-42, status="fail", date="2023-11-02"),
        Project(campus_id=2, login="erin", project="libft", score=-42, status="fail", date="2023-10-05"),
    ])

    db.add_all([
        Feedback(campus_id=1, evaluator="bob", evaluated="alice", project="libft", rating=4),
        Feedback(campus_id=1, evaluator="carol", evaluated="alice", project="libft", rating=3),
        Feedback(campus_id=1, evaluator="dave", evaluated="alice", project="get_next_line", rating=None),
        Feedback(campus_id=1, evaluator="alice", evaluated="bob", project="libft", rating=2),
    ])

    db.add_all([
        LocationStats(login="alice", campus_id=1, months=_months({
            "2024-02": {"days": {"05": "01:00:00"}},
            "2024-03": {"days": {"04": "10:00:00"}},
        })),
        LocationStats(login="bob", campus_id=1, months=_months({
            "2024-03": {"days": {"01": "02:30:00", "02": "00:00:00"}},
        })),
        LocationStats(login="carol", campus_id=1, months=_months({
            "2023-10": {"totalDuration": "05:00:00"},
        })),
    ])

    db.add_all([
        Patronage(login="alice", campus_id=1, godfathers=_logins("carol"), children=_logins("bob", "dave")),
        Patronage(login="bob", campus_id=1, godfathers=_logins("alice"), children=_logins()),
        Patronage(login="carol", campus_id=1, godfathers=_logins(), children=_logins("alice")),
    ])

    db.commit()
    return db


@pytest.fixture
def sessions_and_edges(db):
    """Interval attendance and edge patronage records for the campus fixture."""
    db.add_all([
        LocationSession(login="bob", campus_id=1, host="e1r1p1",
                        begin_at=datetime(2024, 3, 1, 10, 0), end_at=datetime(2024, 3, 1, 12, 30)),
        LocationSession(login="bob", campus_id=1, host="e1r1p1",
                        begin_at=datetime(2024, 2, 20, 9, 0), end_at=datetime(2024, 2, 20, 10, 0)),
        LocationSession(login="alice", campus_id=1, host="e1r2p4",
                        begin_at=datetime(2024, 3, 4, 9, 0), end_at=None),
    ])
    db.add_all([
        PatronageEdge(campus_id=1, user_login="bob", godfather_login="alice"),
        PatronageEdge(campus_id=1, user_login="dave", godfather_login="alice"),
        PatronageEdge(campus_id=1, user_login="alice", godfather_login="carol"),
        PatronageEdge(campus_id=1, user_login="alice", godfather_login="carol"),
    ])
    db.commit()
    return db
