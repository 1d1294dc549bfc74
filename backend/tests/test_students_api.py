import json
import threading
import time

from sqlalchemy import event

import app.routes.students as students_routes
from app.errors import QueryTimeout
from app.models.location import LocationStats
from app.models.patronage import Patronage
from app.models.student import Student
from app.services.aggregators import AGGREGATORS, ProjectCountAggregator


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Request-ID"]


def test_list_students_defaults(client, campus):
    response = client.get("/api/students", params={"campusId": "1"})
    assert response.status_code == 200
    body = response.json()
    assert [s["login"] for s in body["students"]] == ["alice", "bob", "carol", "dave"]
    assert body["pagination"] == {"total": 4, "page": 1, "limit": 50, "totalPages": 1}


def test_list_students_cheat_count(client, campus):
    response = client.get("/api/students", params={"sort": "cheat_count", "order": "desc", "campusId": "1"})
    assert response.status_code == 200
    rows = response.json()["students"]
    assert {"login": "alice", "cheat_count": 1} == {k: rows[0][k] for k in ("login", "cheat_count")}
    assert [s["login"] for s in rows] == ["alice", "carol"]


def test_list_students_project_count_pinned_vocabulary(client, campus, monkeypatch):
    monkeypatch.setitem(AGGREGATORS, "project_count", ProjectCountAggregator(success_statuses=["success"]))
    response = client.get("/api/students", params={"sort": "project_count", "order": "desc"})
    alice = next(s for s in response.json()["students"] if s["login"] == "alice")
    assert alice["project_count"] == 2


def test_list_students_pool_forms(client, campus):
    by_token = client.get("/api/students", params={"pool": "march-2024"}).json()
    by_fields = client.get("/api/students", params={"poolMonth": "3", "poolYear": "2024"}).json()
    assert [s["login"] for s in by_token["students"]] == ["alice", "bob", "dave"]
    assert by_fields == by_token


def test_list_students_search_and_status(client, campus):
    body = client.get("/api/students", params={"search": "ali", "status": "active"}).json()
    assert [s["login"] for s in body["students"]] == ["alice"]


def test_list_students_limit_is_capped(client, campus):
    body = client.get("/api/students", params={"limit": "1000"}).json()
    assert body["pagination"]["limit"] == 50


def test_list_students_skip(client, campus):
    body = client.get("/api/students", params={"campusId": "1", "limit": "2", "skip": "2"}).json()
    assert [s["login"] for s in body["students"]] == ["carol", "dave"]
    assert body["pagination"]["page"] == 2


def test_sources_are_detected_once(client, campus):
    client.get("/api/students", params={"sort": "log_time"})
    sources = client.app.state.sources
    client.get("/api/students", params={"sort": "children_count"})
    assert client.app.state.sources is sources


def test_sources_are_redetected_after_first_ingestion(client, db, make_student):
    make_student("alice")
    response = client.get("/api/students", params={"sort": "log_time"})
    assert response.json()["students"][0]["log_time"] == 0
    assert client.app.state.sources is None

    db.add(LocationStats(login="alice", campus_id=1, months=json.dumps({"2024-03": {"days": {"01": "01:00:00"}}})))
    db.add(Patronage(login="alice", campus_id=1, godfathers="[]", children="[]"))
    db.commit()

    response = client.get("/api/students", params={"sort": "log_time"})
    assert response.json()["students"][0]["log_time"] == 3600
    assert client.app.state.sources is not None


def test_unknown_sort_key_is_400(client, campus):
    response = client.get("/api/students", params={"sort": "popularity"})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid Sort Key"
    assert "popularity" in body["message"]


def test_invalid_arguments_are_400(client, campus):
    for params in ({"order": "sideways"}, {"skip": "100001"}, {"campusId": "abc"},
                   {"status": "wizard"}, {"pool": "march"}):
        response = client.get("/api/students", params=params)
        assert response.status_code == 400, params
        assert response.json()["error"] == "Bad Request"


def test_ranking_timeout_is_504(client, campus, monkeypatch):
    def slow_rank(db, **kwargs):
        time.sleep(0.5)
        return {"students": [], "pagination": {}}

    monkeypatch.setattr(students_routes, "rank", slow_rank)
    monkeypatch.setattr(students_routes, "QUERY_TIMEOUT_SECONDS", 0.05)
    response = client.get("/api/students", params={"sort": "log_time"})
    assert response.status_code == 504
    assert response.json()["error"] == "Query Timeout"


def test_list_pools(client, campus):
    response = client.get("/api/students/pools", params={"campusId": "1"})
    assert response.status_code == 200
    assert response.json() == {"pools": [
        {"month": "september", "year": "2023", "count": 1},
        {"month": "march", "year": "2024", "count": 3},
    ]}

    all_pools = client.get("/api/students/pools").json()["pools"]
    assert all_pools[0] == {"month": "september", "year": "2023", "count": 2}


def test_student_detail(client, campus):
    response = client.get("/api/students/alice")
    assert response.status_code == 200
    student = response.json()["student"]

    assert student["login"] == "alice"
    assert student["project_count"] == 3
    assert student["cheat_count"] == 1
    assert [p["project"] for p in student["projects"]] == ["get_next_line", "ft_printf", "libft"]
    assert student["patronage"] == {"godfathers": ["carol"], "children": ["bob", "dave"]}
    assert student["feedbackCount"] == 3
    assert student["avgRating"] == 3.5

    assert student["totalLogTime"] == 39600
    assert student["logTimes"] == [
        {"date": "2024-02-05", "duration": 60},
        {"date": "2024-03-04", "duration": 600},
    ]
    days = {d["day"]: d["avgHours"] for d in student["attendanceDays"]}
    assert days["Mon"] == 5.5
    assert days["Tue"] == 0
    hours = {h["hour"]: h["count"] for h in student["hourlyActivity"]}
    assert len(hours) == 24
    assert (hours["09:00"], hours["17:00"], hours["18:00"]) == (2, 1, 0)


def test_student_detail_without_secondary_records(client, campus):
    student = client.get("/api/students/dave").json()["student"]
    assert student["projects"] == []
    assert student["avgRating"] == 0
    assert student["totalLogTime"] == 0
    assert student["patronage"] == {"godfathers": [], "children": []}


def test_student_detail_not_found(client, campus):
    response = client.get("/api/students/nobody")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found", "message": "Student 'nobody' not found"}


def test_student_detail_invalid_login(client, campus):
    response = client.get("/api/students/bad!login")
    assert response.status_code == 400


def test_timed_out_ranking_issues_no_further_statements(client, campus, engine, monkeypatch):
    worker = {}
    finished = threading.Event()
    worker_statements = []

    def record(conn, cursor, statement, parameters, context, executemany):
        if threading.get_ident() == worker.get("thread"):
            worker_statements.append(statement)

    def slow_rank(db, **kwargs):
        worker["thread"] = threading.get_ident()
        try:
            time.sleep(0.3)
            db.query(Student).count()
        except QueryTimeout:
            worker["refused"] = True
            raise
        finally:
            finished.set()
        return {"students": [], "pagination": {}}

    event.listen(engine, "after_cursor_execute", record)
    monkeypatch.setattr(students_routes, "rank", slow_rank)
    monkeypatch.setattr(students_routes, "QUERY_TIMEOUT_SECONDS", 0.05)
    try:
        response = client.get("/api/students", params={"sort": "log_time"})
        assert response.status_code == 504
        assert finished.wait(2)
    finally:
        event.remove(engine, "after_cursor_execute", record)

    assert worker.get("refused") is True
    assert worker_statements == []
