import pytest

from app.errors import JoinFailure
from app.models.location import LocationSession, LocationStats
from app.models.patronage import Patronage, PatronageEdge
from app.services.sources import (
    detect_sources,
    MonthMapAttendanceSource, IntervalAttendanceSource, UnavailableAttendanceSource,
    TreePatronageSource, EdgePatronageSource, UnavailableMentorshipSource,
)


def test_month_map_totals(campus):
    source = MonthMapAttendanceSource()
    assert source.totals(campus, ["alice", "bob", "carol", "dave"]) == {
        "alice": 39600, "bob": 9000, "carol": 18000,
    }
    assert source.totals(campus, ["bob"], since="2024-03") == {"bob": 9000}
    assert source.totals(campus, ["carol"], since="2024-01") == {"carol": 0}


def test_month_map_days(campus):
    assert MonthMapAttendanceSource().days(campus, "alice") == [
        ("2024-02-05", 3600), ("2024-03-04", 36000),
    ]
    assert MonthMapAttendanceSource().days(campus, "dave") == []


def test_interval_totals_and_days(campus, sessions_and_edges):
    source = IntervalAttendanceSource()
    # Open sessions count as zero
    assert source.totals(campus, ["alice", "bob"]) == {"alice": 0, "bob": 12600}
    assert source.totals(campus, ["bob"], since="2024-03") == {"bob": 9000}
    assert source.days(campus, "bob") == [("2024-02-20", 3600), ("2024-03-01", 9000)]


def test_tree_patronage(campus):
    source = TreePatronageSource()
    assert source.counts(campus, "children", ["alice", "bob", "dave"]) == {"alice": 2, "bob": 0}
    assert source.counts(campus, "godfathers", ["alice", "bob", "carol"]) == {
        "alice": 1, "bob": 1, "carol": 0,
    }
    assert source.relations(campus, "alice") == {"godfathers": ["carol"], "children": ["bob", "dave"]}
    assert source.relations(campus, "erin") == {"godfathers": [], "children": []}


def test_tree_patronage_tolerates_malformed_lists(db):
    db.add(Patronage(login="zed", campus_id=1, godfathers="not json",
                     children='["amy", {"login": "ben"}, {"name": "x"}, 7]'))
    db.commit()
    assert TreePatronageSource().relations(db, "zed") == {"godfathers": [], "children": ["amy", "ben"]}


def test_edge_patronage_counts_distinct_logins(campus, sessions_and_edges):
    source = EdgePatronageSource()
    assert source.counts(campus, "children", ["alice", "carol"]) == {"alice": 2, "carol": 1}
    assert source.counts(campus, "godfathers", ["alice", "bob"]) == {"alice": 1, "bob": 1}
    assert source.relations(campus, "alice") == {"godfathers": ["carol"], "children": ["bob", "dave"]}


def test_unavailable_sources_raise_join_failure(db):
    with pytest.raises(JoinFailure):
        UnavailableAttendanceSource().totals(db, ["alice"])
    with pytest.raises(JoinFailure):
        UnavailableMentorshipSource().relations(db, "alice")


def test_detect_prefers_populated_tables(campus):
    sources = detect_sources(campus, "auto", "auto")
    assert isinstance(sources.attendance, MonthMapAttendanceSource)
    assert isinstance(sources.mentorship, TreePatronageSource)


def test_detect_prefers_sessions_and_edges_when_both_hold_rows(campus, sessions_and_edges):
    sources = detect_sources(campus, "auto", "auto")
    assert isinstance(sources.attendance, IntervalAttendanceSource)
    assert isinstance(sources.mentorship, EdgePatronageSource)


def test_detect_honors_pinned_encodings(campus, sessions_and_edges):
    sources = detect_sources(campus, "months", "tree")
    assert isinstance(sources.attendance, MonthMapAttendanceSource)
    assert isinstance(sources.mentorship, TreePatronageSource)


def test_detect_without_tables(db, engine):
    for model in (LocationSession, LocationStats, PatronageEdge, Patronage):
        model.__table__.drop(engine)
    sources = detect_sources(db, "auto", "auto")
    assert isinstance(sources.attendance, UnavailableAttendanceSource)
    assert isinstance(sources.mentorship, UnavailableMentorshipSource)


def test_detect_on_empty_tables_is_unsettled(db):
    sources = detect_sources(db, "auto", "auto")
    assert sources.settled is False
    assert detect_sources(db, "months", "tree").settled is True


def test_detect_with_rows_is_settled(campus):
    assert detect_sources(campus, "auto", "auto").settled is True
