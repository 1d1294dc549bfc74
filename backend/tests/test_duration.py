from datetime import datetime, timezone

import pytest

from app.services.duration import (
    parse_duration, format_duration, parse_month_key, total_seconds,
    iter_days, bucket_for, interval_seconds,
)


@pytest.mark.parametrize("value, expected", [
    ("02:30:00", 9000),
    ("00:00:00", 0),
    ("41:10:00", 148200),
    ("03:12:45.123456", 11565),
    ("02:xx:10", 7210),
    ("30:00", 1800),
    ("45", 45),
    ("1:2:3:4", 0),
    ("bad", 0),
    ("", 0),
    (None, 0),
    (9000, 0),
])
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


def test_format_duration_pads_and_grows_hours():
    assert format_duration(9000) == "02:30:00"
    assert format_duration(148200) == "41:10:00"
    assert format_duration(-5) == "00:00:00"


def test_parse_month_key():
    assert parse_month_key("2024-03") == (2024, 3)
    assert parse_month_key("2024-13") is None
    assert parse_month_key("march") is None
    assert parse_month_key(None) is None


def test_bob_march_2024_is_9000_seconds():
    months = {"2024-03": {"days": {"01": "02:30:00", "02": "00:00:00"}}}
    assert total_seconds(months, since="2024-03", until="2024-03") == 9000


def test_total_seconds_window_and_month_totals():
    months = {
        "2024-01": {"days": {"10": "01:00:00"}},
        "2024-02": {"totalDuration": "02:00:00"},
        "2024-03": {"days": {"01": "00:30:00", "02": "garbage"}},
        "not-a-month": {"days": {"01": "05:00:00"}},
    }
    assert total_seconds(months) == 3600 + 7200 + 1800 + 18000
    # Unreadable months cannot be placed inside a bounded window
    assert total_seconds(months, since="2024-02") == 7200 + 1800
    assert total_seconds(months, until="2024-01") == 3600


@pytest.mark.parametrize("months", [None, [], "{}", {"2024-03": None}, {"2024-03": {"days": []}}])
def test_total_seconds_malformed_maps_are_zero(months):
    assert total_seconds(months) == 0


def test_iter_days_skips_zero_days_and_pads_day_keys():
    months = {"2024-03": {"days": {"1": "01:00:00", "02": "00:00:00", "15": "00:10:00"}}}
    assert sorted(iter_days(months)) == [("2024-03-01", 3600), ("2024-03-15", 600)]


def test_bucket_for_weekday_and_hour_range():
    # 2024-03-04 is a Monday
    assert bucket_for("2024-03-04", 3 * 3600 + 59) == {"day_of_week": "Mon", "hour_range": (9, 12)}
    assert bucket_for("2024-03-10", 14 * 3600) == {"day_of_week": "Sun", "hour_range": (9, 18)}
    assert bucket_for("2024-03-05", 1800) == {"day_of_week": "Tue", "hour_range": None}


def test_bucket_for_unparsable_date():
    assert bucket_for("2024-02-31", 7200) == {"day_of_week": None, "hour_range": (9, 11)}
    assert bucket_for(None, 0) == {"day_of_week": None, "hour_range": None}


def test_bucket_for_tolerates_malformed_seconds():
    assert bucket_for("2024-03-04", "abc") == {"day_of_week": "Mon", "hour_range": None}
    assert bucket_for("2024-03-04", "7200") == {"day_of_week": "Mon", "hour_range": (9, 11)}
    assert bucket_for("2024-03-04", float("nan")) == {"day_of_week": "Mon", "hour_range": None}


def test_interval_seconds():
    begin = datetime(2024, 3, 1, 10, 0)
    assert interval_seconds(begin, datetime(2024, 3, 1, 12, 30)) == 9000
    assert interval_seconds(begin, None) == 0
    assert interval_seconds(begin, datetime(2024, 3, 1, 9, 0)) == 0
    aware_end = datetime(2024, 3, 1, 11, 0, tzinfo=timezone.utc)
    assert interval_seconds(begin, aware_end) == 3600
