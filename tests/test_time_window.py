"""Tests für Zeitstempel, Zeitfenster und lokale Kalendertage."""

import math
from datetime import date, datetime, timezone

import pytest

from models.course import Course
from models.time_window import (
    TimeWindow,
    course_window,
    date_range_window,
    day_bucket,
    duration_hours,
    end_of_day_ms,
    format_timestamp,
    get_tz,
    hour_minute,
    overlaps,
    parse_timestamp,
    start_of_day_ms,
    week_start,
    weekday_index,
)

TZ = get_tz("Asia/Ho_Chi_Minh")


def _ts(iso: str) -> int:
    return parse_timestamp(iso, TZ)


# ─── PARSEN ───────────────────────────────────────────────────────────────────

class TestParseTimestamp:
    def test_int_passthrough(self):
        """Epoch-ms als int bleiben unverändert."""
        assert parse_timestamp(1722128400000) == 1722128400000

    def test_numeric_string(self):
        """Numerische Strings werden als Epoch-ms gelesen."""
        assert parse_timestamp("1722128400000") == 1722128400000

    def test_naive_iso_is_local(self):
        """Naive ISO-Zeit gilt in der lokalen Zeitzone (UTC+7)."""
        expected = int(datetime(2024, 7, 28, 1, 0, tzinfo=timezone.utc).timestamp() * 1000)
        assert _ts("2024-07-28T08:00") == expected

    def test_aware_datetime(self):
        dt = datetime(2024, 7, 28, 1, 0, tzinfo=timezone.utc)
        assert parse_timestamp(dt) == int(dt.timestamp() * 1000)

    def test_trailing_z_is_utc(self):
        """Suffix "Z" wird auf jeder Python-Version als UTC gelesen."""
        expected = int(datetime(2024, 7, 28, 8, 0, tzinfo=timezone.utc).timestamp() * 1000)
        assert _ts("2024-07-28T08:00Z") == expected
        assert _ts("2024-07-28T08:00:00z") == expected

    @pytest.mark.parametrize("value", [None, "", "morgen früh", math.nan, math.inf, True])
    def test_unparseable_returns_none(self, value):
        """Nicht interpretierbare Werte → None statt Ausnahme."""
        assert parse_timestamp(value) is None


class TestDuration:
    def test_two_hours(self):
        assert duration_hours(_ts("2024-07-28T08:00"), _ts("2024-07-28T10:00")) == 2.0

    def test_unparseable_is_zero(self):
        """Ungültige Zeitangaben ergeben 0.0 Stunden."""
        assert duration_hours("kaputt", _ts("2024-07-28T10:00")) == 0.0


# ─── ÜBERLAPPUNG ──────────────────────────────────────────────────────────────

class TestOverlaps:
    def test_partial_overlap(self):
        assert overlaps(0, 10, 5, 15)

    def test_containment(self):
        assert overlaps(0, 100, 10, 20)

    def test_touching_is_not_overlap(self):
        """Halboffene Intervalle: Ende == Beginn ist keine Überlappung."""
        assert not overlaps(0, 10, 10, 20)
        assert not overlaps(10, 20, 0, 10)

    def test_disjoint(self):
        assert not overlaps(0, 10, 11, 20)


# ─── KALENDERTAGE ─────────────────────────────────────────────────────────────

class TestLocalDays:
    def test_day_bucket_uses_local_day(self):
        """00:30 Ortszeit gehört zum lokalen Tag, obwohl es in UTC der Vortag ist."""
        ts = _ts("2024-07-28T00:30")
        assert day_bucket(ts, TZ) == date(2024, 7, 28)
        assert datetime.fromtimestamp(ts / 1000, timezone.utc).date() == date(2024, 7, 27)

    def test_hour_minute(self):
        assert hour_minute(_ts("2024-07-28T08:05"), TZ) == "08:05"

    def test_weekday_index_monday_zero(self):
        assert weekday_index(_ts("2024-07-29T10:00"), TZ) == 0
        assert weekday_index(_ts("2024-07-28T10:00"), TZ) == 6

    def test_week_start(self):
        assert week_start(date(2024, 7, 28)) == date(2024, 7, 22)
        assert week_start(date(2024, 7, 22)) == date(2024, 7, 22)

    def test_day_bounds(self):
        """Tagesende ist 23:59:59.999 lokal, genau 1 ms vor dem nächsten Tag."""
        start = start_of_day_ms(date(2024, 7, 28), TZ)
        end = end_of_day_ms(date(2024, 7, 28), TZ)
        assert start == _ts("2024-07-28T00:00")
        assert end == start_of_day_ms(date(2024, 7, 29), TZ) - 1

    def test_format_timestamp(self):
        assert format_timestamp(_ts("2024-07-28T08:00"), TZ) == "28.07.2024 08:00"


# ─── FENSTER ──────────────────────────────────────────────────────────────────

class TestWindows:
    def test_course_window_inclusive(self):
        """Kursfenster reicht vom Tagesbeginn bis zum Tagesende."""
        course = Course(id="C1", name="Kurs", start_date=date(2024, 7, 1), end_date=date(2024, 7, 31))
        window = course_window(course, TZ)
        assert window.contains(_ts("2024-07-01T00:00"), _ts("2024-07-31T23:59"))
        assert not window.contains(_ts("2024-07-31T23:00"), _ts("2024-08-01T00:30"))

    def test_includes_bounds(self):
        w = TimeWindow(start=10, end=20)
        assert w.includes(10) and w.includes(20)
        assert not w.includes(21)

    def test_date_range_window(self):
        w = date_range_window(date(2024, 7, 1), date(2024, 7, 7), TZ)
        assert w.includes(_ts("2024-07-07T23:00"))
        assert not w.includes(_ts("2024-07-08T00:00"))

    def test_course_rejects_inverted_dates(self):
        """Kurs mit Beginn nach Ende ist ungültig."""
        with pytest.raises(ValueError):
            Course(id="C1", name="Kurs", start_date=date(2024, 8, 1), end_date=date(2024, 7, 1))
