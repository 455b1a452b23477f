"""Zeitfenster-Hilfsfunktionen für Unterrichtseinheiten.

Alle Zeitstempel sind Epoch-Millisekunden. Kalendertage werden immer in der
konfigurierten lokalen Zeitzone bestimmt (nie UTC-Tage), damit Duplikat-Schlüssel,
Wochenansicht und Kursfenster denselben Tagesbegriff verwenden.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from functools import lru_cache
from typing import Any, Optional
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Asia/Ho_Chi_Minh"
MS_PER_HOUR = 3_600_000

WEEKDAY_NAMES = ["Mo", "Di", "Mi", "Do", "Fr", "Sa", "So"]


@lru_cache(maxsize=None)
def get_tz(name: str = DEFAULT_TIMEZONE) -> ZoneInfo:
    """Gibt die (gecachte) Zeitzone zum IANA-Namen zurück."""
    return ZoneInfo(name)


def _resolve_tz(tz: Optional[tzinfo]) -> tzinfo:
    return tz if tz is not None else get_tz()


@dataclass(frozen=True)
class TimeWindow:
    """Geschlossenes Intervall [start, end] in Epoch-Millisekunden.

    Wird für Kursfenster und Berichtszeiträume verwendet. Immutable
    (frozen=True), damit es als Dict-Key nutzbar ist.
    """

    start: int
    end: int

    def contains(self, start: int, end: int) -> bool:
        """True wenn [start, end] vollständig im Fenster liegt."""
        return self.start <= start and end <= self.end

    def includes(self, ts: int) -> bool:
        """True wenn der Zeitpunkt im Fenster liegt (beide Grenzen inklusive)."""
        return self.start <= ts <= self.end


# ─── Parsen & Dauer ───────────────────────────────────────────────────────────

def parse_timestamp(value: Any, tz: Optional[tzinfo] = None) -> Optional[int]:
    """Wandelt einen Rohwert in Epoch-Millisekunden um.

    Akzeptiert Zahlen, numerische Strings, datetime-Objekte und ISO-Strings
    ("2024-07-28T08:00"). Naive Zeitangaben gelten in der lokalen Zeitzone.
    Gibt None zurück wenn der Wert nicht interpretierbar oder nicht endlich ist.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=_resolve_tz(tz))
        return int(dt.timestamp() * 1000)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            pass
        else:
            return int(number) if math.isfinite(number) else None
        if text[-1] in "Zz":
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parse_timestamp(parsed, tz)
    return None


def duration_hours(start: Any, end: Any) -> float:
    """Dauer in Stunden; 0 wenn einer der Zeitstempel ungültig ist."""
    start_ms = parse_timestamp(start)
    end_ms = parse_timestamp(end)
    if start_ms is None or end_ms is None:
        return 0.0
    return (end_ms - start_ms) / MS_PER_HOUR


def overlaps(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Halboffener Überlappungstest.

    Einheiten, die sich nur an einer Grenze berühren (end_a == start_b),
    überlappen NICHT – direkt aufeinanderfolgende Stunden sind erlaubt.
    """
    return start_a < end_b and start_b < end_a


# ─── Kalendertage ─────────────────────────────────────────────────────────────

def to_local(ts: int, tz: Optional[tzinfo] = None) -> datetime:
    return datetime.fromtimestamp(ts / 1000, _resolve_tz(tz))


def day_bucket(ts: int, tz: Optional[tzinfo] = None) -> date:
    """Lokaler Kalendertag eines Zeitstempels."""
    return to_local(ts, tz).date()


def hour_minute(ts: int, tz: Optional[tzinfo] = None) -> str:
    """Lokale Uhrzeit als "HH:MM"."""
    return to_local(ts, tz).strftime("%H:%M")


def weekday_index(ts: int, tz: Optional[tzinfo] = None) -> int:
    """Wochentag des lokalen Kalendertags (0=Mo .. 6=So)."""
    return day_bucket(ts, tz).weekday()


def week_start(day: date) -> date:
    """Montag der Woche, die den Tag enthält."""
    return day - timedelta(days=day.weekday())


def start_of_day_ms(day: date, tz: Optional[tzinfo] = None) -> int:
    dt = datetime.combine(day, time.min, tzinfo=_resolve_tz(tz))
    return int(dt.timestamp() * 1000)


def end_of_day_ms(day: date, tz: Optional[tzinfo] = None) -> int:
    """Letzte Millisekunde des Tages (23:59:59.999 lokal)."""
    dt = datetime.combine(day, time(23, 59, 59, 999000), tzinfo=_resolve_tz(tz))
    return int(dt.timestamp() * 1000)


def date_range_window(start: date, end: date, tz: Optional[tzinfo] = None) -> TimeWindow:
    """Fenster vom Tagesbeginn von start bis Tagesende von end."""
    return TimeWindow(start=start_of_day_ms(start, tz), end=end_of_day_ms(end, tz))


def course_window(course, tz: Optional[tzinfo] = None) -> TimeWindow:
    """Gültiges Planungsfenster eines Kurses."""
    return date_range_window(course.start_date, course.end_date, tz)


def format_timestamp(ts: int, tz: Optional[tzinfo] = None) -> str:
    """Formatiert als "28.07.2024 08:00"."""
    return to_local(ts, tz).strftime("%d.%m.%Y %H:%M")
