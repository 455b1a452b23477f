"""Wochenansicht der Einheiten für die Terminal-Ausgabe.

Zeilen sind die lokalen Anfangszeiten der Woche, Spalten die Wochentage
Mo..So. Erfassungen der Gruppenleitung werden nicht angezeigt, sie
beschreiben dieselben Termine wie die der Lehrkraft.
"""

from datetime import date, timedelta, tzinfo
from typing import Optional

from models.session import CreatorRole, Session, SessionType
from models.time_window import (
    WEEKDAY_NAMES,
    date_range_window,
    hour_minute,
    to_local,
    week_start,
    weekday_index,
)


def week_sessions(
    sessions: list[Session],
    day: date,
    tz: Optional[tzinfo] = None,
    course_id: Optional[str] = None,
    teacher_id: Optional[str] = None,
) -> list[Session]:
    """Einheiten der Woche (Mo–So), die `day` enthält, nach Beginn sortiert."""
    monday = week_start(day)
    window = date_range_window(monday, monday + timedelta(days=6), tz)
    return sorted(
        (
            s for s in sessions
            if s.created_by != CreatorRole.TEAM_LEADER
            and window.includes(s.start_timestamp)
            and (course_id is None or s.course_id == course_id)
            and (teacher_id is None or s.teacher_id == teacher_id)
        ),
        key=lambda s: s.start_timestamp,
    )


def render_week_rows(
    sessions: list[Session],
    day: date,
    tz: Optional[tzinfo] = None,
    course_id: Optional[str] = None,
    teacher_id: Optional[str] = None,
    teacher_names: Optional[dict[str, str]] = None,
) -> list[list[str]]:
    """Gibt Tabellenzeilen für die Wochenansicht zurück.

    Jede Zeile: [HH:MM, Mo, Di, Mi, Do, Fr, Sa, So]
    Mehrere Einheiten im selben Feld werden untereinander aufgeführt.
    """
    names = teacher_names or {}
    cells: dict[tuple[str, int], list[str]] = {}
    for s in week_sessions(sessions, day, tz, course_id, teacher_id):
        key = (hour_minute(s.start_timestamp, tz), weekday_index(s.start_timestamp, tz))
        end = to_local(s.end_timestamp, tz).strftime("%H:%M")
        kind = "P" if s.type == SessionType.PRACTICE else "T"
        label = f"{kind} {s.content or s.course_id}\n{names.get(s.teacher_id, s.teacher_id)} bis {end}"
        cells.setdefault(key, []).append(label)

    times = sorted({t for t, _ in cells})
    rows: list[list[str]] = []
    for t in times:
        row = [t]
        for day_idx in range(len(WEEKDAY_NAMES)):
            entries = cells.get((t, day_idx))
            row.append("\n".join(entries) if entries else "—")
        rows.append(row)
    return rows


def print_week(
    sessions: list[Session],
    day: date,
    tz: Optional[tzinfo] = None,
    course_id: Optional[str] = None,
    teacher_id: Optional[str] = None,
    teacher_names: Optional[dict[str, str]] = None,
) -> None:
    """Gibt die Wochenansicht als Rich-Tabelle aus."""
    from rich.console import Console
    from rich.table import Table
    from rich import box

    console = Console()
    monday = week_start(day)
    title = f"Woche {monday:%d.%m.%Y} – {monday + timedelta(days=6):%d.%m.%Y}"
    if course_id:
        title += f"  |  Kurs {course_id}"
    if teacher_id:
        title += f"  |  Lehrkraft {names_or_id(teacher_names, teacher_id)}"

    table = Table(title=title, box=box.ROUNDED, show_lines=True)
    table.add_column("Beginn", style="bold", width=6)
    for i, name in enumerate(WEEKDAY_NAMES):
        table.add_column(f"{name} {monday + timedelta(days=i):%d.%m.}", min_width=14)

    rows = render_week_rows(sessions, day, tz, course_id, teacher_id, teacher_names)
    for row in rows:
        table.add_row(*row)
    console.print(table)
    if not rows:
        console.print("[dim]Keine Einheiten in dieser Woche.[/dim]")


def names_or_id(teacher_names: Optional[dict[str, str]], teacher_id: str) -> str:
    return (teacher_names or {}).get(teacher_id, teacher_id)
