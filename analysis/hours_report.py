"""Stundenübersicht: Unterrichtsstunden je Lehrkraft und Anwesenheit je Lernendem.

Maßgeblich sind die Erfassungen der Lehrkraft. Die Gegenstücke der
Gruppenleitung beschreiben denselben Termin und werden nicht doppelt gezählt;
Altbestand ohne Rolle zählt mit.
"""

from datetime import date, tzinfo
from typing import Optional

from pydantic import BaseModel

from models.session import CreatorRole, Session, SessionType
from models.student import Student
from models.time_window import date_range_window


class TeacherHours(BaseModel):
    teacher_id: str
    name: str
    theory_hours: float = 0.0
    practice_hours: float = 0.0
    sessions: int = 0

    @property
    def total_hours(self) -> float:
        return self.theory_hours + self.practice_hours


class StudentHours(BaseModel):
    student_id: str
    name: str
    sessions: int = 0
    hours: float = 0.0


class HoursSummary(BaseModel):
    """Stunden im Zeitraum [start_date, end_date]."""

    start_date: date
    end_date: date
    course_id: Optional[str] = None
    teachers: list[TeacherHours]
    students: list[StudentHours]

    def print_rich(self) -> None:
        """Gibt die Übersicht formatiert über Rich aus."""
        from rich.console import Console
        from rich.table import Table
        from rich import box

        console = Console()
        scope = f" – Kurs {self.course_id}" if self.course_id else ""
        period = f"{self.start_date:%d.%m.%Y} – {self.end_date:%d.%m.%Y}{scope}"

        table = Table(title=f"Lehrkräfte ({period})", box=box.ROUNDED)
        table.add_column("Lehrkraft", style="bold")
        table.add_column("Einheiten", justify="right")
        table.add_column("Theorie", justify="right")
        table.add_column("Praxis", justify="right")
        table.add_column("Gesamt", justify="right")
        for t in self.teachers:
            table.add_row(
                t.name, str(t.sessions), f"{t.theory_hours:.1f}h",
                f"{t.practice_hours:.1f}h", f"[bold]{t.total_hours:.1f}h[/bold]",
            )
        if not self.teachers:
            table.add_row("[dim]Keine Daten[/dim]", "", "", "", "")
        console.print(table)

        table2 = Table(title="Lernende", box=box.ROUNDED)
        table2.add_column("Name", style="bold")
        table2.add_column("Einheiten", justify="right")
        table2.add_column("Stunden", justify="right")
        for s in self.students:
            table2.add_row(s.name, str(s.sessions), f"{s.hours:.1f}h")
        if not self.students:
            table2.add_row("[dim]Keine Daten[/dim]", "", "")
        console.print(table2)


def build_hours_summary(
    sessions: list[Session],
    students: list[Student],
    start_date: date,
    end_date: date,
    tz: Optional[tzinfo] = None,
    course_id: Optional[str] = None,
    teacher_names: Optional[dict[str, str]] = None,
) -> HoursSummary:
    """Summiert Stunden aller zählenden Einheiten mit Beginn im Zeitraum."""
    window = date_range_window(start_date, end_date, tz)
    names = teacher_names or {}
    student_names = {s.id: s.name for s in students}

    teachers: dict[str, TeacherHours] = {}
    attended: dict[str, StudentHours] = {}
    counted = [
        s for s in sessions
        if s.created_by != CreatorRole.TEAM_LEADER
        and window.includes(s.start_timestamp)
        and (course_id is None or s.course_id == course_id)
    ]

    for s in counted:
        th = teachers.setdefault(
            s.teacher_id,
            TeacherHours(teacher_id=s.teacher_id, name=names.get(s.teacher_id, s.teacher_id)),
        )
        th.sessions += 1
        if s.type == SessionType.PRACTICE:
            th.practice_hours += s.duration_hours
        else:
            th.theory_hours += s.duration_hours

        for sid in s.attendee_set:
            sh = attended.setdefault(
                sid,
                StudentHours(student_id=sid, name=student_names.get(sid, f"Unbekannt (ID: {sid})")),
            )
            sh.sessions += 1
            sh.hours += s.duration_hours

    return HoursSummary(
        start_date=start_date,
        end_date=end_date,
        course_id=course_id,
        teachers=sorted(teachers.values(), key=lambda t: (-t.total_hours, t.name)),
        students=sorted(attended.values(), key=lambda s: s.name),
    )
