"""Zulassungsprüfung für neue oder bearbeitete Unterrichtseinheiten.

Die Prüfungen laufen in fester Reihenfolge und brechen beim ersten Fehler ab:
grundlegende, billige Prüfungen zuerst, die linearen Konfliktscans zuletzt.

  1. Zeitstempel lesbar
  2. Beginn vor Ende
  3. Kurs existiert
  4. Einheit liegt im Kursfenster
  5. Lehrkraft nicht doppelt belegt
  6. Kurs nicht doppelt belegt
  7. Anwesende sind im Kurs eingeschrieben (nur wenn Lernende bekannt)

Der Validator ist rein: er schreibt nichts. Gespeichert wird erst vom
Aufrufer nach einem ok=True.
"""

from datetime import tzinfo
from typing import Literal, Optional

from pydantic import BaseModel

from models.course import Course
from models.session import Session, SessionInput
from models.student import Student
from models.time_window import (
    MS_PER_HOUR,
    course_window,
    format_timestamp,
    get_tz,
    overlaps,
    parse_timestamp,
)
from models.training_data import TrainingData

DEFAULT_LONG_SESSION_HOURS = 5.0

ViolationKind = Literal[
    "invalid_timestamp",
    "inverted_range",
    "unknown_course",
    "outside_course_window",
    "teacher_conflict",
    "course_conflict",
    "attendee_not_enrolled",
]


class ValidationViolation(BaseModel):
    """Eine abgelehnte Regel, mit Bezug auf den kollidierenden Datensatz."""

    kind: ViolationKind
    message: str
    conflicting_session_id: Optional[str] = None
    conflicting_start: Optional[int] = None   # Epoch-ms


class IntegrityWarning(BaseModel):
    """Nicht blockierender Hinweis; der Aufrufer entscheidet über Rückfrage."""

    kind: Literal["long_session"]
    message: str
    duration_hours: float


class ValidationResult(BaseModel):
    """Ergebnis einer Zulassungsprüfung."""

    ok: bool
    violation: Optional[ValidationViolation] = None
    warnings: list[IntegrityWarning] = []

    def print_rich(self) -> None:
        """Gibt das Ergebnis formatiert über Rich aus."""
        from rich.console import Console
        from rich.panel import Panel

        console = Console()
        if self.ok:
            lines = ["[bold green]✓ ZULÄSSIG[/bold green]"]
        else:
            lines = [
                "[bold red]✗ ABGELEHNT[/bold red]",
                f"[red]{self.violation.kind}: {self.violation.message}[/red]",
            ]
        for w in self.warnings:
            lines.append(f"[yellow]• {w.message}[/yellow]")
        console.print(Panel("\n".join(lines), title="Einheit prüfen", border_style="cyan"))


class SessionRejected(Exception):
    """Schreibversuch wurde von der Zulassungsprüfung abgelehnt."""

    def __init__(self, violation: ValidationViolation):
        super().__init__(violation.message)
        self.violation = violation


class ValidationContext(BaseModel):
    """Momentaufnahme, gegen die ein Kandidat geprüft wird."""

    courses: list[Course]
    sessions: list[Session]
    students: Optional[list[Student]] = None

    @classmethod
    def from_data(cls, data: TrainingData, with_students: bool = True) -> "ValidationContext":
        return cls(
            courses=data.courses,
            sessions=data.sessions,
            students=data.students if with_students else None,
        )


def _is_counterpart(candidate: SessionInput, start: int, existing: Session) -> bool:
    """Gleiche reale Einheit, von der jeweils anderen Rolle erfasst.

    Lehrkraft und Gruppenleitung erfassen denselben Termin unabhängig; diese
    beiden Datensätze sind kein Konflikt, sondern die zwei Hälften des Abgleichs.
    """
    return (
        candidate.created_by is not None
        and existing.created_by is not None
        and candidate.created_by != existing.created_by
        and candidate.teacher_id == existing.teacher_id
        and candidate.course_id == existing.course_id
        and start == existing.start_timestamp
    )


class ScheduleValidator:
    """Prüft einen SessionInput gegen Kurse und bestehende Einheiten."""

    def __init__(
        self,
        tz: Optional[tzinfo] = None,
        long_session_hours: float = DEFAULT_LONG_SESSION_HOURS,
    ):
        self.tz = tz or get_tz()
        self.long_session_hours = long_session_hours

    def validate(
        self, candidate: SessionInput, context: ValidationContext
    ) -> ValidationResult:
        """Führt alle Prüfungen der Reihe nach aus; erster Fehler gewinnt."""
        start = parse_timestamp(candidate.start_timestamp, self.tz)
        end = parse_timestamp(candidate.end_timestamp, self.tz)

        violation = self._check_parse(start, end)
        if violation is None:
            violation = self._check_order(start, end)
        course: Optional[Course] = None
        if violation is None:
            course = next((c for c in context.courses if c.id == candidate.course_id), None)
            violation = self._check_course_exists(candidate, course)
        if violation is None:
            violation = self._check_course_window(course, start, end)
        if violation is None:
            violation = self._check_teacher_conflict(candidate, start, end, context.sessions)
        if violation is None:
            violation = self._check_course_conflict(candidate, start, end, context.sessions)
        if violation is None and context.students is not None:
            violation = self._check_enrollment(candidate, context.students)

        if violation is not None:
            return ValidationResult(ok=False, violation=violation)
        return ValidationResult(ok=True, warnings=self._warnings(start, end))

    # ── Einzelne Prüfungen ────────────────────────────────────────────────────

    def _check_parse(
        self, start: Optional[int], end: Optional[int]
    ) -> Optional[ValidationViolation]:
        if start is None or end is None:
            return ValidationViolation(
                kind="invalid_timestamp",
                message="Zeitangabe der Einheit ist ungültig.",
            )
        return None

    def _check_order(self, start: int, end: int) -> Optional[ValidationViolation]:
        if start >= end:
            return ValidationViolation(
                kind="inverted_range",
                message="Das Ende der Einheit muss nach dem Beginn liegen.",
            )
        return None

    def _check_course_exists(
        self, candidate: SessionInput, course: Optional[Course]
    ) -> Optional[ValidationViolation]:
        if course is None:
            return ValidationViolation(
                kind="unknown_course",
                message=f"Kurs {candidate.course_id!r} ist nicht bekannt.",
            )
        return None

    def _check_course_window(
        self, course: Course, start: int, end: int
    ) -> Optional[ValidationViolation]:
        window = course_window(course, self.tz)
        if not window.contains(start, end):
            return ValidationViolation(
                kind="outside_course_window",
                message=(
                    f"Die Einheit muss im Kurszeitraum liegen "
                    f"({course.start_date:%d.%m.%Y} – {course.end_date:%d.%m.%Y})."
                ),
            )
        return None

    def _first_overlap(
        self,
        candidate: SessionInput,
        start: int,
        end: int,
        sessions: list[Session],
        field: str,
    ) -> Optional[Session]:
        """Erste bestehende Einheit mit gleichem `field`, die zeitlich überlappt.

        Übersprungen werden die bearbeitete Einheit selbst (candidate.id) und
        das Gegenstück der anderen Rolle zum selben Termin.
        """
        value = getattr(candidate, field)
        for existing in sessions:
            if candidate.id and existing.id == candidate.id:
                continue
            if getattr(existing, field) != value:
                continue
            if _is_counterpart(candidate, start, existing):
                continue
            if overlaps(existing.start_timestamp, existing.end_timestamp, start, end):
                return existing
        return None

    def _check_teacher_conflict(
        self, candidate: SessionInput, start: int, end: int, sessions: list[Session]
    ) -> Optional[ValidationViolation]:
        """Keine Lehrkraft unterrichtet zwei Einheiten gleichzeitig."""
        other = self._first_overlap(candidate, start, end, sessions, "teacher_id")
        if other is None:
            return None
        return ValidationViolation(
            kind="teacher_conflict",
            message=(
                f"Lehrkraft {candidate.teacher_id} hat bereits eine Einheit "
                f"ab {format_timestamp(other.start_timestamp, self.tz)} (ID {other.id})."
            ),
            conflicting_session_id=other.id,
            conflicting_start=other.start_timestamp,
        )

    def _check_course_conflict(
        self, candidate: SessionInput, start: int, end: int, sessions: list[Session]
    ) -> Optional[ValidationViolation]:
        """Ein Kurs (eine Lerngruppe) hat nie zwei Einheiten gleichzeitig."""
        other = self._first_overlap(candidate, start, end, sessions, "course_id")
        if other is None:
            return None
        return ValidationViolation(
            kind="course_conflict",
            message=(
                f"Kurs {candidate.course_id} hat bereits eine Einheit "
                f"ab {format_timestamp(other.start_timestamp, self.tz)} (ID {other.id})."
            ),
            conflicting_session_id=other.id,
            conflicting_start=other.start_timestamp,
        )

    def _check_enrollment(
        self, candidate: SessionInput, students: list[Student]
    ) -> Optional[ValidationViolation]:
        enrolled = {s.id for s in students if s.course_id == candidate.course_id}
        foreign = sorted(set(candidate.attendee_ids) - enrolled)
        if foreign:
            return ValidationViolation(
                kind="attendee_not_enrolled",
                message=(
                    f"Nicht im Kurs {candidate.course_id} eingeschrieben: "
                    f"{', '.join(foreign)}."
                ),
            )
        return None

    # ── Hinweise ──────────────────────────────────────────────────────────────

    def _warnings(self, start: int, end: int) -> list[IntegrityWarning]:
        hours = (end - start) / MS_PER_HOUR
        if hours > self.long_session_hours:
            return [IntegrityWarning(
                kind="long_session",
                message=(
                    f"Die Einheit dauert {hours:.1f} Stunden "
                    f"(mehr als {self.long_session_hours:g}h) – bitte bestätigen."
                ),
                duration_hours=hours,
            )]
        return []


def validate_session(
    candidate: SessionInput,
    context: ValidationContext,
    tz: Optional[tzinfo] = None,
) -> ValidationResult:
    """Kurzform für ScheduleValidator(tz).validate(...)."""
    return ScheduleValidator(tz).validate(candidate, context)
