"""Abgleich der Anwesenheit: Lehrkraft gegen Gruppenleitung.

Beide Rollen erfassen denselben Termin unabhängig. Die Datensätze werden über
den exakten Beginn (start_timestamp) zu Paaren zusammengeführt und verglichen:

  - MISSING_DATA: nur eine Seite hat erfasst
  - MATCHED:      beide Seiten, gleiche Menge an Anwesenden
  - DISCREPANCY:  beide Seiten, abweichende Anwesende

Der Bericht ist alles-oder-nichts: schlägt das Laden fehl oder wird der Lauf
abgebrochen, gibt es keinen Teilbericht.
"""

import logging
from datetime import date, tzinfo
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel

from analysis.cancellation import CancelToken, checkpoint
from data.record_store import DataAccessError, RecordStore
from models.session import CreatorRole, Session
from models.student import Student
from models.time_window import date_range_window, format_timestamp, get_tz

logger = logging.getLogger(__name__)


class ReconciliationError(Exception):
    """Daten für den Abgleich konnten nicht geladen werden; erneut versuchen."""

    retryable = True


class ReconciliationStatus(str, Enum):
    MATCHED = "MATCHED"
    DISCREPANCY = "DISCREPANCY"
    MISSING_DATA = "MISSING_DATA"


class AttendanceDiff(BaseModel):
    """Symmetrische Differenz der Anwesenden, getrennt nach Seite."""

    teacher_only: list[str]   # nur von der Lehrkraft als anwesend erfasst
    leader_only: list[str]    # nur von der Gruppenleitung als anwesend erfasst

    def is_empty(self) -> bool:
        return not self.teacher_only and not self.leader_only

    def by_student(self) -> dict[str, str]:
        """Student-ID → Seite ("teacher" / "team_leader")."""
        sides = {sid: CreatorRole.TEACHER.value for sid in self.teacher_only}
        sides.update({sid: CreatorRole.TEAM_LEADER.value for sid in self.leader_only})
        return sides


class ReconciliationPair(BaseModel):
    """Zwei Erfassungen desselben Termins (Schlüssel: Kurs + Beginn)."""

    course_id: str
    start_timestamp: int
    teacher_session: Optional[Session] = None
    leader_session: Optional[Session] = None
    status: ReconciliationStatus

    def attendance_diff(self) -> AttendanceDiff:
        """Wer ist nur auf einer Seite anwesend? Leer wenn eine Seite fehlt."""
        if self.teacher_session is None or self.leader_session is None:
            return AttendanceDiff(teacher_only=[], leader_only=[])
        teacher = self.teacher_session.attendee_set
        leader = self.leader_session.attendee_set
        return AttendanceDiff(
            teacher_only=sorted(teacher - leader),
            leader_only=sorted(leader - teacher),
        )


def classify(
    teacher_session: Optional[Session], leader_session: Optional[Session]
) -> ReconciliationStatus:
    if teacher_session is None or leader_session is None:
        return ReconciliationStatus.MISSING_DATA
    if teacher_session.attendee_set == leader_session.attendee_set:
        return ReconciliationStatus.MATCHED
    return ReconciliationStatus.DISCREPANCY


class ReconciliationReport(BaseModel):
    """Vollständiger Abgleichsbericht für einen Kurs und Zeitraum."""

    course_id: str
    course_name: Optional[str] = None
    start_date: date
    end_date: date
    pairs: list[ReconciliationPair]

    def count(self, status: ReconciliationStatus) -> int:
        return sum(1 for p in self.pairs if p.status == status)

    def print_rich(
        self,
        students: Optional[list[Student]] = None,
        tz: Optional[tzinfo] = None,
        details: bool = False,
    ) -> None:
        """Gibt den Bericht formatiert über Rich aus.

        Mit details=True werden für jede Abweichung die betroffenen Lernenden
        samt Seite aufgelistet.
        """
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()
        names = {s.id: s.name for s in students or []}

        def student_name(sid: str) -> str:
            return names.get(sid, f"Unbekannt (ID: {sid})")

        lines = [
            f"[bold]{self.course_name or self.course_id}[/bold]  |  "
            f"{self.start_date:%d.%m.%Y} – {self.end_date:%d.%m.%Y}",
            f"[green]Übereinstimmend: {self.count(ReconciliationStatus.MATCHED)}[/green] | "
            f"[yellow]Abweichend: {self.count(ReconciliationStatus.DISCREPANCY)}[/yellow] | "
            f"[dim]Unvollständig: {self.count(ReconciliationStatus.MISSING_DATA)}[/dim]",
        ]
        console.print(Panel("\n".join(lines), title="Anwesenheits-Abgleich", border_style="cyan"))

        if not self.pairs:
            console.print("[dim]Keine Einheiten im Zeitraum.[/dim]")
            return

        colors = {
            ReconciliationStatus.MATCHED: "green",
            ReconciliationStatus.DISCREPANCY: "yellow",
            ReconciliationStatus.MISSING_DATA: "dim",
        }
        table = Table(box=box.ROUNDED, show_lines=details)
        table.add_column("Beginn", width=17)
        table.add_column("Lehrkraft", width=10)
        table.add_column("Gruppenleitung", width=14)
        table.add_column("Status", width=13)
        if details:
            table.add_column("Abweichungen")

        for pair in self.pairs:
            color = colors[pair.status]
            row = [
                format_timestamp(pair.start_timestamp, tz),
                str(len(pair.teacher_session.attendee_ids)) if pair.teacher_session else "—",
                str(len(pair.leader_session.attendee_ids)) if pair.leader_session else "—",
                f"[{color}]{pair.status.value}[/{color}]",
            ]
            if details:
                diff = pair.attendance_diff()
                marks = [f"{student_name(sid)} (nur Lehrkraft)" for sid in diff.teacher_only]
                marks += [f"{student_name(sid)} (nur Gruppenleitung)" for sid in diff.leader_only]
                row.append("\n".join(marks))
            table.add_row(*row)
        console.print(table)


class ReconciliationEngine:
    """Bildet Paare aus Lehrkraft- und Gruppenleitungs-Erfassungen."""

    def __init__(self, tz: Optional[tzinfo] = None, check_interval: int = 200):
        self.tz = tz or get_tz()
        self.check_interval = check_interval

    def reconcile(
        self,
        course_id: str,
        start_date: date,
        end_date: date,
        sessions: Iterable[Session],
        cancel: Optional[CancelToken] = None,
    ) -> list[ReconciliationPair]:
        """Paare des Kurses im Zeitraum [start_date, end_date], nach Beginn sortiert."""
        if start_date > end_date:
            raise ValueError(
                f"Zeitraum ungültig: {start_date:%d.%m.%Y} liegt nach {end_date:%d.%m.%Y}."
            )
        window = date_range_window(start_date, end_date, self.tz)

        slots: dict[int, dict[CreatorRole, Session]] = {}
        for i, session in enumerate(sessions):
            checkpoint(cancel, i, self.check_interval, "Abgleich")
            if session.course_id != course_id or not window.includes(session.start_timestamp):
                continue
            if session.created_by is None:
                # Ohne Rolle keiner Seite zuordenbar
                continue
            sides = slots.setdefault(session.start_timestamp, {})
            if session.created_by in sides:
                logger.warning(
                    f"Abgleich: mehrfache Erfassung ({session.created_by.value}) um "
                    f"{format_timestamp(session.start_timestamp, self.tz)} – "
                    f"Einheit {session.id} ignoriert, Duplikat-Bereinigung empfohlen."
                )
                continue
            sides[session.created_by] = session

        pairs = []
        for start in sorted(slots):
            teacher = slots[start].get(CreatorRole.TEACHER)
            leader = slots[start].get(CreatorRole.TEAM_LEADER)
            pairs.append(ReconciliationPair(
                course_id=course_id,
                start_timestamp=start,
                teacher_session=teacher,
                leader_session=leader,
                status=classify(teacher, leader),
            ))
        return pairs

    def build_report(
        self,
        store: RecordStore,
        course_id: str,
        start_date: date,
        end_date: date,
        cancel: Optional[CancelToken] = None,
    ) -> ReconciliationReport:
        """Lädt die Einheiten aus dem Speicher und erstellt den Bericht."""
        window = date_range_window(start_date, end_date, self.tz)
        try:
            courses = store.snapshot().course_map()
            sessions = store.list_sessions(course_id=course_id, date_range=window)
        except DataAccessError as e:
            raise ReconciliationError(
                f"Abgleich nicht möglich, Daten konnten nicht geladen werden: {e}"
            ) from e

        pairs = self.reconcile(course_id, start_date, end_date, sessions, cancel)
        course = courses.get(course_id)
        logger.info(
            f"Abgleich {course_id}: {len(pairs)} Termine aus {len(sessions)} Einheiten."
        )
        return ReconciliationReport(
            course_id=course_id,
            course_name=course.name if course else None,
            start_date=start_date,
            end_date=end_date,
            pairs=pairs,
        )


def reconcile(
    course_id: str,
    start_date: date,
    end_date: date,
    sessions: Iterable[Session],
    tz: Optional[tzinfo] = None,
) -> list[ReconciliationPair]:
    """Kurzform für ReconciliationEngine(tz).reconcile(...)."""
    return ReconciliationEngine(tz).reconcile(course_id, start_date, end_date, sessions)
