"""Erkennung und Bereinigung doppelt erfasster Einheiten.

Schlüssel einer Einheit: (Lehrkraft, Kurs, lokaler Tag, Uhrzeit HH:MM, Erfasser).
Der Erfasser gehört bewusst zum Schlüssel: die Erfassung der Lehrkraft und die
der Gruppenleitung zum selben Termin sind KEINE Duplikate, sondern die beiden
Seiten des Abgleichs. Duplikat ist erst die zweite Erfassung durch dieselbe
Rolle (Doppelklick, wiederholter Schreibversuch).

Die Suche ist rein lesend und beliebig oft wiederholbar. Gelöscht wird nur
über delete_duplicates(), Einheit für Einheit, mit Abbruch beim ersten Fehler.
"""

import logging
from datetime import date, tzinfo
from typing import Iterable, Optional

from pydantic import BaseModel

from analysis.cancellation import CancelToken, checkpoint
from data.record_store import DataAccessError, RecordStore, SessionNotFound
from models.session import Session
from models.time_window import day_bucket, format_timestamp, get_tz, hour_minute

logger = logging.getLogger(__name__)

DuplicateKey = tuple[str, str, date, str, str]


def duplicate_key(session: Session, tz: Optional[tzinfo] = None) -> Optional[DuplicateKey]:
    """Identitätsschlüssel; None wenn der Erfasser nicht bestimmbar ist."""
    creator = session.creator_key()
    if creator is None:
        return None
    return (
        session.teacher_id,
        session.course_id,
        day_bucket(session.start_timestamp, tz),
        hour_minute(session.start_timestamp, tz),
        creator,
    )


class DuplicateScanResult(BaseModel):
    """Ergebnis einer vollständigen Duplikat-Suche."""

    duplicates: list[Session]        # nur die redundanten, nie das Original
    missing_creator: list[Session]   # weder created_by noch user_id gesetzt
    scanned: int

    @property
    def duplicate_ids(self) -> list[str]:
        return [s.id for s in self.duplicates]

    def print_rich(self, tz: Optional[tzinfo] = None) -> None:
        """Gibt das Ergebnis formatiert über Rich aus."""
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()
        status = (
            "[bold green]✓ KEINE DUPLIKATE[/bold green]"
            if not self.duplicates
            else f"[bold yellow]{len(self.duplicates)} DUPLIKAT(E) GEFUNDEN[/bold yellow]"
        )
        lines = [status, f"Geprüft: {self.scanned} | Ohne Erfasser: {len(self.missing_creator)}"]
        console.print(Panel("\n".join(lines), title="Duplikat-Suche", border_style="cyan"))

        if self.duplicates:
            table = Table(box=box.ROUNDED)
            table.add_column("ID", style="bold")
            table.add_column("Beginn")
            table.add_column("Lehrkraft")
            table.add_column("Kurs")
            table.add_column("Erfasser")
            for s in self.duplicates:
                table.add_row(
                    s.id, format_timestamp(s.start_timestamp, tz), s.teacher_id,
                    s.course_id, s.creator_key() or "",
                )
            console.print(table)
        if self.missing_creator:
            ids = ", ".join(s.id for s in self.missing_creator)
            console.print(f"[yellow]Ohne Erfasser (nicht automatisch löschbar):[/yellow] {ids}")


class DeletionReport(BaseModel):
    """Fortschritt einer Lösch-Charge."""

    deleted_count: int
    failed_ids: list[str] = []      # Einheit, an der abgebrochen wurde
    skipped_ids: list[str] = []     # inzwischen kein Duplikat mehr
    remaining_ids: list[str] = []   # nicht mehr angefasst
    error: Optional[str] = None

    @property
    def completed(self) -> bool:
        return not self.failed_ids and self.error is None


class DuplicateDetector:
    """Sucht redundante Einheiten; das zuerst gesehene Exemplar bleibt kanonisch."""

    def __init__(self, tz: Optional[tzinfo] = None, check_interval: int = 200):
        self.tz = tz or get_tz()
        self.check_interval = check_interval

    def _partition(
        self, sessions: Iterable[Session], cancel: Optional[CancelToken] = None
    ) -> tuple[list[Session], list[Session], int]:
        # Stabile Sortierung: bei gleichem Beginn gilt die Eingabereihenfolge
        ordered = sorted(sessions, key=lambda s: s.start_timestamp)
        seen: set[DuplicateKey] = set()
        duplicates: list[Session] = []
        missing_creator: list[Session] = []

        for i, session in enumerate(ordered):
            checkpoint(cancel, i, self.check_interval, "Duplikat-Suche")
            key = duplicate_key(session, self.tz)
            if key is None:
                missing_creator.append(session)
                continue
            if key in seen:
                duplicates.append(session)
            else:
                seen.add(key)
        return duplicates, missing_creator, len(ordered)

    def _redundant_ids(self, sessions: Iterable[Session]) -> set[str]:
        duplicates, _, _ = self._partition(sessions)
        return {s.id for s in duplicates}

    def scan(
        self, sessions: Iterable[Session], cancel: Optional[CancelToken] = None
    ) -> DuplicateScanResult:
        """Vollständige Suche. Wirft ScanCancelled statt ein Teilergebnis zu liefern."""
        duplicates, missing_creator, scanned = self._partition(sessions, cancel)
        logger.info(
            f"Duplikat-Suche: {scanned} Einheiten geprüft, "
            f"{len(duplicates)} Duplikate, {len(missing_creator)} ohne Erfasser."
        )
        return DuplicateScanResult(
            duplicates=duplicates,
            missing_creator=missing_creator,
            scanned=scanned,
        )

    def find_duplicates(
        self, sessions: Iterable[Session], cancel: Optional[CancelToken] = None
    ) -> list[Session]:
        return self.scan(sessions, cancel).duplicates

    def delete_duplicates(self, store: RecordStore, ids: list[str]) -> DeletionReport:
        """Löscht die angegebenen Duplikate einzeln.

        Jede ID wird unmittelbar vor dem Löschen unter store.exclusive() gegen
        den aktuellen Bestand geprüft: gelöscht wird nur, solange ein früheres
        Exemplar mit demselben Schlüssel existiert. IDs, die inzwischen kein
        Duplikat mehr sind oder nicht mehr existieren, werden übersprungen.
        Beim ersten Fehler bricht die Charge ab; der Bericht nennt die Zahl der
        bereits gelöschten Einheiten. Ein erneuter Lauf setzt dort fort.
        """
        pending = list(dict.fromkeys(ids))
        deleted = 0
        skipped: list[str] = []
        for i, session_id in enumerate(pending):
            try:
                with store.exclusive():
                    redundant = session_id in self._redundant_ids(store.list_sessions())
                    if redundant:
                        store.delete_session(session_id)
            except SessionNotFound:
                redundant = False
            except DataAccessError as e:
                logger.error(
                    f"Duplikat-Bereinigung abgebrochen bei {session_id}: {e} "
                    f"({deleted} bereits gelöscht)."
                )
                return DeletionReport(
                    deleted_count=deleted,
                    failed_ids=[session_id],
                    skipped_ids=skipped,
                    remaining_ids=pending[i + 1:],
                    error=str(e),
                )
            if not redundant:
                logger.warning(f"Einheit {session_id} ist kein Duplikat mehr – übersprungen.")
                skipped.append(session_id)
                continue
            deleted += 1

        logger.info(f"Duplikat-Bereinigung: {deleted} Einheiten gelöscht.")
        return DeletionReport(deleted_count=deleted, skipped_ids=skipped)


def find_duplicates(sessions: Iterable[Session], tz: Optional[tzinfo] = None) -> list[Session]:
    """Kurzform für DuplicateDetector(tz).find_duplicates(...)."""
    return DuplicateDetector(tz).find_duplicates(sessions)
