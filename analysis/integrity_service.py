"""Einstiegspunkt für Oberflächen und CLI: die Integritätsoperationen.

  - validate_session:  Zulassungsprüfung ohne Schreiben
  - create_session / update_session: Prüfen und Schreiben unter Sperre
  - scan_duplicates / delete_duplicates: Bereinigung doppelter Erfassung
  - reconcile:         Anwesenheits-Abgleich Lehrkraft ↔ Gruppenleitung
  - hours_summary:     Stundenübersicht

Prüfen-dann-Schreiben läuft unter den Sperren "teacher:<id>" und
"course:<id>" des Speichers und unter store.exclusive(). Zwei gleichzeitige
Anlagen für dieselbe Lehrkraft oder denselben Kurs werden so nacheinander
gegen den jeweils aktuellen Bestand geprüft, auch aus getrennten Prozessen.
"""

import logging
import uuid
from datetime import date
from typing import Optional

from pydantic import BaseModel

from analysis.cancellation import CancelToken
from analysis.duplicate_detector import DeletionReport, DuplicateDetector, DuplicateScanResult
from analysis.hours_report import HoursSummary, build_hours_summary
from analysis.reconciliation import ReconciliationEngine, ReconciliationReport
from analysis.schedule_validator import (
    IntegrityWarning,
    ScheduleValidator,
    SessionRejected,
    ValidationContext,
    ValidationResult,
)
from config.defaults import default_integrity_config
from config.schema import IntegrityConfig
from data.record_store import RecordStore, session_lock_keys
from models.session import Session, SessionInput

logger = logging.getLogger(__name__)


class SessionWriteResult(BaseModel):
    """Gespeicherte Einheit samt nicht blockierender Hinweise."""

    session: Session
    warnings: list[IntegrityWarning] = []


class IntegrityService:
    """Bündelt Validator, Duplikat-Erkennung und Abgleich über einem Speicher."""

    def __init__(self, store: RecordStore, config: Optional[IntegrityConfig] = None):
        self.store = store
        self.config = config or default_integrity_config()
        tz = self.config.tz
        interval = self.config.scan.cancel_check_interval
        self.validator = ScheduleValidator(tz, self.config.long_session_hours)
        self.duplicates = DuplicateDetector(tz, interval)
        self.reconciler = ReconciliationEngine(tz, interval)

    def new_cancel_token(self) -> CancelToken:
        """Abbruchsignal mit dem konfigurierten Zeitlimit."""
        return CancelToken(self.config.scan.timeout_seconds)

    # ─── Zulassung ───

    def validate_session(self, candidate: SessionInput) -> ValidationResult:
        """Prüft gegen den aktuellen Bestand; schreibt nichts."""
        context = ValidationContext.from_data(self.store.snapshot())
        return self.validator.validate(candidate, context)

    def create_session(self, candidate: SessionInput) -> SessionWriteResult:
        """Legt eine Einheit an. Wirft SessionRejected bei Regelverstoß."""
        if candidate.id is not None:
            raise ValueError("Neue Einheiten dürfen keine ID mitbringen.")
        with self.store.locks.hold(*session_lock_keys(candidate)), self.store.exclusive():
            result = self.validate_session(candidate)
            if not result.ok:
                logger.info(f"Einheit abgelehnt: {result.violation.message}")
                raise SessionRejected(result.violation)
            session = candidate.to_session(uuid.uuid4().hex[:12], self.config.tz)
            self.store.add_session(session)
        logger.info(f"Einheit {session.id} angelegt.")
        return SessionWriteResult(session=session, warnings=result.warnings)

    def update_session(self, candidate: SessionInput) -> SessionWriteResult:
        """Ändert eine bestehende Einheit; sie selbst zählt nicht als Konflikt."""
        if candidate.id is None:
            raise ValueError("Zum Bearbeiten wird die ID der Einheit benötigt.")
        existing = self.store.get_session(candidate.id)
        keys = session_lock_keys(candidate) + session_lock_keys(existing)
        with self.store.locks.hold(*keys), self.store.exclusive():
            result = self.validate_session(candidate)
            if not result.ok:
                logger.info(f"Änderung an {candidate.id} abgelehnt: {result.violation.message}")
                raise SessionRejected(result.violation)
            session = candidate.to_session(candidate.id, self.config.tz)
            self.store.update_session(session)
        logger.info(f"Einheit {session.id} aktualisiert.")
        return SessionWriteResult(session=session, warnings=result.warnings)

    # ─── Duplikate ───

    def scan_duplicates(self, cancel: Optional[CancelToken] = None) -> DuplicateScanResult:
        """Vollständige Duplikat-Suche; wirft ScanCancelled bei Abbruch."""
        return self.duplicates.scan(self.store.list_sessions(), cancel or self.new_cancel_token())

    def delete_duplicates(self, ids: list[str]) -> DeletionReport:
        return self.duplicates.delete_duplicates(self.store, ids)

    # ─── Abgleich ───

    def reconcile(
        self,
        course_id: str,
        start_date: date,
        end_date: date,
        cancel: Optional[CancelToken] = None,
    ) -> ReconciliationReport:
        """Abgleich; wirft ReconciliationError (wiederholbar) oder ScanCancelled."""
        return self.reconciler.build_report(
            self.store, course_id, start_date, end_date, cancel or self.new_cancel_token()
        )

    # ─── Stunden ───

    def hours_summary(
        self, start_date: date, end_date: date, course_id: Optional[str] = None
    ) -> HoursSummary:
        data = self.store.snapshot()
        return build_hours_summary(
            data.sessions,
            data.students,
            start_date,
            end_date,
            tz=self.config.tz,
            course_id=course_id,
            teacher_names=data.teacher_names(),
        )
