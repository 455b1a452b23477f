"""Datenhaltung für Kurse, Lernende und Einheiten.

Die Integritätsprüfung behandelt den Speicher als austauschbare Grenze:
RecordStore definiert die Lese-/Schreiboperationen, JsonRecordStore und
InMemoryRecordStore sind die beiden mitgelieferten Umsetzungen.

Jeder Lesezugriff liefert eine Momentaufnahme. Schreibzugriffe laufen unter
exclusive(): innerhalb des Prozesses über eine interne Sperre, beim
JsonRecordStore zusätzlich über eine Sperrdatei neben der JSON-Datei, damit
auch zwei gleichzeitig laufende CLI-Aufrufe nacheinander schreiben. KeyedLocks
stellt darüber hinaus Sperren pro Lehrkraft bzw. Kurs bereit.
"""

import logging
import threading
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Iterator, Optional

from filelock import FileLock, Timeout
from pydantic import ValidationError

from models.course import Course
from models.session import Session
from models.student import Student
from models.time_window import TimeWindow
from models.training_data import TrainingData

logger = logging.getLogger(__name__)


class DataAccessError(Exception):
    """Lesen oder Schreiben des Datenbestands ist fehlgeschlagen.

    retryable=True: ein erneuter Versuch kann gelingen; es wurde kein
    Teilzustand geschrieben.
    """

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


class SessionNotFound(DataAccessError):
    """Die adressierte Einheit existiert (nicht mehr)."""

    def __init__(self, session_id: str):
        super().__init__(f"Einheit {session_id} nicht gefunden.", retryable=False)
        self.session_id = session_id


class KeyedLocks:
    """Registry benannter Sperren, z.B. "teacher:T1" und "course:C1"."""

    def __init__(self):
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _get(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        """Hält alle Sperren gleichzeitig; sortierte Reihenfolge verhindert Deadlocks."""
        ordered = sorted(set(keys))
        acquired: list[threading.Lock] = []
        try:
            for key in ordered:
                lock = self._get(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


def session_lock_keys(session) -> list[str]:
    return [f"teacher:{session.teacher_id}", f"course:{session.course_id}"]


class RecordStore:
    """Basisklasse: Unterklassen implementieren _read() und _write()."""

    def __init__(self):
        self.locks = KeyedLocks()
        self._write_lock = threading.RLock()

    # ─── Unterklassen ───

    def _read(self) -> TrainingData:
        raise NotImplementedError

    def _write(self, data: TrainingData) -> None:
        raise NotImplementedError

    def _process_lock(self):
        return nullcontext()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Exklusiver Zugriff: kein anderer Schreiber zwischen Lesen und Schreiben.

        Reentrant; add/update/delete_session dürfen darin aufgerufen werden.
        """
        with self._write_lock, self._process_lock():
            yield

    # ─── Lesen ───

    def snapshot(self) -> TrainingData:
        """Vollständige Momentaufnahme (Kopie, Änderungen wirken nicht zurück)."""
        return self._read()

    def list_courses(self) -> list[Course]:
        return self.snapshot().courses

    def list_students(self) -> list[Student]:
        return self.snapshot().students

    def list_sessions(
        self,
        course_id: Optional[str] = None,
        date_range: Optional[TimeWindow] = None,
    ) -> list[Session]:
        """Einheiten, optional gefiltert nach Kurs und Beginn im Zeitfenster."""
        sessions = self.snapshot().sessions
        if course_id is not None:
            sessions = [s for s in sessions if s.course_id == course_id]
        if date_range is not None:
            sessions = [s for s in sessions if date_range.includes(s.start_timestamp)]
        return sessions

    def get_session(self, session_id: str) -> Session:
        for s in self.snapshot().sessions:
            if s.id == session_id:
                return s
        raise SessionNotFound(session_id)

    # ─── Schreiben ───

    def add_session(self, session: Session) -> None:
        with self.exclusive():
            data = self._read()
            if any(s.id == session.id for s in data.sessions):
                raise DataAccessError(
                    f"Einheit {session.id} existiert bereits.", retryable=False
                )
            data.sessions.append(session)
            self._write(data)
        logger.debug(f"Einheit {session.id} angelegt.")

    def update_session(self, session: Session) -> None:
        with self.exclusive():
            data = self._read()
            for i, existing in enumerate(data.sessions):
                if existing.id == session.id:
                    data.sessions[i] = session
                    break
            else:
                raise SessionNotFound(session.id)
            self._write(data)
        logger.debug(f"Einheit {session.id} aktualisiert.")

    def delete_session(self, session_id: str) -> None:
        with self.exclusive():
            data = self._read()
            remaining = [s for s in data.sessions if s.id != session_id]
            if len(remaining) == len(data.sessions):
                raise SessionNotFound(session_id)
            data.sessions = remaining
            self._write(data)
        logger.debug(f"Einheit {session_id} gelöscht.")

    def replace_all(self, data: TrainingData) -> None:
        """Ersetzt den gesamten Bestand (z.B. nach Demo-Daten-Erzeugung)."""
        with self.exclusive():
            self._write(data)


class InMemoryRecordStore(RecordStore):
    """Flüchtiger Speicher, z.B. für Tests und Probeläufe."""

    def __init__(self, data: Optional[TrainingData] = None):
        super().__init__()
        self._data = (data or TrainingData()).model_copy(deep=True)

    def _read(self) -> TrainingData:
        return self._data.model_copy(deep=True)

    def _write(self, data: TrainingData) -> None:
        self._data = data.model_copy(deep=True)


class JsonRecordStore(RecordStore):
    """Datenbestand in einer JSON-Datei (siehe TrainingData.save_json)."""

    def __init__(self, path: Path, lock_timeout: float = 10.0):
        super().__init__()
        self.path = Path(path)
        self.lock_path = self.path.with_suffix(self.path.suffix + ".lock")
        self._file_lock = FileLock(str(self.lock_path), timeout=lock_timeout)

    @contextmanager
    def _process_lock(self) -> Iterator[None]:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._file_lock.acquire()
        except Timeout as e:
            raise DataAccessError(
                f"Datenbestand gesperrt (anderer Schreibvorgang läuft): {self.path}"
            ) from e
        try:
            yield
        finally:
            self._file_lock.release()

    def _read(self) -> TrainingData:
        try:
            return TrainingData.load_json(self.path)
        except FileNotFoundError as e:
            raise DataAccessError(
                f"Datenbestand nicht gefunden: {self.path}", retryable=False
            ) from e
        except ValidationError as e:
            raise DataAccessError(
                f"Datenbestand ungültig: {self.path}\n{e}", retryable=False
            ) from e
        except OSError as e:
            raise DataAccessError(f"Lesefehler {self.path}: {e}") from e

    def _write(self, data: TrainingData) -> None:
        try:
            data.save_json(self.path)
        except OSError as e:
            raise DataAccessError(f"Schreibfehler {self.path}: {e}") from e
