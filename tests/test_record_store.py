"""Tests für Datenhaltung (JSON / In-Memory) und Sperren."""

import json
import threading
import time
from datetime import date
from pathlib import Path

import pytest

from data.record_store import (
    DataAccessError,
    InMemoryRecordStore,
    JsonRecordStore,
    KeyedLocks,
    SessionNotFound,
    session_lock_keys,
)
from models.course import Course
from models.session import CreatorRole, Session
from models.student import Student
from models.time_window import date_range_window, get_tz, parse_timestamp
from models.training_data import TrainingData

TZ = get_tz("Asia/Ho_Chi_Minh")


def _ts(iso: str) -> int:
    return parse_timestamp(iso, TZ)


def _make_session(session_id: str, start: str = "2024-07-28T08:00", course_id: str = "c1") -> Session:
    return Session(
        id=session_id,
        course_id=course_id,
        teacher_id="t1",
        start_timestamp=_ts(start),
        end_timestamp=_ts(start) + 3_600_000,
        attendee_ids=["s1"],
        created_by=CreatorRole.TEACHER,
    )


def _make_data() -> TrainingData:
    return TrainingData(
        courses=[Course(id="c1", name="Kurs", start_date=date(2024, 7, 1), end_date=date(2024, 8, 31))],
        students=[Student(id="s1", course_id="c1", name="Nguyễn An")],
        sessions=[
            _make_session("a"),
            _make_session("b", start="2024-07-29T08:00"),
            _make_session("c", course_id="c2"),
        ],
    )


class SlowJsonStore(JsonRecordStore):
    """Hält nach dem Lesen inne, damit ein zweiter Schreiber dazwischenfunken könnte."""

    def __init__(self, path: Path, reading: threading.Event):
        super().__init__(path)
        self.reading = reading

    def _read(self) -> TrainingData:
        data = super()._read()
        self.reading.set()
        time.sleep(0.2)
        return data


# ─── IN-MEMORY ────────────────────────────────────────────────────────────────

class TestInMemoryStore:
    def test_snapshot_is_copy(self):
        """Änderungen an einer Momentaufnahme wirken nicht auf den Speicher zurück."""
        store = InMemoryRecordStore(_make_data())
        snap = store.snapshot()
        snap.sessions.clear()
        assert len(store.list_sessions()) == 3

    def test_list_sessions_filters(self):
        store = InMemoryRecordStore(_make_data())
        assert [s.id for s in store.list_sessions(course_id="c1")] == ["a", "b"]
        window = date_range_window(date(2024, 7, 28), date(2024, 7, 28), TZ)
        assert [s.id for s in store.list_sessions(course_id="c1", date_range=window)] == ["a"]

    def test_add_and_get(self):
        store = InMemoryRecordStore(_make_data())
        store.add_session(_make_session("d", start="2024-07-30T08:00"))
        assert store.get_session("d").id == "d"

    def test_add_duplicate_id_not_retryable(self):
        store = InMemoryRecordStore(_make_data())
        with pytest.raises(DataAccessError) as exc:
            store.add_session(_make_session("a"))
        assert exc.value.retryable is False

    def test_update_session(self):
        store = InMemoryRecordStore(_make_data())
        changed = store.get_session("a").model_copy(update={"content": "Verkehrsrecht"})
        store.update_session(changed)
        assert store.get_session("a").content == "Verkehrsrecht"

    def test_missing_session(self):
        """Unbekannte ID → SessionNotFound (nicht wiederholbar)."""
        store = InMemoryRecordStore(_make_data())
        with pytest.raises(SessionNotFound) as exc:
            store.delete_session("zzz")
        assert exc.value.retryable is False
        with pytest.raises(SessionNotFound):
            store.get_session("zzz")
        with pytest.raises(SessionNotFound):
            store.update_session(_make_session("zzz"))

    def test_delete_session(self):
        store = InMemoryRecordStore(_make_data())
        store.delete_session("b")
        assert [s.id for s in store.list_sessions()] == ["a", "c"]


# ─── JSON ─────────────────────────────────────────────────────────────────────

class TestJsonStore:
    def test_roundtrip(self, tmp_path: Path):
        """Speichern und Laden erhält Kurse, Lernende und Einheiten."""
        path = tmp_path / "data.json"
        _make_data().save_json(path)
        store = JsonRecordStore(path)
        data = store.snapshot()
        assert [c.id for c in data.courses] == ["c1"]
        assert data.students[0].name == "Nguyễn An"
        assert data.sessions[0].created_by == CreatorRole.TEACHER
        assert data.created_at is not None

    def test_write_persists(self, tmp_path: Path):
        path = tmp_path / "data.json"
        _make_data().save_json(path)
        JsonRecordStore(path).delete_session("a")
        assert [s.id for s in JsonRecordStore(path).list_sessions()] == ["b", "c"]
        assert not (tmp_path / "data.json.tmp").exists()

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(DataAccessError) as exc:
            JsonRecordStore(tmp_path / "fehlt.json").list_sessions()
        assert exc.value.retryable is False

    def test_invalid_content(self, tmp_path: Path):
        """Ungültiger Inhalt → DataAccessError statt pydantic-Fehler."""
        path = tmp_path / "data.json"
        path.write_text(json.dumps({"sessions": [{"id": "x"}]}), encoding="utf-8")
        with pytest.raises(DataAccessError):
            JsonRecordStore(path).snapshot()

    def test_two_stores_on_one_file_keep_both_writes(self, tmp_path: Path):
        """Zweiter Schreiber wartet auf die Sperrdatei statt Änderungen zu überschreiben."""
        path = tmp_path / "data.json"
        _make_data().save_json(path)
        reading = threading.Event()
        slow = SlowJsonStore(path, reading)
        writer = threading.Thread(target=slow.add_session, args=(_make_session("n1"),))
        writer.start()
        assert reading.wait(timeout=5)
        JsonRecordStore(path).add_session(_make_session("n2", course_id="c2"))
        writer.join()
        ids = {s.id for s in JsonRecordStore(path).list_sessions()}
        assert {"n1", "n2"} <= ids

    def test_lock_timeout_is_data_access_error(self, tmp_path: Path):
        path = tmp_path / "data.json"
        _make_data().save_json(path)
        holder = JsonRecordStore(path)
        waiting = JsonRecordStore(path, lock_timeout=0.05)
        with holder.exclusive():
            with pytest.raises(DataAccessError) as exc:
                waiting.delete_session("a")
        assert exc.value.retryable is True
        assert len(JsonRecordStore(path).list_sessions()) == 3


# ─── SPERREN ──────────────────────────────────────────────────────────────────

class TestKeyedLocks:
    def test_lock_keys(self):
        assert session_lock_keys(_make_session("a")) == ["teacher:t1", "course:c1"]

    def test_same_key_serializes(self):
        """Zwei Threads mit gleichem Schlüssel laufen nacheinander."""
        locks = KeyedLocks()
        inside = []
        overlap = []

        def worker():
            with locks.hold("teacher:t1", "course:c1"):
                if inside:
                    overlap.append(True)
                inside.append(True)
                time.sleep(0.02)
                inside.pop()

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert overlap == []

    def test_reverse_order_no_deadlock(self):
        """Schlüssel in umgekehrter Reihenfolge führen nicht zur Verklemmung."""
        locks = KeyedLocks()
        done = []

        def worker(keys):
            for _ in range(20):
                with locks.hold(*keys):
                    pass
            done.append(True)

        a = threading.Thread(target=worker, args=(["teacher:t1", "course:c1"],))
        b = threading.Thread(target=worker, args=(["course:c1", "teacher:t1"],))
        a.start()
        b.start()
        a.join(timeout=5)
        b.join(timeout=5)
        assert len(done) == 2

    def test_duplicate_keys_in_one_call(self):
        locks = KeyedLocks()
        with locks.hold("teacher:t1", "teacher:t1"):
            pass
