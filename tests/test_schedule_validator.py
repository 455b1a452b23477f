"""Tests für die Zulassungsprüfung (ScheduleValidator)."""

from datetime import date

import pytest

from analysis.schedule_validator import (
    ScheduleValidator,
    ValidationContext,
    validate_session,
)
from models.course import Course
from models.session import CreatorRole, Session, SessionInput
from models.student import Student
from models.time_window import get_tz, parse_timestamp

TZ = get_tz("Asia/Ho_Chi_Minh")


def _ts(iso: str) -> int:
    return parse_timestamp(iso, TZ)


def _make_course(course_id: str = "c1") -> Course:
    return Course(id=course_id, name="Kurs 1", start_date=date(2024, 7, 1), end_date=date(2024, 8, 31))


def _make_session(
    session_id: str,
    start: str = "2024-07-28T08:00",
    end: str = "2024-07-28T10:00",
    teacher_id: str = "t1",
    course_id: str = "c1",
    created_by: CreatorRole = CreatorRole.TEACHER,
) -> Session:
    return Session(
        id=session_id,
        course_id=course_id,
        teacher_id=teacher_id,
        start_timestamp=_ts(start),
        end_timestamp=_ts(end),
        attendee_ids=["s1", "s2"],
        created_by=created_by,
    )


def _make_input(
    start="2024-07-28T08:00",
    end="2024-07-28T10:00",
    teacher_id: str = "t1",
    course_id: str = "c1",
    created_by=CreatorRole.TEACHER,
    session_id=None,
    attendee_ids=None,
) -> SessionInput:
    return SessionInput(
        id=session_id,
        course_id=course_id,
        teacher_id=teacher_id,
        start_timestamp=start,
        end_timestamp=end,
        attendee_ids=attendee_ids or ["s1", "s2"],
        created_by=created_by,
    )


def _context(*sessions: Session, students=None) -> ValidationContext:
    return ValidationContext(
        courses=[_make_course("c1"), _make_course("c2")],
        sessions=list(sessions),
        students=students,
    )


@pytest.fixture
def validator() -> ScheduleValidator:
    return ScheduleValidator(TZ)


# ─── GRUNDPRÜFUNGEN ───────────────────────────────────────────────────────────

class TestBasicChecks:
    def test_valid_session_accepted(self, validator):
        """Einheit ohne Konflikte im Kursfenster → ok."""
        result = validator.validate(_make_input(), _context())
        assert result.ok
        assert result.violation is None
        assert result.warnings == []

    def test_unparseable_timestamp(self, validator):
        """Nicht lesbare Zeit → invalid_timestamp, keine Ausnahme."""
        result = validator.validate(_make_input(start="irgendwann"), _context())
        assert not result.ok
        assert result.violation.kind == "invalid_timestamp"

    def test_missing_timestamp(self, validator):
        result = validator.validate(_make_input(end=None), _context())
        assert result.violation.kind == "invalid_timestamp"

    def test_inverted_range(self, validator):
        """Ende vor Beginn → inverted_range."""
        result = validator.validate(
            _make_input(start="2024-07-28T10:00", end="2024-07-28T08:00"), _context()
        )
        assert result.violation.kind == "inverted_range"

    def test_zero_length_rejected(self, validator):
        """Beginn == Ende ist ebenfalls ungültig."""
        result = validator.validate(
            _make_input(start="2024-07-28T08:00", end="2024-07-28T08:00"), _context()
        )
        assert result.violation.kind == "inverted_range"

    def test_unknown_course(self, validator):
        result = validator.validate(_make_input(course_id="c9"), _context())
        assert result.violation.kind == "unknown_course"

    def test_outside_course_window(self, validator):
        """Einheit nach Kursende → outside_course_window."""
        result = validator.validate(
            _make_input(start="2024-09-01T08:00", end="2024-09-01T10:00"), _context()
        )
        assert result.violation.kind == "outside_course_window"

    def test_last_course_day_until_midnight_accepted(self, validator):
        """Kursende ist inklusive bis 23:59:59.999 Ortszeit."""
        result = validator.validate(
            _make_input(start="2024-08-31T21:00", end="2024-08-31T23:59"), _context()
        )
        assert result.ok

    def test_check_order_first_error_wins(self, validator):
        """Umgedrehter Zeitraum wird vor unbekanntem Kurs gemeldet."""
        result = validator.validate(
            _make_input(start="2024-07-28T10:00", end="2024-07-28T08:00", course_id="c9"),
            _context(),
        )
        assert result.violation.kind == "inverted_range"


# ─── KONFLIKTE ────────────────────────────────────────────────────────────────

class TestConflicts:
    def test_teacher_conflict_rejected(self, validator):
        """t1 hat 08:00–10:00; neue Einheit 09:00–11:00 → teacher_conflict."""
        existing = _make_session("a1")
        result = validator.validate(
            _make_input(start="2024-07-28T09:00", end="2024-07-28T11:00", course_id="c2"),
            _context(existing),
        )
        assert not result.ok
        assert result.violation.kind == "teacher_conflict"
        assert result.violation.conflicting_session_id == "a1"
        assert result.violation.conflicting_start == _ts("2024-07-28T08:00")

    def test_teacher_conflict_same_course(self, validator):
        """Lehrkraft-Konflikt wird vor dem Kurs-Konflikt gemeldet."""
        result = validator.validate(
            _make_input(start="2024-07-28T09:00", end="2024-07-28T11:00"),
            _context(_make_session("a1")),
        )
        assert result.violation.kind == "teacher_conflict"

    def test_course_conflict_other_teacher(self, validator):
        """Anderer Lehrer, gleicher Kurs, überlappend → course_conflict."""
        result = validator.validate(
            _make_input(start="2024-07-28T09:00", end="2024-07-28T11:00", teacher_id="t2"),
            _context(_make_session("a1")),
        )
        assert result.violation.kind == "course_conflict"
        assert result.violation.conflicting_session_id == "a1"

    def test_back_to_back_allowed(self, validator):
        """Direkt anschließende Einheit (10:00–12:00 nach 08:00–10:00) ist erlaubt."""
        result = validator.validate(
            _make_input(start="2024-07-28T10:00", end="2024-07-28T12:00"),
            _context(_make_session("a1")),
        )
        assert result.ok

    def test_other_teacher_other_course_no_conflict(self, validator):
        result = validator.validate(
            _make_input(teacher_id="t2", course_id="c2"),
            _context(_make_session("a1")),
        )
        assert result.ok

    def test_edit_does_not_conflict_with_itself(self, validator):
        """Beim Bearbeiten wird die Einheit selbst übersprungen."""
        existing = _make_session("a1")
        result = validator.validate(
            _make_input(start="2024-07-28T08:30", end="2024-07-28T10:30", session_id="a1"),
            _context(existing),
        )
        assert result.ok

    def test_edit_still_conflicts_with_others(self, validator):
        a1 = _make_session("a1")
        a2 = _make_session("a2", start="2024-07-28T10:00", end="2024-07-28T12:00")
        result = validator.validate(
            _make_input(start="2024-07-28T09:00", end="2024-07-28T11:00", session_id="a1"),
            _context(a1, a2),
        )
        assert result.violation.kind == "teacher_conflict"
        assert result.violation.conflicting_session_id == "a2"


# ─── DOPPELTE ERFASSUNG DURCH BEIDE ROLLEN ────────────────────────────────────

class TestCounterpart:
    def test_leader_record_of_same_slot_accepted(self, validator):
        """Gruppenleitung erfasst denselben Termin wie die Lehrkraft → kein Konflikt."""
        teacher_record = _make_session("a1")
        result = validator.validate(
            _make_input(created_by=CreatorRole.TEAM_LEADER), _context(teacher_record)
        )
        assert result.ok

    def test_same_role_same_slot_rejected(self, validator):
        """Zweite Erfassung derselben Rolle ist ein Konflikt."""
        result = validator.validate(_make_input(), _context(_make_session("a1")))
        assert result.violation.kind == "teacher_conflict"

    def test_leader_record_with_other_start_rejected(self, validator):
        """Gegenstück nur bei exakt gleichem Beginn."""
        result = validator.validate(
            _make_input(start="2024-07-28T09:00", end="2024-07-28T11:00",
                        created_by=CreatorRole.TEAM_LEADER),
            _context(_make_session("a1")),
        )
        assert result.violation.kind == "teacher_conflict"

    def test_legacy_record_without_role_is_not_counterpart(self, validator):
        legacy = _make_session("a1", created_by=None)
        result = validator.validate(
            _make_input(created_by=CreatorRole.TEAM_LEADER), _context(legacy)
        )
        assert not result.ok


# ─── EINSCHREIBUNG & HINWEISE ─────────────────────────────────────────────────

class TestEnrollmentAndWarnings:
    def test_foreign_attendee_rejected(self, validator):
        """Anwesende müssen im Kurs eingeschrieben sein (wenn Lernende bekannt)."""
        students = [
            Student(id="s1", course_id="c1", name="A"),
            Student(id="s2", course_id="c2", name="B"),
        ]
        result = validator.validate(_make_input(), _context(students=students))
        assert result.violation.kind == "attendee_not_enrolled"
        assert "s2" in result.violation.message

    def test_enrollment_skipped_without_students(self, validator):
        result = validator.validate(_make_input(attendee_ids=["x9"]), _context())
        assert result.ok

    def test_long_session_warning(self, validator):
        """Einheit über 5 Stunden → ok mit Warnung long_session."""
        result = validator.validate(
            _make_input(start="2024-07-28T08:00", end="2024-07-28T14:00"), _context()
        )
        assert result.ok
        assert len(result.warnings) == 1
        assert result.warnings[0].kind == "long_session"
        assert result.warnings[0].duration_hours == pytest.approx(6.0)

    def test_exactly_five_hours_no_warning(self, validator):
        result = validator.validate(
            _make_input(start="2024-07-28T08:00", end="2024-07-28T13:00"), _context()
        )
        assert result.warnings == []

    def test_custom_threshold(self):
        validator = ScheduleValidator(TZ, long_session_hours=1.5)
        result = validator.validate(_make_input(), _context())
        assert result.warnings and result.warnings[0].kind == "long_session"

    def test_module_shortcut(self):
        """validate_session() entspricht ScheduleValidator.validate()."""
        result = validate_session(_make_input(), _context(_make_session("a1")), TZ)
        assert result.violation.kind == "teacher_conflict"

    def test_validator_does_not_mutate_context(self, validator):
        ctx = _context(_make_session("a1"))
        validator.validate(_make_input(teacher_id="t2", course_id="c2"), ctx)
        assert [s.id for s in ctx.sessions] == ["a1"]
