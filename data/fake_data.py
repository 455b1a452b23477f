"""Testdaten-Generator für das Ausbildungszentrum.

Erzeugt einen realistischen Datenbestand mit absichtlichen Auffälligkeiten,
damit Duplikat-Suche, Abgleich und Warnungen etwas zu finden haben.

Absichtliche Auffälligkeiten:
  1. Doppelte Erfassung: eine Einheit wurde von der Lehrkraft zweimal gespeichert
  2. Abweichende Anwesenheit: ~15% der Termine, Gruppenleitung vermerkt jemanden nicht
  3. Fehlende Gegenerfassung: ~10% der Termine ohne Datensatz der Gruppenleitung
  4. Altbestand: eine Einheit ohne created_by und ohne user_id
  5. Lange Einheit: eine Praxisfahrt über 6 Stunden am Samstag

Planungsraster je Kurs und Woche:
  - Theorie Mo + Mi 08:00–10:00
  - Praxis  Di + Do 14:00–16:00
Jeder Kurs hat eine eigene Theorie- und Praxis-Lehrkraft, so dass zwischen
den Kursen keine Lehrkraft doppelt belegt ist.
"""

import random
from datetime import date, datetime, time, timedelta
from typing import Optional

from config.defaults import SESSION_TOPICS
from config.schema import IntegrityConfig
from models.course import Course
from models.session import CreatorRole, Session, SessionType
from models.student import Student
from models.teacher import Teacher, TeacherSpecialty
from models.training_data import TrainingData

# ─── Namens-Listen ────────────────────────────────────────────────────────────

_FAMILY_NAMES = [
    "Nguyễn", "Trần", "Lê", "Phạm", "Hoàng", "Huỳnh", "Phan", "Vũ",
    "Võ", "Đặng", "Bùi", "Đỗ", "Hồ", "Ngô", "Dương", "Lý",
]

_GIVEN_NAMES = [
    "An", "Bình", "Châu", "Dũng", "Giang", "Hà", "Hải", "Hạnh", "Hòa",
    "Hùng", "Khánh", "Lan", "Linh", "Long", "Mai", "Minh", "Nam", "Ngọc",
    "Phúc", "Quân", "Sơn", "Tâm", "Thảo", "Trang", "Tuấn", "Vy",
]

_THEORY_SLOTS = [(0, time(8, 0), time(10, 0)), (2, time(8, 0), time(10, 0))]
_PRACTICE_SLOTS = [(1, time(14, 0), time(16, 0)), (3, time(14, 0), time(16, 0))]


class FakeDataGenerator:
    """Generiert einen vollständigen Datenbestand auf Basis der IntegrityConfig."""

    def __init__(
        self,
        config: IntegrityConfig,
        seed: Optional[int] = None,
        num_courses: int = 2,
        students_per_course: int = 12,
        weeks: int = 4,
        start_date: date = date(2024, 7, 1),
    ) -> None:
        self.config = config
        self.rng = random.Random(seed)
        self.num_courses = num_courses
        self.students_per_course = students_per_course
        self.weeks = weeks
        # Kurse beginnen immer an einem Montag
        self.start_date = start_date - timedelta(days=start_date.weekday())
        self._next_id = 1

    def _name(self) -> str:
        return f"{self.rng.choice(_FAMILY_NAMES)} {self.rng.choice(_GIVEN_NAMES)}"

    def _session_id(self) -> str:
        sid = f"S{self._next_id:05d}"
        self._next_id += 1
        return sid

    def _ts(self, day: date, at: time) -> int:
        return int(datetime.combine(day, at, tzinfo=self.config.tz).timestamp() * 1000)

    # ─── Stammdaten ───────────────────────────────────────────────────────────

    def _generate_courses(self) -> list[Course]:
        end = self.start_date + timedelta(weeks=self.weeks) - timedelta(days=1)
        return [
            Course(
                id=f"K{i:02d}",
                name=f"Kurs {i} – Klasse B",
                course_number=i,
                start_date=self.start_date,
                end_date=end,
            )
            for i in range(1, self.num_courses + 1)
        ]

    def _generate_students(self, courses: list[Course]) -> list[Student]:
        students = []
        for course in courses:
            for n in range(1, self.students_per_course + 1):
                students.append(Student(
                    id=f"{course.id}-L{n:02d}",
                    course_id=course.id,
                    name=self._name(),
                    group="A" if n <= self.students_per_course // 2 else "B",
                ))
        return students

    def _generate_teachers(self, courses: list[Course]) -> list[Teacher]:
        teachers = []
        for course in courses:
            for specialty, suffix in ((TeacherSpecialty.THEORY, "T"), (TeacherSpecialty.PRACTICE, "P")):
                teachers.append(Teacher(
                    id=f"{course.id}-{suffix}",
                    name=self._name(),
                    specialty=specialty,
                    course_ids=[course.id],
                ))
        return teachers

    # ─── Einheiten ────────────────────────────────────────────────────────────

    def _attendees(self, enrolled: list[str]) -> list[str]:
        return sorted(s for s in enrolled if self.rng.random() < 0.85)

    def _pair(
        self,
        course: Course,
        teacher_id: str,
        day: date,
        start: time,
        end: time,
        session_type: SessionType,
        enrolled: list[str],
    ) -> list[Session]:
        """Erfassung der Lehrkraft plus (meist) Gegenerfassung der Gruppenleitung."""
        topics = [c for c, t in SESSION_TOPICS if t == session_type.value]
        base = dict(
            course_id=course.id,
            teacher_id=teacher_id,
            start_timestamp=self._ts(day, start),
            end_timestamp=self._ts(day, end),
            type=session_type,
            content=self.rng.choice(topics),
        )
        attendees = self._attendees(enrolled)
        records = [Session(
            id=self._session_id(),
            attendee_ids=attendees,
            creator_id=teacher_id,
            created_by=CreatorRole.TEACHER,
            **base,
        )]

        roll = self.rng.random()
        if roll < 0.10:
            return records                       # Gruppenleitung hat nicht erfasst
        leader_attendees = list(attendees)
        if roll < 0.25 and leader_attendees:
            leader_attendees.remove(self.rng.choice(leader_attendees))
        records.append(Session(
            id=self._session_id(),
            attendee_ids=leader_attendees,
            creator_id=f"{course.id}-GL",
            created_by=CreatorRole.TEAM_LEADER,
            **base,
        ))
        return records

    def _generate_sessions(
        self, courses: list[Course], students: list[Student]
    ) -> list[Session]:
        enrolled: dict[str, list[str]] = {}
        for s in students:
            enrolled.setdefault(s.course_id, []).append(s.id)

        sessions: list[Session] = []
        for course in courses:
            members = enrolled.get(course.id, [])
            for week in range(self.weeks):
                monday = course.start_date + timedelta(weeks=week)
                for offset, start, end in _THEORY_SLOTS:
                    sessions += self._pair(
                        course, f"{course.id}-T", monday + timedelta(days=offset),
                        start, end, SessionType.THEORY, members,
                    )
                for offset, start, end in _PRACTICE_SLOTS:
                    sessions += self._pair(
                        course, f"{course.id}-P", monday + timedelta(days=offset),
                        start, end, SessionType.PRACTICE, members,
                    )

        if sessions and courses:
            self._add_anomalies(courses[0], enrolled.get(courses[0].id, []), sessions)
        return sessions

    def _add_anomalies(
        self, course: Course, members: list[str], sessions: list[Session]
    ) -> None:
        # 1. Doppelklick: erste Erfassung der Lehrkraft noch einmal gespeichert
        first = next(s for s in sessions if s.created_by == CreatorRole.TEACHER)
        sessions.append(first.model_copy(update={"id": self._session_id()}))

        saturday = course.start_date + timedelta(days=5)
        # 4. Altbestand ohne Erfasser
        sessions.append(Session(
            id=self._session_id(),
            course_id=course.id,
            teacher_id=f"{course.id}-T",
            start_timestamp=self._ts(saturday, time(8, 0)),
            end_timestamp=self._ts(saturday, time(9, 30)),
            type=SessionType.THEORY,
            content="Nachholtermin",
            attendee_ids=members[:3],
        ))
        # 5. Lange Praxisfahrt
        sessions.append(Session(
            id=self._session_id(),
            course_id=course.id,
            teacher_id=f"{course.id}-P",
            start_timestamp=self._ts(saturday, time(10, 0)),
            end_timestamp=self._ts(saturday, time(16, 30)),
            type=SessionType.PRACTICE,
            content="Überlandfahrt",
            attendee_ids=members[:2],
            creator_id=f"{course.id}-P",
            created_by=CreatorRole.TEACHER,
        ))

    # ─── Gesamt ───────────────────────────────────────────────────────────────

    def generate(self) -> TrainingData:
        """Erzeugt den vollständigen Datenbestand."""
        courses = self._generate_courses()
        students = self._generate_students(courses)
        teachers = self._generate_teachers(courses)
        sessions = self._generate_sessions(courses, students)
        return TrainingData(
            courses=courses,
            students=students,
            teachers=teachers,
            sessions=sessions,
        )

    # ─── Ausgabe ──────────────────────────────────────────────────────────────

    def print_summary(self, data: TrainingData) -> None:
        """Gibt eine Rich-Tabelle mit Übersicht der erzeugten Daten aus."""
        from rich.console import Console
        from rich.table import Table
        from rich import box

        console = Console()
        table = Table(title="Erzeugte Testdaten", box=box.ROUNDED)
        table.add_column("Kategorie", style="bold cyan")
        table.add_column("Anzahl", justify="right")
        table.add_column("Details")

        leader = sum(1 for s in data.sessions if s.created_by == CreatorRole.TEAM_LEADER)
        legacy = sum(1 for s in data.sessions if s.created_by is None)
        table.add_row("Kurse", str(len(data.courses)),
                      f"{self.weeks} Wochen ab {self.start_date:%d.%m.%Y}")
        table.add_row("Lernende", str(len(data.students)),
                      f"{self.students_per_course} je Kurs")
        table.add_row("Lehrkräfte", str(len(data.teachers)), "je Kurs Theorie + Praxis")
        table.add_row("Einheiten", str(len(data.sessions)),
                      f"{leader} Gruppenleitung, {legacy} Altbestand")

        console.print(table)
