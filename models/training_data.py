"""TrainingData: Vollständiger Datenbestand eines Ausbildungszentrums (Pydantic v2)."""

import os
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from models.course import Course
from models.session import CreatorRole, Session
from models.student import Student
from models.teacher import Teacher


class TrainingData(BaseModel):
    """Momentaufnahme aller Kurse, Lernenden, Lehrkräfte und Einheiten."""

    courses: list[Course] = []
    students: list[Student] = []
    teachers: list[Teacher] = []
    sessions: list[Session] = []
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    data_version: str = "1.0"

    # ─── Nachschlagen ───

    def course_map(self) -> dict[str, Course]:
        return {c.id: c for c in self.courses}

    def teacher_names(self) -> dict[str, str]:
        return {t.id: t.name for t in self.teachers}

    # ─── Übersicht ───

    def summary(self) -> str:
        """Kurze Übersicht über den Datenbestand."""
        by_role: dict[str, int] = defaultdict(int)
        for s in self.sessions:
            by_role[s.created_by.value if s.created_by else "unbekannt"] += 1
        total_hours = sum(s.duration_hours for s in self.sessions)
        lines = [
            f"Kurse: {len(self.courses)}",
            f"Lernende: {len(self.students)}",
            f"Lehrkräfte: {len(self.teachers)}",
            f"Einheiten: {len(self.sessions)} "
            f"(Lehrkraft: {by_role[CreatorRole.TEACHER.value]}, "
            f"Gruppenleitung: {by_role[CreatorRole.TEAM_LEADER.value]}, "
            f"ohne Rolle: {by_role['unbekannt']})",
            f"Erfasste Stunden gesamt: {total_hours:.1f}h",
        ]
        return "\n".join(lines)

    # ─── Persistenz ────────────────────────────────────────────────────────

    def save_json(self, path: Path) -> None:
        """Speichert den Datenbestand als JSON-Datei.

        Schreibt zuerst in eine temporäre Datei und ersetzt dann atomar, damit
        Leser nie eine halb geschriebene Datei sehen.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        now = datetime.now(timezone.utc)
        updated = self.model_copy(update={
            "modified_at": now,
            "created_at": self.created_at or now,
        })
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(updated.model_dump_json(indent=2))
        os.replace(tmp_path, path)

    @classmethod
    def load_json(cls, path: Path) -> "TrainingData":
        """Lädt einen Datenbestand aus einer JSON-Datei."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"JSON-Datei nicht gefunden: {path}")
        with open(path, "r", encoding="utf-8") as f:
            return cls.model_validate_json(f.read())
