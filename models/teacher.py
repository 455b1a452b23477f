"""Datenmodell für eine Lehrkraft (Pydantic v2)."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class TeacherSpecialty(str, Enum):
    THEORY = "theory"
    PRACTICE = "practice"
    GENERAL = "general"


class Teacher(BaseModel):
    """Lehrkraft; nur für Namensauflösung in Berichten benötigt."""

    id: str
    name: str
    specialty: TeacherSpecialty = TeacherSpecialty.GENERAL
    course_ids: list[str] = []
    phone: Optional[str] = None
