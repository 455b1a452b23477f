"""Datenmodell für Lernende (nur lesend verwendet, Pydantic v2)."""

from typing import Optional

from pydantic import BaseModel


class Student(BaseModel):
    """Eingeschriebene Person eines Kurses."""

    id: str
    course_id: str
    name: str
    birth_date: Optional[str] = None
    phone: Optional[str] = None
    group: Optional[str] = None
