"""Datenmodell für Unterrichtseinheiten (Pydantic v2).

Dieselbe reale Einheit wird oft zweimal erfasst: einmal von der Lehrkraft,
einmal von der Gruppenleitung (created_by). Beide Datensätze sind gewollt und
werden im Abgleich gegenübergestellt.
"""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel

from models.time_window import MS_PER_HOUR, parse_timestamp


class SessionType(str, Enum):
    THEORY = "theory"
    PRACTICE = "practice"


class CreatorRole(str, Enum):
    TEACHER = "teacher"
    TEAM_LEADER = "team_leader"


class Session(BaseModel):
    """Eine gespeicherte Unterrichtseinheit."""

    id: str
    course_id: str
    teacher_id: str
    start_timestamp: int                 # Epoch-ms
    end_timestamp: int                   # Epoch-ms
    type: SessionType = SessionType.THEORY
    content: str = ""
    attendee_ids: list[str] = []         # Anwesende (Reihenfolge ohne Bedeutung)
    creator_id: Optional[str] = None     # Person, die erfasst hat
    created_by: Optional[CreatorRole] = None  # Altbestand: kann fehlen
    user_id: Optional[str] = None        # Altbestand: generisches Nutzerfeld
    vehicle_id: Optional[str] = None     # nur Praxis

    @property
    def duration_hours(self) -> float:
        return (self.end_timestamp - self.start_timestamp) / MS_PER_HOUR

    @property
    def attendee_set(self) -> frozenset[str]:
        return frozenset(self.attendee_ids)

    def creator_key(self) -> Optional[str]:
        """Erfasser-Kennung für den Duplikat-Schlüssel.

        Reihenfolge der Kandidaten: created_by, danach das Altfeld user_id.
        None wenn keines gesetzt ist.
        """
        if self.created_by is not None:
            return self.created_by.value
        if self.user_id:
            return self.user_id
        return None


class SessionInput(BaseModel):
    """Kandidat für Anlage (id=None) oder Bearbeitung (id gesetzt).

    Zeitstempel werden roh übernommen; erst der ScheduleValidator prüft,
    ob sie sich parsen lassen.
    """

    id: Optional[str] = None
    course_id: str
    teacher_id: str
    start_timestamp: Union[int, float, str, None] = None
    end_timestamp: Union[int, float, str, None] = None
    type: SessionType = SessionType.THEORY
    content: str = ""
    attendee_ids: list[str] = []
    creator_id: Optional[str] = None
    created_by: Optional[CreatorRole] = None
    user_id: Optional[str] = None
    vehicle_id: Optional[str] = None

    def to_session(self, session_id: str, tz=None) -> Session:
        """Erzeugt den speicherbaren Datensatz. Setzt eine erfolgreiche Validierung voraus."""
        start = parse_timestamp(self.start_timestamp, tz)
        end = parse_timestamp(self.end_timestamp, tz)
        if start is None or end is None:
            raise ValueError("Zeitstempel nicht lesbar – Kandidat wurde nicht validiert.")
        data = self.model_dump(exclude={"id", "start_timestamp", "end_timestamp"})
        return Session(id=session_id, start_timestamp=start, end_timestamp=end, **data)

    @classmethod
    def from_session(cls, session: Session) -> "SessionInput":
        return cls.model_validate(session.model_dump())
