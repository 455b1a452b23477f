from pydantic import BaseModel, Field, field_validator
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from models.time_window import DEFAULT_TIMEZONE, get_tz


# ─── BATCH-ANALYSEN ───

class ScanConfig(BaseModel):
    """Einstellungen für Duplikat-Suche und Abgleich über große Datenbestände."""
    # Zeitlimit in Sekunden; None = kein Limit
    timeout_seconds: Optional[float] = Field(None, gt=0,
        description="Abbruch der Analyse nach dieser Zeit (None = unbegrenzt)")
    # Wie oft (alle n Datensätze) auf Abbruch geprüft wird
    cancel_check_interval: int = Field(200, ge=1,
        description="Abbruchprüfung alle n Datensätze")


# ─── GESAMT-CONFIG ───

class IntegrityConfig(BaseModel):
    """Gesamtkonfiguration des Ausbildungszentrums."""
    # Name des Zentrums (nur Anzeige)
    center_name: str = Field("Ausbildungszentrum",
        description="Name des Ausbildungszentrums")
    # IANA-Zeitzone für alle Kalendertage (Kursfenster, Duplikate, Wochenansicht)
    timezone: str = Field(DEFAULT_TIMEZONE,
        description="Lokale Zeitzone des Zentrums")
    # Ab dieser Dauer wird eine Einheit nur mit Warnung angenommen
    long_session_hours: float = Field(5.0, gt=0,
        description="Warnschwelle für lange Einheiten in Stunden")
    # Pfad des JSON-Datenbestands
    data_path: str = Field("output/training_data.json",
        description="Pfad der Datendatei")
    scan: ScanConfig = Field(default_factory=ScanConfig)

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unbekannte Zeitzone: {v!r}") from e
        return v

    @property
    def tz(self) -> ZoneInfo:
        return get_tz(self.timezone)
