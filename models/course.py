"""Datenmodell für einen Ausbildungskurs (Pydantic v2)."""

from datetime import date

from pydantic import BaseModel, model_validator


class Course(BaseModel):
    """Ein Ausbildungskurs mit festem Zeitraum.

    start_date/end_date sind reine Kalenderdaten; zusammen bilden sie das
    Planungsfenster [Tagesbeginn start_date, Tagesende end_date].
    """

    id: str
    name: str
    course_number: int = 0
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _check_date_order(self):
        if self.start_date > self.end_date:
            raise ValueError(
                f"Kurs {self.id}: start_date ({self.start_date}) liegt nach "
                f"end_date ({self.end_date})."
            )
        return self
