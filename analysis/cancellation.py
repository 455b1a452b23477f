"""Abbruchsteuerung für Batch-Analysen (Duplikat-Suche, Abgleich).

Ein abgebrochener Lauf liefert nie ein Teilergebnis: die Analyse wirft
ScanCancelled, und der Aufrufer meldet "nicht abgeschlossen".
"""

import threading
import time
from typing import Optional


class ScanCancelled(Exception):
    """Analyse wurde vor dem Ende abgebrochen (manuell oder Zeitlimit)."""

    def __init__(self, stage: str, processed: int):
        self.stage = stage
        self.processed = processed
        super().__init__(
            f"{stage} nicht abgeschlossen: abgebrochen nach {processed} Datensätzen."
        )


class CancelToken:
    """Thread-sicheres Abbruchsignal mit optionalem Zeitlimit."""

    def __init__(self, timeout_seconds: Optional[float] = None):
        self._event = threading.Event()
        self._deadline = (
            time.monotonic() + timeout_seconds if timeout_seconds else None
        )

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def raise_if_cancelled(self, stage: str, processed: int) -> None:
        if self.cancelled:
            raise ScanCancelled(stage, processed)


def checkpoint(
    cancel: Optional[CancelToken], index: int, interval: int, stage: str
) -> None:
    """Prüft alle `interval` Datensätze auf Abbruch (auch vor dem ersten)."""
    if cancel is not None and index % interval == 0:
        cancel.raise_if_cancelled(stage, index)
