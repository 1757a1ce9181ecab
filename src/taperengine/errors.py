# src/taperengine/errors.py
from pathlib import Path


class TaperConfigError(ValueError):
    """Raised when a medication config or dose input cannot produce a valid taper."""


class CalendarExportError(OSError):
    """Writing the calendar document to disk failed. The caller may retry elsewhere."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Could not write calendar file {path}: {reason}")
        self.path = path
        self.reason = reason
