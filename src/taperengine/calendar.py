# src/taperengine/calendar.py
"""
iCalendar (RFC 5545) export of a schedule.

Calendar apps parse this structurally, so the line order and property names
below are fixed. The VTIMEZONE block only names the zone; resolving local
times is left to the consuming application.
"""
from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence, Union

from .config import CALENDAR_FILE_SUFFIX, DEFAULT_EVENT_DURATION, DEFAULT_TIMEZONE
from .errors import CalendarExportError
from .types import ScheduleEvent

logger = logging.getLogger(__name__)

CRLF = "\r\n"
MAX_LINE_OCTETS = 75
UID_DOMAIN = "medication-schedule"


def serialize_calendar(events: Sequence[ScheduleEvent], timezone_id: str = DEFAULT_TIMEZONE,
                       *, duration: str = DEFAULT_EVENT_DURATION,
                       now: Optional[datetime] = None) -> str:
    """
    Render events as a single VCALENDAR document with one VEVENT (and a
    VALARM firing at the start) per event.

    timezone_id : used verbatim for X-WR-TIMEZONE, VTIMEZONE and DTSTART
    duration    : ISO 8601 duration of each event, e.g. "PT15M"
    now         : creation time for DTSTAMP (default: current UTC time)
    """
    stamp = _format_utc(now or datetime.now(timezone.utc))

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Medication Schedule//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "X-WR-CALNAME:Medication Schedule",
        f"X-WR-TIMEZONE:{timezone_id}",
        "BEGIN:VTIMEZONE",
        f"TZID:{timezone_id}",
        "END:VTIMEZONE",
    ]
    for index, event in enumerate(events):
        lines.extend(_event_block(index, event, timezone_id, duration, stamp))
    lines.append("END:VCALENDAR")

    logger.debug("Serialized %d events to calendar (%s)", len(events), timezone_id)
    return CRLF.join(fold_line(line) for line in lines)


def _event_block(index: int, event: ScheduleEvent, timezone_id: str,
                 duration: str, stamp: str) -> list[str]:
    start = _format_local(event.starts_at)
    summary = f"Take {event.medication_name} - {event.whole_units}x {event.form}"
    description = "\n".join([
        f"Take {event.whole_units} {event.form}s of {event.medication_name}",
        f"Dose: {format_dose(event.dosage)}{event.unit}",
        f"Form: {event.whole_units} x {event.form}",
        f"Time: {event.time}",
    ])
    return [
        "BEGIN:VEVENT",
        # index + start time keeps UIDs distinct when two events share a timestamp
        f"UID:med-{index}-{start}@{UID_DOMAIN}",
        f"DTSTAMP:{stamp}",
        f"DTSTART;TZID={timezone_id}:{start}",
        f"DURATION:{duration}",
        f"SUMMARY:{escape_text(summary)}",
        f"DESCRIPTION:{escape_text(description)}",
        "STATUS:CONFIRMED",
        "BEGIN:VALARM",
        "ACTION:DISPLAY",
        "DESCRIPTION:Time to take medication",
        "TRIGGER:PT0M",
        "END:VALARM",
        "END:VEVENT",
    ]


def fold_line(line: str, limit: int = MAX_LINE_OCTETS) -> str:
    """
    Fold a content line so no physical line exceeds `limit` UTF-8 octets.
    Continuation lines start with a single space; multi-byte characters are
    never split.
    """
    if len(line.encode("utf-8")) <= limit:
        return line
    chunks: list[str] = []
    current, size, width = "", 0, limit
    for ch in line:
        n = len(ch.encode("utf-8"))
        if size + n > width:
            chunks.append(current)
            # the leading space counts against the continuation line
            current, size, width = "", 0, limit - 1
        current += ch
        size += n
    chunks.append(current)
    return (CRLF + " ").join(chunks)


def escape_text(value: str) -> str:
    """Escape an RFC 5545 TEXT value."""
    return (value.replace("\\", "\\\\")
                 .replace(";", "\\;")
                 .replace(",", "\\,")
                 .replace("\r\n", "\\n")
                 .replace("\n", "\\n"))


def format_dose(value: float) -> str:
    """10.0 -> "10", 2.5 -> "2.5" """
    return f"{value:.4f}".rstrip("0").rstrip(".")


def _format_local(moment: datetime) -> str:
    return moment.strftime("%Y%m%dT%H%M%S")


def _format_utc(moment: datetime) -> str:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y%m%dT%H%M%SZ")


# --------------------------
# File export
# --------------------------
def calendar_filename(medication_name: str) -> str:
    """
    e.g. "Prednisolone" -> "prednisolone-schedule.ics"
    Path separators become "-", so "Co-codamol 30/500" stays a single file name.
    """
    name = medication_name.lower()
    for sep in {"/", "\\", os.sep, os.altsep} - {None}:
        name = name.replace(sep, "-")
    return f"{name}{CALENDAR_FILE_SUFFIX}"


def export_calendar(events: Sequence[ScheduleEvent], directory: Union[str, Path],
                    medication_name: str, timezone_id: str = DEFAULT_TIMEZONE,
                    **kwargs) -> Path:
    """
    Serialize events and write them to <directory>/<name>-schedule.ics.
    Raises CalendarExportError if the file cannot be written.
    """
    content = serialize_calendar(events, timezone_id, **kwargs)
    path = Path(directory) / calendar_filename(medication_name)
    try:
        # newline="" keeps the CRLF line endings as written
        with open(path, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
    except OSError as e:
        logger.error("Calendar export to %s failed: %s", path, e)
        raise CalendarExportError(path, str(e)) from e
    logger.info("Wrote %d calendar events to %s", len(events), path)
    return path
