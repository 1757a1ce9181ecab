# src/taperengine/helpers.py
from datetime import date
from typing import Sequence

from .types import ScheduleEvent


def group_events_by_date(events: Sequence[ScheduleEvent]) -> dict[date, list[ScheduleEvent]]:
    """
    Group a schedule into {date: [events]} for day-by-day display.
    Keys follow the order dates first appear in (ascending for a generated schedule).
    """
    buckets: dict[date, list[ScheduleEvent]] = {}
    for e in events:
        buckets.setdefault(e.date, []).append(e)
    return buckets


def schedule_span(events: Sequence[ScheduleEvent]) -> tuple[date, date, int]:
    """First date, last date and number of calendar days covered (inclusive)."""
    if not events:
        raise ValueError("schedule_span needs at least one event.")
    first = min(e.date for e in events)
    last = max(e.date for e in events)
    return first, last, (last - first).days + 1


def format_units(event: ScheduleEvent) -> str:
    """
    Human-readable pill count, e.g.
      2 whole pills, 1 whole + 1/2 pills, 3/4 pill
    """
    parts: list[str] = []
    if event.whole_units > 0:
        parts.append(f"{event.whole_units} whole")
    if event.split_units > 0:
        # Fraction is already in lowest terms (2/4 -> 1/2)
        parts.append(f"{event.split_units.numerator}/{event.split_units.denominator}")
    plural = len(parts) > 1 or event.whole_units != 1
    if not parts:
        return f"0 {event.form}s"
    return f"{' + '.join(parts)} {event.form}{'s' if plural else ''}"
