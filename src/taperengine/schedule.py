# src/taperengine/schedule.py
from __future__ import annotations

import logging
from datetime import date, timedelta

from .dosing import decompose_units, validate_config
from .strategies import TaperStrategy, strategy_for_config
from .types import DoseTime, MedicationConfig, ScheduleEvent

logger = logging.getLogger(__name__)


def generate_schedule(start_date: date, config: MedicationConfig) -> list[ScheduleEvent]:
    """
    Expand a taper plan into one event per dose per day, starting at start_date.

    Every dose time walks its own steps from start_date. A day at dose 0 only
    produces an event when the dose time has include_zero_doses set.

    Returns events sorted by date, then by "HH:MM". Events sharing a date and
    time keep the order of config.dose_times.
    """
    validate_config(config)
    strategy = strategy_for_config(config)

    events: list[ScheduleEvent] = []
    for dose_time in config.dose_times:
        events.extend(_events_for_dose_time(start_date, dose_time, config, strategy))

    # list.sort is stable: ties stay in dose-time order
    events.sort(key=lambda e: (e.date, e.time))
    logger.debug("Generated %d events for %s (%s) from %s",
                 len(events), config.name, strategy.name, start_date.isoformat())
    return events


def _events_for_dose_time(start_date: date, dose_time: DoseTime,
                          config: MedicationConfig, strategy: TaperStrategy) -> list[ScheduleEvent]:
    events: list[ScheduleEvent] = []
    cursor = start_date
    for step in strategy.schedule_for(dose_time, config):
        emit = step.dose > 0 or dose_time.include_zero_doses
        if emit:
            whole_units, split_units = decompose_units(
                step.dose, config.strength_per_unit, config.effective_divisions
            )
        for day in range(step.dwell_days):
            if emit:
                events.append(ScheduleEvent(
                    date=cursor + timedelta(days=day),
                    time=dose_time.time,
                    dosage=step.dose,
                    whole_units=whole_units,
                    split_units=split_units,
                    period=dose_time.period,
                    unit=config.unit,
                    form=config.form,
                    medication_name=config.name,
                ))
        cursor += timedelta(days=step.dwell_days)
    return events
