# src/taperengine/metrics.py
import numpy as np

from .dosing import validate_config
from .strategies import strategy_for_config
from .types import DoseTimeMetrics, MedicationConfig, TaperMetrics


def summarize(config: MedicationConfig) -> TaperMetrics:
    """
    Step list and duration for each dose time, plus the overall duration
    (the longest dose time). Does not depend on a start date and never
    builds the event list.
    """
    validate_config(config)
    strategy = strategy_for_config(config)

    per_dose_time = []
    for dose_time in config.dose_times:
        steps = strategy.schedule_for(dose_time, config)
        per_dose_time.append(DoseTimeMetrics(
            time=dose_time.time,
            steps=tuple(s.dose for s in steps),
            duration_days=duration_days(steps),
        ))

    total = int(np.max([m.duration_days for m in per_dose_time]))
    return TaperMetrics(dose_time_schedules=tuple(per_dose_time), total_days=total)


def duration_days(steps) -> int:
    """Total dwell across a step sequence (steps x days_per_step for step-based plans)."""
    return int(np.sum([s.dwell_days for s in steps], dtype=int))
