# src/taperengine/strategies.py
"""
Two ways of answering "what dose, for how long, at each stage of the taper".

StepBasedStrategy       : walk down every physically realizable dose,
                          holding each one for days_per_step days.
PercentageDecayStrategy : cut the starting dose by a fixed percentage each
                          week, rounded to whole units, for at most a year.

A config uses one or the other for all of its dose times; which one is
decided by whether the dose times carry days_per_step or reduction_rate.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np

from .config import DAYS_PER_WEEK, DOSE_PRECISION, MAX_DECAY_WEEKS
from .dosing import physical_dose_steps, validate_config
from .errors import TaperConfigError
from .types import DoseStep, DoseTime, MedicationConfig

logger = logging.getLogger(__name__)


class TaperStrategy(ABC):
    name: str = "abstract"

    @abstractmethod
    def schedule_for(self, dose_time: DoseTime, config: MedicationConfig) -> Tuple[DoseStep, ...]:
        """Ordered (dose, dwell_days) steps for one dose time."""


class StepBasedStrategy(TaperStrategy):
    name = "step_based"

    def schedule_for(self, dose_time: DoseTime, config: MedicationConfig) -> Tuple[DoseStep, ...]:
        if dose_time.custom_steps is not None:
            return tuple(dose_time.custom_steps)

        doses = physical_dose_steps(
            dose_time.initial_dose,
            config.strength_per_unit,
            config.can_split,
            config.split_divisions,
        )
        return tuple(DoseStep(dose=d, dwell_days=dose_time.days_per_step) for d in doses)


class PercentageDecayStrategy(TaperStrategy):
    name = "percentage_decay"

    def schedule_for(self, dose_time: DoseTime, config: MedicationConfig) -> Tuple[DoseStep, ...]:
        validate_config(config)
        if not isinstance(strategy_for_config(config), PercentageDecayStrategy):
            raise TaperConfigError("percentage decay needs reduction_rate on every dose time.")
        if dose_time not in config.dose_times:
            raise TaperConfigError(f"dose time {dose_time.time} is not part of config {config.name}.")

        # All dose times stop together, at the first week where every one of them is 0
        n_weeks = self.active_weeks(config)
        doses = self.weekly_doses(dose_time, config.strength_per_unit)[:n_weeks]
        return tuple(DoseStep(dose=float(d), dwell_days=DAYS_PER_WEEK) for d in doses)

    @staticmethod
    def weekly_doses(dose_time: DoseTime, strength_per_unit: float) -> np.ndarray:
        """
        Dose for each of the MAX_DECAY_WEEKS weeks, rounded to whole units.
        Weeks where the unrounded dose has already reached 0 are 0.
        """
        weeks = np.arange(MAX_DECAY_WEEKS, dtype=float)
        raw = dose_time.initial_dose * (1.0 - dose_time.reduction_rate * weeks / 100.0)
        # Round half up, like a pharmacist would
        units = np.floor(raw / strength_per_unit + 0.5)
        doses = np.round(units * strength_per_unit, DOSE_PRECISION)
        doses[raw <= 0] = 0.0
        return doses

    def active_weeks(self, config: MedicationConfig) -> int:
        """Number of weeks before every dose time is simultaneously at 0."""
        table = np.vstack([self.weekly_doses(dt, config.strength_per_unit) for dt in config.dose_times])
        all_zero = np.all(table <= 0, axis=0)
        if not np.any(all_zero):
            logger.warning("Percentage taper for %s still active after %d weeks; truncating.",
                           config.name, MAX_DECAY_WEEKS)
            return MAX_DECAY_WEEKS
        return int(np.argmax(all_zero))


STEP_BASED = StepBasedStrategy()
PERCENTAGE_DECAY = PercentageDecayStrategy()


def strategy_for(dose_time: DoseTime) -> TaperStrategy:
    if dose_time.days_per_step is not None and dose_time.reduction_rate is None:
        return STEP_BASED
    if dose_time.reduction_rate is not None and dose_time.days_per_step is None:
        return PERCENTAGE_DECAY
    raise TaperConfigError(
        f"dose time {dose_time.time} must set exactly one of days_per_step or reduction_rate."
    )


def strategy_for_config(config: MedicationConfig) -> TaperStrategy:
    """The single strategy shared by every dose time of a config."""
    if not config.dose_times:
        raise TaperConfigError("dose_times must contain at least one dose time.")
    strategies = {strategy_for(dt).name: strategy_for(dt) for dt in config.dose_times}
    if len(strategies) > 1:
        raise TaperConfigError(
            f"dose times mix taper strategies ({', '.join(sorted(strategies))}); use one per config."
        )
    return next(iter(strategies.values()))
