# src/taperengine/dosing.py
from __future__ import annotations

import logging
import math
import numbers
import re
from fractions import Fraction
from functools import lru_cache
from typing import Tuple

from .config import ALLOWED_SPLIT_DIVISIONS, DOSE_PRECISION
from .errors import TaperConfigError
from .types import DoseTime, MedicationConfig

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def physical_dose_steps(initial_dose: float, strength_per_unit: float,
                        can_split: bool, split_divisions: int) -> Tuple[float, ...]:
    """
    Every dose that can actually be handed out, from initial_dose down to the
    smallest realizable amount.

    Examples (strength 2 mg):
      - no splitting, 10 mg      -> (10, 8, 6, 4, 2)
      - quarters, 10 mg          -> (10, 9.5, 9, ..., 1, 0.5)

    Returned values are rounded to DOSE_PRECISION decimals, distinct and
    strictly descending. An initial dose of 0 gives an empty tuple.

    A start that is not a whole number of fractions (10.3 mg in 0.5 mg
    quarters) first drops to the realizable dose just below it, then walks
    down one fraction at a time: 10.3, 10, 9.5, ... rather than 10.3, 9.5.
    Doses and fractions must be at least 10 ** -DOSE_PRECISION.
    """
    _validate_finite("initial_dose", initial_dose)
    _validate_non_negative("initial_dose", initial_dose)
    _validate_finite("strength_per_unit", strength_per_unit)
    _validate_positive("strength_per_unit", strength_per_unit)
    if can_split:
        _validate_split_divisions(split_divisions)
    _validate_resolution("smallest dose step",
                         strength_per_unit / split_divisions if can_split else strength_per_unit)
    if initial_dose > 0:
        _validate_resolution("initial_dose", initial_dose)

    steps = _physical_dose_steps(float(initial_dose), float(strength_per_unit),
                                 bool(can_split), int(split_divisions) if can_split else 1)
    logger.debug("%d dose steps from %s (strength %s, split=%s/%s)",
                 len(steps), initial_dose, strength_per_unit, can_split, split_divisions)
    return steps


@lru_cache(maxsize=256)
def _physical_dose_steps(initial_dose: float, strength: float,
                         can_split: bool, divisions: int) -> Tuple[float, ...]:
    steps: set[float] = set()

    if not can_split:
        # Whole units only
        current = round(initial_dose, DOSE_PRECISION)
        while current > 0:
            steps.add(current)
            current = round(max(0.0, current - strength), DOSE_PRECISION)
        return tuple(sorted(steps, reverse=True))

    fraction = round(strength / divisions, DOSE_PRECISION)
    current = round(initial_dose, DOSE_PRECISION)
    if 0 < current < fraction:
        return (fraction,)

    while current > 0:
        current = round(current, DOSE_PRECISION)
        steps.add(current)

        whole_units = _floor(current / strength)
        remainder = current - whole_units * strength
        split_units = _floor(remainder / fraction)
        off_grid = round(remainder - split_units * fraction, DOSE_PRECISION) > 0

        # Off-grid doses first drop to the realizable dose just below them.
        # Otherwise: one fraction less, or one whole unit less at the top split level.
        if off_grid:
            current = whole_units * strength + split_units * fraction
        elif split_units > 0:
            current = whole_units * strength + (split_units - 1) * fraction
        else:
            current = (whole_units - 1) * strength + (divisions - 1) * fraction

        if round(current, DOSE_PRECISION) < fraction:
            if current > 0:
                steps.add(fraction)
            break

    return tuple(sorted(steps, reverse=True))


def decompose_units(dose: float, strength_per_unit: float, split_divisions: int) -> Tuple[int, Fraction]:
    """
    Split a dose into whole units plus a fraction of one unit.
    e.g. 5 mg with 2 mg pills in quarters -> (2, Fraction(1, 2))

    split_divisions should be 1 when the unit cannot be split.
    """
    _validate_positive("strength_per_unit", strength_per_unit)
    _validate_positive_int("split_divisions", split_divisions)

    total_units = dose / strength_per_unit
    whole_units = _floor(total_units)
    parts = math.floor((total_units - whole_units) * split_divisions + 0.5)
    if parts >= split_divisions:
        whole_units += 1
        parts = 0
    return whole_units, Fraction(parts, split_divisions)


def validate_config(config: MedicationConfig) -> None:
    """Check a whole plan before anything is computed from it."""
    _validate_finite("strength_per_unit", config.strength_per_unit)
    _validate_positive("strength_per_unit", config.strength_per_unit)
    if config.can_split:
        _validate_split_divisions(config.split_divisions)
    if not config.dose_times:
        raise TaperConfigError("dose_times must contain at least one dose time.")
    for dose_time in config.dose_times:
        validate_dose_time(dose_time)


def validate_dose_time(dose_time: DoseTime) -> None:
    if not isinstance(dose_time.time, str) or not _TIME_RE.match(dose_time.time):
        raise TaperConfigError(f"time must be 24-hour HH:MM (got {dose_time.time!r}).")
    _validate_finite("initial_dose", dose_time.initial_dose)
    _validate_non_negative("initial_dose", dose_time.initial_dose)

    step_based = dose_time.days_per_step is not None
    decay = dose_time.reduction_rate is not None
    if step_based == decay:
        raise TaperConfigError(
            f"dose time {dose_time.time} must set exactly one of days_per_step or reduction_rate."
        )
    if step_based:
        _validate_positive_int("days_per_step", dose_time.days_per_step)
    else:
        _validate_finite("reduction_rate", dose_time.reduction_rate)
        _validate_non_negative("reduction_rate", dose_time.reduction_rate)
        if dose_time.custom_steps is not None:
            raise TaperConfigError("custom_steps are only supported with days_per_step.")

    for step in dose_time.custom_steps or ():
        _validate_finite("custom step dose", step.dose)
        _validate_non_negative("custom step dose", step.dose)
        _validate_positive_int("custom step dwell_days", step.dwell_days)


def _floor(x: float) -> int:
    # 2.9999999999999996 -> 3, not 2
    return math.floor(round(x, DOSE_PRECISION))


# --------------------------
# Small input validators
# --------------------------
def _validate_positive(name: str, x: float) -> None:
    if not (x > 0):
        raise TaperConfigError(f"{name} must be > 0 (got {x}).")

def _validate_non_negative(name: str, x: float) -> None:
    if not (x >= 0):
        raise TaperConfigError(f"{name} must be >= 0 (got {x}).")

def _validate_finite(name: str, x: float) -> None:
    if isinstance(x, bool) or not isinstance(x, numbers.Real) or not math.isfinite(x):
        raise TaperConfigError(f"{name} must be a finite number (got {x!r}).")

def _validate_positive_int(name: str, x: int) -> None:
    if not (isinstance(x, int) and not isinstance(x, bool) and x > 0):
        raise TaperConfigError(f"{name} must be a positive integer (got {x}).")

def _validate_resolution(name: str, x: float) -> None:
    # below this, rounding to DOSE_PRECISION collapses the dose to 0
    if x < 10 ** -DOSE_PRECISION:
        raise TaperConfigError(
            f"{name} must be at least {10 ** -DOSE_PRECISION} (got {x})."
        )

def _validate_split_divisions(x: int) -> None:
    if isinstance(x, bool) or x not in ALLOWED_SPLIT_DIVISIONS:
        raise TaperConfigError(
            f"split_divisions must be one of {ALLOWED_SPLIT_DIVISIONS} (got {x})."
        )
