# src/taperengine/types.py
from dataclasses import dataclass, field
from datetime import date, datetime, time as dtime
from fractions import Fraction
from typing import Literal, Optional, Sequence

# Doses are plain floats in the medication's own unit (mg, ml, ...).
# Dwell lengths are whole DAYS.
Period = Literal["morning", "evening"]


@dataclass(frozen=True)
class DoseStep:
    """
    One plateau of the taper.

    dose       : dose held during this step (>= 0)
    dwell_days : number of consecutive days the dose stays in effect
    """
    dose: float
    dwell_days: int


@dataclass(frozen=True)
class DoseTime:
    """
    One daily administration slot.

    time               : "HH:MM", 24-hour, zero-padded, no timezone
    initial_dose       : starting dose for this slot
    include_zero_doses : still emit events once the dose has reached 0
    days_per_step      : step-based taper: days spent on each step
    reduction_rate     : percentage-decay taper: percent reduction per week
    custom_steps       : step-based only; replaces the enumerated steps verbatim

    Exactly one of days_per_step / reduction_rate is set.
    """
    time: str
    initial_dose: float
    include_zero_doses: bool = False
    days_per_step: Optional[int] = None
    reduction_rate: Optional[float] = None
    custom_steps: Optional[Sequence[DoseStep]] = None

    @property
    def period(self) -> Period:
        return "morning" if self.time < "12:00" else "evening"


@dataclass(frozen=True)
class MedicationConfig:
    """
    The whole taper plan.

    split_divisions only matters when can_split is True (2 = halves, 4 = quarters).
    """
    name: str
    unit: str
    form: str
    strength_per_unit: float
    can_split: bool = False
    split_divisions: int = 2
    dose_times: Sequence[DoseTime] = field(default_factory=tuple)

    @property
    def effective_divisions(self) -> int:
        return self.split_divisions if self.can_split else 1


@dataclass(frozen=True)
class ScheduleEvent:
    """A single (date, time, dose) administration."""
    date: date
    time: str
    dosage: float
    whole_units: int
    split_units: Fraction
    period: Period
    unit: str
    form: str
    medication_name: str

    @property
    def starts_at(self) -> datetime:
        hours, minutes = (int(p) for p in self.time.split(":"))
        return datetime.combine(self.date, dtime(hours, minutes))


@dataclass(frozen=True)
class DoseTimeMetrics:
    time: str
    steps: tuple[float, ...]
    duration_days: int


@dataclass(frozen=True)
class TaperMetrics:
    """Preview numbers for a plan; independent of the start date."""
    dose_time_schedules: tuple[DoseTimeMetrics, ...]
    total_days: int

    @property
    def possible_steps(self) -> tuple[float, ...]:
        return self.dose_time_schedules[0].steps if self.dose_time_schedules else ()

    @property
    def number_of_steps(self) -> int:
        return len(self.possible_steps)
