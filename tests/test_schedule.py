from datetime import date, timedelta
from fractions import Fraction

import pytest

from taperengine.errors import TaperConfigError
from taperengine.schedule import generate_schedule
from taperengine.types import DoseStep, DoseTime, MedicationConfig

START = date(2025, 3, 1)


def _config(*dose_times, strength=2.0, can_split=True, divisions=4, name="Prednisolone"):
    return MedicationConfig(name=name, unit="mg", form="pill",
                            strength_per_unit=strength, can_split=can_split,
                            split_divisions=divisions, dose_times=dose_times)


def _assert_sorted(events):
    for a, b in zip(events, events[1:]):
        assert (a.date, a.time) <= (b.date, b.time)


def test_single_dose_time_quarter_split():
    """
    10 mg, 2 mg pills in quarters, 7 days per step:
    20 steps x 7 days = 140 daily events.
    """
    cfg = _config(DoseTime(time="08:00", initial_dose=10, days_per_step=7))
    events = generate_schedule(START, cfg)

    assert len(events) == 140
    assert events[0].date == START
    assert events[0].dosage == 10
    assert events[6].dosage == 10
    assert events[7].dosage == 9.5
    assert events[-1].date == START + timedelta(days=139)
    assert events[-1].dosage == 0.5
    _assert_sorted(events)


def test_event_fields():
    cfg = _config(DoseTime(time="08:00", initial_dose=10, days_per_step=1))
    events = generate_schedule(START, cfg)
    e = events[1]  # 9.5 mg

    assert e.whole_units == 4
    assert e.split_units == Fraction(3, 4)
    assert e.period == "morning"
    assert (e.unit, e.form, e.medication_name) == ("mg", "pill", "Prednisolone")
    assert e.starts_at.hour == 8 and e.starts_at.minute == 0
    for ev in events:
        assert abs(ev.whole_units * 2 + float(ev.split_units) * 2 - ev.dosage) < 1e-4


def test_period_labels():
    cfg = _config(
        DoseTime(time="11:59", initial_dose=2, days_per_step=1),
        DoseTime(time="12:00", initial_dose=2, days_per_step=1),
        DoseTime(time="20:00", initial_dose=2, days_per_step=1),
    )
    first_day = [e for e in generate_schedule(START, cfg) if e.date == START]

    assert [e.period for e in first_day] == ["morning", "evening", "evening"]


def test_events_merged_by_date_then_time():
    cfg = _config(
        DoseTime(time="20:00", initial_dose=4, days_per_step=2),
        DoseTime(time="08:00", initial_dose=6, days_per_step=3),
    )
    events = generate_schedule(START, cfg)

    _assert_sorted(events)
    assert events[0].time == "08:00"
    assert events[1].time == "20:00"
    # 4 mg / 0.5 = 8 steps x 2 days, 6 mg -> 12 steps x 3 days
    assert sum(e.time == "20:00" for e in events) == 16
    assert sum(e.time == "08:00" for e in events) == 36


def test_same_time_dose_times_both_kept_in_config_order():
    cfg = _config(
        DoseTime(time="08:00", initial_dose=4, days_per_step=1),
        DoseTime(time="08:00", initial_dose=2, days_per_step=1),
    )
    events = generate_schedule(START, cfg)
    first_day = [e for e in events if e.date == START]

    assert [e.dosage for e in first_day] == [4, 2]


def test_zero_dose_steps_respect_include_zero_doses():
    custom = (DoseStep(4, 3), DoseStep(2, 3), DoseStep(0, 3))
    hidden = _config(DoseTime("08:00", 4, days_per_step=3, custom_steps=custom))
    shown = _config(DoseTime("08:00", 4, days_per_step=3, custom_steps=custom,
                             include_zero_doses=True))

    hidden_events = generate_schedule(START, hidden)
    shown_events = generate_schedule(START, shown)

    assert len(hidden_events) == 6
    assert all(e.dosage > 0 for e in hidden_events)
    assert len(shown_events) == 9
    zero = shown_events[-1]
    assert zero.dosage == 0 and zero.whole_units == 0 and zero.split_units == 0
    assert zero.date == START + timedelta(days=8)


def test_percentage_decay_never_emits_zero_without_include_zero_doses():
    cfg = _config(
        DoseTime("08:00", 10, reduction_rate=50),
        DoseTime("20:00", 10, reduction_rate=10),
        strength=5.0, can_split=False,
    )
    events = generate_schedule(START, cfg)

    assert all(e.dosage > 0 for e in events)
    # 08:00: 10, 5 for a week each; 20:00: 8 non-zero weeks
    assert sum(e.time == "08:00" for e in events) == 14
    assert sum(e.time == "20:00" for e in events) == 56
    _assert_sorted(events)


def test_percentage_decay_zero_weeks_last_while_any_dose_time_is_active():
    cfg = _config(
        DoseTime("08:00", 10, reduction_rate=50, include_zero_doses=True),
        DoseTime("20:00", 10, reduction_rate=10),
        strength=5.0, can_split=False,
    )
    morning = [e for e in generate_schedule(START, cfg) if e.time == "08:00"]

    assert len(morning) == 56
    assert sum(e.dosage == 0 for e in morning) == 42
    assert morning[-1].date == START + timedelta(days=55)


def test_dates_continue_across_month_and_leap_day():
    cfg = _config(DoseTime("08:00", 2, days_per_step=2), strength=2.0, can_split=False)
    events = generate_schedule(date(2024, 2, 28), cfg)

    assert [e.date for e in events] == [date(2024, 2, 28), date(2024, 2, 29)]

    cfg = _config(DoseTime("08:00", 4, days_per_step=2), strength=2.0, can_split=False)
    events = generate_schedule(date(2024, 2, 28), cfg)
    assert events[-1].date == date(2024, 3, 2)


def test_zero_initial_dose_is_empty():
    cfg = _config(DoseTime("08:00", 0, days_per_step=7))
    assert generate_schedule(START, cfg) == []


def test_whole_pill_events_have_no_split():
    cfg = _config(DoseTime("08:00", 10, days_per_step=1), can_split=False, divisions=3)
    events = generate_schedule(START, cfg)

    assert [e.dosage for e in events] == [10, 8, 6, 4, 2]
    assert [e.whole_units for e in events] == [5, 4, 3, 2, 1]
    assert all(e.split_units == 0 for e in events)


@pytest.mark.parametrize("cfg", [
    _config(),
    _config(DoseTime("08:00", 10, days_per_step=7), strength=0),
    _config(DoseTime("08:00", 10, days_per_step=7), divisions=3),
    _config(DoseTime("8:00", 10, days_per_step=7)),
    _config(DoseTime("08:00", 10, days_per_step=0)),
    _config(DoseTime("08:00", 10, reduction_rate=-5)),
    _config(DoseTime("08:00", 10, days_per_step=7), DoseTime("20:00", 10, reduction_rate=10)),
])
def test_invalid_configs_fail_fast(cfg):
    with pytest.raises(TaperConfigError):
        generate_schedule(START, cfg)
