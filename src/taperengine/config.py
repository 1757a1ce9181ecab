# src/taperengine/config.py
import os

# Doses are compared/deduplicated after rounding to this many decimals.
DOSE_PRECISION = 4

ALLOWED_SPLIT_DIVISIONS = (2, 4)

# Percentage-decay plans never run longer than a year.
MAX_DECAY_WEEKS = 52
DAYS_PER_WEEK = 7

# Calendar export
DEFAULT_TIMEZONE = os.getenv("TAPERENGINE_TIMEZONE", "Europe/London")
DEFAULT_EVENT_DURATION = "PT15M"
CALENDAR_FILE_SUFFIX = "-schedule.ics"
