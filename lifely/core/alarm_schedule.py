"""Alarm schedule — pure alarm timing logic.

Parses "HH:MM" alarm times, decides whether an alarm is due at a given
moment and computes its next occurrence. Weekday indices follow the stored
alarm format: 0 = Sunday ... 6 = Saturday.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from lifely.data.models import Alarm

logger = logging.getLogger(__name__)

DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def parse_alarm_time(raw: str) -> tuple[int, int]:
    """Extract (hour, minute) from an "HH:MM" string.

    Raises ValueError on malformed input.
    """
    raw = raw.strip()
    if ":" not in raw:
        raise ValueError(f"No colon in alarm time: {raw!r}")

    hour_part, minute_part = raw.split(":", 1)
    if not (hour_part.isdigit() and minute_part.isdigit() and len(minute_part) == 2):
        raise ValueError(f"Alarm time must be HH:MM: {raw!r}")

    hour, minute = int(hour_part), int(minute_part)
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Hour/minute out of range: {hour}:{minute}")
    return hour, minute


def weekday_index(moment: datetime) -> int:
    """Day of week with 0 = Sunday, matching Alarm.days."""
    return moment.isoweekday() % 7


def format_days(days: list[int]) -> str:
    """Human-readable day set, e.g. "Mon, Wed, Fri" or "every day"."""
    if len(set(days)) == 7:
        return "every day"
    return ", ".join(DAY_NAMES[d] for d in sorted(set(days)))


def is_due(alarm: Alarm, now: datetime) -> bool:
    """True when an enabled alarm should ring during the minute of `now`.

    Recurring alarms ring only on their weekdays; a recurring alarm with no
    days rings daily. One-shot alarms ring on any day.
    """
    if not alarm.is_enabled:
        return False
    try:
        hour, minute = parse_alarm_time(alarm.time)
    except ValueError as exc:
        logger.warning("Skipping alarm %s with bad time: %s", alarm.id, exc)
        return False
    if (now.hour, now.minute) != (hour, minute):
        return False
    if alarm.is_recurring and alarm.days:
        return weekday_index(now) in alarm.days
    return True


def next_occurrence(alarm: Alarm, now: datetime) -> datetime | None:
    """The next moment strictly after `now` at which the alarm rings.

    None for disabled alarms or alarms with an unparseable time.
    """
    if not alarm.is_enabled:
        return None
    try:
        hour, minute = parse_alarm_time(alarm.time)
    except ValueError:
        return None

    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    if not (alarm.is_recurring and alarm.days):
        return candidate
    for _ in range(7):
        if weekday_index(candidate) in alarm.days:
            return candidate
        candidate += timedelta(days=1)
    return None
