"""Habit progress — pure aggregation over a habit's logs.

Buckets logs by calendar day in the viewer's time zone (the zone of `now`)
and produces today's total, a completion percentage and a 7-day trend.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable

from lifely.data.models import Habit, HabitLog

TREND_DAYS = 7


@dataclass
class TrendPoint:
    """Total logged on one calendar day."""

    day: date
    label: str        # "Today" | "Yesterday" | "MM/DD"
    value: float


@dataclass
class HabitProgress:
    """Bundled progress data for one habit."""

    habit_id: str
    name: str
    unit: str
    goal: float
    today_total: float
    percent: int
    trend: list[TrendPoint] = field(default_factory=list)


def _aware(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def _local(moment: datetime, tz) -> datetime:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz)


def _day_window(day: date, tz) -> tuple[datetime, datetime]:
    """[midnight, next midnight) of a calendar day, DST-safe."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def start_of_day(now: datetime) -> datetime:
    """Local midnight of the day containing `now`."""
    now = _aware(now)
    return _day_window(now.date(), now.tzinfo)[0]


def total_for_day(logs: Iterable[HabitLog], day: date, tz) -> float:
    """Sum of log values whose timestamp falls within `day` in zone `tz`."""
    start, end = _day_window(day, tz)
    return sum(
        (log.value for log in logs if start <= _local(log.date, tz) < end),
        0.0,
    )


def today_total(logs: Iterable[HabitLog], now: datetime) -> float:
    now = _aware(now)
    return total_for_day(logs, now.date(), now.tzinfo)


def progress_percent(total: float, goal: float) -> int:
    """Completion percentage, floored and capped at 100. Goal must be >= 1."""
    return min(math.floor(total / goal * 100), 100)


def _label(day: date, today: date) -> str:
    if day == today:
        return "Today"
    if day == today - timedelta(days=1):
        return "Yesterday"
    return day.strftime("%m/%d")


def seven_day_trend(logs: Iterable[HabitLog], now: datetime) -> list[TrendPoint]:
    """Daily totals for the 7 calendar days ending today, oldest first.

    Days without logs contribute 0.
    """
    now = _aware(now)
    logs = list(logs)
    tz = now.tzinfo
    today = now.date()
    points = [
        TrendPoint(
            day=today - timedelta(days=offset),
            label=_label(today - timedelta(days=offset), today),
            value=total_for_day(logs, today - timedelta(days=offset), tz),
        )
        for offset in range(TREND_DAYS)
    ]
    points.reverse()
    return points


def summarize(habit: Habit, now: datetime) -> HabitProgress:
    """Build the complete progress picture for one habit."""
    total = today_total(habit.logs, now)
    return HabitProgress(
        habit_id=habit.id,
        name=habit.name,
        unit=habit.unit,
        goal=habit.goal,
        today_total=total,
        percent=progress_percent(total, habit.goal),
        trend=seven_day_trend(habit.logs, now),
    )
