"""
Lifely — Alarm Service.

Creates, edits, toggles and deletes alarms in the Entity Store. Used by the
front end directly and by the chat orchestrator for `set_alarm` calls.

Validation happens here, not in the store: alarm time must be HH:MM, the
label non-empty, day indices 0-6, and a non-recurring alarm has no days.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable

from lifely.core.alarm_schedule import parse_alarm_time
from lifely.data.models import Alarm, ValidationError, utcnow
from lifely.data.schema import ALARMS
from lifely.data.store import EntityStore

logger = logging.getLogger(__name__)


def _normalize_time(raw: str) -> str:
    try:
        hour, minute = parse_alarm_time(raw)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    return f"{hour:02d}:{minute:02d}"


def _validate_days(days: Iterable[int], is_recurring: bool) -> list[int]:
    days = sorted(set(days))
    bad = [d for d in days if not 0 <= d <= 6]
    if bad:
        raise ValidationError(f"Weekday indices must be 0-6, got {bad}")
    if days and not is_recurring:
        raise ValidationError("A non-recurring alarm cannot have weekdays")
    return days


class AlarmService:
    """Alarm CRUD on top of the Entity Store."""

    def __init__(
        self, store: EntityStore, clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._clock = clock

    async def create_alarm(
        self,
        time: str,
        label: str,
        days: Iterable[int] = (),
        is_recurring: bool = False,
        is_enabled: bool = True,
    ) -> Alarm:
        """Validate and insert a new alarm."""
        label = label.strip()
        if not label:
            raise ValidationError("Alarm label must not be empty")
        now = self._clock()
        alarm = Alarm(
            time=_normalize_time(time),
            label=label,
            days=_validate_days(days, is_recurring),
            is_enabled=is_enabled,
            is_recurring=is_recurring,
            created_at=now,
            updated_at=now,
        )
        await self._store.add(ALARMS, alarm)
        logger.info("Alarm created: %s '%s' at %s", alarm.id, alarm.label, alarm.time)
        return alarm

    async def update_alarm(self, alarm: Alarm) -> Alarm:
        """Re-validate and overwrite an existing alarm."""
        label = alarm.label.strip()
        if not label:
            raise ValidationError("Alarm label must not be empty")
        updated = alarm.model_copy(update={
            "time": _normalize_time(alarm.time),
            "label": label,
            "days": _validate_days(alarm.days, alarm.is_recurring),
            "updated_at": self._clock(),
        })
        await self._store.put(ALARMS, updated)
        logger.info("Alarm updated: %s", updated.id)
        return updated

    async def get_alarm(self, alarm_id: str) -> Alarm | None:
        return await self._store.get(ALARMS, alarm_id)

    async def set_enabled(self, alarm_id: str, enabled: bool) -> Alarm | None:
        """Toggle an alarm on or off. Returns None if it does not exist."""
        alarm = await self._store.get(ALARMS, alarm_id)
        if alarm is None:
            return None
        alarm.is_enabled = enabled
        alarm.updated_at = self._clock()
        await self._store.put(ALARMS, alarm)
        logger.info("Alarm %s %s", alarm_id, "enabled" if enabled else "disabled")
        return alarm

    async def delete_alarm(self, alarm_id: str) -> bool:
        deleted = await self._store.delete(ALARMS, alarm_id)
        if deleted:
            logger.info("Alarm %s deleted", alarm_id)
        return deleted

    async def list_alarms(self) -> list[Alarm]:
        """All alarms, earliest time of day first."""
        alarms = await self._store.get_all(ALARMS)
        alarms.sort(key=lambda a: a.time)
        return alarms
