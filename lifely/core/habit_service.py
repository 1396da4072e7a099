"""
Lifely — Habit Service.

Habit CRUD and progress logging on top of the Entity Store. Used by the
front end directly and by the chat orchestrator for `track_habit` calls.

A habit's goal must be >= 1: the progress percentage divides by it.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Callable

from lifely.data.models import Frequency, Habit, HabitLog, ValidationError, utcnow
from lifely.data.schema import HABITS
from lifely.data.store import EntityStore

logger = logging.getLogger(__name__)


def _validate(name: str, goal: float) -> str:
    name = name.strip()
    if not name:
        raise ValidationError("Habit name must not be empty")
    if not math.isfinite(goal) or goal < 1:
        raise ValidationError(f"Habit goal must be at least 1, got {goal:g}")
    return name


class HabitService:
    """Habit storage and progress logging."""

    def __init__(
        self, store: EntityStore, clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._clock = clock

    async def create_habit(
        self,
        name: str,
        goal: float = 1,
        unit: str = "times",
        frequency: Frequency | str = Frequency.DAILY,
        description: str | None = None,
    ) -> Habit:
        """Validate and insert a new habit with an empty log."""
        name = _validate(name, goal)
        try:
            frequency = Frequency(frequency)
        except ValueError as exc:
            raise ValidationError(f"Unknown frequency: {frequency!r}") from exc

        now = self._clock()
        habit = Habit(
            name=name,
            description=description or None,
            goal=goal,
            unit=unit.strip() or "times",
            frequency=frequency,
            created_at=now,
            updated_at=now,
        )
        await self._store.add(HABITS, habit)
        logger.info("Habit created: %s '%s' (goal %g %s)", habit.id, name, goal, habit.unit)
        return habit

    async def update_habit(self, habit: Habit) -> Habit:
        """Overwrite a habit's definition. Logs are kept as stored."""
        name = _validate(habit.name, habit.goal)
        current = await self._store.get(HABITS, habit.id)
        logs = current.logs if current is not None else habit.logs
        updated = habit.model_copy(update={
            "name": name,
            "logs": logs,
            "updated_at": self._clock(),
        })
        await self._store.put(HABITS, updated)
        logger.info("Habit updated: %s", updated.id)
        return updated

    async def get_habit(self, habit_id: str) -> Habit | None:
        return await self._store.get(HABITS, habit_id)

    async def list_habits(self) -> list[Habit]:
        """All habits in creation order."""
        return await self._store.get_all(HABITS)

    async def delete_habit(self, habit_id: str) -> bool:
        deleted = await self._store.delete(HABITS, habit_id)
        if deleted:
            logger.info("Habit %s deleted", habit_id)
        return deleted

    async def find_by_name(self, name: str) -> Habit | None:
        """Case-insensitive exact match on the habit name."""
        wanted = name.strip().casefold()
        for habit in await self._store.get_all(HABITS):
            if habit.name.strip().casefold() == wanted:
                return habit
        return None

    async def log_progress(
        self, habit_id: str, value: float, notes: str | None = None,
    ) -> Habit | None:
        """Append a log entry dated now. Returns None if the habit is gone."""
        if not math.isfinite(value):
            raise ValidationError(f"Habit progress must be a finite number, got {value!r}")
        habit = await self._store.get(HABITS, habit_id)
        if habit is None:
            return None
        now = self._clock()
        habit.logs.append(HabitLog(date=now, value=value, notes=notes or None))
        habit.updated_at = now
        await self._store.put(HABITS, habit)
        logger.info("Habit %s '%s' logged %g %s", habit.id, habit.name, value, habit.unit)
        return habit

    async def track_by_name(
        self, name: str, value: float, notes: str | None = None,
    ) -> Habit | None:
        """Log progress on the habit called `name`, or return None if none matches."""
        habit = await self.find_by_name(name)
        if habit is None:
            logger.info("No habit named '%s' to track", name)
            return None
        return await self.log_progress(habit.id, value, notes)
