"""Tests for lifely.core.habit_service — HabitService."""

import pytest

from lifely.core.habit_service import HabitService
from lifely.data.models import Frequency, ValidationError


@pytest.fixture
def service(store, clock):
    return HabitService(store, clock=clock)


class TestCreateHabit:
    @pytest.mark.asyncio
    async def test_create_persists(self, service):
        habit = await service.create_habit("  Read ", goal=20, unit="pages", description="Books")
        assert habit.name == "Read"
        assert habit.goal == 20
        assert habit.unit == "pages"
        assert habit.logs == []
        assert await service.get_habit(habit.id) == habit

    @pytest.mark.asyncio
    async def test_goal_below_one_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.create_habit("Read", goal=0)

    @pytest.mark.asyncio
    async def test_infinite_goal_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.create_habit("Read", goal=float("inf"))

    @pytest.mark.asyncio
    async def test_empty_name_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.create_habit("   ", goal=1)

    @pytest.mark.asyncio
    async def test_frequency_from_string(self, service):
        habit = await service.create_habit("Review", frequency="weekly")
        assert habit.frequency is Frequency.WEEKLY

    @pytest.mark.asyncio
    async def test_unknown_frequency_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.create_habit("Review", frequency="hourly")


class TestLogProgress:
    @pytest.mark.asyncio
    async def test_appends_log_dated_now(self, service, clock):
        habit = await service.create_habit("Water", goal=8, unit="glasses")
        clock.advance(hours=2)
        updated = await service.log_progress(habit.id, 3, notes="after run")

        assert len(updated.logs) == 1
        assert updated.logs[0].value == 3
        assert updated.logs[0].date == clock()
        assert updated.logs[0].notes == "after run"
        assert updated.updated_at == clock()
        assert len((await service.get_habit(habit.id)).logs) == 1

    @pytest.mark.asyncio
    async def test_missing_habit(self, service):
        assert await service.log_progress("missing", 1) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [float("nan"), float("inf")])
    async def test_non_finite_value_rejected(self, service, value):
        habit = await service.create_habit("Water", goal=8)
        with pytest.raises(ValidationError):
            await service.log_progress(habit.id, value)
        assert (await service.get_habit(habit.id)).logs == []
        assert [h.id for h in await service.list_habits()] == [habit.id]

    @pytest.mark.asyncio
    async def test_update_keeps_logs(self, service):
        habit = await service.create_habit("Water", goal=8)
        await service.log_progress(habit.id, 1)
        renamed = await service.update_habit(habit.model_copy(update={"name": "Hydrate"}))
        assert renamed.name == "Hydrate"
        assert len(renamed.logs) == 1

    @pytest.mark.asyncio
    async def test_update_rejects_bad_goal(self, service):
        habit = await service.create_habit("Water", goal=8)
        with pytest.raises(ValidationError):
            await service.update_habit(habit.model_copy(update={"goal": 0.5}))


class TestFindByName:
    @pytest.mark.asyncio
    async def test_case_insensitive_exact_match(self, service):
        habit = await service.create_habit("Drink Water", goal=8)
        assert (await service.find_by_name("drink water")).id == habit.id
        assert (await service.find_by_name(" DRINK WATER ")).id == habit.id

    @pytest.mark.asyncio
    async def test_no_partial_match(self, service):
        await service.create_habit("Drink Water", goal=8)
        assert await service.find_by_name("water") is None

    @pytest.mark.asyncio
    async def test_track_by_name(self, service):
        habit = await service.create_habit("Pushups", goal=50, unit="reps")
        tracked = await service.track_by_name("pushups", 20)
        assert tracked.id == habit.id
        assert tracked.logs[0].value == 20

    @pytest.mark.asyncio
    async def test_track_unknown_name(self, service):
        assert await service.track_by_name("Yoga", 1) is None


class TestListAndDelete:
    @pytest.mark.asyncio
    async def test_list_in_creation_order(self, service):
        for name in ("B", "A", "C"):
            await service.create_habit(name)
        assert [h.name for h in await service.list_habits()] == ["B", "A", "C"]

    @pytest.mark.asyncio
    async def test_delete(self, service):
        habit = await service.create_habit("Run")
        assert await service.delete_habit(habit.id) is True
        assert await service.list_habits() == []
