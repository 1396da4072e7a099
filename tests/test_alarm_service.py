"""Tests for lifely.core.alarm_service — AlarmService."""

import pytest

from lifely.core.alarm_service import AlarmService
from lifely.data.models import ValidationError


@pytest.fixture
def service(store, clock):
    return AlarmService(store, clock=clock)


class TestCreateAlarm:
    @pytest.mark.asyncio
    async def test_create_persists(self, service, clock):
        alarm = await service.create_alarm("7:30", " Wake up ")
        assert alarm.time == "07:30"
        assert alarm.label == "Wake up"
        assert alarm.is_enabled is True
        assert alarm.created_at == clock()
        assert await service.get_alarm(alarm.id) == alarm

    @pytest.mark.asyncio
    async def test_recurring_days_sorted_and_unique(self, service):
        alarm = await service.create_alarm("06:00", "Gym", days=[5, 1, 5, 3], is_recurring=True)
        assert alarm.days == [1, 3, 5]

    @pytest.mark.asyncio
    async def test_days_on_one_shot_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.create_alarm("06:00", "Gym", days=[1])

    @pytest.mark.asyncio
    async def test_day_out_of_range_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.create_alarm("06:00", "Gym", days=[7], is_recurring=True)

    @pytest.mark.asyncio
    async def test_bad_time_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.create_alarm("25:00", "Late")

    @pytest.mark.asyncio
    async def test_empty_label_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.create_alarm("08:00", "  ")


class TestUpdateAndToggle:
    @pytest.mark.asyncio
    async def test_update_revalidates(self, service):
        alarm = await service.create_alarm("08:00", "Work")
        with pytest.raises(ValidationError):
            await service.update_alarm(alarm.model_copy(update={"days": [2]}))

    @pytest.mark.asyncio
    async def test_update_bumps_updated_at(self, service, clock):
        alarm = await service.create_alarm("08:00", "Work")
        clock.advance(minutes=5)
        updated = await service.update_alarm(alarm.model_copy(update={"time": "9:00"}))
        assert updated.time == "09:00"
        assert updated.updated_at == clock()
        assert (await service.get_alarm(alarm.id)).time == "09:00"

    @pytest.mark.asyncio
    async def test_set_enabled(self, service):
        alarm = await service.create_alarm("08:00", "Work")
        toggled = await service.set_enabled(alarm.id, False)
        assert toggled.is_enabled is False
        assert (await service.get_alarm(alarm.id)).is_enabled is False

    @pytest.mark.asyncio
    async def test_set_enabled_missing(self, service):
        assert await service.set_enabled("missing", True) is None


class TestListAndDelete:
    @pytest.mark.asyncio
    async def test_list_sorted_by_time(self, service, clock):
        for time in ("21:00", "06:30", "12:00"):
            await service.create_alarm(time, "x")
            clock.advance(minutes=1)
        assert [a.time for a in await service.list_alarms()] == ["06:30", "12:00", "21:00"]

    @pytest.mark.asyncio
    async def test_delete(self, service):
        alarm = await service.create_alarm("08:00", "Work")
        assert await service.delete_alarm(alarm.id) is True
        assert await service.delete_alarm(alarm.id) is False
        assert await service.list_alarms() == []
