"""
Lifely — Alarm Ringer.

Called periodically by the front end's job queue. Finds the alarms due in
the current minute, pushes a notification for each to every recipient, and
switches off one-shot alarms once they have rung.

Provider-agnostic: depends on the NotificationPort protocol only.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Iterable

from lifely.core.alarm_schedule import is_due

if TYPE_CHECKING:
    from lifely.core.alarm_service import AlarmService
    from lifely.core.settings_service import UserSettings
    from lifely.data.models import Alarm
    from lifely.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)


def _minute_key(now: datetime) -> str:
    return now.strftime("%Y-%m-%d %H:%M")


def format_alarm_message(alarm: Alarm) -> str:
    return f"⏰ Alarm {alarm.time}: {alarm.label}"


async def ring_due_alarms(
    alarms: AlarmService,
    notifier: NotificationPort,
    recipients: Iterable[int],
    now: datetime,
    rung: dict[str, str],
    user_settings: UserSettings | None = None,
) -> list[Alarm]:
    """Ring every alarm due at `now` and return the ones that rang.

    `now` is in the user's local time zone. An alarm rings at most once per
    minute even if the job runs more often. With notifications disabled the
    alarms are still marked as rung (and one-shots disabled), but nothing
    is sent.

    `rung` maps alarm id to the minute it last rang ("YYYY-MM-DD HH:MM").
    The caller owns it, one per application.
    """
    minute = _minute_key(now)
    recipients = list(recipients)
    notify = user_settings is None or user_settings.enable_notifications

    due = [
        a for a in await alarms.list_alarms()
        if is_due(a, now) and rung.get(a.id) != minute
    ]
    for alarm in due:
        rung[alarm.id] = minute
        if notify:
            for recipient in recipients:
                try:
                    await notifier.notify(recipient, format_alarm_message(alarm))
                except Exception as exc:
                    logger.error("Failed to ring alarm %s for %d: %s", alarm.id, recipient, exc)
        else:
            logger.info("Notifications disabled, alarm %s rang silently", alarm.id)

        if not alarm.is_recurring:
            await alarms.set_enabled(alarm.id, False)
        logger.info("Alarm %s '%s' rang at %s", alarm.id, alarm.label, minute)

    # Forget minutes that can no longer match
    for alarm_id in [k for k, v in rung.items() if v != minute]:
        del rung[alarm_id]
    return due
