"""Telegram notification adapter — implements NotificationPort.

Wraps a telegram.Bot so alarm ringing can push messages to a chat.
"""

from __future__ import annotations

import logging

from telegram import Bot

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Telegram implementation of NotificationPort."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def notify(self, recipient_id: int, text: str) -> None:
        await self._bot.send_message(chat_id=recipient_id, text=text)
        logger.debug("Notification sent to %s", recipient_id)
