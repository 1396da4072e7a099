"""Notification port — abstract interface for pushing messages to the user.

Alarm ringing depends on this protocol, never on a specific messaging
provider.
"""

from __future__ import annotations

from typing import Protocol


class NotificationPort(Protocol):
    """Abstract notification interface used by core modules."""

    async def notify(self, recipient_id: int, text: str) -> None: ...
