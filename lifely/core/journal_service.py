"""
Lifely — Journal Service.

Journal entry CRUD and search on top of the Entity Store. Entries are
listed newest first by their entry date (the collection's secondary index).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable

from lifely.data.models import JournalEntry, ValidationError, utcnow
from lifely.data.schema import JOURNAL
from lifely.data.store import EntityStore

logger = logging.getLogger(__name__)


def _validate(title: str, content: str) -> tuple[str, str]:
    title, content = title.strip(), content.strip()
    if not title or not content:
        raise ValidationError("Journal entries need a title and content")
    return title, content


class JournalService:
    """Journal storage, listing and search."""

    def __init__(
        self, store: EntityStore, clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._clock = clock

    async def create_entry(
        self,
        title: str,
        content: str,
        date: datetime | None = None,
        tags: Iterable[str] = (),
    ) -> JournalEntry:
        title, content = _validate(title, content)
        now = self._clock()
        entry = JournalEntry(
            title=title,
            content=content,
            date=date or now,
            tags=list(tags),
            created_at=now,
            updated_at=now,
        )
        await self._store.add(JOURNAL, entry)
        logger.info("Journal entry created: %s '%s'", entry.id, title)
        return entry

    async def update_entry(self, entry: JournalEntry) -> JournalEntry:
        title, content = _validate(entry.title, entry.content)
        updated = entry.model_copy(update={
            "title": title,
            "content": content,
            "updated_at": self._clock(),
        })
        # Re-validate so tag normalization applies to edited tag lists
        updated = JournalEntry.model_validate(updated.model_dump())
        await self._store.put(JOURNAL, updated)
        logger.info("Journal entry updated: %s", updated.id)
        return updated

    async def get_entry(self, entry_id: str) -> JournalEntry | None:
        return await self._store.get(JOURNAL, entry_id)

    async def delete_entry(self, entry_id: str) -> bool:
        deleted = await self._store.delete(JOURNAL, entry_id)
        if deleted:
            logger.info("Journal entry %s deleted", entry_id)
        return deleted

    async def list_entries(self) -> list[JournalEntry]:
        """All entries, newest entry date first."""
        entries = await self._store.get_all(JOURNAL)
        entries.sort(key=lambda e: e.date, reverse=True)
        return entries

    async def search(self, query: str) -> list[JournalEntry]:
        """Entries whose title, content or a tag contains `query` (case-insensitive)."""
        needle = query.strip().casefold()
        entries = await self.list_entries()
        if not needle:
            return entries
        return [
            e for e in entries
            if needle in e.title.casefold()
            or needle in e.content.casefold()
            or any(needle in tag.casefold() for tag in e.tags)
        ]
