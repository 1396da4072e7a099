"""Collection registry: the five Lifely collections and their descriptors.

Bump a collection's `version` only together with a migration step that
rewrites its existing records; adding a new collection needs no step.
"""

from __future__ import annotations

from lifely.data.models import Alarm, ChatSession, Habit, JournalEntry, SettingRecord
from lifely.data.store import CollectionSchema

CHATS = "chats"
JOURNAL = "journal"
HABITS = "habits"
ALARMS = "alarms"
SETTINGS = "settings"

COLLECTIONS: tuple[CollectionSchema, ...] = (
    CollectionSchema(name=CHATS, model=ChatSession, index_field="updated_at"),
    CollectionSchema(name=JOURNAL, model=JournalEntry, index_field="date"),
    CollectionSchema(name=HABITS, model=Habit),
    CollectionSchema(name=ALARMS, model=Alarm),
    CollectionSchema(name=SETTINGS, model=SettingRecord),
)

# Collections wiped by "clear my data"; settings survive.
USER_DATA_COLLECTIONS: tuple[str, ...] = (CHATS, JOURNAL, HABITS, ALARMS)
