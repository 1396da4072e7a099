"""
Lifely — Settings Service.

Per-user preferences stored one record per setting name in the settings
collection. Readers always get a complete UserSettings: persisted values are
merged over the defaults, so a partially written or older settings
collection still loads.

Also owns the data-management actions of the settings panel: wiping user
data and exporting every collection.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from lifely.data.models import SettingRecord, ValidationError
from lifely.data.schema import SETTINGS, USER_DATA_COLLECTIONS
from lifely.data.store import EntityStore

logger = logging.getLogger(__name__)

_TRUE_WORDS = {"on", "true", "yes", "1"}
_FALSE_WORDS = {"off", "false", "no", "0"}


class UserSettings(BaseModel):
    """Every user preference with its default."""

    # Voice
    voice_input: bool = True
    voice_output: bool = True
    voice_rate: float = 1.0
    voice_pitch: float = 1.0

    # Local LLM (Ollama)
    use_local_llm: bool = False
    llm_endpoint: str = "http://localhost:11434"
    llm_model: str = "llama2"

    # Features
    enable_web_search: bool = True
    enable_notifications: bool = True

    # Data
    auto_backup: bool = False
    backup_interval: Literal["daily", "weekly", "monthly"] = "weekly"

    # Privacy
    enable_telemetry: bool = False
    store_data_locally: bool = True


def _coerce(name: str, raw_value: str) -> Any:
    """Convert a user-typed string to the type of setting `name`."""
    field_info = UserSettings.model_fields[name]
    raw = raw_value.strip()
    if field_info.annotation is bool:
        word = raw.lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        raise ValidationError(f"'{name}' expects on/off, got {raw_value!r}")
    try:
        return TypeAdapter(field_info.annotation).validate_python(raw)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid value for '{name}': {raw_value!r}") from exc


class SettingsService:
    """Load, save and update user settings; wipe and export user data."""

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    async def load_settings(self) -> UserSettings:
        """Defaults, overridden by every valid persisted value."""
        records: list[SettingRecord] = await self._store.get_all(SETTINGS)
        values: dict[str, Any] = {}
        for record in records:
            if record.id not in UserSettings.model_fields:
                logger.warning("Ignoring unknown setting '%s'", record.id)
                continue
            try:
                UserSettings.model_validate({record.id: record.value})
            except PydanticValidationError:
                logger.warning(
                    "Invalid stored value for '%s' (%r), using default",
                    record.id, record.value,
                )
                continue
            values[record.id] = record.value
        return UserSettings.model_validate(values)

    async def save_settings(self, user_settings: UserSettings) -> None:
        """Persist every field, one record per setting."""
        for name, value in user_settings.model_dump(mode="json").items():
            await self._store.put(SETTINGS, SettingRecord(id=name, value=value))
        logger.info("Settings saved")

    async def update_setting(self, name: str, raw_value: str) -> UserSettings:
        """Change one setting from its textual form and return the new settings."""
        if name not in UserSettings.model_fields:
            raise ValidationError(f"Unknown setting: {name}")
        value = _coerce(name, raw_value)
        # Validate in context so Literal choices are enforced
        try:
            UserSettings.model_validate({name: value})
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid value for '{name}': {raw_value!r}") from exc

        await self._store.put(SETTINGS, SettingRecord(id=name, value=value))
        logger.info("Setting '%s' set to %r", name, value)
        return await self.load_settings()

    async def wipe_user_data(self) -> None:
        """Clear chats, journal, habits and alarms. Settings are kept."""
        for collection in USER_DATA_COLLECTIONS:
            await self._store.clear(collection)
        logger.info("User data wiped (%s)", ", ".join(USER_DATA_COLLECTIONS))

    async def export_data(self) -> dict[str, list[dict[str, Any]]]:
        """JSON-serializable snapshot of every collection."""
        snapshot: dict[str, list[dict[str, Any]]] = {}
        for collection in self._store.collections:
            records = await self._store.get_all(collection)
            snapshot[collection] = [r.model_dump(mode="json") for r in records]
        logger.info(
            "Exported %d records",
            sum(len(records) for records in snapshot.values()),
        )
        return snapshot
