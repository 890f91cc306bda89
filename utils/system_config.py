"""SystemConfig key/value records kept in the ``dto_config`` table."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .supabase_store import CONFIG_TABLE, StoreError, TableStore, get_store

GEMINI_API_KEY = "gemini_api_key"


@dataclass(frozen=True)
class SystemConfig:
    key: str
    value: str


class ConfigRepository:
    def __init__(self, store: Optional[TableStore] = None):
        self._store = store

    @property
    def store(self) -> TableStore:
        return self._store or get_store()

    def get(self, key: str) -> Optional[SystemConfig]:
        try:
            row = self.store.select_one(CONFIG_TABLE, filters={"key": key})
        except StoreError as e:
            if e.is_not_found:
                return None
            raise
        return SystemConfig(key=row["key"], value=row.get("value") or "")

    def set(self, key: str, value: str) -> SystemConfig:
        row = self.store.upsert(CONFIG_TABLE, {"key": key, "value": value})
        return SystemConfig(key=row.get("key", key), value=row.get("value", value))
