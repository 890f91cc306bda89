"""
Thin gateway over the Supabase table client.

This is the only module that talks to ``supabase.Client`` directly. Every
call goes through ``_run`` so that client failures surface as ``StoreError``
carrying an ``ErrorCategory``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from django.conf import settings
from supabase import Client, create_client

from .errors import ErrorCategory, classify_error, error_message

logger = logging.getLogger(__name__)

USERS_TABLE = "dto_users"
SESSIONS_TABLE = "dto_chat_sessions"
CONFIG_TABLE = "dto_config"


class StoreError(RuntimeError):
    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.UNKNOWN):
        super().__init__(message)
        self.message = message
        self.category = category

    @property
    def is_not_found(self) -> bool:
        return self.category == ErrorCategory.NOT_FOUND


def _apply_filters(query, filters: Optional[Mapping[str, Any]]):
    for column, value in (filters or {}).items():
        query = query.eq(column, value)
    return query


class TableStore:
    """Row-based access to the hosted tables (select / insert / update / upsert / delete)."""

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            url = getattr(settings, "SUPABASE_URL", None)
            key = getattr(settings, "SUPABASE_KEY", None)
            if not (url and key):
                raise StoreError("SUPABASE_URL / SUPABASE_KEY missing", ErrorCategory.AUTH)
            try:
                self._client = create_client(url, key)
            except Exception as e:
                raise StoreError(f"supabase_config_error: {e}", ErrorCategory.UNAVAILABLE) from e
        return self._client

    def _run(self, op: str, table: str, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except StoreError:
            raise
        except Exception as e:
            category = classify_error(e)
            logger.warning("store_%s_failed table=%s category=%s err=%s", op, table, category.value, e)
            raise StoreError(error_message(e), category) from e

    def select(
        self,
        table: str,
        *,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        columns: str = "*",
    ) -> List[Dict[str, Any]]:
        def _call():
            query = _apply_filters(self.client.table(table).select(columns), filters)
            if order_by:
                query = query.order(order_by, desc=descending)
            return query.execute()

        res = self._run("select", table, _call)
        return list(getattr(res, "data", None) or [])

    def select_one(self, table: str, *, filters: Mapping[str, Any], columns: str = "*") -> Dict[str, Any]:
        """Single row or ``StoreError(NOT_FOUND)``."""

        def _call():
            query = _apply_filters(self.client.table(table).select(columns), filters)
            return query.limit(1).execute()

        res = self._run("select", table, _call)
        rows = getattr(res, "data", None) or []
        if not rows:
            raise StoreError(f"no row in {table} for {dict(filters)}", ErrorCategory.NOT_FOUND)
        return rows[0]

    def insert(self, table: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        res = self._run("insert", table, lambda: self.client.table(table).insert(dict(payload)).execute())
        rows = getattr(res, "data", None) or []
        return rows[0] if rows else {}

    def update(self, table: str, values: Mapping[str, Any], *, filters: Mapping[str, Any]) -> List[Dict[str, Any]]:
        def _call():
            return _apply_filters(self.client.table(table).update(dict(values)), filters).execute()

        res = self._run("update", table, _call)
        return list(getattr(res, "data", None) or [])

    def upsert(self, table: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """Upsert one row and return the stored representation (with its id)."""
        res = self._run("upsert", table, lambda: self.client.table(table).upsert(dict(payload)).execute())
        rows = getattr(res, "data", None) or []
        if not rows:
            raise StoreError(f"upsert into {table} returned no row", ErrorCategory.UNKNOWN)
        return rows[0]

    def delete(self, table: str, *, filters: Mapping[str, Any]) -> List[Dict[str, Any]]:
        if not filters:
            # an unfiltered delete would wipe the table
            raise ValueError("delete requires at least one filter")

        def _call():
            return _apply_filters(self.client.table(table).delete(), filters).execute()

        res = self._run("delete", table, _call)
        return list(getattr(res, "data", None) or [])


_store: Optional[TableStore] = None


def get_store() -> TableStore:
    """Process-wide gateway, created lazily."""
    global _store
    if _store is None:
        _store = TableStore()
    return _store


def set_store(store: Optional[TableStore]) -> None:
    """Swap the process-wide gateway (used by tests)."""
    global _store
    _store = store
