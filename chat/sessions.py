# chat/sessions.py
"""
Chat transcripts and their reconciliation with the remote store.

A session starts as a draft (``DraftKey``, client-style local id) and becomes
``PersistedKey`` once the store has assigned an id. Saves that fail are kept
in a per-user outbox flagged ``dirty`` and retried by ``flush``; the in-memory
state is never rolled back.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from django.core.cache import cache as default_cache
from django.utils.dateparse import parse_datetime

from utils.supabase_store import SESSIONS_TABLE, StoreError, TableStore, get_store

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Yeni Sohbet"
TITLE_MAX_CHARS = 30

ROLE_USER = "user"
ROLE_MODEL = "model"
ROLES = (ROLE_USER, ROLE_MODEL)

STATUS_DRAFT = "draft"
STATUS_PERSISTED = "persisted"


# ===== Time helpers =====

def utc_now() -> datetime:
    """Current UTC time truncated to milliseconds (the serialized precision)."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def format_timestamp(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    if isinstance(value, str) and value:
        # PostgREST trims trailing zeros, so 1 to 6 fractional digits come back
        dt = parse_datetime(value.strip())
        if dt is not None:
            return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    raise ValueError(f"unparseable timestamp: {value!r}")


def new_local_id() -> str:
    """Client-style id: epoch milliseconds plus a short random suffix."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:4]}"


# ===== Data model =====

@dataclass(frozen=True)
class ChatMessage:
    id: str
    role: str
    text: str
    timestamp: datetime

    @classmethod
    def create(cls, role: str, text: str, *, message_id: Optional[str] = None) -> "ChatMessage":
        if role not in ROLES:
            raise ValueError(f"unknown role: {role}")
        return cls(id=message_id or new_local_id(), role=role, text=text, timestamp=utc_now())

    def to_record(self) -> Dict[str, Any]:
        return {"id": self.id, "role": self.role, "text": self.text, "timestamp": format_timestamp(self.timestamp)}

    @classmethod
    def from_record(cls, rec: Mapping[str, Any], *, default_timestamp: Optional[datetime] = None) -> "ChatMessage":
        """Older rows may lack a timestamp; they take ``default_timestamp`` (or now)."""
        role = rec.get("role")
        raw = rec.get("timestamp")
        return cls(
            id=str(rec.get("id") or new_local_id()),
            role=role if role in ROLES else ROLE_USER,
            text=str(rec.get("text") or ""),
            timestamp=parse_timestamp(raw) if raw not in (None, "") else (default_timestamp or utc_now()),
        )


@dataclass(frozen=True)
class DraftKey:
    local_id: str
    status: str = field(default=STATUS_DRAFT, init=False)

    @property
    def value(self) -> str:
        return self.local_id


@dataclass(frozen=True)
class PersistedKey:
    remote_id: str
    status: str = field(default=STATUS_PERSISTED, init=False)

    @property
    def value(self) -> str:
        return self.remote_id


SessionKey = Union[DraftKey, PersistedKey]


def derive_title(current_title: str, text: str, message_count: int) -> str:
    """First user message becomes the title while the default one is in place."""
    if current_title != DEFAULT_TITLE or message_count > 1:
        return current_title
    text = text or ""
    return text[:TITLE_MAX_CHARS] + "..." if len(text) > TITLE_MAX_CHARS else text


@dataclass(frozen=True)
class ChatSession:
    key: SessionKey
    user_id: str
    title: str = DEFAULT_TITLE
    messages: Tuple[ChatMessage, ...] = ()
    last_updated: datetime = field(default_factory=utc_now)
    dirty: bool = False
    last_error: Optional[str] = None

    @classmethod
    def new(cls, user_id: str) -> "ChatSession":
        return cls(key=DraftKey(new_local_id()), user_id=user_id)

    @property
    def id(self) -> str:
        return self.key.value

    @property
    def status(self) -> str:
        return self.key.status

    @property
    def is_draft(self) -> bool:
        return isinstance(self.key, DraftKey)

    def with_message(self, message: ChatMessage) -> "ChatSession":
        return replace(self, messages=self.messages + (message,), last_updated=utc_now())

    def with_title(self, title: str) -> "ChatSession":
        return replace(self, title=title)

    def persisted_as(self, remote_id: str) -> "ChatSession":
        return replace(self, key=PersistedKey(str(remote_id)), dirty=False, last_error=None)

    def marked_dirty(self, error: str) -> "ChatSession":
        return replace(self, dirty=True, last_error=error)

    def to_record(self) -> Dict[str, Any]:
        """Upsert payload; drafts carry no id so the store assigns one."""
        payload = {
            "user_id": self.user_id,
            "title": self.title,
            "messages": [m.to_record() for m in self.messages],
            "last_updated": format_timestamp(self.last_updated),
        }
        if not self.is_draft:
            payload["id"] = self.id
        return payload

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "ChatSession":
        last = row.get("last_updated")
        last_updated = parse_timestamp(last) if last else utc_now()
        return cls(
            key=PersistedKey(str(row["id"])),
            user_id=str(row.get("user_id") or ""),
            title=row.get("title") or DEFAULT_TITLE,
            messages=tuple(
                ChatMessage.from_record(m, default_timestamp=last_updated) for m in (row.get("messages") or [])
            ),
            last_updated=last_updated,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "user_id": self.user_id,
            "title": self.title,
            "messages": [m.to_record() for m in self.messages],
            "last_updated": format_timestamp(self.last_updated),
            "dirty": self.dirty,
            "last_error": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChatSession":
        key: SessionKey
        if data.get("status") == STATUS_PERSISTED:
            key = PersistedKey(str(data["id"]))
        else:
            key = DraftKey(str(data["id"]))
        return cls(
            key=key,
            user_id=str(data.get("user_id") or ""),
            title=data.get("title") or DEFAULT_TITLE,
            messages=tuple(ChatMessage.from_record(m) for m in (data.get("messages") or [])),
            last_updated=parse_timestamp(data.get("last_updated") or utc_now()),
            dirty=bool(data.get("dirty")),
            last_error=data.get("last_error"),
        )


# ===== Repository =====

class SessionRepository:
    """Read / write / delete of session rows."""

    def __init__(self, store: Optional[TableStore] = None):
        self._store = store

    @property
    def store(self) -> TableStore:
        return self._store or get_store()

    def list_for_user(self, user_id: str) -> List[ChatSession]:
        rows = self.store.select(
            SESSIONS_TABLE, filters={"user_id": user_id}, order_by="last_updated", descending=True
        )
        return [ChatSession.from_record(r) for r in rows]

    def get(self, session_id: str, *, user_id: Optional[str] = None) -> Optional[ChatSession]:
        filters = {"id": session_id}
        if user_id is not None:
            filters["user_id"] = user_id
        try:
            row = self.store.select_one(SESSIONS_TABLE, filters=filters)
        except StoreError as e:
            if e.is_not_found:
                return None
            raise
        return ChatSession.from_record(row)

    def upsert(self, session: ChatSession) -> str:
        row = self.store.upsert(SESSIONS_TABLE, session.to_record())
        return str(row["id"])

    def delete(self, session_id: str, *, user_id: Optional[str] = None) -> None:
        filters = {"id": session_id}
        if user_id is not None:
            filters["user_id"] = user_id
        self.store.delete(SESSIONS_TABLE, filters=filters)

    def delete_for_user(self, user_id: str) -> None:
        self.store.delete(SESSIONS_TABLE, filters={"user_id": user_id})


# ===== Outbox =====

class SessionOutbox:
    """Per-user write-ahead queue of sessions whose last save failed."""

    PREFIX = "dto_outbox"
    ALIAS_PREFIX = "dto_session_alias"

    def __init__(self, backend=None, ttl: int = 7 * 24 * 3600):
        self._cache = backend or default_cache
        self.ttl = ttl

    def _key(self, user_id: str) -> str:
        return f"{self.PREFIX}:{user_id}"

    def _load(self, user_id: str) -> Dict[str, dict]:
        return dict(self._cache.get(self._key(user_id)) or {})

    def _store(self, user_id: str, entries: Dict[str, dict]) -> None:
        if entries:
            self._cache.set(self._key(user_id), entries, self.ttl)
        else:
            self._cache.delete(self._key(user_id))

    def put(self, session: ChatSession) -> None:
        entries = self._load(session.user_id)
        entries[session.id] = session.to_dict()
        self._store(session.user_id, entries)

    def get(self, user_id: str, session_id: str) -> Optional[ChatSession]:
        data = self._load(user_id).get(session_id)
        return ChatSession.from_dict(data) if data else None

    def remove(self, user_id: str, session_id: str) -> None:
        entries = self._load(user_id)
        if entries.pop(session_id, None) is not None:
            self._store(user_id, entries)

    def pending(self, user_id: str) -> List[ChatSession]:
        return [ChatSession.from_dict(d) for d in self._load(user_id).values()]

    def clear(self, user_id: str) -> None:
        self._cache.delete(self._key(user_id))

    def _alias_key(self, user_id: str, local_id: str) -> str:
        return f"{self.ALIAS_PREFIX}:{user_id}:{local_id}"

    def alias(self, user_id: str, local_id: str, remote_id: str) -> None:
        self._cache.set(self._alias_key(user_id, local_id), remote_id, self.ttl)

    def resolve(self, user_id: str, session_id: str) -> str:
        return self._cache.get(self._alias_key(user_id, session_id)) or session_id


# ===== Reconciler =====

class SessionReconciler:
    def __init__(self, repository: Optional[SessionRepository] = None, outbox: Optional[SessionOutbox] = None):
        self.repository = repository or SessionRepository()
        self.outbox = outbox or SessionOutbox()

    def save(self, session: ChatSession) -> ChatSession:
        """
        Persist and return the session keyed by its durable id. On failure the
        returned copy is dirty and parked in the outbox.
        """
        try:
            remote_id = self.repository.upsert(session)
        except StoreError as e:
            logger.warning(
                "session_save_failed id=%s status=%s category=%s err=%s",
                session.id, session.status, e.category.value, e,
            )
            dirty = session.marked_dirty(e.message)
            self.outbox.put(dirty)
            return dirty

        if session.is_draft:
            self.outbox.alias(session.user_id, session.id, remote_id)
            logger.info("session_persisted local_id=%s remote_id=%s", session.id, remote_id)
        self.outbox.remove(session.user_id, session.id)
        return session.persisted_as(remote_id)

    def flush(self, user_id: str) -> List[ChatSession]:
        """Retry every dirty session of the user; returns the outcomes."""
        results = []
        for pending in self.outbox.pending(user_id):
            results.append(self.save(pending))
        return results

    def load(self, session_id: str, user_id: str) -> Optional[ChatSession]:
        local = self.outbox.get(user_id, session_id)
        if local is not None:
            return local
        resolved = self.outbox.resolve(user_id, session_id)
        if resolved != session_id:
            local = self.outbox.get(user_id, resolved)
            if local is not None:
                return local
        return self.repository.get(resolved, user_id=user_id)

    def list(self, user_id: str) -> List[ChatSession]:
        """Remote sessions merged with whatever is still dirty locally, newest first."""
        self.flush(user_id)
        merged = {s.id: s for s in self.repository.list_for_user(user_id)}
        for pending in self.outbox.pending(user_id):
            merged[pending.id] = pending
        return sorted(merged.values(), key=lambda s: s.last_updated, reverse=True)

    def delete(self, session_id: str, user_id: str) -> None:
        resolved = self.outbox.resolve(user_id, session_id)
        local = self.outbox.get(user_id, session_id)
        self.outbox.remove(user_id, session_id)
        self.outbox.remove(user_id, resolved)
        if resolved == session_id and local is not None and local.is_draft:
            return
        self.repository.delete(resolved, user_id=user_id)

    def delete_all_for_user(self, user_id: str) -> None:
        self.repository.delete_for_user(user_id)
        self.outbox.clear(user_id)
