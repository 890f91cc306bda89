"""User persistence and login against the remote ``dto_users`` table."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Protocol

from utils.supabase_store import USERS_TABLE, StoreError, TableStore, get_store

from .profiles import ROLE_USER, UserProfile

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MSG = "Kullanıcı adı veya şifre hatalı."
CONNECTION_ERROR_PREFIX = "Bağlantı hatası: "


class UserRepository(Protocol):
    """Abstraction for user persistence operations."""

    def get_by_credentials(self, *, username: str, password: str) -> UserProfile:
        raise NotImplementedError

    def get_by_id(self, user_id: str) -> UserProfile:
        raise NotImplementedError

    def list_all(self) -> List[UserProfile]:
        raise NotImplementedError

    def create(self, *, username: str, password: str, full_name: str) -> UserProfile:
        raise NotImplementedError

    def update_profile(self, profile: UserProfile) -> None:
        raise NotImplementedError

    def delete(self, user_id: str) -> None:
        raise NotImplementedError


class StoreUserRepository:
    """Concrete repository backed by the Supabase table gateway."""

    def __init__(self, store: Optional[TableStore] = None):
        self._store = store

    @property
    def store(self) -> TableStore:
        return self._store or get_store()

    def get_by_credentials(self, *, username: str, password: str) -> UserProfile:
        row = self.store.select_one(USERS_TABLE, filters={"username": username, "password": password})
        return UserProfile.from_record(row)

    def get_by_id(self, user_id: str) -> UserProfile:
        return UserProfile.from_record(self.store.select_one(USERS_TABLE, filters={"id": user_id}))

    def list_all(self) -> List[UserProfile]:
        rows = self.store.select(USERS_TABLE, order_by="created_at", descending=True)
        return [UserProfile.from_record(r, include_password=True) for r in rows]

    def create(self, *, username: str, password: str, full_name: str) -> UserProfile:
        row = self.store.insert(
            USERS_TABLE,
            {"username": username, "password": password, "role": ROLE_USER, "full_name": full_name},
        )
        return UserProfile.from_record(row, include_password=True)

    def update_profile(self, profile: UserProfile) -> None:
        values = profile.to_update()
        values["updated_at"] = datetime.now(timezone.utc).isoformat()
        self.store.update(USERS_TABLE, values, filters={"id": profile.id})

    def delete(self, user_id: str) -> None:
        self.store.delete(USERS_TABLE, filters={"id": user_id})


@dataclass(frozen=True)
class LoginResult:
    """Value object describing the outcome of a login attempt."""

    success: bool
    profile: Optional[UserProfile] = None
    error: Optional[str] = None
    status: int = 200


def login_user(username: str, password: str, *, users: Optional[UserRepository] = None) -> LoginResult:
    users = users or StoreUserRepository()
    logger.info("Login attempt for: %s", username)
    try:
        profile = users.get_by_credentials(username=username, password=password)
    except StoreError as e:
        if e.is_not_found:
            return LoginResult(success=False, error=INVALID_CREDENTIALS_MSG, status=401)
        logger.error("Store login error for %s: %s", username, e)
        return LoginResult(success=False, error=CONNECTION_ERROR_PREFIX + e.message, status=502)
    return LoginResult(success=True, profile=profile)
