"""User management and shared configuration for admins."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from authentication.profiles import UserProfile
from authentication.services import StoreUserRepository, UserRepository
from chat.sessions import SessionReconciler
from user_settings.monitoring import track_service_operation
from utils.system_config import ConfigRepository, SystemConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserDeletionResult:
    """Value object describing the result of a cascading user delete."""

    success: bool
    message: str


class UserAdminService:
    """
    Coordinates admin operations while keeping collaborators abstract.
    StoreError from the collaborators propagates to the caller.
    """

    def __init__(
        self,
        *,
        user_repository: Optional[UserRepository] = None,
        sessions: Optional[SessionReconciler] = None,
        config: Optional[ConfigRepository] = None,
    ) -> None:
        self._users = user_repository or StoreUserRepository()
        self._sessions = sessions or SessionReconciler()
        self._config = config or ConfigRepository()

    def list_users(self) -> List[UserProfile]:
        return self._users.list_all()

    @track_service_operation("admin_create_user")
    def create_user(self, *, username: str, password: str) -> UserProfile:
        # new accounts start with the username as display name
        return self._users.create(username=username, password=password, full_name=username)

    @track_service_operation("admin_delete_user")
    def delete_user(self, *, user_id: str) -> UserDeletionResult:
        # sessions first; the user row goes last
        self._sessions.delete_all_for_user(user_id)
        self._users.delete(user_id)
        logger.info("admin_user_deleted user_id=%s", user_id)
        return UserDeletionResult(success=True, message="User and sessions deleted")

    def get_config(self, key: str) -> Optional[SystemConfig]:
        return self._config.get(key)

    @track_service_operation("admin_set_config")
    def set_config(self, key: str, value: str) -> SystemConfig:
        return self._config.set(key, value)
