"""Profile update service adhering to SOLID principles."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from authentication.profiles import UserProfile
from authentication.services import StoreUserRepository, UserRepository
from utils.supabase_store import StoreError

from ..monitoring import track_service_operation

logger = logging.getLogger(__name__)

SAVE_FAILED_ALERT = "Profil kaydedilemedi: {error}"


@dataclass(frozen=True)
class ProfileUpdateResult:
    """Value object describing the result of a profile save."""

    success: bool
    message: str
    profile: UserProfile
    alert: Optional[str] = None


class ProfileService:
    """
    Applies client edits to a profile and writes them to the users table.
    The caller refreshes its local snapshot with ``result.profile`` whether or
    not the remote write succeeded.
    """

    def __init__(self, *, user_repository: Optional[UserRepository] = None) -> None:
        self._users = user_repository or StoreUserRepository()

    @track_service_operation("profile_update")
    def update_profile(self, *, profile: UserProfile, changes: dict) -> ProfileUpdateResult:
        updated = profile.with_changes(**changes)
        try:
            self._users.update_profile(updated)
        except StoreError as e:
            logger.warning("profile_save_failed user=%s category=%s err=%s",
                           profile.username, e.category.value, e)
            return ProfileUpdateResult(
                success=False,
                message="Profile kept locally",
                profile=updated,
                alert=SAVE_FAILED_ALERT.format(error=e.message),
            )
        return ProfileUpdateResult(success=True, message="Profile updated successfully", profile=updated)

    def load_profile(self, *, profile: UserProfile) -> UserProfile:
        """Latest stored profile; the given snapshot when the store is unreachable."""
        try:
            return self._users.get_by_id(profile.id)
        except StoreError as e:
            logger.warning("profile_load_failed user=%s category=%s err=%s",
                           profile.username, e.category.value, e)
            return profile
