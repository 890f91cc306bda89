"""
Explicit auth context.

The current-user snapshot and the per-user Gemini key override live in the
Django session. Only ``sign_in`` / ``sign_out`` / ``refresh_snapshot`` and the
override setters write them; everything else receives a frozen
``AuthContext`` built once per request by ``AuthContextMiddleware``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .profiles import UserProfile

SESSION_USER_KEY = "dto_current_user"
SESSION_API_KEY = "dto_user_api_key"


@dataclass(frozen=True)
class AuthContext:
    user: Optional[UserProfile] = None
    api_key_override: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.is_admin

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    @property
    def username(self) -> str:
        return self.user.username if self.user else "anonymous"

    @classmethod
    def anonymous(cls) -> "AuthContext":
        return cls()

    @classmethod
    def from_session(cls, session) -> "AuthContext":
        raw = session.get(SESSION_USER_KEY)
        user = None
        if isinstance(raw, dict):
            try:
                user = UserProfile.from_dict(raw)
            except (KeyError, TypeError):
                user = None
        override = (session.get(SESSION_API_KEY) or "").strip() or None
        return cls(user=user, api_key_override=override)


def sign_in(session, profile: UserProfile) -> AuthContext:
    session.cycle_key()
    session[SESSION_USER_KEY] = profile.to_dict()
    return AuthContext.from_session(session)


def sign_out(session) -> None:
    # drops the snapshot and the key override together
    session.flush()


def refresh_snapshot(session, profile: UserProfile) -> AuthContext:
    session[SESSION_USER_KEY] = profile.to_dict()
    return AuthContext.from_session(session)


def set_api_key_override(session, key: str) -> None:
    session[SESSION_API_KEY] = (key or "").strip()


def clear_api_key_override(session) -> None:
    session.pop(SESSION_API_KEY, None)
