"""Service layer for the user_settings app."""

from .profiles import ProfileService, ProfileUpdateResult

__all__ = [
    "ProfileService",
    "ProfileUpdateResult",
]
