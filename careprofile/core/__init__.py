"""Core configuration, constants, and shared infrastructure."""

from careprofile.core.config import Settings, get_settings
from careprofile.core.constants import (
    DEFAULT_MAX_HISTORY_TURNS,
    PROFILE_STATUS_COMPLETED,
    PROFILE_STATUS_IN_PROGRESS,
    SESSION_STATUS_ACTIVE,
    SESSION_STATUS_COMPLETED,
)
from careprofile.core.limiter import limiter

__all__ = [
    "Settings",
    "get_settings",
    "DEFAULT_MAX_HISTORY_TURNS",
    "PROFILE_STATUS_COMPLETED",
    "PROFILE_STATUS_IN_PROGRESS",
    "SESSION_STATUS_ACTIVE",
    "SESSION_STATUS_COMPLETED",
    "limiter",
]
