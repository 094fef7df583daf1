"""Shared API constants."""

# Bounded-history window when settings do not override it
DEFAULT_MAX_HISTORY_TURNS = 20

PROFILE_STATUS_IN_PROGRESS = "in_progress"
PROFILE_STATUS_COMPLETED = "completed"
PROFILE_STATUSES = frozenset({PROFILE_STATUS_IN_PROGRESS, PROFILE_STATUS_COMPLETED})

SESSION_STATUS_ACTIVE = "active"
SESSION_STATUS_COMPLETED = "completed"
SESSION_STATUSES = frozenset({SESSION_STATUS_ACTIVE, SESSION_STATUS_COMPLETED})
