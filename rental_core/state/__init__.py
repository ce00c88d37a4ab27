# =============================================================================
# rental_core/state/__init__.py
# =============================================================================

from .session import (
    SESSION_DEFAULTS,
    init_state,
    get_session_data_service,
    restore_session,
    sign_in_user,
    sign_up_user,
    sign_out_and_reset,
)

__all__ = [
    "SESSION_DEFAULTS",
    "init_state",
    "get_session_data_service",
    "restore_session",
    "sign_in_user",
    "sign_up_user",
    "sign_out_and_reset",
]
