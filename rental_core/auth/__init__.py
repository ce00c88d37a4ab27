"""
Authentication module for Rental Manager.

Wraps Supabase Auth: sign up, sign in, sign out, session lookup and
session-change observers. Every record in the data layer is owned by the
UserIdentity returned here.
"""

from .session_manager import (
    SessionManager,
    UserIdentity,
    SignUpResult,
)

__all__ = [
    "SessionManager",
    "UserIdentity",
    "SignUpResult",
]
