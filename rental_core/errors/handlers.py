# =============================================================================
# rental_core/errors/handlers.py
# Turning Data-Layer Errors into Log Records and Streamlit Feedback
# =============================================================================
"""
Which errors reach the user, and how.

Auth and validation errors carry text meant for the user (Supabase's
"Invalid login credentials", "Property name is required") and are shown
as-is. Remote failures are never fatal for the layer: the write already
landed locally, so they surface as a warning. Local-store and configuration
problems are real failures.
"""

from __future__ import annotations
import functools
import traceback
from typing import Any, Callable, Dict, Optional, TypeVar

import streamlit as st

from rental_core.logging import get_logger
from .exceptions import (
    AuthError,
    ConfigurationError,
    CorruptLocalStateError,
    DataValidationError,
    LocalStoreError,
    RemoteStoreError,
    RentalManagerError,
)

logger = get_logger(__name__)

T = TypeVar("T")

OFFLINE_MESSAGE = "Could not reach the server. Your changes are saved on this device."
CORRUPT_MESSAGE = "Some data saved on this device could not be read and was skipped."
LOCAL_MESSAGE = "Could not save to this device's storage."


def user_message_for(error: Exception) -> str:
    """Text shown to the user for an error raised by the data layer."""
    if isinstance(error, (AuthError, DataValidationError)):
        return error.message
    if isinstance(error, RemoteStoreError):
        return OFFLINE_MESSAGE
    if isinstance(error, CorruptLocalStateError):
        return CORRUPT_MESSAGE
    if isinstance(error, LocalStoreError):
        return LOCAL_MESSAGE
    if isinstance(error, ConfigurationError):
        return f"Supabase is not set up correctly: {error.message}"
    return f"Something went wrong: {error}"


def _error_details(error: Exception) -> Dict[str, Any]:
    if isinstance(error, RentalManagerError):
        return error.to_dict()
    return {"error_type": type(error).__name__, "traceback": traceback.format_exc()}


def handle_error(
    error: Exception,
    show_user_message: bool = True,
    user_message: Optional[str] = None,
) -> None:
    """
    Log an error and, optionally, tell the user about it.

    Args:
        error: The exception to handle
        show_user_message: Whether to display it in the page
        user_message: Overrides the default text from user_message_for()
    """
    details = _error_details(error)
    code = details.get("code", "UNKNOWN")

    # User mistakes and offline fallbacks are expected; no stack trace
    if isinstance(error, (AuthError, DataValidationError, RemoteStoreError)):
        logger.warning(f"[{code}] {error}")
    else:
        logger.error(f"[{code}] {error}", extra={"details": details}, exc_info=error)

    if not show_user_message:
        return

    message = user_message or user_message_for(error)
    if isinstance(error, RemoteStoreError):
        st.warning(message)
    elif isinstance(error, RentalManagerError) and not error.recoverable:
        st.error(f"{message} Check the app's Supabase settings.")
    else:
        st.error(message)

    if st.session_state.get("debug_mode", False):
        with st.expander("Error Details", expanded=False):
            st.json(details)


class ErrorContext:
    """
    Context manager for a user-triggered action.

    Errors are handled (logged and shown) on exit; recoverable ones are
    suppressed and recorded in ``error`` so the page can branch on it.

    Usage:
        with ErrorContext("Signing in", success_message="Welcome back") as ctx:
            service.sign_in(email, password)
        if ctx.failed:
            st.stop()
    """

    def __init__(
        self,
        operation: str,
        recoverable: bool = True,
        success_message: Optional[str] = None,
    ):
        self.operation = operation
        self.recoverable = recoverable
        self.success_message = success_message
        self.error: Optional[Exception] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def __enter__(self) -> ErrorContext:
        logger.debug(f"{self.operation}: started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is None:
            logger.info(f"{self.operation}: done")
            if self.success_message:
                st.success(self.success_message)
            return False

        if not issubclass(exc_type, Exception):
            return False

        self.error = exc_val
        handle_error(exc_val)
        return self.recoverable


def error_boundary(
    default_return: Any = None,
    error_message: Optional[str] = None,
):
    """
    Decorator for page-level helpers: handle any error, return a default.

    Usage:
        @error_boundary(default_return=None, error_message="Could not restore your session")
        def restore_session() -> Optional[str]:
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., Optional[T]]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Optional[T]:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in {func.__name__}: {e}")
                handle_error(e, user_message=error_message)
                return default_return

        return wrapper

    return decorator
