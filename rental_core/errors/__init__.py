# =============================================================================
# rental_core/errors/__init__.py
# Centralized Error Handling for Rental Manager
# =============================================================================

from .exceptions import (
    RentalManagerError,
    AuthError,
    RemoteStoreError,
    LocalStoreError,
    CorruptLocalStateError,
    DataValidationError,
    ConfigurationError,
)

from .handlers import (
    handle_error,
    user_message_for,
    ErrorContext,
    error_boundary,
)

__all__ = [
    # Exceptions
    "RentalManagerError",
    "AuthError",
    "RemoteStoreError",
    "LocalStoreError",
    "CorruptLocalStateError",
    "DataValidationError",
    "ConfigurationError",
    # Handlers
    "handle_error",
    "user_message_for",
    "ErrorContext",
    "error_boundary",
]
