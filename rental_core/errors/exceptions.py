# =============================================================================
# rental_core/errors/exceptions.py
# Custom Exception Hierarchy for Rental Manager
# =============================================================================

from typing import Optional, Dict, Any


class RentalManagerError(Exception):
    """
    Base exception for all Rental Manager errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "AUTH_001")
        details: Additional context as a dictionary
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "RM_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# AUTHENTICATION EXCEPTIONS
# =============================================================================

class AuthError(RentalManagerError):
    """Raised when sign up, sign in or sign out fails"""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            code="AUTH_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# PERSISTENCE EXCEPTIONS
# =============================================================================

class RemoteStoreError(RentalManagerError):
    """Raised when a scoped query/insert/update/delete against Supabase fails"""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if table:
            details["table"] = table
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            code="REMOTE_001",
            details=details,
            **kwargs,
        )


class LocalStoreError(RentalManagerError):
    """Raised when the local SQLite store cannot be read or written"""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        code: str = "LOCAL_001",
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if key:
            details["key"] = key

        super().__init__(
            message=message,
            code=code,
            details=details,
            **kwargs,
        )


class CorruptLocalStateError(LocalStoreError):
    """Raised when a persisted snapshot is not valid JSON"""

    def __init__(self, message: str, key: Optional[str] = None, **kwargs):
        super().__init__(message=message, key=key, code="LOCAL_002", **kwargs)


# =============================================================================
# DATA EXCEPTIONS
# =============================================================================

class DataValidationError(RentalManagerError):
    """Raised when an entity fails validation checks"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[Any] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if expected:
            details["expected"] = expected
        if actual is not None:
            details["actual"] = actual

        super().__init__(
            message=message,
            code="DATA_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(RentalManagerError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )
