"""
Infrastructure exceptions for Life Physics.

Purpose
-------
Define the structured exception hierarchy for infrastructure-level concerns:
configuration errors, database failures and cloud sync failures.

The progression core never raises these. Business denials (insufficient coins,
unowned avatar, unknown ids) are plain ``False`` / no-op results, and malformed
domain input raises ``DomainValidationError`` from the domain layer.

Design Notes
------------
- All infrastructure exceptions inherit from
  ``LifePhysicsInfrastructureException``.
- Each exception carries ``message``, ``details``, ``severity``,
  ``is_retryable`` and ``error_code``.
- Helper functions (``is_transient_error``, ``get_error_severity``,
  ``should_alert``) centralize common exception handling patterns.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class LifePhysicsInfrastructureException(Exception):
    """
    Base of every infrastructure failure.

    ``severity`` picks the log level when a bus listener fails;
    ``is_retryable`` tells callers whether pushing again can succeed.
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"


class ConfigurationError(LifePhysicsInfrastructureException):
    """
    Raised when a configuration key or file is invalid.

    Args:
        config_key: The configuration key (or file) that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={"config_key": config_key, "message": message},
            error_code="CONFIG_ERROR",
        )


class DatabaseError(LifePhysicsInfrastructureException):
    """
    Raised when a database operation of the sync store fails.

    Args:
        operation: Description of the database operation that failed
        original_error: The underlying database exception
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, original_error: Exception) -> None:
        self.operation = operation
        self.original_error = original_error
        super().__init__(
            f"Database error during {operation}: {original_error}",
            details={
                "operation": operation,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="DATABASE_ERROR",
        )


class SyncError(LifePhysicsInfrastructureException):
    """
    Raised when cloud sync cannot run (not configured, or a payload is malformed).

    Args:
        user_id: The user whose state was being synced
        reason: What went wrong
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, user_id: str, reason: str) -> None:
        self.user_id = user_id
        super().__init__(
            f"Sync failed for {user_id}: {reason}",
            details={"user_id": user_id, "reason": reason},
            error_code="SYNC_ERROR",
        )


class UserNotFoundError(LifePhysicsInfrastructureException):
    """
    Raised when a signed-in user has no row in the sync store.

    Users are created on first sign-in, so a missing row after that points at
    data loss or a wrong identity.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(
            f"User not found: {user_id}",
            details={"user_id": user_id},
            error_code="USER_NOT_FOUND",
        )


# ============================================================================
# Helpers
# ============================================================================


def is_transient_error(error: Exception) -> bool:
    """Whether retrying the failed operation can reasonably succeed."""
    if isinstance(error, LifePhysicsInfrastructureException):
        return error.is_retryable
    return False


def get_error_severity(error: Exception) -> ErrorSeverity:
    if isinstance(error, LifePhysicsInfrastructureException):
        return error.severity
    return ErrorSeverity.ERROR


def should_alert(error: Exception) -> bool:
    """Only ERROR and CRITICAL infrastructure failures page a human."""
    return get_error_severity(error) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
