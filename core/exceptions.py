"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the analytics engine.

- Provides a clear exception hierarchy
- Separates privacy denials from payment requirements
- Carries context for debugging and structured logging

============================================================
EXCEPTION HIERARCHY
============================================================
AnalyticsException (base)
├── ConfigurationError
├── NotFoundError
├── AccessDeniedError
│   ├── UnauthorizedError
│   └── PaymentRequiredError
├── ValidationError
├── ComputationError
└── PartialBatchFailure

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for alerting."""

    LOW = "low"
    """Expected condition, informational."""

    MEDIUM = "medium"
    """Request could not be served as asked."""

    HIGH = "high"
    """Serious issue, may impact other requests."""

    CRITICAL = "critical"
    """Engine cannot operate."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Caller can correct the request and retry."""

    TRANSIENT = "transient"
    """Temporary error, retry may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, requires intervention."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class AnalyticsException(Exception):
    """
    Base exception for all analytics engine errors.

    All exceptions carry:
    - severity: for alerting
    - context: for debugging
    - classification: for retry decisions
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_recoverable(self) -> bool:
        """Check if error is recoverable."""
        return self.classification in (
            ErrorClassification.RECOVERABLE,
            ErrorClassification.TRANSIENT,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(AnalyticsException):
    """Error in configuration."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


# ============================================================
# LOOKUP ERRORS
# ============================================================

class NotFoundError(AnalyticsException):
    """A wallet, project or user does not exist."""

    default_severity = Severity.LOW

    def __init__(self, entity: str, entity_id: Any, **kwargs):
        context = kwargs.pop("context", {})
        context["entity"] = entity
        context["entity_id"] = str(entity_id)

        super().__init__(f"{entity.capitalize()} not found: {entity_id}", context=context, **kwargs)
        self.entity = entity
        self.entity_id = entity_id


# ============================================================
# ACCESS ERRORS
# ============================================================

class AccessDeniedError(AnalyticsException):
    """Base class for privacy-driven access refusals."""

    default_severity = Severity.LOW
    status_code: int = 403

    def __init__(
        self,
        message: str,
        wallet_id: Optional[Any] = None,
        requester_id: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if wallet_id is not None:
            context["wallet_id"] = str(wallet_id)
        if requester_id is not None:
            context["requester_id"] = str(requester_id)

        super().__init__(message, context=context, **kwargs)
        self.wallet_id = wallet_id
        self.requester_id = requester_id


class UnauthorizedError(AccessDeniedError):
    """Requester may not see this wallet's data (private mode or not the owner)."""

    status_code = 403


class PaymentRequiredError(AccessDeniedError):
    """Wallet is monetizable and the requester holds no active grant."""

    status_code = 402


# ============================================================
# INPUT ERRORS
# ============================================================

class ValidationError(AnalyticsException):
    """Request arguments are invalid (window, metric, stage, mode, format)."""

    default_severity = Severity.LOW

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)[:100]

        super().__init__(message, context=context, **kwargs)
        self.field = field
        self.value = value


# ============================================================
# COMPUTATION ERRORS
# ============================================================

class ComputationError(AnalyticsException):
    """An engine failed to compute a result."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.TRANSIENT


class PartialBatchFailure(AnalyticsException):
    """
    A bulk operation finished with at least one failed wallet.

    The full per-wallet outcome list is attached as `result` so
    callers can report successes and retry failures.
    """

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.TRANSIENT

    def __init__(self, result: Any, **kwargs):
        succeeded = getattr(result, "succeeded", 0)
        failed = getattr(result, "failed", 0)

        context = kwargs.pop("context", {})
        context["succeeded"] = succeeded
        context["failed"] = failed

        super().__init__(
            f"Batch finished with {failed} failed and {succeeded} succeeded wallets",
            context=context,
            **kwargs,
        )
        self.result = result
