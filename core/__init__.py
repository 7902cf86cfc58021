"""
Core Module Package.

This package contains the infrastructure every analytics
package depends on.

Components:
- clock: Testable naive-UTC time abstraction
- exceptions: Error taxonomy (not found, access, validation, batch)
- numeric: Half-up rounding and percentage helpers
- settings: Environment-driven operational settings
"""

from .clock import (
    ClockProtocol,
    SystemClock,
    MockClock,
    get_clock,
    set_clock,
    start_of_day,
    end_of_day,
    to_naive_utc,
)
from .exceptions import (
    Severity,
    ErrorClassification,
    AnalyticsException,
    ConfigurationError,
    NotFoundError,
    AccessDeniedError,
    UnauthorizedError,
    PaymentRequiredError,
    ValidationError,
    ComputationError,
    PartialBatchFailure,
)
from .numeric import round_half_up, percentage, clamp
from .settings import AnalyticsSettings, get_settings


__all__ = [
    # Clock
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "get_clock",
    "set_clock",
    "start_of_day",
    "end_of_day",
    "to_naive_utc",
    # Exceptions
    "Severity",
    "ErrorClassification",
    "AnalyticsException",
    "ConfigurationError",
    "NotFoundError",
    "AccessDeniedError",
    "UnauthorizedError",
    "PaymentRequiredError",
    "ValidationError",
    "ComputationError",
    "PartialBatchFailure",
    # Numeric
    "round_half_up",
    "percentage",
    "clamp",
    # Settings
    "AnalyticsSettings",
    "get_settings",
]
