"""
Metrics Registry - Errors.

Exception hierarchy:

MetricsError (generic, message-carrying)
├── DescriptorError
├── RegistrationError
│   ├── DuplicateDescriptorError
│   ├── InconsistentDescriptorError
│   ├── DuplicateInCollectorError
│   ├── AlreadyRegisteredError
│   └── NotRegisteredError
└── MalformedFamilyError

Every error is raised synchronously to the caller and never retried here.
A failed register leaves the registry untouched; a failed encode leaves the
sink untouched.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from metrics_registry.models import MetricFamily


class MetricsError(Exception):
    """Base error; also used directly for conditions without a dedicated type."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DescriptorError(MetricsError):
    """Raised when a descriptor cannot be built from the given options."""
    pass


class RegistrationError(MetricsError):
    """Raised when the registry rejects a register or unregister call."""
    pass


class DuplicateDescriptorError(RegistrationError):
    """Same fully-qualified name and const label values already registered."""
    pass


class InconsistentDescriptorError(RegistrationError):
    """Same fully-qualified name registered with other label names or help."""
    pass


class DuplicateInCollectorError(RegistrationError):
    """One collector exposes the same descriptor twice."""
    pass


class AlreadyRegisteredError(RegistrationError):
    """
    A collector with the same set of descriptors is already registered.

    Attributes:
        existing: The collector that holds the registration
    """

    def __init__(self, message: str, existing: Any = None):
        super().__init__(message)
        self.existing = existing


class NotRegisteredError(RegistrationError):
    """No registered collector matches the given descriptors."""
    pass


class MalformedReason(str, Enum):
    """Why a metric family cannot be encoded."""
    MISSING_NAME = "missing_name"
    NO_METRICS = "no_metrics"


class MalformedFamilyError(MetricsError):
    """
    Raised by encoders before any output when a family is structurally invalid.

    Attributes:
        reason: Which precondition failed
        family: The offending family
    """

    def __init__(self, reason: MalformedReason, family: Optional["MetricFamily"] = None):
        if reason is MalformedReason.NO_METRICS:
            name = family.name if family is not None else ""
            message = f"MetricFamily has no metrics: {name!r}"
        else:
            message = "MetricFamily has no name"
        super().__init__(message)
        self.reason = reason
        self.family = family
