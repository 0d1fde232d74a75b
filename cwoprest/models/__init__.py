"""Model exports."""

from .observation import Observation
from .packet import (
    RateLimitDecision,
    SubmissionAttempt,
    SubmissionOutcome,
    ValidationReason,
    ValidationResult,
)
from .request import SubmissionRequest

__all__ = [
    "Observation",
    "ValidationReason",
    "ValidationResult",
    "RateLimitDecision",
    "SubmissionAttempt",
    "SubmissionOutcome",
    "SubmissionRequest",
]
