"""Models describing packet validation, rate limiting and submissions."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ValidationReason(str, Enum):
    """Why a packet was rejected, in the order the checks run."""

    PACKET_MISSING = "packet_missing"
    HEADER_NOT_UPPERCASE = "header_not_uppercase"
    TIMESTAMP_MALFORMED = "timestamp_malformed"
    TIMESTAMP_STALE = "timestamp_stale"
    LOCATION_MALFORMED = "location_malformed"
    LATITUDE_OUT_OF_RANGE = "latitude_out_of_range"
    LONGITUDE_OUT_OF_RANGE = "longitude_out_of_range"

    @property
    def message(self) -> str:
        return _MESSAGES[self]

    @property
    def is_semantic(self) -> bool:
        """True when the packet parsed but its values are unacceptable."""
        return self in _SEMANTIC


_MESSAGES = {
    ValidationReason.PACKET_MISSING: "Invalid or missing packet",
    ValidationReason.HEADER_NOT_UPPERCASE: "Packet header must be all uppercase",
    ValidationReason.TIMESTAMP_MALFORMED: "Invalid time in packet",
    ValidationReason.TIMESTAMP_STALE: "Timestamp in packet is not within 5 minutes of now",
    ValidationReason.LOCATION_MALFORMED: "Invalid location data in packet",
    ValidationReason.LATITUDE_OUT_OF_RANGE: "Invalid latitude in packet",
    ValidationReason.LONGITUDE_OUT_OF_RANGE: "Invalid longitude in packet",
}

_SEMANTIC = frozenset(
    {
        ValidationReason.TIMESTAMP_STALE,
        ValidationReason.LATITUDE_OUT_OF_RANGE,
        ValidationReason.LONGITUDE_OUT_OF_RANGE,
    }
)


class ValidationResult(BaseModel):
    """Outcome of validating a packet string."""

    valid: bool
    reason: Optional[ValidationReason] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def rejected(cls, reason: ValidationReason) -> "ValidationResult":
        return cls(valid=False, reason=reason, message=reason.message)


class RateLimitDecision(BaseModel):
    """Whether a station may submit now.

    ``retry_after_seconds`` is only set when the station is blocked.
    """

    station_id: str
    allowed: bool
    last_sent: Optional[datetime] = None
    retry_after_seconds: Optional[float] = None


class SubmissionAttempt(BaseModel):
    port: int
    ok: bool
    error: Optional[str] = None


class SubmissionOutcome(BaseModel):
    """What happened to a packet handed to the relay.

    ``response`` is the server's login acknowledgement line.  A simulated
    outcome never opened a socket, so it has no port, response or attempts.
    """

    packet: str
    server: str
    port: Optional[int] = None
    sent: bool = False
    simulated: bool = False
    response: Optional[str] = None
    attempts: List[SubmissionAttempt] = Field(default_factory=list)
