"""Exceptions raised by the relay.

Every error carries the HTTP status it maps to, so the application can
turn any of them into a plain-text response with a single handler.
"""

from __future__ import annotations

from typing import Optional


class CwopRestError(Exception):
    """Base class for all user-facing relay errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputError(CwopRestError):
    """Required request fields are missing or unusable."""

    status_code = 422


class InvalidPayload(InputError):
    """The POST body could not be read as a JSON object."""

    status_code = 400


class MethodNotAllowed(CwopRestError):
    status_code = 405


class PacketError(CwopRestError):
    """A packet failed validation; ``reason`` names the failed check."""

    def __init__(self, message: str, reason: Optional[str] = None) -> None:
        super().__init__(message)
        self.reason = reason


class PacketFormatError(PacketError):
    """The packet is structurally malformed."""

    status_code = 400


class PacketSemanticError(PacketError):
    """The packet parses but its content is unacceptable."""

    status_code = 422


class RateLimited(CwopRestError):
    status_code = 429

    def __init__(self, station_id: str, retry_after: Optional[float] = None) -> None:
        super().__init__(f"Too many requests for {station_id}")
        self.station_id = station_id
        self.retry_after = retry_after


class TransportError(CwopRestError):
    """Connecting to, writing to, or reading from a CWOP server failed."""

    status_code = 502


class SubmissionFailed(TransportError):
    """Both the primary and the fallback port failed."""

    def __init__(self, server: str, errors: list[str]) -> None:
        super().__init__(
            f"Unable to send packet to {server}: " + "; ".join(errors)
        )
        self.server = server
        self.errors = errors
