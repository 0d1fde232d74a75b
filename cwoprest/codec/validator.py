"""Sanity checks for APRS weather packets before they are relayed.

The checks run in a fixed order and stop at the first failure.  Length,
header case and the shape of the time and position fields are structural
(a malformed packet); a stale timestamp or an impossible position is
semantic (the packet parses but cannot be accepted).
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from cwoprest.clock import utc_now
from cwoprest.errors import PacketFormatError, PacketSemanticError
from cwoprest.models.packet import ValidationReason, ValidationResult

MIN_PACKET_LENGTH = 53
FRESHNESS_WINDOW = timedelta(minutes=5)

TIME_PATTERN = re.compile(r"(0[1-9]|[12][0-9]|3[01])([01][0-9]|2[0-3])([0-5][0-9])")
LOCATION_PATTERN = re.compile(
    r"(\d{2})(\d{2}\.\d{2})([NS])/(\d{3})(\d{2}\.\d{2})([EW])"
)


def station_id_from_packet(packet: str) -> str:
    """Return the source callsign, i.e. everything before the first ``>``."""
    return packet.split(">", 1)[0]


def _between(packet: str, start: str, end: str) -> str:
    """Text after the first ``start`` and before the last ``end``."""
    first = packet.find(start)
    last = packet.rfind(end)
    if first < 0 or last <= first:
        return ""
    return packet[first + 1 : last]


def packet_instant(day: int, hour: int, minute: int, now: datetime) -> datetime:
    """Place a ``DDHHMM`` timestamp in the month of ``now``.

    A day past the end of the current month rolls over into the next one,
    and a packet stamped late last month lands in this month.  Either way
    the result is far from ``now`` and fails the freshness check.
    """
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return month_start + timedelta(days=day - 1, hours=hour, minutes=minute)


def decode_position(text: str) -> Optional[Tuple[float, float]]:
    """Decode exactly ``DDMM.MMN/DDDMM.MMW`` into signed decimal degrees."""
    match = LOCATION_PATTERN.fullmatch(text)
    if not match:
        return None
    lat_deg, lat_min, ns, lon_deg, lon_min, ew = match.groups()
    latitude = int(lat_deg) + float(lat_min) / 60
    longitude = int(lon_deg) + float(lon_min) / 60
    if ns == "S":
        latitude = -latitude
    if ew == "W":
        longitude = -longitude
    return latitude, longitude


def validate_packet(packet: object, now: Optional[datetime] = None) -> ValidationResult:
    """Check ``packet`` and report the first problem found, if any.

    ``now`` defaults to the current UTC time; naive values are taken as UTC.
    """
    if now is None:
        now = utc_now()
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    if not isinstance(packet, str) or len(packet) < MIN_PACKET_LENGTH:
        return ValidationResult.rejected(ValidationReason.PACKET_MISSING)

    header = station_id_from_packet(packet)
    if header != header.upper():
        return ValidationResult.rejected(ValidationReason.HEADER_NOT_UPPERCASE)

    time_match = TIME_PATTERN.fullmatch(_between(packet, "@", "z"))
    if not time_match:
        return ValidationResult.rejected(ValidationReason.TIMESTAMP_MALFORMED)

    day, hour, minute = (int(part) for part in time_match.groups())
    if abs(now - packet_instant(day, hour, minute, now)) > FRESHNESS_WINDOW:
        return ValidationResult.rejected(ValidationReason.TIMESTAMP_STALE)

    position = decode_position(_between(packet, "z", "_"))
    if position is None:
        return ValidationResult.rejected(ValidationReason.LOCATION_MALFORMED)

    latitude, longitude = position
    if not -90 <= latitude <= 90:
        return ValidationResult.rejected(ValidationReason.LATITUDE_OUT_OF_RANGE)
    if not -180 <= longitude <= 180:
        return ValidationResult.rejected(ValidationReason.LONGITUDE_OUT_OF_RANGE)

    return ValidationResult.ok()


def ensure_valid_packet(packet: object, now: Optional[datetime] = None) -> None:
    """Raise the matching :class:`PacketError` if ``packet`` is not valid."""
    result = validate_packet(packet, now)
    if result.valid:
        return
    reason = result.reason
    error = PacketSemanticError if reason.is_semantic else PacketFormatError
    raise error(reason.message, reason=reason.value)
