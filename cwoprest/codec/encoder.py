"""Encode observations as APRS weather reports.

The layout is the "complete weather report with lat/long position and
timestamp" from the APRS 1.0.1 spec (chapter 12), as CWOP expects it::

    EW1234>APRS,TCPIP*:@161215z4903.50N/07201.75W_220/004g005t077r000h50b09900cwop.rest

Everything here is pure string formatting; callers are expected to have
checked that the required readings are present.
"""

from __future__ import annotations

import math
from typing import Optional

from cwoprest.errors import InputError
from cwoprest.models.observation import Observation

PACKET_PATH = ">APRS,TCPIP*:@"
SOFTWARE_TAG = "cwop.rest"
RAW_PACKET_TAG = "\u2014via" + SOFTWARE_TAG
MISSING = "..."

_REQUIRED = ("station_id", "timestamp", "latitude", "longitude")


def _half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(value + 0.5)


def _coordinate(value: float, degree_width: int, hemispheres: str) -> str:
    """Format degrees as ``DDMM.MM`` (or ``DDDMM.MM``) plus hemisphere.

    Minutes are truncated, never rounded, to two decimals so a position
    never rounds up to 60 minutes.
    """
    hemisphere = hemispheres[1] if value < 0 else hemispheres[0]
    value = abs(value)
    degrees = math.floor(value)
    minutes = math.floor(60 * (value % 1) * 100) / 100
    return f"{degrees:0{degree_width}d}{minutes:05.2f}{hemisphere}"


def encode_latitude(latitude: float) -> str:
    return _coordinate(latitude, 2, "NS")


def encode_longitude(longitude: float) -> str:
    return _coordinate(longitude, 3, "EW")


def _three_digits(value: Optional[int]) -> str:
    return MISSING if value is None else f"{value:03d}"


def _temperature(temperature_f: Optional[float]) -> str:
    if temperature_f is None:
        return "t" + MISSING
    if temperature_f >= 0:
        return f"t{_half_up(temperature_f):03d}"
    return f"t-{abs(math.floor(temperature_f)):02d}"


def _hundredths(prefix: str, inches: Optional[float]) -> str:
    if inches is None:
        return ""
    return f"{prefix}{_half_up(inches * 100):03d}"


def _extensions(observation: Observation) -> str:
    parts = [
        _hundredths("r", observation.rain_last_hour_in),
        _hundredths("P", observation.rain_since_midnight_in),
        _hundredths("p", observation.rain_last_24h_in),
    ]
    if observation.humidity_pct is not None:
        # 100% is sent as h00
        parts.append(f"h{_half_up(observation.humidity_pct) % 100:02d}")
    if observation.pressure_millibars is not None:
        parts.append(f"b{_half_up(observation.pressure_millibars * 10):05d}")
    if observation.solar_radiation_wm2 is not None:
        radiation = _half_up(observation.solar_radiation_wm2)
        if radiation >= 1000:
            parts.append(f"l{radiation % 1000:03d}")
        else:
            parts.append(f"L{radiation:03d}")
    return "".join(parts)


def encode_packet(observation: Observation) -> str:
    """Build the APRS packet for ``observation``."""
    missing = [name for name in _REQUIRED if getattr(observation, name, None) is None]
    if missing:
        raise InputError("Missing required readings: " + ", ".join(missing))

    when = observation.timestamp
    wind_speed = observation.wind_speed_mph
    wind_gust = observation.wind_gust_mph

    return "".join(
        [
            observation.station_id,
            PACKET_PATH,
            f"{when.day:02d}{when.hour:02d}{when.minute:02d}z",
            encode_latitude(observation.latitude),
            "/",
            encode_longitude(observation.longitude),
            "_" + _three_digits(observation.wind_direction_deg),
            "/" + _three_digits(None if wind_speed is None else math.ceil(wind_speed)),
            "g" + _three_digits(None if wind_gust is None else math.ceil(wind_gust)),
            _temperature(observation.temperature_f),
            _extensions(observation),
            SOFTWARE_TAG,
        ]
    )


def tag_raw_packet(packet: str) -> str:
    """Mark a caller-supplied packet as relayed by this service."""
    return packet + RAW_PACKET_TAG
