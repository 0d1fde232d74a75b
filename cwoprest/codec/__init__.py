"""APRS weather packet encoding and validation."""

from .encoder import encode_packet, tag_raw_packet
from .validator import ensure_valid_packet, station_id_from_packet, validate_packet

__all__ = [
    "encode_packet",
    "tag_raw_packet",
    "validate_packet",
    "ensure_valid_packet",
    "station_id_from_packet",
]
