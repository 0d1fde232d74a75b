"""Submission requests as received over HTTP.

A request carries either a ready-made APRS packet or the readings needed
to build one, plus an optional station passcode (``validation``) and
server override.  ``from_query`` handles GET parameters and ``from_json``
handles a parsed POST body; both raise :class:`InputError` when neither
a packet nor the full set of required readings is present.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ValidationError

from cwoprest.errors import InputError, InvalidPayload
from cwoprest.models.observation import Observation

REQUIRED_QUERY_FIELDS = (
    "id",
    "lat",
    "long",
    "time",
    "tempf",
    "windspeedmph",
    "windgustmph",
    "winddir",
)

# POST clients historically send ``windspeed``/``windgust``; either spelling
# satisfies the presence check and feeds the same reading.
REQUIRED_JSON_FIELDS = (
    "time",
    "id",
    "lat",
    "long",
    "tempf",
    ("windspeed", "windspeedmph"),
    ("windgust", "windgustmph"),
    "winddir",
)
_JSON_WIND_ALIASES = {"windspeed": "windspeedmph", "windgust": "windgustmph"}

OBSERVATION_FIELDS = frozenset(
    field.alias for field in Observation.model_fields.values() if field.alias
)

MISSING_QUERY = "Missing required packet or readings parameters"
MISSING_JSON = "Missing required packet or readings parameters in payload"


def _present(value: Any) -> bool:
    """Supplied and not blank; ``0`` counts as present."""
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def _optional_text(value: Any) -> Optional[str]:
    return str(value).strip() if _present(value) else None


def _has(fields: Mapping[str, Any], name: str | tuple) -> bool:
    names = name if isinstance(name, tuple) else (name,)
    return any(_present(fields.get(n)) for n in names)


def build_observation(fields: Mapping[str, Any]) -> Observation:
    """Validate the recognised reading fields into an :class:`Observation`."""
    data = {k: v for k, v in fields.items() if k in OBSERVATION_FIELDS and _present(v)}
    try:
        return Observation.model_validate(data)
    except ValidationError as e:
        bad = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise InputError("Invalid value for " + ", ".join(bad)) from e


class SubmissionRequest(BaseModel):
    """A packet (or observation) to relay, with optional overrides."""

    packet: Optional[str] = None
    observation: Optional[Observation] = None
    validation: Optional[str] = None
    server: Optional[str] = None

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> "SubmissionRequest":
        """Build a request from GET query parameters."""
        packet = None
        observation = None
        if _present(params.get("packet")):
            packet = params["packet"]
        elif all(_has(params, name) for name in REQUIRED_QUERY_FIELDS):
            observation = build_observation(params)
        else:
            raise InputError(MISSING_QUERY)
        return cls(
            packet=packet,
            observation=observation,
            validation=_optional_text(params.get("validation")),
            server=_optional_text(params.get("server")),
        )

    @classmethod
    def from_json(cls, body: Any) -> "SubmissionRequest":
        """Build a request from a parsed JSON body."""
        if not isinstance(body, dict):
            raise InvalidPayload("JSON payload must be an object")

        packet = None
        observation = None
        if _present(body.get("packet")):
            if not isinstance(body["packet"], str):
                raise InputError("Packet must be a string")
            packet = body["packet"]
        elif all(_has(body, name) for name in REQUIRED_JSON_FIELDS):
            fields = dict(body)
            for short, full in _JSON_WIND_ALIASES.items():
                if not _present(fields.get(full)) and _present(fields.get(short)):
                    fields[full] = fields[short]
            observation = build_observation(fields)
        else:
            raise InputError(MISSING_JSON)
        return cls(
            packet=packet,
            observation=observation,
            validation=_optional_text(body.get("validation")),
            server=_optional_text(body.get("server")),
        )
