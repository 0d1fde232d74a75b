"""Pydantic model for a single weather observation.

Field names follow Python conventions; the aliases are the parameter
names weather stations send (the Weather Underground style ``tempf``,
``windspeedmph`` and so on).  Either name may be used when building the
model.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cwoprest.clock import from_epoch_ms


class Observation(BaseModel):
    """Normalized weather observation ready to be encoded as APRS.

    Units are the ones CWOP expects: Fahrenheit, miles per hour, inches
    of rain, millibars and W/m².  ``timestamp`` is always an aware UTC
    datetime; numeric input is read as epoch milliseconds.
    """

    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    station_id: str = Field(alias="id", min_length=1)
    latitude: float = Field(alias="lat", ge=-90, le=90)
    longitude: float = Field(alias="long", ge=-180, le=180)
    timestamp: datetime = Field(alias="time")
    temperature_f: Optional[float] = Field(None, alias="tempf")
    wind_speed_mph: Optional[float] = Field(None, alias="windspeedmph")
    wind_gust_mph: Optional[float] = Field(None, alias="windgustmph")
    wind_direction_deg: Optional[int] = Field(None, alias="winddir", ge=0, le=360)
    rain_last_hour_in: Optional[float] = Field(None, alias="rainin")
    rain_since_midnight_in: Optional[float] = Field(None, alias="dailyrainin")
    rain_last_24h_in: Optional[float] = Field(None, alias="last24hrrainin")
    humidity_pct: Optional[float] = Field(None, alias="humidity")
    # Historical parameter name, the value is in millibars.
    pressure_millibars: Optional[float] = Field(None, alias="baromin")
    solar_radiation_wm2: Optional[float] = Field(None, alias="solarradiation")

    @field_validator("wind_direction_deg", mode="before")
    @classmethod
    def _whole_degrees(cls, value: Any) -> Any:
        if isinstance(value, (str, float)):
            try:
                return int(round(float(value)))
            except OverflowError as e:
                raise ValueError(f"wind direction out of range: {value}") from e
        return value

    @field_validator("timestamp", mode="before")
    @classmethod
    def _epoch_millis(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                return value
        if isinstance(value, (int, float)):
            try:
                return from_epoch_ms(value)
            except (OverflowError, OSError) as e:
                raise ValueError(f"timestamp out of range: {value}") from e
        return value

    @field_validator("timestamp")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
