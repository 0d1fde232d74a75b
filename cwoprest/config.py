"""Runtime configuration for the relay.

Values come from environment variables so the service can be configured
the same way in a container, on a VM, or in tests.  ``Settings.from_env``
is called once by :func:`cwoprest.main.create_app`; tests build a
``Settings`` directly instead.
"""

from __future__ import annotations

import os

from pydantic import BaseModel


PRODUCTION_HOST = "send.cwop.rest"
DEFAULT_SERVER = "cwop.aprs.net"
VALIDATED_SERVER = "rotate.aprs.net"  # http://www.wxqa.com/servers2use.html
PRIMARY_PORT = 14580
FALLBACK_PORT = 23
COOLDOWN_SECONDS = 290.0  # 5 minute cooldown w/ 10 second grace


class Settings(BaseModel):
    """Relay settings, see the ``CWOP_*`` environment variables."""

    production_host: str = PRODUCTION_HOST
    default_server: str = DEFAULT_SERVER
    validated_server: str = VALIDATED_SERVER
    primary_port: int = PRIMARY_PORT
    fallback_port: int = FALLBACK_PORT
    cooldown_seconds: float = COOLDOWN_SECONDS
    connect_timeout: float = 10.0
    read_timeout: float = 10.0
    cache_ttl: float = 3600.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``os.environ``, falling back to defaults."""
        env = {
            "production_host": os.getenv("CWOP_PRODUCTION_HOST"),
            "default_server": os.getenv("CWOP_DEFAULT_SERVER"),
            "validated_server": os.getenv("CWOP_VALIDATED_SERVER"),
            "primary_port": os.getenv("CWOP_PRIMARY_PORT"),
            "fallback_port": os.getenv("CWOP_FALLBACK_PORT"),
            "cooldown_seconds": os.getenv("CWOP_COOLDOWN_SECONDS"),
            "connect_timeout": os.getenv("CWOP_CONNECT_TIMEOUT"),
            "read_timeout": os.getenv("CWOP_READ_TIMEOUT"),
            "cache_ttl": os.getenv("CWOP_CACHE_TTL"),
            "log_level": os.getenv("LOG_LEVEL"),
        }
        return cls(**{k: v for k, v in env.items() if v})
