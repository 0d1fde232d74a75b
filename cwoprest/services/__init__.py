"""Service exports."""

from .rate_limit import RateLimiter
from .relay import RelayService

__all__ = ["RateLimiter", "RelayService"]
