"""Per-station submission cooldown.

CWOP asks stations to report no more often than every five minutes.  The
limiter remembers the instant of each station's last submission attempt
in the injected cache (key ``id=<station>``, value epoch milliseconds) and
refuses a new one until the cooldown has passed.  The check and the write
are separate calls: the relay only records once a submission attempt has
actually been made.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from cwoprest.adapters.cache import KeyValueCache
from cwoprest.clock import Clock, from_epoch_ms, to_epoch_ms, utc_now
from cwoprest.config import COOLDOWN_SECONDS
from cwoprest.middleware.logging import log_debug, log_warning
from cwoprest.models.packet import RateLimitDecision


def cache_key(station_id: str) -> str:
    return f"id={station_id}"


class RateLimiter:
    def __init__(
        self,
        cache: KeyValueCache,
        clock: Clock = utc_now,
        cooldown_seconds: float = COOLDOWN_SECONDS,
    ) -> None:
        self.cache = cache
        self.clock = clock
        self.cooldown_seconds = cooldown_seconds

    async def last_sent(self, station_id: str) -> Optional[datetime]:
        """Return when ``station_id`` last submitted, or ``None`` if unknown."""
        raw = await self.cache.get(cache_key(station_id))
        if raw is None:
            return None
        try:
            return from_epoch_ms(float(raw))
        except (ValueError, OverflowError, OSError):
            log_warning("rate_limit_record_unreadable", station_id=station_id, value=raw)
            return None

    async def check(self, station_id: str) -> RateLimitDecision:
        last = await self.last_sent(station_id)
        if last is None:
            return RateLimitDecision(station_id=station_id, allowed=True)

        elapsed = (self.clock() - last).total_seconds()
        if elapsed < self.cooldown_seconds:
            return RateLimitDecision(
                station_id=station_id,
                allowed=False,
                last_sent=last,
                retry_after_seconds=self.cooldown_seconds - elapsed,
            )
        return RateLimitDecision(station_id=station_id, allowed=True, last_sent=last)

    async def record(self, station_id: str) -> None:
        now = self.clock()
        await self.cache.put(cache_key(station_id), str(to_epoch_ms(now)))
        log_debug("rate_limit_recorded", station_id=station_id, at=now)
