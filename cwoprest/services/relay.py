"""Relay a submission request to CWOP.

``RelayService.relay`` is the whole request pipeline once HTTP parsing is
done: build the packet, validate it, enforce the station cooldown, pick a
server, send (or simulate sending) and record the attempt.
"""

from __future__ import annotations

from typing import Optional

from cwoprest.adapters.cwop import CWOPClient, select_server
from cwoprest.clock import Clock, utc_now
from cwoprest.codec import (
    encode_packet,
    ensure_valid_packet,
    station_id_from_packet,
    tag_raw_packet,
)
from cwoprest.config import Settings
from cwoprest.errors import InputError, RateLimited
from cwoprest.middleware.logging import log_info, log_warning
from cwoprest.models.packet import SubmissionOutcome
from cwoprest.models.request import MISSING_QUERY, SubmissionRequest
from cwoprest.services.rate_limit import RateLimiter


class RelayService:
    """Sequence encode, validate, rate-check, submit and record."""

    def __init__(
        self,
        client: CWOPClient,
        rate_limiter: RateLimiter,
        settings: Settings,
        clock: Clock = utc_now,
    ) -> None:
        self.client = client
        self.rate_limiter = rate_limiter
        self.settings = settings
        self.clock = clock

    def build_packet(self, request: SubmissionRequest) -> str:
        if request.packet is not None:
            return tag_raw_packet(request.packet)
        if request.observation is not None:
            return encode_packet(request.observation)
        raise InputError(MISSING_QUERY)

    def server_for(self, request: SubmissionRequest) -> str:
        return select_server(
            request.validation,
            request.server,
            default_server=self.settings.default_server,
            validated_server=self.settings.validated_server,
        )

    def is_production(self, host: Optional[str]) -> bool:
        """Only requests addressed to the production host really submit."""
        return bool(host) and host.lower() == self.settings.production_host.lower()

    async def relay(self, request: SubmissionRequest, host: Optional[str]) -> SubmissionOutcome:
        packet = self.build_packet(request)
        log_info("packet_received", packet=packet)

        ensure_valid_packet(packet, self.clock())

        station_id = station_id_from_packet(packet)
        decision = await self.rate_limiter.check(station_id)
        if not decision.allowed:
            log_warning(
                "rate_limited",
                station_id=station_id,
                retry_after_seconds=decision.retry_after_seconds,
            )
            raise RateLimited(station_id, decision.retry_after_seconds)

        server = self.server_for(request)
        if not self.is_production(host):
            log_info("packet_simulated", packet=packet, server=server, host=host)
            return SubmissionOutcome(packet=packet, server=server, simulated=True)

        outcome = await self.client.submit(packet, server, request.validation)
        await self.rate_limiter.record(station_id)
        log_info(
            "packet_sent",
            station_id=station_id,
            server=server,
            port=outcome.port,
            response=outcome.response,
        )
        return outcome
