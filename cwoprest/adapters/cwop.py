"""CWOP / APRS-IS submission client.

One submission follows the login sequence described in the CWOP FAQ
(http://www.wxqa.com/faq.html):

1. connect and read the server's greeting line,
2. send ``user <ID> pass <code> vers cwop.rest 1.0``,
3. read the login acknowledgement,
4. send the packet and close.

``CWOPClient.submit`` tries the primary port and, if that attempt fails
anywhere in the sequence, retries exactly once on the fallback port.  The
retry policy is the ``TRANSITIONS`` table below.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Dict, List, Optional, Tuple

from cwoprest import __version__
from cwoprest.adapters.transport import Connection, Transport
from cwoprest.codec.encoder import SOFTWARE_TAG
from cwoprest.codec.validator import station_id_from_packet
from cwoprest.config import DEFAULT_SERVER, FALLBACK_PORT, PRIMARY_PORT, VALIDATED_SERVER
from cwoprest.errors import SubmissionFailed, TransportError
from cwoprest.middleware.logging import REDACTED, log_debug, log_error, log_info, log_warning
from cwoprest.models.packet import SubmissionAttempt, SubmissionOutcome

UNVERIFIED_PASSCODE = "-1"


class SubmissionState(str, Enum):
    CONNECTING = "connecting"
    ATTEMPT1_FAILED = "attempt1_failed"
    ATTEMPT2 = "attempt2"
    DONE = "done"
    FAILED = "failed"


TRANSITIONS: Dict[Tuple[SubmissionState, str], SubmissionState] = {
    (SubmissionState.CONNECTING, "ok"): SubmissionState.DONE,
    (SubmissionState.CONNECTING, "error"): SubmissionState.ATTEMPT1_FAILED,
    (SubmissionState.ATTEMPT1_FAILED, "retry"): SubmissionState.ATTEMPT2,
    (SubmissionState.ATTEMPT2, "ok"): SubmissionState.DONE,
    (SubmissionState.ATTEMPT2, "error"): SubmissionState.FAILED,
}
TERMINAL_STATES = frozenset({SubmissionState.DONE, SubmissionState.FAILED})


def next_state(state: SubmissionState, event: str) -> SubmissionState:
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise ValueError(f"no transition from {state.value} on {event!r}") from None


def select_server(
    validation_code: Optional[str] = None,
    override: Optional[str] = None,
    default_server: str = DEFAULT_SERVER,
    validated_server: str = VALIDATED_SERVER,
) -> str:
    """Pick the server: explicit override, else rotate pool for verified stations."""
    if override:
        return override
    if validation_code:
        return validated_server
    return default_server


def login_line(station_id: str, validation_code: Optional[str] = None) -> str:
    passcode = validation_code or UNVERIFIED_PASSCODE
    return f"user {station_id} pass {passcode} vers {SOFTWARE_TAG} {__version__}\r\n"


class CWOPClient:
    """Send packets to a CWOP server through a :class:`Transport`."""

    def __init__(
        self,
        transport: Transport,
        primary_port: int = PRIMARY_PORT,
        fallback_port: int = FALLBACK_PORT,
    ) -> None:
        self.transport = transport
        self.primary_port = primary_port
        self.fallback_port = fallback_port

    def port_for(self, state: SubmissionState) -> int:
        if state is SubmissionState.CONNECTING:
            return self.primary_port
        if state is SubmissionState.ATTEMPT2:
            return self.fallback_port
        raise ValueError(f"no port for state {state.value}")

    async def _read_line(self, connection: Connection) -> str:
        raw = await connection.read_line()
        if not raw:
            raise TransportError("Connection closed by server")
        return raw.decode("utf-8", errors="replace").rstrip("\r\n")

    async def send_packet(
        self,
        packet: str,
        server: str,
        port: int,
        validation_code: Optional[str] = None,
    ) -> str:
        """Run one login-and-send exchange and return the server's login ack."""
        log_info("cwop_connect", server=server, port=port)
        connection = await self.transport.connect(server, port)
        try:
            greeting = await self._read_line(connection)
            log_debug("cwop_greeting", server=server, port=port, text=greeting)

            station_id = station_id_from_packet(packet)
            log_info(
                "cwop_login",
                server=server,
                port=port,
                station_id=station_id,
                passcode=REDACTED if validation_code else UNVERIFIED_PASSCODE,
            )
            await connection.write(login_line(station_id, validation_code).encode("utf-8"))

            ack = await self._read_line(connection)
            log_info("cwop_ack", server=server, port=port, text=ack)

            await connection.write((packet + "\r\n").encode("utf-8"))
            log_info("cwop_packet_written", server=server, port=port, packet=packet)
            return ack
        finally:
            await connection.close()
            log_debug("cwop_closed", server=server, port=port)

    async def submit(
        self,
        packet: str,
        server: str,
        validation_code: Optional[str] = None,
    ) -> SubmissionOutcome:
        """Send ``packet``, falling back to the second port once.

        Raises :class:`SubmissionFailed` when both attempts fail.
        """
        attempts: List[SubmissionAttempt] = []
        response: Optional[str] = None
        state = SubmissionState.CONNECTING

        while state not in TERMINAL_STATES:
            if state is SubmissionState.ATTEMPT1_FAILED:
                log_warning("cwop_fallback", server=server, port=self.fallback_port)
                state = next_state(state, "retry")
                continue

            port = self.port_for(state)
            try:
                response = await self.send_packet(packet, server, port, validation_code)
            except (TransportError, OSError, asyncio.TimeoutError) as e:
                error = str(e) or type(e).__name__
                log_warning("cwop_attempt_failed", server=server, port=port, error=error)
                attempts.append(SubmissionAttempt(port=port, ok=False, error=error))
                state = next_state(state, "error")
            else:
                attempts.append(SubmissionAttempt(port=port, ok=True))
                state = next_state(state, "ok")

        if state is SubmissionState.FAILED:
            errors = [f"port {a.port}: {a.error}" for a in attempts]
            log_error("cwop_submit_failed", server=server, errors=errors)
            raise SubmissionFailed(server, errors)

        return SubmissionOutcome(
            packet=packet,
            server=server,
            port=attempts[-1].port,
            sent=True,
            response=response,
            attempts=attempts,
        )
