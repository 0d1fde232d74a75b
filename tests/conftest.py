from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Tuple

import pytest

from cwoprest.adapters.cache import MemoryCache
from cwoprest.errors import TransportError
from cwoprest.models import Observation


NOW = datetime(2026, 10, 16, 12, 15, 30, tzinfo=timezone.utc)
GREETING = b"# aprsc 2.1.14-g5e22b37\r\n"
ACK = b"# logresp EW1234 unverified, server CWOP-4\r\n"


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeConnection:
    def __init__(self, lines: Iterable[bytes]) -> None:
        self.lines = list(lines)
        self.writes: List[bytes] = []
        self.closed = False

    async def read_line(self) -> bytes:
        return self.lines.pop(0) if self.lines else b""

    async def write(self, data: bytes) -> None:
        self.writes.append(data)

    async def close(self) -> None:
        self.closed = True


class FakeTransport:
    """Scripted APRS-IS server.

    Connecting to a port in ``fail_ports`` raises; ``lines_by_port`` replaces
    the default greeting/ack script for a given port.
    """

    def __init__(self) -> None:
        self.fail_ports: set = set()
        self.lines_by_port: Dict[int, List[bytes]] = {}
        self.connects: List[Tuple[str, int]] = []
        self.connections: List[FakeConnection] = []

    async def connect(self, host: str, port: int) -> FakeConnection:
        self.connects.append((host, port))
        if port in self.fail_ports:
            raise TransportError(f"Cannot connect to {host}:{port}: refused")
        connection = FakeConnection(self.lines_by_port.get(port, [GREETING, ACK]))
        self.connections.append(connection)
        return connection


def make_packet(
    when: datetime = NOW,
    header: str = "EW1234",
    position: str = "4930.00N/07215.00W",
) -> str:
    return f"{header}>APRS,TCPIP*:@{when:%d%H%M}z{position}_220/004g005t077cwop.rest"


def make_observation(**overrides) -> Observation:
    fields = {
        "id": "EW1234",
        "lat": 49.5,
        "long": -72.25,
        "time": NOW,
        "tempf": 77.4,
        "windspeedmph": 3.2,
        "windgustmph": 5,
        "winddir": 220,
    }
    fields.update(overrides)
    return Observation.model_validate({k: v for k, v in fields.items() if v is not None})


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def packet_factory():
    return make_packet


@pytest.fixture
def observation_factory():
    return make_observation


@pytest.fixture
def now() -> datetime:
    return NOW
