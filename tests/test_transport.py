from __future__ import annotations

import asyncio
import socket
from typing import List

import pytest

from cwoprest.adapters.cwop import CWOPClient
from cwoprest.adapters.transport import TcpTransport
from cwoprest.errors import SubmissionFailed, TransportError


HOST = "127.0.0.1"
GREETING = b"# aprsc 2.1.14-g5e22b37\r\n"
ACK = b"# logresp EW1234 unverified, server CWOP-4\r\n"


def _closed_port() -> int:
    with socket.socket() as sock:
        sock.bind((HOST, 0))
        return sock.getsockname()[1]


class LocalServer:
    """An APRS-IS stand-in on 127.0.0.1 driven by a per-connection script."""

    def __init__(self, script) -> None:
        self.script = script
        self.received: List[bytes] = []
        self.finished = 0

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            await self.script(self, reader, writer)
        finally:
            writer.close()
            self.finished += 1

    async def run(self, exercise):
        server = await asyncio.start_server(self._handle, HOST, 0)
        port = server.sockets[0].getsockname()[1]
        try:
            return await exercise(port)
        finally:
            server.close()
            await server.wait_closed()

    async def wait_for_connections(self, count: int) -> None:
        while self.finished < count:
            await asyncio.sleep(0.01)


async def aprs_is(server: LocalServer, reader, writer) -> None:
    writer.write(GREETING)
    await writer.drain()
    server.received.append(await reader.readline())
    writer.write(ACK)
    await writer.drain()
    server.received.append(await reader.readline())


async def silent(server: LocalServer, reader, writer) -> None:
    await reader.read()


async def hang_up(server: LocalServer, reader, writer) -> None:
    return None


async def endless_line(server: LocalServer, reader, writer) -> None:
    writer.write(b"#" * 70000)
    await writer.drain()
    await reader.read()


def test_login_exchange(packet_factory) -> None:
    packet = packet_factory()
    server = LocalServer(aprs_is)

    async def exercise(port):
        client = CWOPClient(TcpTransport(1.0, 1.0), primary_port=port)
        outcome = await client.submit(packet, HOST)
        await asyncio.wait_for(server.wait_for_connections(1), 1.0)
        return outcome

    outcome = asyncio.run(server.run(exercise))

    assert outcome.sent
    assert outcome.response == "# logresp EW1234 unverified, server CWOP-4"
    assert server.received == [
        b"user EW1234 pass -1 vers cwop.rest 1.0\r\n",
        packet.encode() + b"\r\n",
    ]


def test_refused_port_falls_back(packet_factory) -> None:
    refused = _closed_port()
    server = LocalServer(aprs_is)

    async def exercise(port):
        client = CWOPClient(TcpTransport(1.0, 1.0), primary_port=refused, fallback_port=port)
        return await client.submit(packet_factory(), HOST)

    outcome = asyncio.run(server.run(exercise))

    assert outcome.port != refused
    assert [(a.port, a.ok) for a in outcome.attempts] == [(refused, False), (outcome.port, True)]
    assert "Cannot connect" in outcome.attempts[0].error


def test_refused_connection_is_a_transport_error() -> None:
    with pytest.raises(TransportError, match="Cannot connect"):
        asyncio.run(TcpTransport(1.0, 1.0).connect(HOST, _closed_port()))


def test_read_timeout() -> None:
    server = LocalServer(silent)

    async def exercise(port):
        connection = await TcpTransport(1.0, 0.2).connect(HOST, port)
        try:
            with pytest.raises(TransportError, match="Timed out"):
                await connection.read_line()
        finally:
            await connection.close()
        return connection

    connection = asyncio.run(server.run(exercise))

    assert connection.writer.is_closing()


def test_server_closing_early_is_a_transport_error(packet_factory) -> None:
    server = LocalServer(hang_up)

    async def exercise(port):
        client = CWOPClient(TcpTransport(1.0, 1.0))
        with pytest.raises(TransportError, match="closed by server"):
            await client.send_packet(packet_factory(), HOST, port)

    asyncio.run(server.run(exercise))


def test_oversized_line_is_a_transport_error() -> None:
    server = LocalServer(endless_line)

    async def exercise(port):
        connection = await TcpTransport(1.0, 1.0).connect(HOST, port)
        try:
            with pytest.raises(TransportError, match="Line too long"):
                await connection.read_line()
        finally:
            await connection.close()

    asyncio.run(server.run(exercise))


def test_oversized_line_on_both_ports_fails_cleanly(packet_factory) -> None:
    server = LocalServer(endless_line)

    async def exercise(port):
        client = CWOPClient(TcpTransport(1.0, 1.0), primary_port=port, fallback_port=port)
        with pytest.raises(SubmissionFailed) as excinfo:
            await client.submit(packet_factory(), HOST)
        return excinfo.value

    error = asyncio.run(server.run(exercise))

    assert error.status_code == 502
    assert all("Line too long" in e for e in error.errors)
