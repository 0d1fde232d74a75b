"""Line-oriented TCP connections to APRS-IS servers.

The submission client only needs to open a connection, read lines, write
bytes and close; those operations are described by the ``Transport`` and
``Connection`` protocols so tests can script a server without sockets.
``TcpTransport`` is the asyncio implementation and owns the timeouts:
anything that goes wrong below it surfaces as a :class:`TransportError`.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Protocol

from cwoprest.errors import TransportError
from cwoprest.middleware.logging import log_warning


class Connection(Protocol):
    async def read_line(self) -> bytes:
        """Return the next line, or ``b""`` once the server has closed."""
        ...

    async def write(self, data: bytes) -> None:
        ...

    async def close(self) -> None:
        ...


class Transport(Protocol):
    async def connect(self, host: str, port: int) -> Connection:
        ...


class StreamConnection:
    """A :class:`Connection` over an asyncio reader/writer pair."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        read_timeout: Optional[float] = None,
    ) -> None:
        self.reader = reader
        self.writer = writer
        self.read_timeout = read_timeout

    async def read_line(self) -> bytes:
        try:
            return await asyncio.wait_for(
                self.reader.readline(), timeout=self.read_timeout
            )
        except asyncio.TimeoutError as e:
            raise TransportError("Timed out waiting for server") from e
        except ValueError as e:
            raise TransportError("Line too long from server") from e
        except OSError as e:
            raise TransportError(f"Read failed: {e}") from e

    async def write(self, data: bytes) -> None:
        try:
            self.writer.write(data)
            await self.writer.drain()
        except OSError as e:
            raise TransportError(f"Write failed: {e}") from e

    async def close(self) -> None:
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError as e:
            log_warning("connection_close_error", error=str(e))


class TcpTransport:
    """Open plain TCP connections with connect and read timeouts."""

    def __init__(
        self,
        connect_timeout: Optional[float] = 10.0,
        read_timeout: Optional[float] = 10.0,
    ) -> None:
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

    async def connect(self, host: str, port: int) -> StreamConnection:
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout=self.connect_timeout
            )
        except asyncio.TimeoutError as e:
            raise TransportError(f"Timed out connecting to {host}:{port}") from e
        except OSError as e:
            raise TransportError(f"Cannot connect to {host}:{port}: {e}") from e
        return StreamConnection(reader, writer, self.read_timeout)
