"""Main application module for cwop.rest.

This module defines the FastAPI application, registers middleware and
the error handler, defines the relay endpoints, and mounts an MCP server
for the packet tools.  ``create_app`` builds the application together
with its long-lived collaborators (cache, transport, rate limiter) and
the module-level ``app`` lets ASGI servers like Uvicorn discover it::

    uvicorn cwoprest.main:app
"""

from __future__ import annotations

import math
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi_mcp import FastApiMCP
from starlette.exceptions import HTTPException as StarletteHTTPException

from .adapters.cache import KeyValueCache, MemoryCache
from .adapters.cwop import CWOPClient
from .adapters.transport import TcpTransport, Transport
from .clock import Clock, utc_now
from .codec import encode_packet, validate_packet
from .config import Settings
from .errors import CwopRestError, InvalidPayload, MethodNotAllowed, RateLimited
from .middleware import RequestLogMiddleware
from .middleware.logging import configure_logging, log_warning
from .models import Observation, SubmissionOutcome, SubmissionRequest
from .services import RateLimiter, RelayService


def _header_safe(text: str) -> str:
    return text.encode("ascii", errors="replace").decode("ascii")


def _outcome_response(outcome: SubmissionOutcome) -> PlainTextResponse:
    if outcome.simulated:
        return PlainTextResponse(
            f'APRS packet "{outcome.packet}" would have been sent to {outcome.server}'
        )
    headers = {"x-cwop-port": str(outcome.port)}
    if outcome.response is not None:
        headers["x-cwop-response"] = _header_safe(outcome.response)
    return PlainTextResponse(
        f'APRS packet "{outcome.packet}" sent to {outcome.server}', headers=headers
    )


def get_relay(request: Request) -> RelayService:
    return request.app.state.relay


def create_app(
    settings: Optional[Settings] = None,
    cache: Optional[KeyValueCache] = None,
    transport: Optional[Transport] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """Factory function for constructing the FastAPI application.

    Collaborators not passed in are built from ``settings`` (which in turn
    defaults to the environment): an in-memory cache, a TCP transport and
    the wall clock.  They live on ``app.state`` for the life of the app.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    clock = clock or utc_now
    if cache is None:
        cache = MemoryCache(ttl=settings.cache_ttl)
    if transport is None:
        transport = TcpTransport(settings.connect_timeout, settings.read_timeout)

    app = FastAPI(title="cwop.rest")
    app.state.settings = settings
    app.state.relay = RelayService(
        CWOPClient(transport, settings.primary_port, settings.fallback_port),
        RateLimiter(cache, clock, settings.cooldown_seconds),
        settings,
        clock,
    )

    # -----------------------------------------------------------------------
    # Middleware
    # -----------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLogMiddleware)

    # -----------------------------------------------------------------------
    # Errors
    # -----------------------------------------------------------------------
    @app.exception_handler(CwopRestError)
    async def relay_error(request: Request, exc: CwopRestError) -> PlainTextResponse:
        log_warning(
            "request_rejected",
            method=request.method,
            path=request.url.path,
            status=exc.status_code,
            error_type=type(exc).__name__,
            error=exc.message,
        )
        headers = {}
        if isinstance(exc, RateLimited) and exc.retry_after is not None:
            headers["retry-after"] = str(max(1, math.ceil(exc.retry_after)))
        return PlainTextResponse(exc.message, status_code=exc.status_code, headers=headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            return await relay_error(request, MethodNotAllowed("Invalid request method"))
        return await http_exception_handler(request, exc)

    # -----------------------------------------------------------------------
    # Relay routes
    # -----------------------------------------------------------------------
    @app.get("/", response_class=PlainTextResponse, tags=["Relay"])
    async def send_get(
        request: Request, relay: RelayService = Depends(get_relay)
    ) -> PlainTextResponse:
        """Relay a packet, or readings to encode, given as query parameters."""
        submission = SubmissionRequest.from_query(request.query_params)
        outcome = await relay.relay(submission, request.url.hostname)
        return _outcome_response(outcome)

    @app.post("/", response_class=PlainTextResponse, tags=["Relay"])
    async def send_post(
        request: Request, relay: RelayService = Depends(get_relay)
    ) -> PlainTextResponse:
        """Relay a packet, or readings to encode, given as a JSON object."""
        try:
            body = await request.json()
        except ValueError as e:
            raise InvalidPayload("Invalid JSON in payload") from e
        submission = SubmissionRequest.from_json(body)
        outcome = await relay.relay(submission, request.url.hostname)
        return _outcome_response(outcome)

    # -----------------------------------------------------------------------
    # Service routes
    # -----------------------------------------------------------------------
    @app.get("/api")
    def api_root():
        """Return a simple service descriptor for programmatic clients."""
        return {
            "ok": True,
            "service": "cwop.rest",
            "docs": "/docs",
            "health": "/health",
            "mcp": "/mcp",
        }

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"ok": True}

    # -----------------------------------------------------------------------
    # Packet tools
    # -----------------------------------------------------------------------
    @app.post(
        "/api/packet/encode",
        operation_id="encode_packet",
        tags=["Packet"],
    )
    async def rest_encode_packet(observation: Observation) -> JSONResponse:
        """Encode weather readings as an APRS packet without sending it.

        Accepts the same field names as the relay endpoint (``id``, ``lat``,
        ``long``, ``time``, ``tempf``, ...) and returns the packet string.
        """
        return JSONResponse({"packet": encode_packet(observation)})

    @app.get(
        "/api/packet/validate",
        operation_id="validate_packet",
        tags=["Packet"],
    )
    async def rest_validate_packet(
        request: Request,
        packet: str = Query(..., description="APRS weather packet to check"),
    ) -> JSONResponse:
        """Check an APRS weather packet the way the relay would.

        Returns ``valid`` plus, for a rejected packet, the failed check
        (``reason``) and a human readable ``message``.  The timestamp must
        be within five minutes of now.
        """
        result = validate_packet(packet, request.app.state.relay.clock())
        return JSONResponse(result.model_dump(mode="json"))

    # -----------------------------------------------------------------------
    # MCP server mount
    # -----------------------------------------------------------------------
    mcp = FastApiMCP(
        app,
        include_operations=[
            "encode_packet",
            "validate_packet",
        ],
    )
    mcp.mount()

    return app


# ---------------------------------------------------------------------------
# FastAPI application instance
# ---------------------------------------------------------------------------
app = create_app()
