"""Structured logging for chameleon-py.

Every HTTP request and every lobby socket gets a correlation id that is bound
into the structlog context, so all lines logged while serving it (including
those from the lobby state machine) can be grouped. Round secrets are logged
at debug level only and are additionally stripped from production JSON logs.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from litestar.types import ASGIApp, Message, Receive, Scope, Send
    from structlog.types import EventDict, Processor, WrappedLogger

CORRELATION_HEADER = b"x-correlation-id"
ROUND_SECRET_KEYS = frozenset({"secret_word", "chameleon"})
HEALTH_PATHS = frozenset({"/health", "/ready"})


def redact_round_secrets(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Drop keys that would reveal the secret word or the chameleon."""
    for key in ROUND_SECRET_KEYS & event_dict.keys():
        event_dict[key] = "[redacted]"
    return event_dict


def configure_logging(*, debug: bool = False, json_logs: bool = False) -> None:
    """Configure structlog for the application.

    Args:
        debug: Log at debug level, which includes each round's roles and word.
        json_logs: Render JSON lines (production) instead of colored console output.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if json_logs:
        processors += [
            redact_round_secrets,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors += [
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if debug else logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _correlation_id(scope: Scope) -> str:
    headers = dict(scope.get("headers", []))
    for name in (CORRELATION_HEADER, b"x-request-id"):
        if value := headers.get(name):
            return value.decode()
    return uuid.uuid4().hex


def _client_host(scope: Scope) -> str | None:
    client = scope.get("client")
    return client[0] if client else None


class CorrelationIdMiddleware:
    """Bind a correlation id to every request and lobby socket.

    The id comes from ``X-Correlation-ID`` or ``X-Request-ID``, or is
    generated. It is stored in ``scope["state"]`` for the error handlers and
    echoed as a response header, on the HTTP response start or on the
    WebSocket accept.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        transport = scope["type"]
        if transport not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        correlation_id = _correlation_id(scope)
        scope.setdefault("state", {})["correlation_id"] = correlation_id
        echo_on = "http.response.start" if transport == "http" else "websocket.accept"

        async def send_with_header(message: Message) -> None:
            if message["type"] == echo_on:
                message["headers"] = [*message.get("headers", []), (CORRELATION_HEADER, correlation_id.encode())]
            await send(message)

        context: dict[str, Any] = {"correlation_id": correlation_id, "path": scope.get("path", "")}
        if transport == "websocket":
            context["transport"] = "websocket"
            context["client"] = _client_host(scope)

        structlog.contextvars.clear_contextvars()
        with structlog.contextvars.bound_contextvars(**context):
            await self.app(scope, receive, send_with_header)


class RequestLoggingMiddleware:
    """Log finished HTTP requests and lobby socket sessions.

    HTTP requests are logged with status and duration; health check paths are
    skipped. A socket session is logged once when it closes, with how long
    it stayed open and how many frames the client sent.
    """

    def __init__(self, app: ASGIApp, *, exclude_paths: set[str] | None = None) -> None:
        self.app = app
        self.exclude_paths = exclude_paths if exclude_paths is not None else set(HEALTH_PATHS)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope.get("path", "") not in self.exclude_paths:
            await self._log_request(scope, receive, send)
        elif scope["type"] == "websocket":
            await self._log_session(scope, receive, send)
        else:
            await self.app(scope, receive, send)

    async def _log_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        logger = structlog.get_logger(__name__)
        started = time.perf_counter()
        status_code = 500

        async def capture_status(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
            await send(message)

        try:
            await self.app(scope, receive, capture_status)
        except Exception:
            logger.exception("Request failed with exception", method=scope.get("method", ""))
            raise
        finally:
            level = logging.ERROR if status_code >= 500 else logging.WARNING if status_code >= 400 else logging.INFO
            logger.log(
                level,
                "Request completed",
                method=scope.get("method", ""),
                status_code=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )

    async def _log_session(self, scope: Scope, receive: Receive, send: Send) -> None:
        logger = structlog.get_logger(__name__)
        started = time.perf_counter()
        frames = 0

        async def count_frames() -> Message:
            nonlocal frames
            message = await receive()
            if message["type"] == "websocket.receive":
                frames += 1
            return message

        try:
            await self.app(scope, count_frames, send)
        finally:
            logger.info(
                "Lobby socket closed",
                frames_received=frames,
                duration_s=round(time.perf_counter() - started, 2),
            )
