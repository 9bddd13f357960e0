"""Exception handlers for the HTTP surface of chameleon-py.

Game errors raised from REST handlers become structured JSON responses with
the request's correlation id. WebSocket errors are reported in-band by the
lobby handler instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog
from litestar import Response
from litestar.status_codes import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

if TYPE_CHECKING:
    from litestar import Request
    from litestar.exceptions import HTTPException

    from chameleon_py.exceptions import ChameleonError, LobbyNotFoundError

logger = structlog.get_logger(__name__)

STATUS_CODES = {
    400: "bad-request",
    404: "not-found",
    405: "method-not-allowed",
    500: "internal-error",
}


@dataclass
class ErrorResponse:
    """Structured error response format."""

    status: str = "error"
    message: str = ""
    code: str = "internal-error"
    correlation_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON response."""
        result: dict[str, Any] = {
            "status": self.status,
            "message": self.message,
            "code": self.code,
        }
        if self.correlation_id:
            result["correlation_id"] = self.correlation_id
        return result


def get_correlation_id(request: Request) -> str | None:
    """Extract correlation ID from request state or headers."""
    correlation_id = getattr(request.state, "correlation_id", None)
    if correlation_id:
        return correlation_id
    return request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID")


def _json_error(status_code: int, message: str, code: str, correlation_id: str | None) -> Response[dict[str, Any]]:
    return Response(
        content=ErrorResponse(message=message, code=code, correlation_id=correlation_id).to_dict(),
        status_code=status_code,
        media_type="application/json",
    )


def http_exception_handler(request: Request, exc: HTTPException) -> Response[dict[str, Any]]:
    """Handle Litestar HTTP exceptions (routing, validation) with JSON bodies."""
    correlation_id = get_correlation_id(request)
    error_code = STATUS_CODES.get(exc.status_code, "error")
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    log_method = logger.warning if exc.status_code < 500 else logger.error
    log_method(
        "HTTP exception",
        path=request.url.path,
        method=request.method,
        status_code=exc.status_code,
        error_code=error_code,
    )

    return _json_error(exc.status_code, message, error_code, correlation_id)


def lobby_not_found_handler(request: Request, exc: LobbyNotFoundError) -> Response[dict[str, Any]]:
    """Handle LobbyNotFoundError exceptions."""
    logger.info("Lobby not found", lobby_code=exc.lobby_code, path=request.url.path)
    return _json_error(HTTP_404_NOT_FOUND, str(exc), exc.code, get_correlation_id(request))


def chameleon_error_handler(request: Request, exc: ChameleonError) -> Response[dict[str, Any]]:
    """Handle any other game error as a client error."""
    logger.warning("Game error", error_code=exc.code, error=str(exc), path=request.url.path)
    return _json_error(HTTP_400_BAD_REQUEST, str(exc), exc.code, get_correlation_id(request))


def generic_exception_handler(request: Request, exc: Exception) -> Response[dict[str, Any]]:
    """Handle unexpected exceptions with a generic error response.

    Logs the full exception but returns a safe message to the client.
    """
    logger.exception(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        exc_info=exc,
    )
    return _json_error(
        HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        "internal-error",
        get_correlation_id(request),
    )


def get_exception_handlers() -> dict:
    """Get all exception handlers for the application.

    Returns:
        Dictionary mapping exception types to handler functions.
    """
    from litestar.exceptions import HTTPException

    from chameleon_py.exceptions import ChameleonError, LobbyNotFoundError

    return {
        HTTPException: http_exception_handler,
        LobbyNotFoundError: lobby_not_found_handler,
        ChameleonError: chameleon_error_handler,
        Exception: generic_exception_handler,
    }
