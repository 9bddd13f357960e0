"""Router configuration for the chameleon-py API."""

from __future__ import annotations

from litestar import Router

from chameleon_py.web.controllers import LobbyController


def create_router(path: str = "/api") -> Router:
    """Create the chameleon-py API router.

    Args:
        path: The base path for all API routes. Defaults to "/api".

    Returns:
        A configured Litestar Router instance.
    """
    return Router(
        path=path,
        route_handlers=[LobbyController],
    )
