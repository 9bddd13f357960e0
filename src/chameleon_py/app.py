"""Main Litestar application for chameleon-py.

This module provides the main application factory and configured app instance
for running chameleon-py as a standalone application.
"""

from __future__ import annotations

import os

from litestar import Litestar
from litestar.openapi import OpenAPIConfig
from litestar.openapi.plugins import ScalarRenderPlugin, SwaggerRenderPlugin

from chameleon_py import __version__
from chameleon_py.core.error_handling import get_exception_handlers
from chameleon_py.core.logging import CorrelationIdMiddleware, RequestLoggingMiddleware, configure_logging
from chameleon_py.plugin import ChameleonConfig, ChameleonPlugin
from chameleon_py.web.health import HealthController


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("true", "1", "yes")


def config_from_env() -> ChameleonConfig:
    """Build the plugin configuration from ``CHAMELEON_*`` environment variables.

    Returns:
        Configuration with any overridden grace period, turn length and seed.
    """
    config = ChameleonConfig()
    if grace := os.environ.get("CHAMELEON_GRACE_SECONDS"):
        config.grace_period_seconds = float(grace)
    if turn := os.environ.get("CHAMELEON_TURN_SECONDS"):
        config.turn_seconds = int(turn)
    if seed := os.environ.get("CHAMELEON_SEED"):
        config.seed = int(seed)
    return config


def create_app(
    *,
    debug: bool = False,
    json_logs: bool = False,
    config: ChameleonConfig | None = None,
) -> Litestar:
    """Create and configure the Litestar application.

    Args:
        debug: Whether to enable debug mode (and debug level logging).
        json_logs: Whether to output logs as JSON (for production).
        config: Game configuration. Defaults are used if None.

    Returns:
        Configured Litestar application instance.
    """
    configure_logging(debug=debug, json_logs=json_logs)

    return Litestar(
        route_handlers=[HealthController],
        plugins=[ChameleonPlugin(config or ChameleonConfig())],
        debug=debug,
        middleware=[CorrelationIdMiddleware, RequestLoggingMiddleware],
        exception_handlers=get_exception_handlers(),
        openapi_config=OpenAPIConfig(
            title="chameleon-py API",
            version=__version__,
            description="Real-time multiplayer Chameleon word game server",
            path="/schema",
            render_plugins=[ScalarRenderPlugin(path="/"), SwaggerRenderPlugin(path="/swagger")],
            use_handler_docstrings=True,
        ),
    )


# Default application instance for uvicorn
# Use CHAMELEON_DEBUG=true for dev mode, defaults to False (production)
app = create_app(
    debug=_env_flag("CHAMELEON_DEBUG"),
    json_logs=_env_flag("CHAMELEON_JSON_LOGS"),
    config=config_from_env(),
)
