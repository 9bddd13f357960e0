"""Litestar plugin for chameleon-py integration."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from litestar.di import Provide
from litestar.plugins import InitPluginProtocol

from chameleon_py.game.categories import CategoryProvider
from chameleon_py.game.models import MAX_PLAYERS, MIN_PLAYERS, TURN_SECONDS, LobbySettings
from chameleon_py.realtime.handler import LobbyWebSocketHandler, create_lobby_websocket_handler
from chameleon_py.realtime.manager import ConnectionManager
from chameleon_py.services.reconnect import GRACE_PERIOD_SECONDS
from chameleon_py.services.registry import LobbyRegistry
from chameleon_py.web.router import create_router

if TYPE_CHECKING:
    from litestar import Litestar
    from litestar.config.app import AppConfig


@dataclass
class ChameleonConfig:
    """Configuration for the Chameleon plugin.

    Attributes:
        max_players: Seat capacity of every lobby.
        min_players: Players needed to start a round.
        turn_seconds: Advisory seconds per clue turn and for voting.
        grace_period_seconds: How long a dropped player's seat is held.
        enable_api: Whether to mount the REST lookup routes. Defaults to True.
        api_path: Base path for the REST routes. Defaults to "/api".
        ws_path: Base path for the lobby socket. Defaults to "/ws".
        seed: Seed for codes, categories, roles and turn order. Random if None.
        categories: Category to word list mapping. The built-in set if None.
        connection_manager: Optional pre-configured ConnectionManager.

    Example:
        >>> config = ChameleonConfig(grace_period_seconds=10.0, seed=42)
    """

    max_players: int = MAX_PLAYERS
    min_players: int = MIN_PLAYERS
    turn_seconds: int = TURN_SECONDS
    grace_period_seconds: float = GRACE_PERIOD_SECONDS
    enable_api: bool = True
    api_path: str = "/api"
    ws_path: str = "/ws"
    seed: int | None = None
    categories: dict[str, list[str]] | None = None
    connection_manager: ConnectionManager | None = field(default=None)

    def __post_init__(self) -> None:
        if self.min_players < 1:
            msg = "min_players must be at least 1"
            raise ValueError(msg)
        if self.max_players < self.min_players:
            msg = "max_players must not be smaller than min_players"
            raise ValueError(msg)
        if self.grace_period_seconds < 0:
            msg = "grace_period_seconds must not be negative"
            raise ValueError(msg)

    def lobby_settings(self) -> LobbySettings:
        """Build the per-lobby limits from this configuration."""
        return LobbySettings(
            max_players=self.max_players,
            min_players=self.min_players,
            turn_seconds=self.turn_seconds,
        )


class ChameleonPlugin(InitPluginProtocol):
    """Litestar plugin for chameleon-py integration.

    Builds the lobby registry, connection manager and socket handler, mounts
    the lobby WebSocket route and (optionally) the REST lookup routes, and
    registers them for dependency injection under ``registry``,
    ``connection_manager`` and ``lobby_handler``. Pending grace timers are
    cancelled on shutdown.

    Example:
        >>> from litestar import Litestar
        >>> from chameleon_py import ChameleonPlugin, ChameleonConfig
        >>>
        >>> app = Litestar(plugins=[ChameleonPlugin(ChameleonConfig())])

        Accessing the registry in route handlers:

        >>> from litestar import get
        >>> from chameleon_py.services.registry import LobbyRegistry
        >>>
        >>> @get("/lobby-count")
        ... async def lobby_count(registry: LobbyRegistry) -> dict:
        ...     return {"count": len(registry)}
    """

    def __init__(self, config: ChameleonConfig | None = None) -> None:
        """Initialize the Chameleon plugin.

        Args:
            config: Plugin configuration. If None, default configuration is used.
        """
        self._config = config or ChameleonConfig()
        self._registry: LobbyRegistry | None = None
        self._connection_manager: ConnectionManager | None = None
        self._handler: LobbyWebSocketHandler | None = None

    def on_app_init(self, app_config: AppConfig) -> AppConfig:
        """Configure the Litestar application on initialization.

        Args:
            app_config: The Litestar application configuration.

        Returns:
            The modified application configuration.
        """
        config = self._config
        rng = random.Random(config.seed)

        self._registry = LobbyRegistry(
            settings=config.lobby_settings(),
            rng=rng,
            categories=CategoryProvider(config.categories, rng=rng),
        )
        self._connection_manager = config.connection_manager or ConnectionManager()

        ws_router, self._handler = create_lobby_websocket_handler(
            config.ws_path,
            self._registry,
            self._connection_manager,
            grace_seconds=config.grace_period_seconds,
        )
        app_config.route_handlers.append(ws_router)

        if config.enable_api:
            app_config.route_handlers.append(create_router(config.api_path))

        app_config.dependencies.update(
            {
                "registry": Provide(self._provide_registry, sync_to_thread=False),
                "connection_manager": Provide(self._provide_connection_manager, sync_to_thread=False),
                "lobby_handler": Provide(self._provide_handler, sync_to_thread=False),
            }
        )

        app_config.on_startup.append(self._on_startup)
        app_config.on_shutdown.append(self._on_shutdown)

        return app_config

    def _on_startup(self, app: Litestar) -> None:
        """Expose the game components on application state."""
        app.state.registry = self._registry
        app.state.connection_manager = self._connection_manager
        app.state.lobby_handler = self._handler

    async def _on_shutdown(self) -> None:
        """Stop grace timers so shutdown does not wait on them."""
        if self._handler is not None:
            await self._handler.guard.cancel_all()

    def _provide_registry(self) -> LobbyRegistry:
        if self._registry is None:
            msg = "Lobby registry not initialized. Plugin on_app_init was not called."
            raise RuntimeError(msg)
        return self._registry

    def _provide_connection_manager(self) -> ConnectionManager:
        if self._connection_manager is None:
            msg = "ConnectionManager not initialized. Plugin on_app_init was not called."
            raise RuntimeError(msg)
        return self._connection_manager

    def _provide_handler(self) -> LobbyWebSocketHandler:
        if self._handler is None:
            msg = "Lobby handler not initialized. Plugin on_app_init was not called."
            raise RuntimeError(msg)
        return self._handler

    @property
    def config(self) -> ChameleonConfig:
        """Get the plugin configuration."""
        return self._config

    @property
    def registry(self) -> LobbyRegistry:
        """Get the lobby registry.

        Raises:
            RuntimeError: If accessed before on_app_init.
        """
        return self._provide_registry()

    @property
    def connection_manager(self) -> ConnectionManager:
        """Get the connection manager.

        Raises:
            RuntimeError: If accessed before on_app_init.
        """
        return self._provide_connection_manager()

    @property
    def handler(self) -> LobbyWebSocketHandler:
        """Get the lobby WebSocket handler.

        Raises:
            RuntimeError: If accessed before on_app_init.
        """
        return self._provide_handler()
