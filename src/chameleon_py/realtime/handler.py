"""WebSocket handler for lobby real-time communication."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog
from litestar import Router, WebSocket, websocket

from chameleon_py.exceptions import AlreadySeatedError, ChameleonError, LobbyNotFoundError
from chameleon_py.game.events import ClientEvent, Outbound, ServerEvent, error_frame
from chameleon_py.realtime.manager import ConnectionManager
from chameleon_py.services.reconnect import GRACE_PERIOD_SECONDS, ReconnectionGuard
from chameleon_py.services.registry import normalize_code

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from chameleon_py.services.registry import LobbyRegistry

    EventHandler = Callable[[str, dict[str, Any]], Awaitable[None]]

logger = structlog.get_logger(__name__)


class LobbyWebSocketHandler:
    """Handler for lobby WebSocket connections.

    Decodes client frames, routes each event to the lobby state machine under
    that lobby's lock and publishes the resulting messages. This is the only
    place game errors are caught: they are reported to the originating
    connection and never reach other players or other lobbies.
    """

    def __init__(
        self,
        registry: LobbyRegistry,
        connection_manager: ConnectionManager | None = None,
        *,
        grace_seconds: float = GRACE_PERIOD_SECONDS,
    ) -> None:
        """Initialize the lobby WebSocket handler.

        Args:
            registry: The lobby registry.
            connection_manager: Optional connection manager to share.
            grace_seconds: How long a dropped player's seat is held.
        """
        self._registry = registry
        self._manager = connection_manager or ConnectionManager()
        self.guard = ReconnectionGuard(registry, self.publish, grace_seconds=grace_seconds)
        self._handlers: dict[str, EventHandler] = {
            ClientEvent.CREATE_LOBBY: self._handle_create,
            ClientEvent.JOIN_LOBBY: self._handle_join,
            ClientEvent.REJOIN_LOBBY: self._handle_rejoin,
            ClientEvent.START_GAME: self._handle_start_game,
            ClientEvent.SUBMIT_CLUE: self._handle_submit_clue,
            ClientEvent.SUBMIT_VOTE: self._handle_submit_vote,
            ClientEvent.CHAMELEON_GUESS: self._handle_chameleon_guess,
            ClientEvent.PLAY_AGAIN: self._handle_play_again,
            ClientEvent.LEAVE_LOBBY: self._handle_leave,
        }

    @property
    def connection_manager(self) -> ConnectionManager:
        """The connection manager used for delivery."""
        return self._manager

    async def handle_connection(self, socket: WebSocket) -> None:
        """Serve one WebSocket until it closes.

        Args:
            socket: The WebSocket connection.
        """
        await socket.accept()
        connection = await self._manager.connect(socket)
        connection_id = connection.connection_id
        structlog.contextvars.bind_contextvars(connection_id=connection_id)

        try:
            await self._receive_loop(socket, connection_id)
        except Exception:
            logger.exception("WebSocket error")
        finally:
            await self.handle_disconnect(connection_id)

    async def _receive_loop(self, socket: WebSocket, connection_id: str) -> None:
        """Main receive loop for WebSocket messages.

        Args:
            socket: The WebSocket connection.
            connection_id: The connection's identifier.
        """
        async for message in socket.iter_data():
            try:
                data = json.loads(message)
            except (json.JSONDecodeError, UnicodeDecodeError):
                await self._send_error(connection_id, "invalid-json", "Invalid JSON message")
                continue

            if not isinstance(data, dict):
                await self._send_error(connection_id, "invalid-json", "Message must be a JSON object")
                continue

            await self.handle_event(connection_id, data)

    async def handle_event(self, connection_id: str, data: dict[str, Any]) -> None:
        """Route one decoded client frame to its handler.

        Args:
            connection_id: The originating connection.
            data: The decoded frame, with the event name under ``type``.
        """
        msg_type = data.get("type")
        if not msg_type or not isinstance(msg_type, str):
            await self._send_error(connection_id, "missing-type", "Message type required")
            return

        handler = self._handlers.get(msg_type)
        if handler is None:
            await self._send_error(connection_id, "unknown-type", f"Unknown message type: {msg_type}")
            return

        lobby_code = normalize_code(data.get("code")) or None
        with structlog.contextvars.bound_contextvars(event_type=msg_type, lobby_code=lobby_code):
            try:
                await handler(connection_id, data)
            except ChameleonError as e:
                if e.silent:
                    logger.debug("Event ignored", error_code=e.code, reason=str(e))
                    return
                logger.info("Event rejected", error_code=e.code, reason=str(e))
                await self._send_error(connection_id, e.code, str(e))
            except Exception:
                logger.exception("Error handling message")
                await self._send_error(connection_id, "internal-error", "Internal server error")

    async def handle_disconnect(self, connection_id: str) -> None:
        """Handle a transport-level disconnect.

        Args:
            connection_id: The connection that closed.
        """
        connection = await self._manager.disconnect(connection_id)
        if connection is None or connection.lobby_code is None:
            return
        await self.guard.on_disconnect(connection.lobby_code, connection_id)

    # Event handlers

    async def _ensure_unseated(self, connection_id: str, target_code: Any = None) -> None:
        """Refuse a seat to a connection still playing in another live lobby.

        Raises:
            AlreadySeatedError: If the connection belongs to a different lobby.
        """
        connection = await self._manager.get_connection(connection_id)
        if connection is None or connection.lobby_code is None:
            return
        if connection.lobby_code not in self._registry:
            return
        if target_code is not None and normalize_code(target_code) == connection.lobby_code:
            return
        raise AlreadySeatedError(connection_id)

    async def _handle_create(self, connection_id: str, data: dict[str, Any]) -> None:
        await self._ensure_unseated(connection_id)
        lobby = await self._registry.create(connection_id, data.get("name"))
        await self._manager.join_group(connection_id, lobby.code)
        await self.publish(
            lobby.code,
            [Outbound.unicast(connection_id, ServerEvent.LOBBY_CREATED, code=lobby.code, players=lobby.roster())],
        )

    async def _handle_join(self, connection_id: str, data: dict[str, Any]) -> None:
        await self._ensure_unseated(connection_id, data.get("code"))
        async with self._registry.session(data.get("code")) as lobby:
            messages = lobby.join(connection_id, data.get("name"))
            await self._manager.join_group(connection_id, lobby.code)
            await self.publish(lobby.code, messages)

    async def _handle_rejoin(self, connection_id: str, data: dict[str, Any]) -> None:
        """Handle a rejoin; an unknown lobby is answered with ``rejoin-failed``."""
        await self._ensure_unseated(connection_id, data.get("code"))
        try:
            async with self._registry.session(data.get("code")) as lobby:
                messages = lobby.rejoin(connection_id, data.get("name"))
                if messages[0].event is ServerEvent.REJOIN_SUCCESS:
                    await self._manager.join_group(connection_id, lobby.code)
                await self.publish(lobby.code, messages)
        except LobbyNotFoundError:
            await self._manager.send_to_connection(connection_id, {"type": ServerEvent.REJOIN_FAILED.value})

    async def _handle_start_game(self, connection_id: str, data: dict[str, Any]) -> None:
        async with self._registry.session(data.get("code")) as lobby:
            await self.publish(lobby.code, lobby.start(connection_id))

    async def _handle_submit_clue(self, connection_id: str, data: dict[str, Any]) -> None:
        async with self._registry.session(data.get("code")) as lobby:
            await self.publish(lobby.code, lobby.submit_clue(connection_id, data.get("clue")))

    async def _handle_submit_vote(self, connection_id: str, data: dict[str, Any]) -> None:
        async with self._registry.session(data.get("code")) as lobby:
            await self.publish(lobby.code, lobby.submit_vote(connection_id, data.get("votedId")))

    async def _handle_chameleon_guess(self, connection_id: str, data: dict[str, Any]) -> None:
        async with self._registry.session(data.get("code")) as lobby:
            await self.publish(lobby.code, lobby.chameleon_guess(connection_id, data.get("guess")))

    async def _handle_play_again(self, connection_id: str, data: dict[str, Any]) -> None:
        async with self._registry.session(data.get("code")) as lobby:
            await self.publish(lobby.code, lobby.play_again(connection_id))

    async def _handle_leave(self, connection_id: str, data: dict[str, Any]) -> None:
        async with self._registry.session(data.get("code")) as lobby:
            messages = lobby.leave(connection_id)
            await self._manager.leave_group(connection_id)
            await self.publish(lobby.code, messages)

    # Utility Methods

    async def publish(self, lobby_code: str, messages: list[Outbound]) -> None:
        """Deliver a transition's messages in order.

        Args:
            lobby_code: The lobby the messages belong to.
            messages: Messages returned by the state machine.
        """
        for message in messages:
            if message.is_broadcast:
                await self._manager.broadcast(lobby_code, message.to_dict())
            else:
                await self._manager.send_to_connection(message.target, message.to_dict())

    async def _send_error(self, connection_id: str, code: str, message: str) -> None:
        """Send error message to a connection.

        Args:
            connection_id: The target connection.
            code: Error code.
            message: Error message.
        """
        await self._manager.send_to_connection(connection_id, error_frame(code, message))


def create_lobby_websocket_handler(
    path: str,
    registry: LobbyRegistry,
    connection_manager: ConnectionManager | None = None,
    *,
    grace_seconds: float = GRACE_PERIOD_SECONDS,
) -> tuple[Router, LobbyWebSocketHandler]:
    """Create a WebSocket router for lobby real-time communication.

    Args:
        path: Base path for WebSocket routes.
        registry: The lobby registry.
        connection_manager: Optional connection manager.
        grace_seconds: How long a dropped player's seat is held.

    Returns:
        A tuple of (Litestar Router, LobbyWebSocketHandler instance).
    """
    handler = LobbyWebSocketHandler(registry, connection_manager, grace_seconds=grace_seconds)

    @websocket(path="/lobby")
    async def lobby_websocket(socket: WebSocket) -> None:
        """WebSocket endpoint for lobby sessions.

        Args:
            socket: The WebSocket connection.
        """
        await handler.handle_connection(socket)

    router = Router(
        path=path,
        route_handlers=[lobby_websocket],
        tags=["Lobby WebSocket"],
    )
    return router, handler
