"""Connection manager for lobby WebSocket sessions."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from litestar import WebSocket

logger = structlog.get_logger(__name__)


@dataclass
class Connection:
    """A live client connection.

    Attributes:
        connection_id: Opaque identifier, unique per socket.
        websocket: The underlying socket.
        lobby_code: The lobby group this connection receives broadcasts from.
        connected_at: When the socket was accepted.
    """

    connection_id: str
    websocket: WebSocket
    lobby_code: str | None = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "connection_id": self.connection_id,
            "lobby_code": self.lobby_code,
            "connected_at": self.connected_at.isoformat(),
        }


class ConnectionManager:
    """Tracks connections and the lobby group each belongs to.

    Provides unicast to a connection and broadcast to a lobby group. Delivery
    is best effort: a failed send is logged and dropped, never retried, and
    only connections currently in the group receive a broadcast.
    """

    def __init__(self) -> None:
        """Initialize the connection manager."""
        self._connections: dict[str, Connection] = {}
        self._groups: dict[str, set[str]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, connection_id: str | None = None) -> Connection:
        """Register a newly accepted socket.

        Args:
            websocket: The WebSocket connection.
            connection_id: Identifier to use. A random one is generated if None.

        Returns:
            The Connection instance.
        """
        async with self._lock:
            connection = Connection(connection_id=connection_id or uuid4().hex, websocket=websocket)
            self._connections[connection.connection_id] = connection

        logger.info(
            "Connection opened",
            connection_id=connection.connection_id,
            total_connections=len(self._connections),
        )
        return connection

    async def disconnect(self, connection_id: str) -> Connection | None:
        """Forget a connection and drop it from its group.

        Args:
            connection_id: The connection that closed.

        Returns:
            The removed connection (its ``lobby_code`` still set), or None.
        """
        async with self._lock:
            connection = self._connections.pop(connection_id, None)
            if connection is None:
                return None
            self._remove_from_group(connection)

        logger.info(
            "Connection closed",
            connection_id=connection_id,
            lobby_code=connection.lobby_code,
            remaining_connections=len(self._connections),
        )
        return connection

    async def join_group(self, connection_id: str, lobby_code: str) -> None:
        """Subscribe a connection to a lobby's broadcasts.

        A connection belongs to at most one group; joining another one
        leaves the previous group.

        Args:
            connection_id: The connection.
            lobby_code: The lobby to subscribe to.
        """
        async with self._lock:
            connection = self._connections.get(connection_id)
            if connection is None:
                return
            if connection.lobby_code != lobby_code:
                self._remove_from_group(connection)
            connection.lobby_code = lobby_code
            self._groups.setdefault(lobby_code, set()).add(connection_id)

    async def leave_group(self, connection_id: str) -> None:
        """Unsubscribe a connection from its lobby's broadcasts.

        Args:
            connection_id: The connection.
        """
        async with self._lock:
            connection = self._connections.get(connection_id)
            if connection is None:
                return
            self._remove_from_group(connection)
            connection.lobby_code = None

    def _remove_from_group(self, connection: Connection) -> None:
        if connection.lobby_code is None:
            return
        members = self._groups.get(connection.lobby_code)
        if members is None:
            return
        members.discard(connection.connection_id)
        if not members:
            del self._groups[connection.lobby_code]
            logger.debug("Lobby group emptied", lobby_code=connection.lobby_code)

    async def get_connection(self, connection_id: str) -> Connection | None:
        """Get a connection by id."""
        async with self._lock:
            return self._connections.get(connection_id)

    async def get_group(self, lobby_code: str) -> list[Connection]:
        """Get all connections subscribed to a lobby.

        Args:
            lobby_code: The lobby to query.

        Returns:
            List of connections.
        """
        async with self._lock:
            return [self._connections[cid] for cid in self._groups.get(lobby_code, set()) if cid in self._connections]

    async def broadcast(
        self,
        lobby_code: str,
        message: dict[str, Any],
        exclude_connection: str | None = None,
    ) -> None:
        """Broadcast a message to everyone in a lobby group.

        Args:
            lobby_code: The lobby to broadcast to.
            message: The message to send.
            exclude_connection: Optional connection id to skip.
        """
        connections = await self.get_group(lobby_code)
        json_message = json.dumps(message)

        tasks = [
            self._send_text(connection, json_message)
            for connection in connections
            if connection.connection_id != exclude_connection
        ]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def send_to_connection(self, connection_id: str, message: dict[str, Any]) -> bool:
        """Send a message to a single connection.

        Args:
            connection_id: The target connection.
            message: The message to send.

        Returns:
            True if sent successfully, False otherwise.
        """
        connection = await self.get_connection(connection_id)
        if connection is None:
            logger.debug("Dropped message for closed connection", connection_id=connection_id)
            return False

        try:
            await connection.websocket.send_json(message)
            return True
        except Exception:
            logger.exception("Failed to send message to connection", connection_id=connection_id)
            return False

    async def _send_text(self, connection: Connection, message: str) -> None:
        try:
            await connection.websocket.send_text(message)
        except Exception:
            logger.exception(
                "Failed to send message",
                connection_id=connection.connection_id,
                lobby_code=connection.lobby_code,
            )

    @property
    def active_groups(self) -> int:
        """Get the number of lobby groups with at least one connection."""
        return len(self._groups)

    @property
    def total_connections(self) -> int:
        """Get the total number of open connections."""
        return len(self._connections)
