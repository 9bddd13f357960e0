"""Real-time WebSocket module for chameleon-py.

This module provides the lobby socket endpoint, connection tracking and
lobby-group broadcasting.
"""

from __future__ import annotations

from chameleon_py.realtime.handler import LobbyWebSocketHandler, create_lobby_websocket_handler
from chameleon_py.realtime.manager import Connection, ConnectionManager

__all__ = [
    "Connection",
    "ConnectionManager",
    "LobbyWebSocketHandler",
    "create_lobby_websocket_handler",
]
