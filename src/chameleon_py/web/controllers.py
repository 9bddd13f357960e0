"""Litestar controllers for chameleon-py API endpoints."""

from __future__ import annotations

from typing import Any, ClassVar

from litestar import Controller, get

from chameleon_py.services.registry import LobbyRegistry


class LobbyController(Controller):
    """Read-only lobby lookups.

    Lets a client check a code before opening a WebSocket. All game actions
    go over the lobby socket.
    """

    path = "/lobbies"
    tags: ClassVar[list[str]] = ["Lobbies"]

    @get("/{code:str}")
    async def get_lobby(self, code: str, registry: LobbyRegistry) -> dict[str, Any]:
        """Get a lobby's public summary.

        Args:
            code: The lobby code (case-insensitive).
            registry: The lobby registry (injected).

        Returns:
            Code, phase, player count, capacity and whether it can be joined.

        Raises:
            LobbyNotFoundError: If no live lobby has this code.
        """
        return registry.lookup(code).summary()
