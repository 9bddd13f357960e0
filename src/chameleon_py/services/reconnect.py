"""Grace period handling for dropped connections."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from chameleon_py.exceptions import LobbyNotFoundError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from chameleon_py.game.events import Outbound
    from chameleon_py.game.models import Player
    from chameleon_py.services.registry import LobbyRegistry

    Publisher = Callable[[str, list[Outbound]], Awaitable[None]]

logger = structlog.get_logger(__name__)

GRACE_PERIOD_SECONDS = 5.0


class ReconnectionGuard:
    """Holds a dropped player's seat for a grace period.

    On disconnect the player is only marked. A one-shot timer keyed by
    ``(lobby code, player name, connection id)`` fires after the grace period,
    takes the lobby lock again and removes the player only if the marker still
    names the same connection. A rejoin in between clears the marker, which
    is what makes a stale timer harmless; timers are never cancelled for that.
    """

    def __init__(
        self,
        registry: LobbyRegistry,
        publish: Publisher,
        *,
        grace_seconds: float = GRACE_PERIOD_SECONDS,
    ) -> None:
        """Initialize the guard.

        Args:
            registry: Registry used to re-locate and lock the lobby.
            publish: Coroutine that delivers a lobby's outbound messages.
            grace_seconds: How long a dropped player's seat is held.
        """
        self._registry = registry
        self._publish = publish
        self.grace_seconds = grace_seconds
        self._tasks: dict[tuple[str, str, str], asyncio.Task] = {}

    async def on_disconnect(self, code: str, connection_id: str) -> Player | None:
        """Mark the player on ``connection_id`` disconnected and start the timer.

        Args:
            code: The lobby the connection was in.
            connection_id: The dropped connection.

        Returns:
            The player whose seat is held, or None if there was none.
        """
        try:
            async with self._registry.session(code) as lobby:
                player = lobby.mark_disconnected(connection_id)
        except LobbyNotFoundError:
            return None

        if player is not None:
            self.schedule(lobby.code, player.name, connection_id)
        return player

    def schedule(self, code: str, name: str, connection_id: str) -> asyncio.Task:
        """Start the grace timer for one dropped connection.

        Args:
            code: The lobby code.
            name: The player's display name.
            connection_id: The dropped connection.

        Returns:
            The timer task.
        """
        key = (code, name, connection_id)
        task = asyncio.create_task(self._expire(code, name, connection_id))
        self._tasks[key] = task
        task.add_done_callback(lambda done: self._forget(key, done))

        logger.debug(
            "Grace timer scheduled",
            lobby_code=code,
            player_name=name,
            connection_id=connection_id,
            grace_seconds=self.grace_seconds,
        )
        return task

    async def _expire(self, code: str, name: str, connection_id: str) -> None:
        """Wait out the grace period, then release the seat if still unclaimed."""
        await asyncio.sleep(self.grace_seconds)
        try:
            async with self._registry.session(code) as lobby:
                messages = lobby.expire_disconnect(name, connection_id)
                if messages:
                    await self._publish(lobby.code, messages)
        except LobbyNotFoundError:
            logger.debug("Grace timer fired for deleted lobby", lobby_code=code)
        except Exception:
            logger.exception("Grace timer failed", lobby_code=code, player_name=name)

    def _forget(self, key: tuple[str, str, str], task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]

    @property
    def pending(self) -> int:
        """Number of grace timers still running."""
        return len(self._tasks)

    async def cancel_all(self) -> None:
        """Cancel every pending timer (used on shutdown)."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
