"""Process-wide registry of live lobbies."""

from __future__ import annotations

import asyncio
import random
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from chameleon_py.exceptions import LobbyNotFoundError
from chameleon_py.game.categories import CategoryProvider
from chameleon_py.game.lobby import Lobby
from chameleon_py.game.models import LobbySettings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

logger = structlog.get_logger(__name__)

# No 0/O or 1/I, they are too easy to misread
LOBBY_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
LOBBY_CODE_LENGTH = 4


def generate_lobby_code(rng: random.Random) -> str:
    """Draw a random lobby code.

    Args:
        rng: Random source.

    Returns:
        A code of ``LOBBY_CODE_LENGTH`` characters from ``LOBBY_CODE_ALPHABET``.
    """
    return "".join(rng.choices(LOBBY_CODE_ALPHABET, k=LOBBY_CODE_LENGTH))


def normalize_code(code: Any) -> str:
    """Upper-case and trim a client supplied lobby code."""
    if not isinstance(code, str):
        return ""
    return code.strip().upper()


class LobbyRegistry:
    """Owns the mapping from lobby code to :class:`Lobby`.

    Each lobby has its own :class:`asyncio.Lock`. All reads and writes of a
    lobby go through :meth:`session`, which holds that lock for the whole
    lookup-then-mutate sequence, so events for one lobby never interleave
    while different lobbies proceed independently. Creating and deleting
    entries is serialized by a registry-wide lock.
    """

    def __init__(
        self,
        *,
        settings: LobbySettings | None = None,
        rng: random.Random | None = None,
        categories: CategoryProvider | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            settings: Limits applied to every new lobby.
            rng: Random source for codes, categories and roles.
            categories: Category provider shared by all lobbies.
            clock: Source of the current UTC time.
        """
        self.settings = settings or LobbySettings()
        self._rng = rng or random.Random()
        self._categories = categories or CategoryProvider(rng=self._rng)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._lobbies: dict[str, Lobby] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock = asyncio.Lock()

    async def create(self, host_connection_id: str, host_name: Any) -> Lobby:
        """Create a lobby with a fresh unique code and seat its host.

        Args:
            host_connection_id: The host's connection.
            host_name: The host's display name.

        Returns:
            The registered lobby.

        Raises:
            InvalidInputError: If the host name is blank.
        """
        async with self._lock:
            code = generate_lobby_code(self._rng)
            while code in self._lobbies:
                code = generate_lobby_code(self._rng)

            lobby = Lobby.with_host(
                code,
                host_connection_id,
                host_name,
                settings=self.settings,
                rng=self._rng,
                categories=self._categories,
                clock=self._clock,
            )
            self._lobbies[code] = lobby
            self._locks[code] = asyncio.Lock()

        logger.info("Lobby created", lobby_code=code, host_name=lobby.players[0].name)
        return lobby

    def lookup(self, code: Any) -> Lobby:
        """Get a lobby by code without taking its lock.

        Use :meth:`session` for anything that mutates the lobby.

        Raises:
            LobbyNotFoundError: If no live lobby has this code.
        """
        normalized = normalize_code(code)
        lobby = self._lobbies.get(normalized)
        if lobby is None:
            raise LobbyNotFoundError(normalized)
        return lobby

    async def delete(self, code: str) -> None:
        """Remove a lobby from the registry.

        Args:
            code: The lobby to delete.
        """
        async with self._lock:
            self._discard(normalize_code(code))

    def _discard(self, code: str) -> None:
        if self._lobbies.pop(code, None) is not None:
            self._locks.pop(code, None)
            logger.info("Lobby deleted", lobby_code=code)

    @asynccontextmanager
    async def session(self, code: Any) -> AsyncIterator[Lobby]:
        """Hold a lobby's lock while working on it.

        The lobby is looked up again once the lock is held, since it may have
        been deleted while waiting. If the roster is empty when the block
        exits, the lobby is deleted before the lock is released.

        Args:
            code: The lobby code.

        Yields:
            The locked lobby.

        Raises:
            LobbyNotFoundError: If no live lobby has this code.
        """
        normalized = normalize_code(code)
        lock = self._locks.get(normalized)
        if lock is None:
            raise LobbyNotFoundError(normalized)

        async with lock:
            lobby = self._lobbies.get(normalized)
            if lobby is None:
                raise LobbyNotFoundError(normalized)
            yield lobby
            if lobby.is_empty:
                async with self._lock:
                    if self._lobbies.get(normalized) is lobby:
                        self._discard(normalized)

    def __contains__(self, code: object) -> bool:
        return normalize_code(code) in self._lobbies

    def __len__(self) -> int:
        return len(self._lobbies)

    @property
    def codes(self) -> list[str]:
        """Codes of all live lobbies."""
        return list(self._lobbies)
