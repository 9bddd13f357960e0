"""Tests for the reconnection grace period."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from chameleon_py.game.events import ServerEvent
from chameleon_py.game.types import LobbyPhase
from chameleon_py.services.reconnect import ReconnectionGuard
from chameleon_py.services.registry import LobbyRegistry

GRACE = 0.02


@pytest.fixture
def publish() -> AsyncMock:
    """Create a publish callback that records delivered messages."""
    return AsyncMock()


@pytest.fixture
def guard(registry: LobbyRegistry, publish: AsyncMock) -> ReconnectionGuard:
    """Create a guard with a very short grace period."""
    return ReconnectionGuard(registry, publish, grace_seconds=GRACE)


async def wait_for_expiry() -> None:
    await asyncio.sleep(GRACE * 5)


async def make_lobby(registry: LobbyRegistry) -> str:
    lobby = await registry.create("c-alice", "Alice")
    lobby.join("c-bob", "Bob")
    lobby.join("c-carol", "Carol")
    return lobby.code


class TestReconnectionGuard:
    """Tests for ReconnectionGuard."""

    async def test_disconnect_holds_seat(self, registry: LobbyRegistry, guard: ReconnectionGuard) -> None:
        """Test that a drop marks the player and starts a timer."""
        code = await make_lobby(registry)

        player = await guard.on_disconnect(code, "c-bob")

        assert player.name == "Bob"
        assert player.disconnected is not None
        assert guard.pending == 1
        assert len(registry.lookup(code).players) == 3
        await guard.cancel_all()

    async def test_expiry_removes_player(
        self, registry: LobbyRegistry, guard: ReconnectionGuard, publish: AsyncMock
    ) -> None:
        """Test that the seat is released once the grace period ends."""
        code = await make_lobby(registry)

        await guard.on_disconnect(code, "c-bob")
        await wait_for_expiry()

        lobby = registry.lookup(code)
        assert lobby.find_by_name("Bob") is None
        publish.assert_awaited_once()
        published_code, messages = publish.await_args.args
        assert published_code == code
        assert messages[0].event is ServerEvent.PLAYER_LEFT
        assert messages[0].payload["leftName"] == "Bob"
        assert guard.pending == 0

    async def test_rejoin_within_grace(
        self, registry: LobbyRegistry, guard: ReconnectionGuard, publish: AsyncMock
    ) -> None:
        """Test that rejoining in time keeps the seat."""
        code = await make_lobby(registry)

        await guard.on_disconnect(code, "c-bob")
        async with registry.session(code) as lobby:
            lobby.rejoin("c-bob-2", "Bob")
        await wait_for_expiry()

        lobby = registry.lookup(code)
        assert lobby.find_by_name("Bob").id == "c-bob-2"
        publish.assert_not_awaited()

    async def test_host_expiry_transfers_host(
        self, registry: LobbyRegistry, guard: ReconnectionGuard
    ) -> None:
        """Test that a host who never returns hands over to the next player."""
        code = await make_lobby(registry)

        await guard.on_disconnect(code, "c-alice")
        await wait_for_expiry()

        lobby = registry.lookup(code)
        assert lobby.host_id == "c-bob"
        assert lobby.players[0].is_host is True

    async def test_expiry_interrupts_round(
        self, registry: LobbyRegistry, guard: ReconnectionGuard, publish: AsyncMock
    ) -> None:
        """Test that losing a player mid-round returns the lobby to waiting."""
        code = await make_lobby(registry)
        async with registry.session(code) as lobby:
            lobby.start("c-alice")

        await guard.on_disconnect(code, "c-carol")
        await wait_for_expiry()

        _, messages = publish.await_args.args
        assert [m.event for m in messages] == [ServerEvent.PLAYER_LEFT, ServerEvent.GAME_INTERRUPTED]
        assert messages[1].payload["reason"] == "Carol disconnected"
        assert registry.lookup(code).phase is LobbyPhase.WAITING

    async def test_last_player_expiry_deletes_lobby(
        self, registry: LobbyRegistry, guard: ReconnectionGuard, publish: AsyncMock
    ) -> None:
        """Test that the lobby goes away when its only player never returns."""
        lobby = await registry.create("c-solo", "Solo")

        await guard.on_disconnect(lobby.code, "c-solo")
        await wait_for_expiry()

        assert lobby.code not in registry
        publish.assert_not_awaited()

    async def test_expiry_after_lobby_deleted(
        self, registry: LobbyRegistry, guard: ReconnectionGuard, publish: AsyncMock
    ) -> None:
        """Test that a timer for a deleted lobby does nothing."""
        code = await make_lobby(registry)
        await guard.on_disconnect(code, "c-bob")

        await registry.delete(code)
        await wait_for_expiry()

        publish.assert_not_awaited()
        assert guard.pending == 0

    async def test_unknown_lobby_or_connection(self, registry: LobbyRegistry, guard: ReconnectionGuard) -> None:
        """Test that drops without a seat schedule nothing."""
        code = await make_lobby(registry)

        assert await guard.on_disconnect("ZZZZ", "c-bob") is None
        assert await guard.on_disconnect(code, "c-ghost") is None
        assert guard.pending == 0

    async def test_cancel_all(self, registry: LobbyRegistry, publish: AsyncMock) -> None:
        """Test that shutdown cancels pending timers."""
        guard = ReconnectionGuard(registry, publish, grace_seconds=60)
        code = await make_lobby(registry)
        await guard.on_disconnect(code, "c-bob")

        await guard.cancel_all()

        assert guard.pending == 0
        assert registry.lookup(code).find_by_name("Bob") is not None
