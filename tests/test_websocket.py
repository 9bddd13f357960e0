"""Tests for WebSocket real-time functionality."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from chameleon_py.game.events import ServerEvent, error_frame
from chameleon_py.realtime.handler import LobbyWebSocketHandler
from chameleon_py.realtime.manager import ConnectionManager
from chameleon_py.services.registry import LobbyRegistry


def mock_socket(*incoming: str) -> MagicMock:
    """Create a socket mock that records every frame sent to it, in order."""
    ws = MagicMock()
    ws.sent = []
    ws.accept = AsyncMock()
    ws.send_json = AsyncMock(side_effect=ws.sent.append)
    ws.send_text = AsyncMock(side_effect=lambda text: ws.sent.append(json.loads(text)))

    async def iter_data():
        for message in incoming:
            yield message

    ws.iter_data = iter_data
    return ws


def types(ws: MagicMock) -> list[str]:
    return [frame["type"] for frame in ws.sent]


class TestConnectionManager:
    """Tests for ConnectionManager."""

    @pytest.fixture
    def manager(self) -> ConnectionManager:
        return ConnectionManager()

    async def test_connect_assigns_id(self, manager: ConnectionManager) -> None:
        """Test that connections get a unique id when none is given."""
        first = await manager.connect(mock_socket())
        second = await manager.connect(mock_socket())

        assert first.connection_id != second.connection_id
        assert manager.total_connections == 2

    async def test_join_group_moves_connection(self, manager: ConnectionManager) -> None:
        """Test that a connection belongs to one group at a time."""
        await manager.connect(mock_socket(), "c-1")
        await manager.join_group("c-1", "AAAA")
        await manager.join_group("c-1", "BBBB")

        assert await manager.get_group("AAAA") == []
        assert [c.connection_id for c in await manager.get_group("BBBB")] == ["c-1"]
        assert manager.active_groups == 1

    async def test_broadcast_reaches_group_only(self, manager: ConnectionManager) -> None:
        """Test that broadcasts go to the group minus any excluded connection."""
        inside, excluded, outside = mock_socket(), mock_socket(), mock_socket()
        await manager.connect(inside, "c-in")
        await manager.connect(excluded, "c-ex")
        await manager.connect(outside, "c-out")
        await manager.join_group("c-in", "AAAA")
        await manager.join_group("c-ex", "AAAA")
        await manager.join_group("c-out", "BBBB")

        await manager.broadcast("AAAA", {"type": "ping"}, exclude_connection="c-ex")

        assert inside.sent == [{"type": "ping"}]
        assert excluded.sent == []
        assert outside.sent == []

    async def test_broadcast_survives_failed_send(self, manager: ConnectionManager) -> None:
        """Test that one broken socket does not stop delivery to the others."""
        broken, healthy = mock_socket(), mock_socket()
        broken.send_text = AsyncMock(side_effect=RuntimeError("closed"))
        await manager.connect(broken, "c-broken")
        await manager.connect(healthy, "c-healthy")
        await manager.join_group("c-broken", "AAAA")
        await manager.join_group("c-healthy", "AAAA")

        await manager.broadcast("AAAA", {"type": "ping"})

        assert healthy.sent == [{"type": "ping"}]

    async def test_send_to_missing_connection(self, manager: ConnectionManager) -> None:
        """Test that unicast to a closed connection is dropped."""
        assert await manager.send_to_connection("c-gone", {"type": "ping"}) is False

    async def test_send_failure_returns_false(self, manager: ConnectionManager) -> None:
        """Test that a failed unicast is reported, not raised."""
        ws = mock_socket()
        ws.send_json = AsyncMock(side_effect=RuntimeError("closed"))
        await manager.connect(ws, "c-1")

        assert await manager.send_to_connection("c-1", {"type": "ping"}) is False

    async def test_disconnect_keeps_lobby_code(self, manager: ConnectionManager) -> None:
        """Test that the removed connection still names its lobby."""
        await manager.connect(mock_socket(), "c-1")
        await manager.join_group("c-1", "AAAA")

        connection = await manager.disconnect("c-1")

        assert connection.lobby_code == "AAAA"
        assert await manager.get_group("AAAA") == []
        assert await manager.disconnect("c-1") is None


class TestLobbyWebSocketHandler:
    """Tests for LobbyWebSocketHandler event routing."""

    @pytest.fixture
    def manager(self) -> ConnectionManager:
        return ConnectionManager()

    @pytest.fixture
    def handler(self, registry: LobbyRegistry, manager: ConnectionManager) -> LobbyWebSocketHandler:
        return LobbyWebSocketHandler(registry, manager, grace_seconds=0.02)

    @pytest.fixture
    async def sockets(self, manager: ConnectionManager) -> dict[str, MagicMock]:
        sockets = {name: mock_socket() for name in ("alice", "bob", "carol")}
        for name, ws in sockets.items():
            await manager.connect(ws, f"c-{name}")
        return sockets

    async def create_and_fill(self, handler: LobbyWebSocketHandler, sockets: dict[str, MagicMock]) -> str:
        await handler.handle_event("c-alice", {"type": "create-lobby", "name": "Alice"})
        code = sockets["alice"].sent[0]["code"]
        await handler.handle_event("c-bob", {"type": "join-lobby", "code": code.lower(), "name": "Bob"})
        await handler.handle_event("c-carol", {"type": "join-lobby", "code": code, "name": "Carol"})
        for ws in sockets.values():
            ws.sent.clear()
        return code

    async def test_create_lobby(
        self, handler: LobbyWebSocketHandler, registry: LobbyRegistry, sockets: dict[str, MagicMock]
    ) -> None:
        """Test that the creator receives the new code and roster."""
        await handler.handle_event("c-alice", {"type": "create-lobby", "name": "Alice"})

        frame = sockets["alice"].sent[0]
        assert frame["type"] == "lobby-created"
        assert frame["code"] in registry
        assert frame["players"][0]["isHost"] is True

    async def test_join_lobby(self, handler: LobbyWebSocketHandler, sockets: dict[str, MagicMock]) -> None:
        """Test that joining answers the joiner and notifies the lobby."""
        await handler.handle_event("c-alice", {"type": "create-lobby", "name": "Alice"})
        code = sockets["alice"].sent[0]["code"]

        await handler.handle_event("c-bob", {"type": "join-lobby", "code": code, "name": "Bob"})

        assert types(sockets["bob"]) == ["lobby-joined", "player-joined"]
        assert types(sockets["alice"]) == ["lobby-created", "player-joined"]
        assert sockets["carol"].sent == []

    async def test_missing_and_unknown_type(
        self, handler: LobbyWebSocketHandler, sockets: dict[str, MagicMock]
    ) -> None:
        """Test that malformed events are answered with an error."""
        await handler.handle_event("c-alice", {"code": "ABCD"})
        await handler.handle_event("c-alice", {"type": "dance"})

        assert [f["code"] for f in sockets["alice"].sent] == ["missing-type", "unknown-type"]

    async def test_join_unknown_lobby(self, handler: LobbyWebSocketHandler, sockets: dict[str, MagicMock]) -> None:
        """Test that joining a missing lobby reports lobby-not-found."""
        await handler.handle_event("c-bob", {"type": "join-lobby", "code": "ZZZZ", "name": "Bob"})

        assert sockets["bob"].sent == [error_frame("lobby-not-found", "Lobby not found")]

    async def test_rejected_event_only_reaches_sender(
        self, handler: LobbyWebSocketHandler, sockets: dict[str, MagicMock]
    ) -> None:
        """Test that a rejected start is reported to the sender alone."""
        code = await self.create_and_fill(handler, sockets)

        await handler.handle_event("c-bob", {"type": "start-game", "code": code})

        assert sockets["bob"].sent[0]["type"] == "error"
        assert sockets["bob"].sent[0]["code"] == "not-host"
        assert sockets["alice"].sent == []
        assert sockets["carol"].sent == []

    async def test_silent_error_sends_nothing(
        self, handler: LobbyWebSocketHandler, sockets: dict[str, MagicMock]
    ) -> None:
        """Test that out-of-phase events are dropped without a reply."""
        code = await self.create_and_fill(handler, sockets)

        await handler.handle_event("c-alice", {"type": "submit-vote", "code": code, "votedId": "c-bob"})

        assert all(ws.sent == [] for ws in sockets.values())

    async def test_start_game_sends_private_views(
        self, handler: LobbyWebSocketHandler, sockets: dict[str, MagicMock]
    ) -> None:
        """Test that exactly one player learns they are the chameleon."""
        code = await self.create_and_fill(handler, sockets)

        await handler.handle_event("c-alice", {"type": "start-game", "code": code})

        frames = [ws.sent[0] for ws in sockets.values()]
        assert all(f["type"] == "game-started" for f in frames)
        assert sum(f["isChameleon"] for f in frames) == 1
        assert all((f["secretWord"] is None) == f["isChameleon"] for f in frames)

    async def test_full_round_over_events(
        self, handler: LobbyWebSocketHandler, registry: LobbyRegistry, sockets: dict[str, MagicMock]
    ) -> None:
        """Test a whole round driven through the event router."""
        code = await self.create_and_fill(handler, sockets)
        await handler.handle_event("c-alice", {"type": "start-game", "code": code})
        lobby = registry.lookup(code)

        for player in list(lobby.round.turn_order):
            await handler.handle_event(player.id, {"type": "submit-clue", "code": code, "clue": "fruit"})
        innocent = next(p for p in lobby.players if p.id != lobby.round.chameleon_id)
        for player in list(lobby.players):
            await handler.handle_event(player.id, {"type": "submit-vote", "code": code, "votedId": innocent.id})

        assert types(sockets["carol"])[-1] == ServerEvent.GAME_RESULTS.value
        assert "voting-phase" in types(sockets["carol"])

        await handler.handle_event("c-alice", {"type": "play-again", "code": code})
        assert types(sockets["bob"])[-1] == ServerEvent.RESET_LOBBY.value

    async def test_leave_lobby(
        self, handler: LobbyWebSocketHandler, manager: ConnectionManager, sockets: dict[str, MagicMock]
    ) -> None:
        """Test that a leaver stops receiving lobby broadcasts."""
        code = await self.create_and_fill(handler, sockets)

        await handler.handle_event("c-carol", {"type": "leave-lobby", "code": code})

        assert types(sockets["alice"]) == ["player-left"]
        assert sockets["carol"].sent == []
        assert {c.connection_id for c in await manager.get_group(code)} == {"c-alice", "c-bob"}

    async def test_seated_connection_cannot_create_another_lobby(
        self, handler: LobbyWebSocketHandler, registry: LobbyRegistry, sockets: dict[str, MagicMock]
    ) -> None:
        """Test that a player seated in one lobby cannot open a second one."""
        code = await self.create_and_fill(handler, sockets)

        await handler.handle_event("c-alice", {"type": "create-lobby", "name": "Alice"})

        assert sockets["alice"].sent[-1]["code"] == "already-seated"
        assert registry.codes == [code]

    async def test_seated_connection_cannot_join_another_lobby(
        self,
        handler: LobbyWebSocketHandler,
        registry: LobbyRegistry,
        manager: ConnectionManager,
        sockets: dict[str, MagicMock],
    ) -> None:
        """Test that a seat in one lobby blocks joining or rejoining another."""
        code = await self.create_and_fill(handler, sockets)
        outsider = mock_socket()
        await manager.connect(outsider, "c-dave")
        await handler.handle_event("c-dave", {"type": "create-lobby", "name": "Dave"})
        other_code = outsider.sent[0]["code"]

        await handler.handle_event("c-bob", {"type": "join-lobby", "code": other_code, "name": "Bob"})
        await handler.handle_event("c-bob", {"type": "rejoin-lobby", "code": other_code, "name": "Bob"})

        assert [f["code"] for f in sockets["bob"].sent] == ["already-seated", "already-seated"]
        assert len(registry.lookup(other_code).players) == 1
        assert (await manager.get_connection("c-bob")).lobby_code == code

    async def test_lobby_deleted_after_host_moves_on(
        self,
        handler: LobbyWebSocketHandler,
        registry: LobbyRegistry,
        sockets: dict[str, MagicMock],
    ) -> None:
        """Test that a host who leaves and opens a new lobby leaves no seat behind."""
        await handler.handle_event("c-alice", {"type": "create-lobby", "name": "Alice"})
        first_code = sockets["alice"].sent[0]["code"]
        await handler.handle_event("c-bob", {"type": "join-lobby", "code": first_code, "name": "Bob"})

        await handler.handle_event("c-alice", {"type": "create-lobby", "name": "Alice"})
        await handler.handle_event("c-alice", {"type": "leave-lobby", "code": first_code})
        await handler.handle_event("c-alice", {"type": "create-lobby", "name": "Alice"})
        second_code = sockets["alice"].sent[-1]["code"]
        await handler.handle_disconnect("c-alice")
        await asyncio.sleep(0.1)
        await handler.handle_event("c-bob", {"type": "leave-lobby", "code": first_code})

        assert first_code not in registry
        assert second_code not in registry

    async def test_rejoin_unknown_lobby(self, handler: LobbyWebSocketHandler, sockets: dict[str, MagicMock]) -> None:
        """Test that a rejoin to a missing lobby is answered with rejoin-failed."""
        await handler.handle_event("c-bob", {"type": "rejoin-lobby", "code": "ZZZZ", "name": "Bob"})

        assert sockets["bob"].sent == [{"type": "rejoin-failed"}]

    async def test_disconnect_then_rejoin(
        self, handler: LobbyWebSocketHandler, manager: ConnectionManager, sockets: dict[str, MagicMock]
    ) -> None:
        """Test that a player who reconnects in time keeps their seat and broadcasts."""
        code = await self.create_and_fill(handler, sockets)
        await handler.handle_disconnect("c-bob")

        new_socket = mock_socket()
        await manager.connect(new_socket, "c-bob-2")
        await handler.handle_event("c-bob-2", {"type": "rejoin-lobby", "code": code, "name": "Bob"})
        await asyncio.sleep(0.1)

        assert types(new_socket) == ["rejoin-success"]
        assert sockets["alice"].sent == []

        await handler.handle_event("c-alice", {"type": "start-game", "code": code})
        assert types(new_socket)[-1] == "game-started"

    async def test_disconnect_expires(self, handler: LobbyWebSocketHandler, sockets: dict[str, MagicMock]) -> None:
        """Test that the lobby hears about a player who never returns."""
        await self.create_and_fill(handler, sockets)

        await handler.handle_disconnect("c-bob")
        await asyncio.sleep(0.1)

        assert types(sockets["alice"]) == ["player-left"]
        assert sockets["alice"].sent[0]["leftName"] == "Bob"

    async def test_unexpected_error(
        self,
        handler: LobbyWebSocketHandler,
        registry: LobbyRegistry,
        sockets: dict[str, MagicMock],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test that unexpected failures become an internal-error frame."""
        monkeypatch.setattr(registry, "create", AsyncMock(side_effect=RuntimeError("boom")))

        await handler.handle_event("c-alice", {"type": "create-lobby", "name": "Alice"})

        assert sockets["alice"].sent == [error_frame("internal-error", "Internal server error")]

    async def test_receive_loop(self, handler: LobbyWebSocketHandler) -> None:
        """Test that bad frames are reported and the loop keeps going."""
        ws = mock_socket("not json", "[1, 2]", json.dumps({"type": "create-lobby", "name": "Alice"}))

        await handler.handle_connection(ws)

        ws.accept.assert_awaited_once()
        assert [f.get("code") for f in ws.sent[:2]] == ["invalid-json", "invalid-json"]
        assert ws.sent[2]["type"] == "lobby-created"
        assert handler.guard.pending == 1
        await handler.guard.cancel_all()
