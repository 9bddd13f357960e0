"""Event names and the outbound message envelope.

The lobby state machine never talks to sockets. Each transition returns a list
of :class:`Outbound` messages that the realtime layer publishes in order,
either to one connection or to everyone in the lobby.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ClientEvent(StrEnum):
    """Events sent by clients."""

    CREATE_LOBBY = "create-lobby"
    JOIN_LOBBY = "join-lobby"
    REJOIN_LOBBY = "rejoin-lobby"
    START_GAME = "start-game"
    SUBMIT_CLUE = "submit-clue"
    SUBMIT_VOTE = "submit-vote"
    CHAMELEON_GUESS = "chameleon-guess"
    PLAY_AGAIN = "play-again"
    LEAVE_LOBBY = "leave-lobby"


class ServerEvent(StrEnum):
    """Events sent by the server."""

    LOBBY_CREATED = "lobby-created"
    LOBBY_JOINED = "lobby-joined"
    PLAYER_JOINED = "player-joined"
    REJOIN_SUCCESS = "rejoin-success"
    REJOIN_FAILED = "rejoin-failed"
    GAME_STARTED = "game-started"
    CLUE_SUBMITTED = "clue-submitted"
    NEXT_PLAYER = "next-player"
    VOTING_PHASE = "voting-phase"
    VOTE_CAST = "vote-cast"
    CHAMELEON_GUESS_PHASE = "chameleon-guess-phase"
    GAME_RESULTS = "game-results"
    RESET_LOBBY = "reset-lobby"
    PLAYER_LEFT = "player-left"
    GAME_INTERRUPTED = "game-interrupted"
    ERROR = "error"


@dataclass(frozen=True)
class Outbound:
    """A server event addressed to one connection or the whole lobby.

    Attributes:
        event: The server event name.
        payload: Event fields, merged into the frame next to ``type``.
        target: Connection id for unicast, None to broadcast to the lobby.
    """

    event: ServerEvent
    payload: dict[str, Any] = field(default_factory=dict)
    target: str | None = None

    @classmethod
    def broadcast(cls, event: ServerEvent, **payload: Any) -> Outbound:
        """Create a message for every connection in the lobby."""
        return cls(event=event, payload=payload)

    @classmethod
    def unicast(cls, target: str, event: ServerEvent, **payload: Any) -> Outbound:
        """Create a message for a single connection."""
        return cls(event=event, payload=payload, target=target)

    @property
    def is_broadcast(self) -> bool:
        """Whether this message goes to the whole lobby."""
        return self.target is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON frame sent over the wire."""
        return {"type": self.event.value, **self.payload}


def error_frame(code: str, message: str) -> dict[str, Any]:
    """Build an ``error`` frame.

    Args:
        code: Kebab-case error code.
        message: Human readable description.

    Returns:
        The frame to send to the originating connection.
    """
    return {"type": ServerEvent.ERROR.value, "code": code, "message": message}
