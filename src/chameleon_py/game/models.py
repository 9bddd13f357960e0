"""Data models for lobbies, players and rounds.

A :class:`Round` is built at round start and discarded when the round ends or
is abandoned; nothing about one round leaks into the next.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

MAX_PLAYERS = 10
MIN_PLAYERS = 3
TURN_SECONDS = 60


@dataclass
class Disconnection:
    """Marker left on a player whose connection dropped.

    Attributes:
        at: When the connection dropped.
        connection_id: The connection that dropped. A grace timer only evicts
            the player if this still matches when it fires.
    """

    at: datetime
    connection_id: str


@dataclass
class Player:
    """A seat in a lobby.

    The ``name`` is the stable identity within a lobby; ``id`` is whatever
    connection currently holds the seat and changes on reconnect.

    Attributes:
        id: Current connection identifier.
        name: Display name, unique (case-insensitive) within the lobby.
        is_host: Whether this player is the lobby host.
        clue: This round's clue, if given.
        vote: Id of the player this one voted for, if any.
        has_voted: Whether this player voted this round.
        disconnected: Set while the connection is down and the seat is held.
        joined_at: When the player joined the lobby.
    """

    id: str
    name: str
    is_host: bool = False
    clue: str | None = None
    vote: str | None = None
    has_voted: bool = False
    disconnected: Disconnection | None = None
    joined_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def reset_round_state(self) -> None:
        """Reset per-round state (clue, vote, has_voted)."""
        self.clue = None
        self.vote = None
        self.has_voted = False

    def matches_name(self, name: str) -> bool:
        """Compare display names case-insensitively."""
        return self.name.casefold() == name.strip().casefold()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for the roster broadcast.

        The vote target stays private until results are revealed.
        """
        return {
            "id": self.id,
            "name": self.name,
            "isHost": self.is_host,
            "hasClue": self.clue is not None,
            "clue": self.clue,
            "hasVoted": self.has_voted,
            "disconnected": self.disconnected is not None,
        }

    def to_ref(self) -> dict[str, str]:
        """Short ``{id, name}`` reference used in turn order payloads."""
        return {"id": self.id, "name": self.name}


@dataclass
class Round:
    """State of one round, from start to results.

    Attributes:
        category: Category drawn for this round.
        secret_word: The word the chameleon does not know.
        decoy_words: Every word in the category.
        chameleon_id: Connection id of this round's chameleon.
        turn_order: Players in clue-giving order. Holds the roster's own
            Player objects, so reconnects are reflected automatically.
        turn_index: Index of the current clue giver in ``turn_order``.
        deadline: Advisory deadline for the current turn or vote. Not enforced.
        accused_id: Player with the most votes, once tallied.
        vote_counts: Votes received per player id, once tallied.
        caught_chameleon: Whether the accused player was the chameleon.
        chameleon_guess: The caught chameleon's final guess.
        chameleon_guess_correct: Whether that guess matched the secret word.
        started_at: When the round started.
    """

    category: str
    secret_word: str
    decoy_words: tuple[str, ...]
    chameleon_id: str
    turn_order: list[Player]
    turn_index: int = 0
    deadline: datetime | None = None
    accused_id: str | None = None
    vote_counts: dict[str, int] = field(default_factory=dict)
    caught_chameleon: bool = False
    chameleon_guess: str | None = None
    chameleon_guess_correct: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def current_player(self) -> Player | None:
        """The player whose turn it is, or None once every clue is in."""
        if self.turn_index < len(self.turn_order):
            return self.turn_order[self.turn_index]
        return None

    @property
    def clues_complete(self) -> bool:
        """Whether every player in the turn order has given a clue."""
        return self.turn_index >= len(self.turn_order)


@dataclass
class LobbySettings:
    """Per-lobby limits.

    Attributes:
        max_players: Seat capacity.
        min_players: Players needed to start a round.
        turn_seconds: Advisory time for each clue turn and for voting.
    """

    max_players: int = MAX_PLAYERS
    min_players: int = MIN_PLAYERS
    turn_seconds: int = TURN_SECONDS


def deadline_to_millis(deadline: datetime | None) -> int | None:
    """Convert an advisory deadline to epoch milliseconds for clients."""
    if deadline is None:
        return None
    return int(deadline.timestamp() * 1000)
