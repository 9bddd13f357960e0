"""Lobby state machine.

A :class:`Lobby` owns one session: the roster, the phase and the current
:class:`~chameleon_py.game.models.Round`. Every transition validates first and
raises a :class:`~chameleon_py.exceptions.ChameleonError` before touching any
state, then mutates and returns the messages to publish.

Callers are expected to hold the lobby's lock (see
:class:`~chameleon_py.services.registry.LobbyRegistry`) for the whole call.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import structlog

from chameleon_py.exceptions import (
    AlreadySeatedError,
    AlreadyVotedError,
    GameInProgressError,
    InsufficientPlayersError,
    InvalidInputError,
    InvalidPhaseError,
    LobbyFullError,
    NameTakenError,
    NotChameleonError,
    NotHostError,
    NotYourTurnError,
    PlayerNotFoundError,
)
from chameleon_py.game.categories import CategoryProvider
from chameleon_py.game.events import Outbound, ServerEvent
from chameleon_py.game.models import Disconnection, LobbySettings, Player, Round, deadline_to_millis
from chameleon_py.game.turns import TurnSequencer
from chameleon_py.game.types import LobbyPhase
from chameleon_py.game.voting import VoteTally

if TYPE_CHECKING:
    from collections.abc import Callable

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _require_text(value: Any, field_name: str) -> str:
    """Return ``value`` stripped, or raise if it is not a non-blank string."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(field_name)
    return value.strip()


def first_word(text: Any) -> str:
    """Reduce a clue to its first whitespace-delimited token.

    Anything after the first word is discarded, so a clue cannot simply
    restate a multi-word secret.

    Raises:
        InvalidInputError: If the clue is missing or blank.
    """
    return _require_text(text, "clue").split()[0]


@dataclass
class Lobby:
    """One game session and its state machine.

    Attributes:
        code: Short join code, unique among live lobbies.
        settings: Capacity and timing limits.
        host_id: Connection id of the host; always matches the player with
            ``is_host`` set.
        players: Roster in join order.
        phase: Current phase.
        round: State of the round in progress; None while waiting.
        created_at: When the lobby was created.
    """

    code: str
    settings: LobbySettings = field(default_factory=LobbySettings)
    host_id: str | None = None
    players: list[Player] = field(default_factory=list)
    phase: LobbyPhase = LobbyPhase.WAITING
    round: Round | None = None
    created_at: datetime = field(default_factory=_utcnow)
    rng: random.Random = field(default_factory=random.Random, repr=False)
    categories: CategoryProvider | None = field(default=None, repr=False)
    clock: Callable[[], datetime] = field(default=_utcnow, repr=False)

    def __post_init__(self) -> None:
        """Wire the random source into the round helpers."""
        if self.categories is None:
            self.categories = CategoryProvider(rng=self.rng)
        self._sequencer = TurnSequencer(self.rng)
        self._log = logger.bind(lobby_code=self.code)

    @classmethod
    def with_host(cls, code: str, connection_id: str, name: Any, **kwargs: Any) -> Lobby:
        """Create a lobby seated with its host.

        Args:
            code: The lobby code.
            connection_id: The host's connection.
            name: The host's display name.
            **kwargs: Extra Lobby fields (settings, rng, categories, clock).

        Returns:
            The new lobby.

        Raises:
            InvalidInputError: If the name is blank.
        """
        host_name = _require_text(name, "name")
        lobby = cls(code=code, **kwargs)
        lobby.players.append(Player(id=connection_id, name=host_name, is_host=True))
        lobby.host_id = connection_id
        return lobby

    # Lookups

    @property
    def is_empty(self) -> bool:
        """Whether the roster is empty and the lobby should be deleted."""
        return not self.players

    def get_player(self, connection_id: str) -> Player | None:
        """Get the player currently holding ``connection_id``."""
        return next((p for p in self.players if p.id == connection_id), None)

    def find_by_name(self, name: str) -> Player | None:
        """Get a player by display name, case-insensitively."""
        return next((p for p in self.players if p.matches_name(name)), None)

    def is_host(self, connection_id: str) -> bool:
        """Check whether ``connection_id`` is the host's connection."""
        return self.host_id is not None and self.host_id == connection_id

    def roster(self) -> list[dict[str, Any]]:
        """Serialize the roster for broadcasts."""
        return [p.to_dict() for p in self.players]

    def summary(self) -> dict[str, Any]:
        """Public summary used by the lobby lookup endpoint."""
        return {
            "code": self.code,
            "phase": self.phase.value,
            "playerCount": len(self.players),
            "capacity": self.settings.max_players,
            "joinable": self.phase is LobbyPhase.WAITING and len(self.players) < self.settings.max_players,
        }

    # Membership

    def join(self, connection_id: str, name: Any) -> list[Outbound]:
        """Seat a new player.

        Raises:
            InvalidInputError: If the name is blank.
            GameInProgressError: If a round is being played.
            LobbyFullError: If the lobby is at capacity.
            NameTakenError: If the name is already used.
            AlreadySeatedError: If the connection already holds a seat here.
        """
        player_name = _require_text(name, "name")
        if self.get_player(connection_id) is not None:
            raise AlreadySeatedError(connection_id)
        if self.phase is not LobbyPhase.WAITING:
            raise GameInProgressError
        if len(self.players) >= self.settings.max_players:
            raise LobbyFullError(self.settings.max_players)
        if self.find_by_name(player_name):
            raise NameTakenError(player_name)

        self.players.append(Player(id=connection_id, name=player_name))
        self._log.info("Player joined lobby", player_name=player_name, player_count=len(self.players))

        return [
            Outbound.unicast(connection_id, ServerEvent.LOBBY_JOINED, code=self.code, players=self.roster()),
            Outbound.broadcast(ServerEvent.PLAYER_JOINED, players=self.roster()),
        ]

    def rejoin(self, connection_id: str, name: Any) -> list[Outbound]:
        """Reclaim a seat by name after a reconnect.

        A known name gets its seat back under the new connection id. An
        unknown name is seated fresh if the lobby is waiting and has room.
        A connection already seated under another name cannot claim a second
        seat. Anything else is answered with ``rejoin-failed``.
        """
        if not isinstance(name, str) or not name.strip():
            return [Outbound.unicast(connection_id, ServerEvent.REJOIN_FAILED)]

        player = self.find_by_name(name)
        seated = self.get_player(connection_id)
        if seated is not None and seated is not player:
            self._log.info("Rejoin refused, connection already seated", player_name=seated.name)
            return [Outbound.unicast(connection_id, ServerEvent.REJOIN_FAILED)]

        if player is None:
            if self.phase is not LobbyPhase.WAITING or len(self.players) >= self.settings.max_players:
                return [Outbound.unicast(connection_id, ServerEvent.REJOIN_FAILED)]
            self.players.append(Player(id=connection_id, name=name.strip()))
            self._log.info("Player joined lobby via rejoin", player_name=name.strip())
            return [
                Outbound.unicast(
                    connection_id,
                    ServerEvent.REJOIN_SUCCESS,
                    code=self.code,
                    players=self.roster(),
                    phase=self.phase.value,
                    isHost=False,
                ),
                Outbound.broadcast(ServerEvent.PLAYER_JOINED, players=self.roster()),
            ]

        previous_id = player.id
        self._reassign_connection(player, connection_id)
        player.disconnected = None
        self._log.info(
            "Player rejoined lobby",
            player_name=player.name,
            previous_connection=previous_id,
            phase=self.phase.value,
        )

        payload: dict[str, Any] = {
            "code": self.code,
            "players": self.roster(),
            "phase": self.phase.value,
            "isHost": self.is_host(connection_id),
        }
        if self.round is not None:
            payload["round"] = self.round_view(player)
        return [Outbound.unicast(connection_id, ServerEvent.REJOIN_SUCCESS, **payload)]

    def _reassign_connection(self, player: Player, connection_id: str) -> None:
        """Move every reference to the player's old connection id to the new one."""
        old_id = player.id
        player.id = connection_id
        if self.host_id == old_id:
            self.host_id = connection_id
        for other in self.players:
            if other.vote == old_id:
                other.vote = connection_id
        if self.round is not None:
            if self.round.chameleon_id == old_id:
                self.round.chameleon_id = connection_id
            if self.round.accused_id == old_id:
                self.round.accused_id = connection_id
            if old_id in self.round.vote_counts:
                self.round.vote_counts[connection_id] = self.round.vote_counts.pop(old_id)

    def leave(self, connection_id: str) -> list[Outbound]:
        """Remove the player on ``connection_id`` at their request.

        Raises:
            PlayerNotFoundError: If the connection holds no seat here.
        """
        player = self.get_player(connection_id)
        if player is None:
            raise PlayerNotFoundError(connection_id)
        return self._remove(player, reason=f"{player.name} left")

    def mark_disconnected(self, connection_id: str) -> Player | None:
        """Hold the seat of a player whose connection dropped.

        Nothing is broadcast; the seat is only released if the grace period
        expires without a rejoin.

        Returns:
            The affected player, or None if the connection held no seat.
        """
        player = self.get_player(connection_id)
        if player is None:
            return None
        player.disconnected = Disconnection(at=self.clock(), connection_id=connection_id)
        self._log.info("Player disconnected, holding seat", player_name=player.name)
        return player

    def expire_disconnect(self, name: str, connection_id: str) -> list[Outbound]:
        """Release a held seat once the grace period is over.

        The seat is only released if the player is still marked disconnected
        from ``connection_id``; a rejoin in the meantime clears or replaces
        the marker and turns this into a no-op.
        """
        player = self.find_by_name(name)
        if player is None or player.disconnected is None:
            return []
        if player.disconnected.connection_id != connection_id:
            return []
        self._log.info("Grace period expired, removing player", player_name=player.name)
        return self._remove(player, reason=f"{player.name} disconnected")

    def _remove(self, player: Player, *, reason: str) -> list[Outbound]:
        """Drop a player, hand over host and abandon any round in progress."""
        self.players.remove(player)

        if not self.players:
            self._end_round()
            self.host_id = None
            self._log.info("Last player left lobby", player_name=player.name)
            return []

        if player.is_host:
            new_host = self.players[0]
            new_host.is_host = True
            self.host_id = new_host.id
            self._log.info("Host transferred", previous_host=player.name, new_host=new_host.name)

        messages = [Outbound.broadcast(ServerEvent.PLAYER_LEFT, players=self.roster(), leftName=player.name)]

        if self.phase.in_round:
            self._log.info("Round interrupted", reason=reason, phase=self.phase.value)
            self._end_round()
            messages.append(Outbound.broadcast(ServerEvent.GAME_INTERRUPTED, reason=reason, players=self.roster()))

        return messages

    def _end_round(self) -> None:
        """Discard the round and return to the waiting phase."""
        self.phase = LobbyPhase.WAITING
        self.round = None
        for p in self.players:
            p.reset_round_state()

    # Round flow

    def start(self, connection_id: str) -> list[Outbound]:
        """Start a round (host only).

        Raises:
            NotHostError: If the request is not from the host.
            GameInProgressError: If a round is already underway.
            InsufficientPlayersError: If fewer than the minimum players are seated.
        """
        if not self.is_host(connection_id):
            raise NotHostError("start the game")
        if self.phase not in (LobbyPhase.WAITING, LobbyPhase.RESULTS):
            raise GameInProgressError
        if len(self.players) < self.settings.min_players:
            raise InsufficientPlayersError(self.settings.min_players, len(self.players))

        for p in self.players:
            p.reset_round_state()

        draw = self.categories.draw()
        chameleon = self.rng.choice(self.players)
        self.round = Round(
            category=draw.category,
            secret_word=draw.secret_word,
            decoy_words=draw.words,
            chameleon_id=chameleon.id,
            turn_order=self._sequencer.build_order(self.players),
            deadline=self._next_deadline(),
            started_at=self.clock(),
        )
        self.phase = LobbyPhase.CLUE_PHASE

        self._log.info("Round started", category=draw.category, player_count=len(self.players))
        self._log.debug("Round roles drawn", chameleon=chameleon.name, secret_word=draw.secret_word)

        return [Outbound.unicast(p.id, ServerEvent.GAME_STARTED, **self.round_view(p)) for p in self.players]

    def submit_clue(self, connection_id: str, clue: Any) -> list[Outbound]:
        """Record the current player's clue and advance the turn.

        Raises:
            InvalidPhaseError: If the lobby is not in the clue phase.
            NotYourTurnError: If the clue is not from the current player.
            InvalidInputError: If the clue is blank.
        """
        current_round = self._require_round(LobbyPhase.CLUE_PHASE)
        player = current_round.current_player
        if player is None or player.id != connection_id:
            raise NotYourTurnError

        player.clue = first_word(clue)
        messages = [
            Outbound.broadcast(
                ServerEvent.CLUE_SUBMITTED,
                playerId=player.id,
                playerName=player.name,
                clue=player.clue,
                allClues=self._all_clues(),
            )
        ]

        current_round.turn_index = self._sequencer.advance(current_round.turn_order, current_round.turn_index)
        current_round.deadline = self._next_deadline()

        if current_round.clues_complete:
            self.phase = LobbyPhase.VOTING
            self._log.info("All clues in, voting started")
            messages.append(
                Outbound.broadcast(
                    ServerEvent.VOTING_PHASE,
                    allClues=self._all_clues(),
                    deadline=deadline_to_millis(current_round.deadline),
                )
            )
        else:
            messages.append(
                Outbound.broadcast(
                    ServerEvent.NEXT_PLAYER,
                    currentPlayer=current_round.current_player.to_ref(),
                    deadline=deadline_to_millis(current_round.deadline),
                )
            )
        return messages

    def submit_vote(self, connection_id: str, voted_id: Any) -> list[Outbound]:
        """Record a vote; tally once everyone has voted.

        Raises:
            InvalidPhaseError: If the lobby is not voting.
            PlayerNotFoundError: If the voter holds no seat.
            AlreadyVotedError: If the voter already voted this round.
            InvalidInputError: If the target is not a seated player.
        """
        self._require_round(LobbyPhase.VOTING)
        voter = self.get_player(connection_id)
        if voter is None:
            raise PlayerNotFoundError(connection_id)
        if voter.has_voted:
            raise AlreadyVotedError(voter.name)
        if not isinstance(voted_id, str) or self.get_player(voted_id) is None:
            raise InvalidInputError("votedId", "Vote for a player in this lobby")

        voter.vote = voted_id
        voter.has_voted = True
        messages = [
            Outbound.broadcast(
                ServerEvent.VOTE_CAST,
                voterId=voter.id,
                voterName=voter.name,
                votesCount=sum(1 for p in self.players if p.has_voted),
                totalPlayers=len(self.players),
            )
        ]

        if all(p.has_voted for p in self.players):
            messages.extend(self._resolve_votes())
        return messages

    def _resolve_votes(self) -> list[Outbound]:
        """Tally the votes and move to the guessing or results phase."""
        current_round = self.round
        result = VoteTally.tally(self.players)
        current_round.accused_id = result.accused_id
        current_round.vote_counts = result.counts
        current_round.caught_chameleon = result.accused_id == current_round.chameleon_id

        self._log.info(
            "Votes tallied",
            accused=self._name_of(result.accused_id),
            caught_chameleon=current_round.caught_chameleon,
        )

        if current_round.caught_chameleon:
            self.phase = LobbyPhase.CHAMELEON_GUESSING
            chameleon_name = self._name_of(current_round.chameleon_id)
            return [
                Outbound.broadcast(
                    ServerEvent.CHAMELEON_GUESS_PHASE,
                    chameleonId=current_round.chameleon_id,
                    chameleonName=chameleon_name,
                    accusedId=result.accused_id,
                    accusedName=chameleon_name,
                    votes=self._votes(),
                    voteCounts=dict(result.counts),
                    decoyWords=list(current_round.decoy_words),
                    category=current_round.category,
                )
            ]

        current_round.chameleon_guess_correct = False
        return self._finish()

    def chameleon_guess(self, connection_id: str, guess: Any) -> list[Outbound]:
        """Take the caught chameleon's guess at the secret word.

        Raises:
            InvalidPhaseError: If the lobby is not waiting for the guess.
            NotChameleonError: If the guess is not from the chameleon.
            InvalidInputError: If the guess is blank.
        """
        current_round = self._require_round(LobbyPhase.CHAMELEON_GUESSING)
        if connection_id != current_round.chameleon_id:
            raise NotChameleonError
        final_guess = _require_text(guess, "guess")

        current_round.chameleon_guess = final_guess
        current_round.chameleon_guess_correct = final_guess.casefold() == current_round.secret_word.casefold()
        self._log.info("Chameleon guessed", correct=current_round.chameleon_guess_correct)
        return self._finish()

    def _finish(self) -> list[Outbound]:
        """Enter the results phase and reveal everything."""
        current_round = self.round
        self.phase = LobbyPhase.RESULTS
        return [
            Outbound.broadcast(
                ServerEvent.GAME_RESULTS,
                chameleonId=current_round.chameleon_id,
                chameleonName=self._name_of(current_round.chameleon_id),
                secretWord=current_round.secret_word,
                category=current_round.category,
                caughtChameleon=current_round.caught_chameleon,
                chameleonGuess=current_round.chameleon_guess,
                chameleonGuessCorrect=current_round.chameleon_guess_correct,
                accusedId=current_round.accused_id,
                accusedName=self._name_of(current_round.accused_id),
                votes=self._votes(),
                voteCounts=dict(current_round.vote_counts),
            )
        ]

    def play_again(self, connection_id: str) -> list[Outbound]:
        """Return the lobby to waiting for another round (host only).

        Accepted from any phase so a host can always reset a stuck lobby.

        Raises:
            NotHostError: If the request is not from the host.
        """
        if not self.is_host(connection_id):
            raise NotHostError("restart the game")
        self._end_round()
        self._log.info("Lobby reset for another round")
        return [Outbound.broadcast(ServerEvent.RESET_LOBBY, players=self.roster())]

    # Payload helpers

    def round_view(self, player: Player) -> dict[str, Any]:
        """Round state as seen by one player; the chameleon never sees the word."""
        current_round = self.round
        is_chameleon = player.id == current_round.chameleon_id
        current = current_round.current_player
        return {
            "phase": self.phase.value,
            "category": current_round.category,
            "decoyWords": list(current_round.decoy_words),
            "secretWord": None if is_chameleon else current_round.secret_word,
            "isChameleon": is_chameleon,
            "turnOrder": [p.to_ref() for p in current_round.turn_order],
            "currentPlayer": current.to_ref() if current else None,
            "deadline": deadline_to_millis(current_round.deadline),
            "allClues": self._all_clues(),
        }

    def _all_clues(self) -> list[dict[str, Any]]:
        return [{"id": p.id, "name": p.name, "clue": p.clue} for p in self.players]

    def _votes(self) -> list[dict[str, Any]]:
        return [{"id": p.id, "name": p.name, "votedFor": self._name_of(p.vote)} for p in self.players]

    def _name_of(self, connection_id: str | None) -> str | None:
        if connection_id is None:
            return None
        player = self.get_player(connection_id)
        return player.name if player else None

    def _require_round(self, phase: LobbyPhase) -> Round:
        if self.phase is not phase or self.round is None:
            raise InvalidPhaseError(phase.value, self.phase.value)
        return self.round

    def _next_deadline(self) -> datetime:
        return self.clock() + timedelta(seconds=self.settings.turn_seconds)
