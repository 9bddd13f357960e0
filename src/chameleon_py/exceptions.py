"""Custom exceptions for chameleon-py.

Every error raised by the game layer is a :class:`ChameleonError`. Each class
carries the wire ``code`` sent back to the originating connection and a
``silent`` flag for conditions that are dropped without notifying the client.
"""

from __future__ import annotations


class ChameleonError(Exception):
    """Base exception class for all chameleon-py errors.

    Attributes:
        code: Kebab-case error code used in ``error`` frames.
        silent: Whether the handler drops the error instead of reporting it.
    """

    code: str = "chameleon-error"
    silent: bool = False


class LobbyNotFoundError(ChameleonError):
    """Raised when no live lobby has the requested code.

    Attributes:
        lobby_code: The code that was looked up.
    """

    code = "lobby-not-found"

    def __init__(self, lobby_code: str) -> None:
        """Initialize the exception with the lobby code.

        Args:
            lobby_code: The code that was looked up.
        """
        self.lobby_code = lobby_code
        super().__init__("Lobby not found")


class GameInProgressError(ChameleonError):
    """Raised when a lobby is mid-round and cannot accept the request."""

    code = "game-in-progress"

    def __init__(self, message: str = "Game already in progress") -> None:
        super().__init__(message)


class LobbyFullError(ChameleonError):
    """Raised when a lobby has reached its player capacity.

    Attributes:
        capacity: The lobby's maximum number of players.
    """

    code = "lobby-full"

    def __init__(self, capacity: int) -> None:
        """Initialize the exception with the lobby capacity.

        Args:
            capacity: The lobby's maximum number of players.
        """
        self.capacity = capacity
        super().__init__("Lobby is full")


class NameTakenError(ChameleonError):
    """Raised when a display name is already used in the lobby (case-insensitive)."""

    code = "name-taken"

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__("Name already taken")


class NotHostError(ChameleonError):
    """Raised when a host-only action comes from another player."""

    code = "not-host"

    def __init__(self, action: str = "do that") -> None:
        super().__init__(f"Only the host can {action}")


class InsufficientPlayersError(ChameleonError):
    """Raised when starting a round with too few players.

    Attributes:
        required: Minimum number of players.
        present: Number of players in the lobby.
    """

    code = "insufficient-players"

    def __init__(self, required: int, present: int) -> None:
        """Initialize the exception.

        Args:
            required: Minimum number of players.
            present: Number of players in the lobby.
        """
        self.required = required
        self.present = present
        super().__init__(f"Need at least {required} players")


class NotYourTurnError(ChameleonError):
    """Raised when a clue arrives from anyone but the current clue giver."""

    code = "not-your-turn"

    def __init__(self) -> None:
        super().__init__("Not your turn")


class AlreadyVotedError(ChameleonError):
    """Raised when a player votes twice in the same round.

    Dropped silently: the first vote stands and the client is not told.
    """

    code = "already-voted"
    silent = True

    def __init__(self, player_name: str) -> None:
        self.player_name = player_name
        super().__init__(f"{player_name} has already voted")


class InvalidPhaseError(ChameleonError):
    """Raised when an event arrives while the lobby is in another phase.

    Dropped silently; late or duplicated client events are expected.

    Attributes:
        expected: The phase the event requires.
        actual: The phase the lobby is in.
    """

    code = "invalid-phase"
    silent = True

    def __init__(self, expected: str, actual: str) -> None:
        """Initialize the exception.

        Args:
            expected: The phase the event requires.
            actual: The phase the lobby is in.
        """
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected phase {expected}, lobby is in {actual}")


class NotChameleonError(ChameleonError):
    """Raised when someone other than the caught chameleon submits the final guess."""

    code = "not-chameleon"

    def __init__(self) -> None:
        super().__init__("Only the chameleon can guess the word")


class AlreadySeatedError(ChameleonError):
    """Raised when a connection that already holds a seat asks for another one.

    A connection holds at most one seat in at most one lobby.

    Attributes:
        connection_id: The acting connection.
    """

    code = "already-seated"

    def __init__(self, connection_id: str) -> None:
        self.connection_id = connection_id
        super().__init__("You already have a seat in a lobby")


class PlayerNotFoundError(ChameleonError):
    """Raised when the acting connection has no seat in the lobby."""

    code = "player-not-found"

    def __init__(self, connection_id: str) -> None:
        self.connection_id = connection_id
        super().__init__("You are not in this lobby")


class InvalidInputError(ChameleonError):
    """Raised when a payload field is missing, empty or of the wrong type.

    Attributes:
        field: Name of the offending payload field.
    """

    code = "invalid-input"

    def __init__(self, field: str, message: str | None = None) -> None:
        """Initialize the exception.

        Args:
            field: Name of the offending payload field.
            message: Optional override for the default message.
        """
        self.field = field
        super().__init__(message or f"{field} is required")
