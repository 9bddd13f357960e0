"""Type definitions for the game module."""

from __future__ import annotations

from enum import StrEnum


class LobbyPhase(StrEnum):
    """Current phase of a lobby.

    A round progresses through these phases in order:
    WAITING -> CLUE_PHASE -> VOTING -> (CHAMELEON_GUESSING) -> RESULTS -> WAITING
    """

    WAITING = "waiting"  # Accepting joins, host may start
    CLUE_PHASE = "clue-phase"  # Players give one-word clues in turn order
    VOTING = "voting"  # Everyone votes for the suspected chameleon
    CHAMELEON_GUESSING = "chameleon-guessing"  # Caught chameleon guesses the word
    RESULTS = "results"  # Round over, outcome revealed

    @property
    def in_round(self) -> bool:
        """Whether a round is being played."""
        return self is not LobbyPhase.WAITING
