"""Clue-giving order within a round."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from chameleon_py.game.models import Player


class TurnSequencer:
    """Builds and advances the clue-giving order.

    The order must be rebuilt every round so it never references a player who
    has since left.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        """Initialize the sequencer.

        Args:
            rng: Random source. A fresh unseeded one is used if None.
        """
        self._rng = rng or random.Random()

    def build_order(self, players: Sequence[Player]) -> list[Player]:
        """Return a uniformly random permutation of the players.

        Args:
            players: The current roster.

        Returns:
            A new list holding every player exactly once.
        """
        return self._rng.sample(list(players), len(players))

    @staticmethod
    def advance(order: Sequence[Player], index: int) -> int:
        """Move to the next clue giver.

        The caller detects completion by comparing the result with ``len(order)``.

        Args:
            order: The round's turn order.
            index: The current turn index.

        Returns:
            The next index, never past ``len(order)``.
        """
        return min(index + 1, len(order))
