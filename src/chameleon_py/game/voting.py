"""Vote counting and accusation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from chameleon_py.game.models import Player


@dataclass(frozen=True)
class TallyResult:
    """Outcome of a vote.

    Attributes:
        accused_id: Id of the player with the most votes, or None if nobody voted.
        counts: Votes received per player id, in first-vote order.
    """

    accused_id: str | None
    counts: dict[str, int] = field(default_factory=dict)


class VoteTally:
    """Counts votes and picks the accused player."""

    @staticmethod
    def tally(players: Iterable[Player]) -> TallyResult:
        """Count the votes cast by ``players``.

        Votes are accumulated scanning the roster in order while tracking the
        running maximum. A candidate only takes the lead by strictly exceeding
        it, so on a tie the first id to reach the shared maximum wins.

        Args:
            players: The roster, in join order.

        Returns:
            The accused id and the per-player counts.
        """
        counts: dict[str, int] = {}
        accused_id: str | None = None
        highest = 0

        for player in players:
            if player.vote is None:
                continue
            counts[player.vote] = counts.get(player.vote, 0) + 1
            if counts[player.vote] > highest:
                highest = counts[player.vote]
                accused_id = player.vote

        return TallyResult(accused_id=accused_id, counts=counts)
