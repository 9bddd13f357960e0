"""Game rules for chameleon-py: the lobby state machine and its helpers."""

from chameleon_py.game.categories import DEFAULT_CATEGORIES, CategoryDraw, CategoryProvider
from chameleon_py.game.events import ClientEvent, Outbound, ServerEvent
from chameleon_py.game.lobby import Lobby
from chameleon_py.game.models import LobbySettings, Player, Round
from chameleon_py.game.turns import TurnSequencer
from chameleon_py.game.types import LobbyPhase
from chameleon_py.game.voting import TallyResult, VoteTally

__all__ = [
    "DEFAULT_CATEGORIES",
    "CategoryDraw",
    "CategoryProvider",
    "ClientEvent",
    "Lobby",
    "LobbyPhase",
    "LobbySettings",
    "Outbound",
    "Player",
    "Round",
    "ServerEvent",
    "TallyResult",
    "TurnSequencer",
    "VoteTally",
]
