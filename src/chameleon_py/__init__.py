"""Chameleon-py: a Litestar server for the Chameleon social-deduction word game.

Players gather in a lobby identified by a short code. Each round one of them
is secretly the Chameleon and does not know the secret word; everyone gives a
one-word clue in turn, then votes on who the Chameleon is. A caught Chameleon
gets one guess at the word to steal the win.

Key Components:
    - Game: Lobby state machine, TurnSequencer, VoteTally, CategoryProvider
    - Services: LobbyRegistry, ReconnectionGuard
    - Realtime: Lobby WebSocket handler and ConnectionManager
    - Web: Lobby lookup and health endpoints
    - Plugin: ChameleonPlugin for Litestar integration

Quick Start:
    >>> from litestar import Litestar
    >>> from chameleon_py import ChameleonPlugin, ChameleonConfig
    >>>
    >>> app = Litestar(
    ...     plugins=[ChameleonPlugin(ChameleonConfig())],
    ... )
"""

from __future__ import annotations

from chameleon_py.exceptions import (
    ChameleonError,
    GameInProgressError,
    LobbyFullError,
    LobbyNotFoundError,
    NameTakenError,
    NotHostError,
)
from chameleon_py.game import (
    CategoryProvider,
    ClientEvent,
    Lobby,
    LobbyPhase,
    LobbySettings,
    Outbound,
    Player,
    ServerEvent,
    TurnSequencer,
    VoteTally,
)
from chameleon_py.plugin import ChameleonConfig, ChameleonPlugin
from chameleon_py.realtime import ConnectionManager, LobbyWebSocketHandler
from chameleon_py.services import LobbyRegistry, ReconnectionGuard

__all__ = [
    "CategoryProvider",
    "ChameleonConfig",
    "ChameleonError",
    "ChameleonPlugin",
    "ClientEvent",
    "ConnectionManager",
    "GameInProgressError",
    "Lobby",
    "LobbyFullError",
    "LobbyNotFoundError",
    "LobbyPhase",
    "LobbyRegistry",
    "LobbySettings",
    "LobbyWebSocketHandler",
    "NameTakenError",
    "NotHostError",
    "Outbound",
    "Player",
    "ReconnectionGuard",
    "ServerEvent",
    "TurnSequencer",
    "VoteTally",
    "__version__",
]

__version__ = "0.1.0"
