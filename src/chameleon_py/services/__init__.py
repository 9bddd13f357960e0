"""Lobby services for chameleon-py."""

from chameleon_py.services.reconnect import ReconnectionGuard
from chameleon_py.services.registry import LobbyRegistry

__all__ = ["LobbyRegistry", "ReconnectionGuard"]
