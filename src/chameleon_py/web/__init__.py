"""Web layer for chameleon-py API."""

from chameleon_py.web.controllers import LobbyController
from chameleon_py.web.health import HealthController
from chameleon_py.web.router import create_router

__all__ = ["HealthController", "LobbyController", "create_router"]
