"""Pytest configuration and fixtures for chameleon-py tests."""

from __future__ import annotations

import random
from collections.abc import Iterator
from datetime import UTC, datetime

import pytest
from litestar import Litestar
from litestar.testing import TestClient

from chameleon_py.app import create_app
from chameleon_py.game.categories import CategoryProvider
from chameleon_py.game.lobby import Lobby
from chameleon_py.game.models import LobbySettings
from chameleon_py.plugin import ChameleonConfig
from chameleon_py.services.registry import LobbyRegistry

FIXED_NOW = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
TEST_CATEGORIES = {"Fruits": ["Apple", "Banana", "Cherry", "Mango"]}


@pytest.fixture
def anyio_backend() -> str:
    """Use asyncio as the async backend."""
    return "asyncio"


# Game fixtures


@pytest.fixture
def rng() -> random.Random:
    """Create a seeded random source so rounds are reproducible."""
    return random.Random(1234)


@pytest.fixture
def categories(rng: random.Random) -> CategoryProvider:
    """Create a single-category provider."""
    return CategoryProvider(TEST_CATEGORIES, rng=rng)


@pytest.fixture
def lobby(rng: random.Random, categories: CategoryProvider) -> Lobby:
    """Create a waiting lobby with three players: Alice (host), Bob and Carol."""
    lobby = Lobby.with_host(
        "ABCD",
        "c-alice",
        "Alice",
        rng=rng,
        categories=categories,
        clock=lambda: FIXED_NOW,
    )
    lobby.join("c-bob", "Bob")
    lobby.join("c-carol", "Carol")
    return lobby


@pytest.fixture
def registry(rng: random.Random, categories: CategoryProvider) -> LobbyRegistry:
    """Create a fresh LobbyRegistry for each test."""
    return LobbyRegistry(settings=LobbySettings(), rng=rng, categories=categories)


# App and client fixtures


@pytest.fixture
def app() -> Litestar:
    """Create the application with a seeded, fast-expiring game configuration."""
    return create_app(config=ChameleonConfig(seed=7, categories=TEST_CATEGORIES, grace_period_seconds=0.05))


@pytest.fixture
def client(app: Litestar) -> Iterator[TestClient[Litestar]]:
    """Create a test client for the app with startup and shutdown hooks run."""
    with TestClient(app=app) as test_client:
        yield test_client
