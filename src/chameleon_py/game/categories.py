"""Category and secret word selection."""

from __future__ import annotations

import copy
import random
from dataclasses import dataclass

import structlog

from chameleon_py.exceptions import InvalidInputError

logger = structlog.get_logger(__name__)

DEFAULT_CATEGORIES: dict[str, list[str]] = {
    "Animals": [
        "Dog", "Cat", "Elephant", "Lion", "Penguin", "Dolphin",
        "Eagle", "Tiger", "Bear", "Wolf", "Snake", "Rabbit",
    ],
    "Foods": [
        "Pizza", "Sushi", "Burger", "Pasta", "Tacos",
        "Ice Cream", "Chocolate", "Steak", "Salad", "Soup",
    ],
    "Movies": [
        "Titanic", "Avatar", "Inception", "Jaws", "Matrix",
        "Frozen", "Gladiator", "Jurassic Park", "Star Wars", "Batman",
    ],
    "Sports": [
        "Soccer", "Basketball", "Tennis", "Golf", "Swimming",
        "Boxing", "Baseball", "Hockey", "Volleyball", "Surfing",
    ],
    "Countries": [
        "Japan", "Brazil", "France", "Australia", "Canada",
        "Egypt", "India", "Italy", "Mexico", "Norway",
    ],
    "Professions": [
        "Doctor", "Chef", "Pilot", "Teacher", "Lawyer",
        "Artist", "Engineer", "Firefighter", "Detective", "Astronaut",
    ],
    "Emotions": [
        "Happy", "Sad", "Angry", "Excited", "Nervous",
        "Bored", "Surprised", "Confused", "Proud", "Jealous",
    ],
    "Holidays": [
        "Christmas", "Halloween", "Easter", "Thanksgiving", "New Year",
        "Valentine", "Independence Day", "St Patrick", "Hanukkah", "Diwali",
    ],
}


@dataclass(frozen=True)
class CategoryDraw:
    """One round's category, secret word and full word list.

    Attributes:
        category: Name of the drawn category.
        secret_word: The word everyone but the chameleon sees.
        words: Every word in the category, shown to all players as decoys.
    """

    category: str
    secret_word: str
    words: tuple[str, ...]


class CategoryProvider:
    """Draws a category and secret word for each round.

    Attributes:
        categories: Mapping of category name to its word list.
    """

    def __init__(
        self,
        categories: dict[str, list[str]] | None = None,
        *,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            categories: Custom categories. Uses the built-in set if None.
            rng: Random source. A fresh unseeded one is used if None.

        Raises:
            InvalidInputError: If no category has any words.
        """
        source = categories if categories is not None else DEFAULT_CATEGORIES
        self.categories = {name: list(words) for name, words in copy.deepcopy(source).items() if words}
        if not self.categories:
            raise InvalidInputError("categories", "At least one non-empty category is required")
        self._rng = rng or random.Random()

    def draw(self) -> CategoryDraw:
        """Pick a random category, then a random word from it.

        Returns:
            The drawn category, secret word and decoy list.
        """
        category = self._rng.choice(sorted(self.categories))
        words = self.categories[category]
        secret_word = self._rng.choice(words)
        logger.debug("Category drawn", category=category, word_count=len(words))
        return CategoryDraw(category=category, secret_word=secret_word, words=tuple(words))
