"""Router package exports."""

from . import cards, decks, health, importer, review

__all__ = [
    "cards",
    "decks",
    "health",
    "importer",
    "review",
]
