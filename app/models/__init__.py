"""Models module - Import all models here so metadata knows every table."""
from app.db.base import Base
from app.models.content import Deck, Flashcard
from app.models.test import (
    AttemptStatus,
    DeckTest,
    SelectionMode,
    TestAnswer,
    TestAttempt,
    TestAttemptQuestion,
    TestQuestion,
    TestQuestionPool,
    TestType,
)

__all__ = [
    "Base",
    "Deck",
    "Flashcard",
    "AttemptStatus",
    "DeckTest",
    "SelectionMode",
    "TestAnswer",
    "TestAttempt",
    "TestAttemptQuestion",
    "TestQuestion",
    "TestQuestionPool",
    "TestType",
]
