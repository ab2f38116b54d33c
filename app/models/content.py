"""
Content models the assessment engine reads from: decks and their flashcards.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base


class Deck(Base):
    """Deck model - a named group of flashcards."""

    __tablename__ = "decks"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    flashcards = relationship("Flashcard", back_populates="deck", cascade="all, delete-orphan")
    tests = relationship("DeckTest", back_populates="deck")


class Flashcard(Base):
    """Flashcard model. Test questions hang off individual flashcards."""

    __tablename__ = "flashcards"

    id = Column(Integer, primary_key=True, index=True)
    deck_id = Column(Integer, ForeignKey("decks.id", ondelete="CASCADE"), nullable=False)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    deck = relationship("Deck", back_populates="flashcards")
    test_questions = relationship("TestQuestion", back_populates="flashcard", cascade="all, delete-orphan")
