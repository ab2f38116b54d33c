"""
Test configuration, question, attempt and answer models.
"""
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.exceptions import InvalidAnswerKey
from app.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AttemptStatus:
    """Attempt states. An attempt is born in progress; the other two are terminal."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    ALL = (IN_PROGRESS, COMPLETED, ABANDONED)


class SelectionMode:
    """How a deck test picks the questions of an attempt."""
    FIXED_POOL = "fixed_pool"                # every pool question
    FIXED_POOL_SUBSET = "fixed_pool_subset"  # random subset of question_count
    SINGLE_ITEM = "single_item"              # active questions of one flashcard

    ALL = (FIXED_POOL, FIXED_POOL_SUBSET, SINGLE_ITEM)


class TestType:
    """Kind of source an attempt was started from."""
    DECK = "deck"
    FLASHCARD = "flashcard"


class TestQuestion(Base):
    """Multiple choice test question attached to a flashcard."""

    __tablename__ = "test_questions"

    id = Column(Integer, primary_key=True, index=True)
    flashcard_id = Column(Integer, ForeignKey("flashcards.id", ondelete="CASCADE"), nullable=False)
    question = Column(Text, nullable=False)
    choices = Column(JSON, nullable=False)  # List of 2-6 choice texts
    correct_answers = Column(JSON, nullable=False)  # List of correct choice indices
    explanation = Column(Text, nullable=True)
    point_value = Column(Integer, nullable=False, default=1)
    time_limit = Column(Integer, nullable=True)  # Seconds
    difficulty = Column(Integer, nullable=True)  # 1-5
    order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("point_value >= 1", name="ck_test_questions_point_value"),
    )

    # Relationships
    flashcard = relationship("Flashcard", back_populates="test_questions")

    def validate_answer_key(self) -> None:
        """
        Check the answer key against the choices.

        Raises:
            InvalidAnswerKey: If choices are not 2-6 items or the correct indices
                are empty, repeated or out of range
        """
        choices = self.choices or []
        correct = self.correct_answers or []
        if not 2 <= len(choices) <= 6:
            raise InvalidAnswerKey("A question must have between 2 and 6 choices")
        if not correct:
            raise InvalidAnswerKey("A question must have at least one correct answer")
        if len(set(correct)) != len(correct):
            raise InvalidAnswerKey("Correct answers must be unique")
        if any(not isinstance(i, int) or i < 0 or i >= len(choices) for i in correct):
            raise InvalidAnswerKey(
                f"Correct answer indices must be between 0 and {len(choices) - 1}"
            )


@event.listens_for(TestQuestion, "before_insert")
@event.listens_for(TestQuestion, "before_update")
def _check_answer_key(mapper, connection, target: TestQuestion) -> None:
    target.validate_answer_key()


class DeckTest(Base):
    """Deck test configuration - the reusable definition of an assessment."""

    __tablename__ = "deck_tests"

    id = Column(Integer, primary_key=True, index=True)
    deck_id = Column(Integer, ForeignKey("decks.id", ondelete="CASCADE"), nullable=False)
    flashcard_id = Column(Integer, ForeignKey("flashcards.id", ondelete="CASCADE"), nullable=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    selection_mode = Column(String(32), nullable=False, default=SelectionMode.FIXED_POOL)
    question_count = Column(Integer, nullable=True)  # null = all questions
    time_limit = Column(Integer, nullable=True)  # Seconds, advisory
    passing_score = Column(Integer, nullable=False, default=70)  # Percentage
    shuffle_questions = Column(Boolean, nullable=False, default=True)
    shuffle_choices = Column(Boolean, nullable=False, default=True)
    show_correct_answers = Column(Boolean, nullable=False, default=True)
    allow_retakes = Column(Boolean, nullable=False, default=True)
    max_attempts = Column(Integer, nullable=True)  # null = unlimited
    is_published = Column(Boolean, nullable=False, default=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("passing_score BETWEEN 0 AND 100", name="ck_deck_tests_passing_score"),
    )

    # Relationships
    deck = relationship("Deck", back_populates="tests")
    flashcard = relationship("Flashcard")
    question_pool = relationship(
        "TestQuestionPool",
        back_populates="deck_test",
        cascade="all, delete-orphan",
        order_by="TestQuestionPool.order",
    )


class TestQuestionPool(Base):
    """Frozen membership of a question in a deck test's pool."""

    __tablename__ = "test_question_pool"

    id = Column(Integer, primary_key=True, index=True)
    deck_test_id = Column(Integer, ForeignKey("deck_tests.id", ondelete="CASCADE"), nullable=False)
    test_question_id = Column(Integer, ForeignKey("test_questions.id", ondelete="CASCADE"), nullable=False)
    order = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("deck_test_id", "test_question_id", name="uq_pool_test_question"),
    )

    # Relationships
    deck_test = relationship("DeckTest", back_populates="question_pool")
    test_question = relationship("TestQuestion")


class TestAttempt(Base):
    """One user's run through a deck test or a single flashcard quiz."""

    __tablename__ = "test_attempts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)  # Opaque id from the identity provider
    test_type = Column(String(16), nullable=False)  # deck, flashcard
    deck_test_id = Column(Integer, ForeignKey("deck_tests.id", ondelete="SET NULL"), nullable=True, index=True)
    flashcard_id = Column(Integer, ForeignKey("flashcards.id", ondelete="SET NULL"), nullable=True)

    status = Column(String(16), nullable=False, default=AttemptStatus.IN_PROGRESS)
    total_questions = Column(Integer, nullable=False)
    questions_answered = Column(Integer, nullable=False, default=0)
    correct_answers = Column(Integer, nullable=False, default=0)
    score = Column(Float, nullable=True)  # Set on completion
    passed = Column(Boolean, nullable=True)  # Set on completion
    time_spent = Column(Integer, nullable=True)  # Seconds, set on completion

    started_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            "(deck_test_id IS NULL) <> (flashcard_id IS NULL) OR status <> 'in_progress'",
            name="ck_test_attempts_single_source",
        ),
        CheckConstraint(
            "questions_answered <= total_questions",
            name="ck_test_attempts_answered_bound",
        ),
    )

    # Relationships
    deck_test = relationship("DeckTest")
    flashcard = relationship("Flashcard")
    slots = relationship(
        "TestAttemptQuestion",
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="TestAttemptQuestion.position",
    )
    answers = relationship(
        "TestAnswer",
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="TestAnswer.answered_at",
    )


class TestAttemptQuestion(Base):
    """
    A question served in an attempt, with its display position and the
    server-side choice permutation (display position -> true choice index).
    """

    __tablename__ = "test_attempt_questions"

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(Integer, ForeignKey("test_attempts.id", ondelete="CASCADE"), nullable=False)
    test_question_id = Column(Integer, ForeignKey("test_questions.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    choice_order = Column(JSON, nullable=False)

    __table_args__ = (
        UniqueConstraint("attempt_id", "test_question_id", name="uq_attempt_slot_question"),
    )

    # Relationships
    attempt = relationship("TestAttempt", back_populates="slots")
    test_question = relationship("TestQuestion")


class TestAnswer(Base):
    """A user's one and only response to one question within one attempt."""

    __tablename__ = "test_answers"

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(Integer, ForeignKey("test_attempts.id", ondelete="CASCADE"), nullable=False)
    test_question_id = Column(Integer, ForeignKey("test_questions.id", ondelete="CASCADE"), nullable=False)
    selected_answers = Column(JSON, nullable=False)  # True choice indices
    is_correct = Column(Boolean, nullable=False)
    points_earned = Column(Integer, nullable=False, default=0)
    time_spent = Column(Integer, nullable=True)  # Seconds
    marked_for_review = Column(Boolean, nullable=False, default=False)
    answered_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("attempt_id", "test_question_id", name="uq_answer_attempt_question"),
    )

    # Relationships
    attempt = relationship("TestAttempt", back_populates="answers")
    test_question = relationship("TestQuestion")
