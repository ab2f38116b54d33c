"""
What an attempt is taken against: a configured deck test or a bare flashcard quiz.

Both variants answer the same questions (passing score, shuffle flags, cap,
candidate questions) so the lifecycle code never branches on nullable columns.
"""
from dataclasses import dataclass
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import FlashcardNotFound, TestNotFound
from app.models.content import Flashcard
from app.models.test import (
    DeckTest,
    SelectionMode,
    TestAttempt,
    TestQuestion,
    TestQuestionPool,
    TestType,
)


@dataclass(frozen=True)
class DeckAttempt:
    """Attempt against a published deck test configuration."""

    config: DeckTest

    test_type = TestType.DECK

    @property
    def deck_test_id(self) -> Optional[int]:
        return self.config.id  # type: ignore

    @property
    def flashcard_id(self) -> Optional[int]:
        return None

    @property
    def passing_score(self) -> int:
        return self.config.passing_score  # type: ignore

    @property
    def time_limit(self) -> Optional[int]:
        return self.config.time_limit  # type: ignore

    @property
    def question_count(self) -> Optional[int]:
        return self.config.question_count  # type: ignore

    @property
    def shuffle_questions(self) -> bool:
        return bool(self.config.shuffle_questions)

    @property
    def shuffle_choices(self) -> bool:
        return bool(self.config.shuffle_choices)

    @property
    def show_correct_answers(self) -> bool:
        return bool(self.config.show_correct_answers)

    @property
    def allow_retakes(self) -> bool:
        return bool(self.config.allow_retakes)

    @property
    def max_attempts(self) -> Optional[int]:
        return self.config.max_attempts  # type: ignore

    def candidate_questions(self, db: Session) -> List[TestQuestion]:
        """Questions eligible for an attempt, in stored order, active or not."""
        if self.config.selection_mode == SelectionMode.SINGLE_ITEM:
            return _flashcard_questions(db, self.config.flashcard_id)  # type: ignore

        return (
            db.query(TestQuestion)
            .join(TestQuestionPool, TestQuestionPool.test_question_id == TestQuestion.id)
            .filter(TestQuestionPool.deck_test_id == self.config.id)
            .order_by(TestQuestionPool.order, TestQuestionPool.id)
            .all()
        )


@dataclass(frozen=True)
class SingleItemAttempt:
    """Ad-hoc quiz over the questions of one flashcard, with default rules."""

    flashcard: Flashcard

    test_type = TestType.FLASHCARD

    @property
    def deck_test_id(self) -> Optional[int]:
        return None

    @property
    def flashcard_id(self) -> Optional[int]:
        return self.flashcard.id  # type: ignore

    @property
    def passing_score(self) -> int:
        return settings.DEFAULT_PASSING_SCORE

    @property
    def time_limit(self) -> Optional[int]:
        return None

    @property
    def question_count(self) -> Optional[int]:
        return None

    @property
    def shuffle_questions(self) -> bool:
        return False

    @property
    def shuffle_choices(self) -> bool:
        return False

    @property
    def show_correct_answers(self) -> bool:
        return True

    @property
    def allow_retakes(self) -> bool:
        return True

    @property
    def max_attempts(self) -> Optional[int]:
        return None

    def candidate_questions(self, db: Session) -> List[TestQuestion]:
        return _flashcard_questions(db, self.flashcard.id)  # type: ignore


AttemptSource = Union[DeckAttempt, SingleItemAttempt]


def _flashcard_questions(db: Session, flashcard_id: Optional[int]) -> List[TestQuestion]:
    return (
        db.query(TestQuestion)
        .filter(TestQuestion.flashcard_id == flashcard_id)
        .order_by(TestQuestion.order, TestQuestion.id)
        .all()
    )


def resolve_source(
    db: Session,
    deck_test_id: Optional[int] = None,
    flashcard_id: Optional[int] = None,
) -> AttemptSource:
    """
    Build the source for a new attempt.

    Raises:
        TestNotFound: Deck test absent or unpublished
        FlashcardNotFound: Flashcard absent
    """
    if deck_test_id is not None:
        config = db.query(DeckTest).filter(
            DeckTest.id == deck_test_id,
            DeckTest.is_published.is_(True),
        ).first()
        if not config:
            raise TestNotFound()
        return DeckAttempt(config)

    flashcard = db.query(Flashcard).filter(Flashcard.id == flashcard_id).first()
    if not flashcard:
        raise FlashcardNotFound()
    return SingleItemAttempt(flashcard)


def source_for_attempt(attempt: TestAttempt) -> Optional[AttemptSource]:
    """Rebuild the source of an existing attempt; None if its content was deleted."""
    if attempt.test_type == TestType.DECK:
        return DeckAttempt(attempt.deck_test) if attempt.deck_test is not None else None
    return SingleItemAttempt(attempt.flashcard) if attempt.flashcard is not None else None
