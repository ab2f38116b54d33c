"""
Content administration the engine depends on: test questions and deck tests.

A deck test's pool is frozen here, at creation, from the questions that are
active at that moment.
"""
import logging
from typing import List

from sqlalchemy.orm import Session

from app.core.exceptions import (
    DeckNotFound,
    FlashcardNotFound,
    InvalidSubsetSize,
    NoQuestionsAvailable,
)
from app.models.content import Deck, Flashcard
from app.models.test import DeckTest, SelectionMode, TestQuestion, TestQuestionPool
from app.schemas.admin import DeckTestCreate, DeckTestRead, TestQuestionCreate

logger = logging.getLogger(__name__)


class ContentAdminService:
    """Creates questions and deck tests on behalf of content administrators."""

    def __init__(self, db: Session):
        self.db = db

    def create_question(self, data: TestQuestionCreate) -> TestQuestion:
        """
        Create a test question on a flashcard.

        Raises:
            FlashcardNotFound: Flashcard absent
            InvalidAnswerKey: Correct answers do not fit the choices
        """
        flashcard = self.db.query(Flashcard).filter(Flashcard.id == data.flashcard_id).first()
        if not flashcard:
            raise FlashcardNotFound()

        question = TestQuestion(**data.model_dump())
        try:
            self.db.add(question)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(question)

        logger.info(f"Created test question {question.id} on flashcard {flashcard.id}")
        return question

    def create_deck_test(self, data: DeckTestCreate, created_by: str) -> DeckTestRead:
        """
        Create a deck test and freeze its question pool.

        Raises:
            DeckNotFound, FlashcardNotFound: Referenced content absent
            NoQuestionsAvailable: No active question to put in the pool
            InvalidSubsetSize: question_count larger than the pool
        """
        deck = self.db.query(Deck).filter(Deck.id == data.deck_id).first()
        if not deck:
            raise DeckNotFound()

        if data.flashcard_id is not None:
            flashcard = self.db.query(Flashcard).filter(
                Flashcard.id == data.flashcard_id,
                Flashcard.deck_id == deck.id,
            ).first()
            if not flashcard:
                raise FlashcardNotFound()

        available = self._available_questions(data)
        if not available:
            raise NoQuestionsAvailable("No test questions found for this deck. Please create test questions first.")
        if data.question_count and data.question_count > len(available):
            raise InvalidSubsetSize(data.question_count, len(available))

        test = DeckTest(**data.model_dump(), created_by=created_by)
        try:
            self.db.add(test)
            self.db.flush()
            # Single-item tests read their flashcard's questions live
            if data.selection_mode != SelectionMode.SINGLE_ITEM:
                for index, question in enumerate(available):
                    self.db.add(TestQuestionPool(
                        deck_test_id=test.id,
                        test_question_id=question.id,
                        order=index,
                    ))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(test)

        logger.info(f"Created deck test {test.id} on deck {deck.id} with {len(available)} questions")
        read = DeckTestRead.model_validate(test)
        read.pool_size = len(available)
        return read

    def _available_questions(self, data: DeckTestCreate) -> List[TestQuestion]:
        query = self.db.query(TestQuestion).filter(TestQuestion.is_active.is_(True))
        if data.selection_mode == SelectionMode.SINGLE_ITEM:
            query = query.filter(TestQuestion.flashcard_id == data.flashcard_id)
        else:
            query = query.join(Flashcard, Flashcard.id == TestQuestion.flashcard_id).filter(
                Flashcard.deck_id == data.deck_id
            )
        return query.order_by(TestQuestion.flashcard_id, TestQuestion.order, TestQuestion.id).all()
