"""
Answer recording: one answer per (attempt, question), graded on arrival.
"""
import logging
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    AttemptNotActive,
    DuplicateAnswer,
    InvalidChoiceIndex,
    QuestionNotFound,
    QuestionNotInAttempt,
)
from app.models.test import AttemptStatus, TestAnswer, TestAttempt, TestAttemptQuestion, TestQuestion
from app.schemas.test import AnswerResult, AttemptProgress, RecordAnswerResponse
from app.services.attempt_manager import get_owned_attempt
from app.services.choice_obfuscator import to_true_indices

logger = logging.getLogger(__name__)


def is_exact_match(selected: Iterable[int], correct: Iterable[int]) -> bool:
    """A response is correct only if it selects exactly the correct choices."""
    return set(selected) == set(correct)


class AnswerRecorder:
    """
    Records answers. The (attempt, question) uniqueness is enforced by the
    database constraint, so concurrent duplicates cannot both land.
    """

    def __init__(self, db: Session):
        self.db = db

    def record_answer(
        self,
        attempt_id: int,
        user_id: str,
        question_id: int,
        selected: Sequence[int],
        time_spent: Optional[int] = None,
        marked_for_review: bool = False,
    ) -> RecordAnswerResponse:
        """
        Grade and store an answer, bumping the attempt's counters in the same transaction.

        Args:
            attempt_id: Attempt being answered
            user_id: Authenticated user id, must own the attempt
            question_id: Question answered, must belong to the attempt
            selected: Selected choice positions as displayed in this attempt
            time_spent: Seconds spent on the question
            marked_for_review: User flagged the question for review

        Returns:
            Correctness, points earned and updated progress

        Raises:
            AttemptNotFound: Attempt absent or not owned
            AttemptNotActive: Attempt completed or abandoned
            QuestionNotFound: No such question
            QuestionNotInAttempt: Question not served in this attempt
            InvalidChoiceIndex: A selected position is out of range
            DuplicateAnswer: The question already has an answer
        """
        attempt = get_owned_attempt(self.db, attempt_id, user_id)
        if attempt.status != AttemptStatus.IN_PROGRESS:
            logger.warning(f"Answer rejected: attempt {attempt_id} is {attempt.status}")
            raise AttemptNotActive(attempt.status)  # type: ignore

        slot = self.db.query(TestAttemptQuestion).filter(
            TestAttemptQuestion.attempt_id == attempt_id,
            TestAttemptQuestion.test_question_id == question_id,
        ).first()
        if not slot:
            if not self.db.query(TestQuestion.id).filter(TestQuestion.id == question_id).first():
                raise QuestionNotFound()
            raise QuestionNotInAttempt()

        question = slot.test_question
        choice_count = len(question.choices)
        if any(i < 0 or i >= choice_count for i in selected):
            raise InvalidChoiceIndex(choice_count - 1)

        true_selected = to_true_indices(slot.choice_order, selected)  # type: ignore
        is_correct = is_exact_match(true_selected, question.correct_answers)  # type: ignore
        points_earned = question.point_value if is_correct else 0

        answer = TestAnswer(
            attempt_id=attempt_id,
            test_question_id=question_id,
            selected_answers=true_selected,
            is_correct=is_correct,
            points_earned=points_earned,
            time_spent=time_spent,
            marked_for_review=marked_for_review,
        )

        try:
            self.db.add(answer)
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"Duplicate answer for attempt {attempt_id}, question {question_id}")
            raise DuplicateAnswer()

        try:
            result = self.db.execute(
                update(TestAttempt)
                .where(
                    TestAttempt.id == attempt_id,
                    TestAttempt.status == AttemptStatus.IN_PROGRESS,
                )
                .values(
                    questions_answered=TestAttempt.questions_answered + 1,
                    correct_answers=TestAttempt.correct_answers + (1 if is_correct else 0),
                    updated_at=func.now(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                # Finalized or abandoned by a concurrent request
                self.db.rollback()
                self.db.refresh(attempt)
                raise AttemptNotActive(attempt.status)  # type: ignore
            self.db.commit()
        except AttemptNotActive:
            raise
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(attempt)
        self.db.refresh(answer)

        logger.info(
            f"Attempt {attempt_id}: question {question_id} answered "
            f"({'correct' if is_correct else 'incorrect'})"
        )
        return RecordAnswerResponse(
            answer=AnswerResult(
                id=answer.id,  # type: ignore
                is_correct=is_correct,
                points_earned=points_earned,  # type: ignore
            ),
            progress=AttemptProgress(
                questions_answered=attempt.questions_answered,  # type: ignore
                total_questions=attempt.total_questions,  # type: ignore
                correct_answers=attempt.correct_answers,  # type: ignore
            ),
        )
