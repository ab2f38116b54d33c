"""
Scoring and finalization of attempts.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from app.core.exceptions import AttemptAlreadyFinalized
from app.models.test import AttemptStatus, TestAnswer, TestAttempt, TestAttemptQuestion, TestQuestion, utcnow
from app.schemas.test import SubmissionResult
from app.services.attempt_manager import get_owned_attempt, passing_score_for
from app.services.attempt_source import source_for_attempt

logger = logging.getLogger(__name__)


def percentage(correct_answers: int, total_questions: int) -> float:
    """Unrounded percentage of questions answered correctly."""
    if total_questions <= 0:
        return 0.0
    return correct_answers / total_questions * 100


def compute_score(correct_answers: int, total_questions: int) -> float:
    """Percentage rounded to 2 decimals, as stored and reported."""
    return round(percentage(correct_answers, total_questions), 2)


def is_passing(score: float, passing_score: float) -> bool:
    return score >= passing_score


def elapsed_seconds(started_at: datetime, completed_at: datetime) -> int:
    """Whole seconds between two instants; naive values are taken as UTC."""
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=timezone.utc)
    if completed_at.tzinfo is None:
        completed_at = completed_at.replace(tzinfo=timezone.utc)
    return max(0, int((completed_at - started_at).total_seconds()))


class Scorer:
    """Finalizes attempts. Once completed, an attempt never changes again."""

    def __init__(self, db: Session):
        self.db = db

    def submit_attempt(
        self,
        attempt_id: int,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> SubmissionResult:
        """
        Compute the final score and pass/fail verdict and complete the attempt.

        Unanswered questions count as incorrect.

        Raises:
            AttemptNotFound: Attempt absent or not owned
            AttemptAlreadyFinalized: Attempt already completed or abandoned
        """
        attempt = get_owned_attempt(self.db, attempt_id, user_id)
        if attempt.status != AttemptStatus.IN_PROGRESS:
            raise AttemptAlreadyFinalized(attempt.status)  # type: ignore

        passing_score = passing_score_for(source_for_attempt(attempt))
        completed_at = now or utcnow()
        time_spent = elapsed_seconds(attempt.started_at, completed_at)  # type: ignore

        try:
            # Status flips before answers are read; no answer can land after.
            result = self.db.execute(
                update(TestAttempt)
                .where(
                    TestAttempt.id == attempt_id,
                    TestAttempt.status == AttemptStatus.IN_PROGRESS,
                )
                .values(status=AttemptStatus.COMPLETED, completed_at=completed_at)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                self.db.rollback()
                self.db.refresh(attempt)
                raise AttemptAlreadyFinalized(attempt.status)  # type: ignore

            answers = self.db.query(TestAnswer).filter(TestAnswer.attempt_id == attempt_id).all()
            correct = sum(1 for a in answers if a.is_correct)
            points_earned = sum(a.points_earned or 0 for a in answers)
            points_possible = self.db.query(func.coalesce(func.sum(TestQuestion.point_value), 0)).select_from(
                TestQuestion
            ).join(
                TestAttemptQuestion, TestAttemptQuestion.test_question_id == TestQuestion.id
            ).filter(TestAttemptQuestion.attempt_id == attempt_id).scalar()

            score = compute_score(correct, attempt.total_questions)  # type: ignore
            # Pass/fail uses the exact ratio, not the rounded score
            passed = is_passing(percentage(correct, attempt.total_questions), passing_score)  # type: ignore

            self.db.execute(
                update(TestAttempt)
                .where(TestAttempt.id == attempt_id)
                .values(
                    questions_answered=len(answers),
                    correct_answers=correct,
                    score=score,
                    passed=passed,
                    time_spent=time_spent,
                    updated_at=completed_at,
                )
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except AttemptAlreadyFinalized:
            raise
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(attempt)
        logger.info(
            f"User {user_id} completed attempt {attempt_id}: "
            f"score={score} passed={passed} ({correct}/{attempt.total_questions})"
        )

        return SubmissionResult(
            attempt_id=attempt.id,  # type: ignore
            status=attempt.status,  # type: ignore
            total_questions=attempt.total_questions,  # type: ignore
            questions_answered=attempt.questions_answered,  # type: ignore
            correct_answers=attempt.correct_answers,  # type: ignore
            score=score,
            passed=passed,
            passing_score=passing_score,
            points_earned=points_earned,
            points_possible=points_possible or 0,
            time_spent=time_spent,
            completed_at=completed_at,
        )
