"""
Attempt lifecycle: start, resume, abandon, history and results.

State machine: in_progress -> completed (see Scorer), in_progress -> abandoned.
Attempts are created directly in ``in_progress``.
"""
import logging
from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    AttemptLimitReached,
    AttemptNotActive,
    AttemptNotFound,
)
from app.core.randomness import RandomSource
from app.models.test import (
    AttemptStatus,
    TestAnswer,
    TestAttempt,
    TestAttemptQuestion,
    TestQuestion,
)
from app.schemas.test import (
    AttemptHistory,
    AttemptQuestionsResponse,
    AttemptRecord,
    AttemptResults,
    AttemptSummary,
    Pagination,
    Performance,
    QuestionReview,
    SanitizedQuestion,
    StartAttemptResponse,
    TestDescriptor,
)
from app.services.attempt_source import (
    AttemptSource,
    DeckAttempt,
    SingleItemAttempt,
    resolve_source,
    source_for_attempt,
)
from app.services.choice_obfuscator import ChoiceObfuscator, display_choices
from app.services.question_pool import QuestionPoolAssembler

logger = logging.getLogger(__name__)


def get_owned_attempt(db: Session, attempt_id: int, user_id: str) -> TestAttempt:
    """
    Load an attempt owned by ``user_id``.

    Raises:
        AttemptNotFound: Attempt absent or owned by someone else
    """
    attempt = db.query(TestAttempt).filter(
        TestAttempt.id == attempt_id,
        TestAttempt.user_id == user_id,
    ).first()
    if not attempt:
        raise AttemptNotFound()
    return attempt


def sanitize_question(question: TestQuestion, displayed_choices: List[str]) -> SanitizedQuestion:
    """Strip the answer key and explanation from a question."""
    return SanitizedQuestion(
        id=question.id,  # type: ignore
        question=question.question,  # type: ignore
        choices=displayed_choices,
        point_value=question.point_value,  # type: ignore
        time_limit=question.time_limit,  # type: ignore
        difficulty=question.difficulty,  # type: ignore
    )


def passing_score_for(source: Optional[AttemptSource]) -> int:
    return source.passing_score if source is not None else settings.DEFAULT_PASSING_SCORE


def _summary(attempt: TestAttempt, source: Optional[AttemptSource]) -> AttemptSummary:
    return AttemptSummary(
        id=attempt.id,  # type: ignore
        status=attempt.status,  # type: ignore
        test_type=attempt.test_type,  # type: ignore
        total_questions=attempt.total_questions,  # type: ignore
        time_limit=source.time_limit if source is not None else None,
        passing_score=passing_score_for(source),
        started_at=attempt.started_at,  # type: ignore
    )


class AttemptManager:
    """
    Owns attempt creation and the non-scoring state transitions.
    """

    def __init__(self, db: Session, rng: RandomSource):
        self.db = db
        self.assembler = QuestionPoolAssembler(rng)
        self.obfuscator = ChoiceObfuscator(rng)

    # ============= Start =============

    def start_attempt(
        self,
        user_id: str,
        deck_test_id: Optional[int] = None,
        flashcard_id: Optional[int] = None,
    ) -> StartAttemptResponse:
        """
        Start a new attempt against a deck test or a single flashcard.

        Args:
            user_id: Authenticated user id
            deck_test_id: Published deck test to take
            flashcard_id: Flashcard to quiz on when no deck test is given

        Returns:
            Attempt summary and sanitized questions in display order

        Raises:
            TestNotFound, FlashcardNotFound: Unknown or unpublished source
            AttemptLimitReached: Completed attempts already hit the cap
            NoQuestionsAvailable: No active question to serve
            InvalidSubsetSize: Configured subset larger than the active pool
        """
        source = resolve_source(self.db, deck_test_id=deck_test_id, flashcard_id=flashcard_id)
        self._check_attempt_cap(user_id, source)

        questions = self.assembler.assemble_pool(source, self.db)

        attempt = TestAttempt(
            user_id=user_id,
            test_type=source.test_type,
            deck_test_id=source.deck_test_id,
            flashcard_id=source.flashcard_id,
            status=AttemptStatus.IN_PROGRESS,
            total_questions=len(questions),
            questions_answered=0,
            correct_answers=0,
        )

        served = []
        try:
            self.db.add(attempt)
            self.db.flush()
            for position, question in enumerate(questions):
                choices = self.obfuscator.obfuscate(question, source.shuffle_choices)
                self.db.add(TestAttemptQuestion(
                    attempt_id=attempt.id,
                    test_question_id=question.id,
                    position=position,
                    choice_order=choices.order,
                ))
                served.append(sanitize_question(question, choices.displayed))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(attempt)

        logger.info(
            f"User {user_id} started attempt {attempt.id} "
            f"({source.test_type}, {len(questions)} questions)"
        )
        return StartAttemptResponse(attempt=_summary(attempt, source), questions=served)

    def _check_attempt_cap(self, user_id: str, source: AttemptSource) -> None:
        if not isinstance(source, DeckAttempt):
            return

        limit = source.max_attempts
        if not source.allow_retakes:
            limit = 1 if limit is None else min(limit, 1)
        if limit is None:
            return

        completed = self.db.query(func.count(TestAttempt.id)).filter(
            TestAttempt.user_id == user_id,
            TestAttempt.deck_test_id == source.deck_test_id,
            TestAttempt.status == AttemptStatus.COMPLETED,
        ).scalar() or 0

        if completed >= limit:
            logger.warning(
                f"User {user_id} hit attempt limit {limit} on deck test {source.deck_test_id}"
            )
            raise AttemptLimitReached(limit)

    # ============= Resume =============

    def get_attempt_questions(self, attempt_id: int, user_id: str) -> AttemptQuestionsResponse:
        """
        Re-serve the questions of an in-progress attempt exactly as first shown.

        Raises:
            AttemptNotFound: Attempt absent or not owned
            AttemptNotActive: Attempt already completed or abandoned
        """
        attempt = get_owned_attempt(self.db, attempt_id, user_id)
        if attempt.status != AttemptStatus.IN_PROGRESS:
            raise AttemptNotActive(attempt.status)  # type: ignore

        questions = [
            sanitize_question(
                slot.test_question,
                display_choices(slot.test_question.choices, slot.choice_order),
            )
            for slot in attempt.slots
        ]
        answered = [a.test_question_id for a in attempt.answers]

        return AttemptQuestionsResponse(
            attempt=_summary(attempt, source_for_attempt(attempt)),
            questions=questions,
            answered_question_ids=answered,  # type: ignore
        )

    # ============= Abandon =============

    def abandon_attempt(self, attempt_id: int, user_id: str) -> AttemptRecord:
        """
        Give up an in-progress attempt. Abandoned attempts never count toward caps.

        Raises:
            AttemptNotFound: Attempt absent or not owned
            AttemptNotActive: Attempt not in progress
        """
        attempt = get_owned_attempt(self.db, attempt_id, user_id)

        result = self.db.execute(
            update(TestAttempt)
            .where(
                TestAttempt.id == attempt_id,
                TestAttempt.status == AttemptStatus.IN_PROGRESS,
            )
            .values(status=AttemptStatus.ABANDONED, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            self.db.refresh(attempt)
            raise AttemptNotActive(attempt.status)  # type: ignore
        self.db.commit()
        self.db.refresh(attempt)

        logger.info(f"User {user_id} abandoned attempt {attempt_id}")
        return AttemptRecord.model_validate(attempt)

    # ============= History =============

    def get_history(
        self,
        user_id: str,
        limit: int = 10,
        offset: int = 0,
        deck_test_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> AttemptHistory:
        """User's attempts, newest first."""
        query = self.db.query(TestAttempt).filter(TestAttempt.user_id == user_id)
        if deck_test_id is not None:
            query = query.filter(TestAttempt.deck_test_id == deck_test_id)
        if status:
            query = query.filter(TestAttempt.status == status)

        total = query.count()
        attempts = (
            query.order_by(TestAttempt.started_at.desc(), TestAttempt.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

        return AttemptHistory(
            attempts=[AttemptRecord.model_validate(a) for a in attempts],
            pagination=Pagination(limit=limit, offset=offset, total=total),
        )

    # ============= Results =============

    def get_results(self, attempt_id: int, user_id: str) -> AttemptResults:
        """
        Attempt outcome. Per-question detail (answer key, explanations, the
        user's selections) only once completed and if the test reveals answers.
        """
        attempt = get_owned_attempt(self.db, attempt_id, user_id)
        source = source_for_attempt(attempt)

        reveal = (
            attempt.status == AttemptStatus.COMPLETED
            and source is not None
            and source.show_correct_answers
        )

        total = attempt.total_questions or 0
        accuracy = round(attempt.correct_answers / total * 100, 2) if total > 0 else 0.0
        average_time = None
        if attempt.questions_answered and attempt.time_spent:
            average_time = round(attempt.time_spent / attempt.questions_answered, 1)

        return AttemptResults(
            attempt=AttemptRecord.model_validate(attempt),
            test=_describe(source),
            questions=self._review(attempt) if reveal else None,
            performance=Performance(accuracy=accuracy, average_time_per_question=average_time),
        )

    def _review(self, attempt: TestAttempt) -> List[QuestionReview]:
        answers = {a.test_question_id: a for a in attempt.answers}
        review = []
        for slot in attempt.slots:
            question = slot.test_question
            answer: Optional[TestAnswer] = answers.get(slot.test_question_id)
            review.append(QuestionReview(
                question_id=question.id,  # type: ignore
                question=question.question,  # type: ignore
                choices=question.choices,  # type: ignore
                correct_answers=question.correct_answers,  # type: ignore
                selected_answers=answer.selected_answers if answer else None,  # type: ignore
                is_correct=bool(answer.is_correct) if answer else False,
                points_earned=answer.points_earned if answer else 0,  # type: ignore
                time_spent=answer.time_spent if answer else None,  # type: ignore
                marked_for_review=bool(answer.marked_for_review) if answer else False,
                explanation=question.explanation,  # type: ignore
            ))
        return review


def _describe(source: Optional[AttemptSource]) -> Optional[TestDescriptor]:
    if isinstance(source, DeckAttempt):
        config = source.config
        return TestDescriptor(
            deck_test_id=config.id,  # type: ignore
            name=config.name,  # type: ignore
            description=config.description,  # type: ignore
            passing_score=config.passing_score,  # type: ignore
            deck_id=config.deck_id,  # type: ignore
            deck_name=config.deck.name if config.deck else None,  # type: ignore
        )
    if isinstance(source, SingleItemAttempt):
        flashcard = source.flashcard
        return TestDescriptor(
            flashcard_id=flashcard.id,  # type: ignore
            name=_truncate(flashcard.question),  # type: ignore
            passing_score=source.passing_score,
            deck_id=flashcard.deck_id,  # type: ignore
            deck_name=flashcard.deck.name if flashcard.deck else None,  # type: ignore
        )
    return None


def _truncate(text: str, length: int = 100) -> str:
    return text if len(text) <= length else text[:length] + "..."


