"""
Test attempt endpoints - start, answer, submit, abandon, results and history.
"""
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.dependencies import get_current_user_id, get_random_source
from app.core.randomness import RandomSource
from app.db.base import get_db
from app.models.test import AttemptStatus
from app.schemas.test import (
    AnswerSubmit,
    AttemptHistory,
    AttemptQuestionsResponse,
    AttemptRecord,
    AttemptReference,
    AttemptResults,
    RecordAnswerResponse,
    StartAttemptResponse,
    SubmitAttemptResponse,
    TestAttemptStart,
)
from app.services.answer_recorder import AnswerRecorder
from app.services.attempt_manager import AttemptManager
from app.services.scorer import Scorer

router = APIRouter()


@router.post("/start", response_model=StartAttemptResponse, status_code=status.HTTP_201_CREATED)
def start_test(
    start_data: TestAttemptStart,
    db: Session = Depends(get_db),
    rng: RandomSource = Depends(get_random_source),
    user_id: str = Depends(get_current_user_id),
) -> Any:
    """
    Start a new test attempt for a deck test or a single flashcard.

    Returns the attempt and its questions, without correct answers or
    explanations. Choices may be shown in a shuffled order; answers must be
    submitted as positions in the order shown.
    """
    manager = AttemptManager(db, rng)
    return manager.start_attempt(
        user_id,
        deck_test_id=start_data.deck_test_id,
        flashcard_id=start_data.flashcard_id,
    )


@router.get("/attempts/{attempt_id}/questions", response_model=AttemptQuestionsResponse)
def get_attempt_questions(
    attempt_id: int,
    db: Session = Depends(get_db),
    rng: RandomSource = Depends(get_random_source),
    user_id: str = Depends(get_current_user_id),
) -> Any:
    """
    Resume an in-progress attempt: same questions, same order, same choice order.
    """
    return AttemptManager(db, rng).get_attempt_questions(attempt_id, user_id)


@router.post("/answer", response_model=RecordAnswerResponse)
def submit_answer(
    answer_data: AnswerSubmit,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Any:
    """
    Answer one question of an attempt.

    Each question can be answered once; a second submission is rejected and
    leaves progress untouched.
    """
    recorder = AnswerRecorder(db)
    return recorder.record_answer(
        answer_data.attempt_id,
        user_id,
        answer_data.test_question_id,
        answer_data.selected_answers,
        time_spent=answer_data.time_spent,
        marked_for_review=answer_data.marked_for_review,
    )


@router.post("/submit", response_model=SubmitAttemptResponse)
def submit_test(
    submit_data: AttemptReference,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Any:
    """
    Complete an attempt and compute its final score and pass/fail verdict.
    """
    result = Scorer(db).submit_attempt(submit_data.attempt_id, user_id)
    return SubmitAttemptResponse(result=result)


@router.post("/abandon", response_model=AttemptRecord)
def abandon_test(
    abandon_data: AttemptReference,
    db: Session = Depends(get_db),
    rng: RandomSource = Depends(get_random_source),
    user_id: str = Depends(get_current_user_id),
) -> Any:
    """
    Abandon an in-progress attempt.
    """
    return AttemptManager(db, rng).abandon_attempt(abandon_data.attempt_id, user_id)


@router.get("/results/{attempt_id}", response_model=AttemptResults)
def get_test_results(
    attempt_id: int,
    db: Session = Depends(get_db),
    rng: RandomSource = Depends(get_random_source),
    user_id: str = Depends(get_current_user_id),
) -> Any:
    """
    Get results for an attempt.

    Per-question detail is only included once the attempt is completed and
    the test is configured to show correct answers.
    """
    return AttemptManager(db, rng).get_results(attempt_id, user_id)


@router.get("/history", response_model=AttemptHistory)
def get_test_history(
    limit: int = Query(10, ge=1, le=settings.HISTORY_PAGE_LIMIT_MAX),
    offset: int = Query(0, ge=0),
    deck_test_id: Optional[int] = None,
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(" + "|".join(AttemptStatus.ALL) + ")$"),
    db: Session = Depends(get_db),
    rng: RandomSource = Depends(get_random_source),
    user_id: str = Depends(get_current_user_id),
) -> Any:
    """
    Get the user's test attempt history, newest first.
    Optionally filter by deck test and status.
    """
    return AttemptManager(db, rng).get_history(
        user_id,
        limit=limit,
        offset=offset,
        deck_test_id=deck_test_id,
        status=status_filter,
    )
