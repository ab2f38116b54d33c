"""
Admin endpoints for creating test questions and deck tests.
"""
from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.dependencies import require_admin
from app.db.base import get_db
from app.schemas.admin import DeckTestCreate, DeckTestRead, TestQuestionCreate, TestQuestionRead
from app.services.content_admin import ContentAdminService

router = APIRouter()


@router.post("/test-questions", response_model=TestQuestionRead, status_code=status.HTTP_201_CREATED)
def create_test_question(
    question_data: TestQuestionCreate,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
) -> Any:
    """
    Create a test question on a flashcard (admin only).
    """
    return ContentAdminService(db).create_question(question_data)


@router.post("/deck-tests", response_model=DeckTestRead, status_code=status.HTTP_201_CREATED)
def create_deck_test(
    test_data: DeckTestCreate,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
) -> Any:
    """
    Create a deck test (admin only).

    The question pool is built from the deck's active questions at this
    moment; later question edits do not change it.
    """
    return ContentAdminService(db).create_deck_test(test_data, created_by=admin_id)
