import os

# Must be set before the app reads its settings
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import timedelta
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models
from app.core.dependencies import get_random_source
from app.core.randomness import SeededRandomSource
from app.core.security import create_access_token
from app.db.base import get_db
from app.main import app
from app.schemas import admin as admin_schemas
from app.services.content_admin import ContentAdminService

# ============================================================================
# IN-MEMORY DATABASE FOR TESTING
# ============================================================================

# StaticPool keeps every session on the same in-memory database
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

USER_ID = "user-1"
OTHER_USER_ID = "user-2"
ADMIN_ID = "admin-1"


@pytest.fixture(autouse=True)
def reset_db():
    """Fresh schema for every test."""
    models.Base.metadata.create_all(bind=test_engine)
    yield
    models.Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def rng():
    return SeededRandomSource(1234)


# ============================================================================
# FASTAPI APP & TEST CLIENT
# ============================================================================

@pytest.fixture
def client(db):
    """Test client sharing the test session and a seeded randomness source."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_random_source] = lambda: SeededRandomSource(42)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_headers(user_id: str = USER_ID, role: Optional[str] = None) -> dict:
    claims = {"role": role} if role else None
    token = create_access_token(user_id, expires_delta=timedelta(minutes=5), extra_claims=claims)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers():
    return auth_headers(USER_ID)


@pytest.fixture
def other_headers():
    return auth_headers(OTHER_USER_ID)


@pytest.fixture
def admin_headers():
    return auth_headers(ADMIN_ID, role="admin")


# ============================================================================
# FACTORIES
# ============================================================================

@pytest.fixture
def deck(db):
    deck = models.Deck(name="Chemistry", description="Intro chemistry")
    db.add(deck)
    db.commit()
    db.refresh(deck)
    return deck


@pytest.fixture
def make_flashcard(db, deck):
    def _make(question: str = "What is H2O?", answer: str = "Water"):
        flashcard = models.Flashcard(deck_id=deck.id, question=question, answer=answer)
        db.add(flashcard)
        db.commit()
        db.refresh(flashcard)
        return flashcard
    return _make


@pytest.fixture
def make_question(db):
    def _make(
        flashcard,
        choices: Optional[List[str]] = None,
        correct_answers: Optional[List[int]] = None,
        point_value: int = 1,
        is_active: bool = True,
        order: int = 0,
        question: str = "Which choice is right?",
    ):
        test_question = models.TestQuestion(
            flashcard_id=flashcard.id,
            question=question,
            choices=choices or ["A", "B", "C", "D"],
            correct_answers=correct_answers if correct_answers is not None else [0],
            explanation="Because it is.",
            point_value=point_value,
            is_active=is_active,
            order=order,
        )
        db.add(test_question)
        db.commit()
        db.refresh(test_question)
        return test_question
    return _make


@pytest.fixture
def make_deck_test(db, deck):
    """Create a deck test through the admin service so its pool is frozen."""
    def _make(**overrides):
        fields = {
            "deck_id": deck.id,
            "name": "Chemistry check",
            "shuffle_questions": False,
            "shuffle_choices": False,
        }
        fields.update(overrides)
        created = ContentAdminService(db).create_deck_test(
            admin_schemas.DeckTestCreate(**fields), created_by=ADMIN_ID
        )
        return db.query(models.DeckTest).filter(models.DeckTest.id == created.id).one()
    return _make


@pytest.fixture
def make_quiz(make_flashcard, make_question, make_deck_test):
    """Deck test over ``n`` flashcards, one question each, correct answer index 0."""
    def _make(n: int = 3, **test_overrides):
        questions = []
        for i in range(n):
            flashcard = make_flashcard(question=f"Card {i}?", answer=f"Answer {i}")
            questions.append(make_question(flashcard, question=f"Question number {i}?"))
        return make_deck_test(**test_overrides), questions
    return _make


def display_positions(db, attempt_id: int, question_id: int, true_indices: List[int]) -> List[int]:
    """Translate true choice indices into the positions shown for this attempt."""
    slot = db.query(models.TestAttemptQuestion).filter(
        models.TestAttemptQuestion.attempt_id == attempt_id,
        models.TestAttemptQuestion.test_question_id == question_id,
    ).one()
    return [slot.choice_order.index(i) for i in true_indices]


@pytest.fixture
def positions(db):
    def _positions(attempt_id: int, question_id: int, true_indices: List[int]) -> List[int]:
        return display_positions(db, attempt_id, question_id, true_indices)
    return _positions
