"""
Database initialization and seeding.
"""
import logging

from sqlalchemy.orm import Session

from app.models.content import Deck, Flashcard
from app.schemas.admin import DeckTestCreate, TestQuestionCreate
from app.services.content_admin import ContentAdminService

logger = logging.getLogger(__name__)

DEMO_DECK_NAME = "Python Basics"

DEMO_CARDS = [
    {
        "question": "What does len() return?",
        "answer": "The number of items in a container",
        "tests": [
            {
                "question": "What does len([1, 2, 3]) return?",
                "choices": ["2", "3", "4", "An error"],
                "correct_answers": [1],
                "explanation": "len() counts the items in the list.",
            },
        ],
    },
    {
        "question": "Which types are immutable?",
        "answer": "tuple, str, int, frozenset",
        "tests": [
            {
                "question": "Which of these built-in types are immutable?",
                "choices": ["list", "tuple", "dict", "str"],
                "correct_answers": [1, 3],
                "explanation": "Tuples and strings cannot be changed after creation.",
                "point_value": 2,
            },
        ],
    },
    {
        "question": "How do you open a file safely?",
        "answer": "With a with-statement",
        "tests": [
            {
                "question": "Which statement closes a file automatically?",
                "choices": ["try", "with", "finally", "del"],
                "correct_answers": [1],
                "explanation": "The with-statement closes the file when the block exits.",
            },
        ],
    },
]


def init_db(db: Session) -> None:
    """
    Initialize database with a demo deck, its test questions and a deck test.

    Args:
        db: Database session
    """
    deck = db.query(Deck).filter(Deck.name == DEMO_DECK_NAME).first()
    if deck:
        logger.info(f"Demo deck already present (id={deck.id})")
        return

    deck = Deck(name=DEMO_DECK_NAME, description="Demo deck for the test engine")
    db.add(deck)
    db.commit()
    db.refresh(deck)

    admin = ContentAdminService(db)
    for card in DEMO_CARDS:
        flashcard = Flashcard(deck_id=deck.id, question=card["question"], answer=card["answer"])
        db.add(flashcard)
        db.commit()
        db.refresh(flashcard)
        for order, question in enumerate(card["tests"]):
            admin.create_question(TestQuestionCreate(flashcard_id=flashcard.id, order=order, **question))

    test = admin.create_deck_test(
        DeckTestCreate(
            deck_id=deck.id,
            name="Python Basics Check",
            description="Three quick questions",
            time_limit=600,
            max_attempts=3,
        ),
        created_by="seed",
    )
    logger.info(f"Demo deck {deck.id} seeded with deck test {test.id}")
