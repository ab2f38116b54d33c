"""
Question pool assembly: which questions an attempt serves, and in what order.
"""
import logging
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from app.core.exceptions import InvalidSubsetSize, NoQuestionsAvailable
from app.core.randomness import RandomSource, fisher_yates_shuffle
from app.models.test import TestQuestion
from app.services.attempt_source import AttemptSource

logger = logging.getLogger(__name__)


class QuestionPoolAssembler:
    """
    Produces the ordered question list for one attempt.

    Order of operations: keep active questions, draw a uniform subset when one
    is configured, then shuffle the whole list if requested.
    """

    def __init__(self, rng: RandomSource):
        self.rng = rng

    def assemble(
        self,
        questions: Sequence[TestQuestion],
        subset_size: Optional[int] = None,
        shuffle: bool = False,
    ) -> List[TestQuestion]:
        """
        Args:
            questions: Candidate questions in stored pool order
            subset_size: Number of questions to draw, None for all
            shuffle: Whether to shuffle the final display order

        Returns:
            Questions to serve

        Raises:
            NoQuestionsAvailable: No active question remains
            InvalidSubsetSize: Subset larger than the active pool
        """
        pool = [q for q in questions if q.is_active]
        if not pool:
            raise NoQuestionsAvailable()

        if subset_size is not None:
            if subset_size > len(pool):
                raise InvalidSubsetSize(subset_size, len(pool))
            if subset_size < len(pool):
                chosen = {q.id for q in fisher_yates_shuffle(pool, self.rng)[:subset_size]}
                pool = [q for q in pool if q.id in chosen]

        if shuffle:
            pool = fisher_yates_shuffle(pool, self.rng)

        return pool

    def assemble_pool(self, source: AttemptSource, db: Session) -> List[TestQuestion]:
        """Assemble the pool of an attempt source from current question state."""
        pool = self.assemble(
            source.candidate_questions(db),
            subset_size=source.question_count,
            shuffle=source.shuffle_questions,
        )
        logger.info(
            f"Assembled {len(pool)} questions for {source.test_type} test "
            f"(deck_test_id={source.deck_test_id}, flashcard_id={source.flashcard_id})"
        )
        return pool
