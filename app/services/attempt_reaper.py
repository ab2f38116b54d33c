"""
Background abandonment of attempts left in progress past their deadline.

Time limits are advisory inside requests; this job runs out of band
(see ``reap_attempts.py``) and is the only place they are enforced.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import and_, func, or_, update
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.test import AttemptStatus, DeckTest, TestAttempt, utcnow

logger = logging.getLogger(__name__)


class AttemptReaper:
    """Moves overdue in-progress attempts to ``abandoned``."""

    def __init__(self, db: Session):
        self.db = db

    def find_overdue(self, now: datetime) -> List[int]:
        """
        Ids of in-progress attempts past their deadline, filtered in the database.

        Timed tests expire at start + time limit + grace; everything else
        (untimed tests, flashcard quizzes, deleted tests) after the stale window.
        """
        now = now.astimezone(timezone.utc)
        grace = settings.ATTEMPT_TIME_LIMIT_GRACE_SECONDS

        # One cutoff per distinct limit keeps the comparison portable
        limits = [
            row[0]
            for row in self.db.query(DeckTest.time_limit)
            .join(TestAttempt, TestAttempt.deck_test_id == DeckTest.id)
            .filter(
                TestAttempt.status == AttemptStatus.IN_PROGRESS,
                DeckTest.time_limit.isnot(None),
            )
            .distinct()
            .all()
        ]
        timed = [
            and_(
                DeckTest.time_limit == limit,
                TestAttempt.started_at < now - timedelta(seconds=limit + grace),
            )
            for limit in limits
        ]
        untimed = and_(
            DeckTest.time_limit.is_(None),
            TestAttempt.started_at < now - timedelta(hours=settings.STALE_ATTEMPT_HOURS),
        )

        rows = (
            self.db.query(TestAttempt.id)
            .outerjoin(DeckTest, DeckTest.id == TestAttempt.deck_test_id)
            .filter(
                TestAttempt.status == AttemptStatus.IN_PROGRESS,
                or_(untimed, *timed),
            )
            .all()
        )
        return [row[0] for row in rows]

    def abandon_stale_attempts(self, now: Optional[datetime] = None) -> int:
        """
        Abandon every overdue in-progress attempt.

        Returns:
            Number of attempts abandoned
        """
        now = now or utcnow()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        overdue = self.find_overdue(now)
        if not overdue:
            return 0

        try:
            result = self.db.execute(
                update(TestAttempt)
                .where(
                    TestAttempt.id.in_(overdue),
                    TestAttempt.status == AttemptStatus.IN_PROGRESS,
                )
                .values(status=AttemptStatus.ABANDONED, updated_at=func.now())
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to abandon stale attempts: {e}")
            raise

        # Attempts finalized meanwhile are skipped by the status condition
        logger.info(f"Abandoned {result.rowcount} stale attempts")
        return result.rowcount
