"""
Script to abandon test attempts left in progress past their deadline.

Run periodically (cron, scheduler) alongside the API.
"""
import logging

from app.db.base import SessionLocal
from app.services.attempt_reaper import AttemptReaper

logging.basicConfig(level=logging.INFO, format='%(levelname)s:\t%(name)s\t%(message)s')


def reap() -> int:
    """Abandon overdue attempts and return how many were abandoned."""
    db = SessionLocal()
    try:
        return AttemptReaper(db).abandon_stale_attempts()
    finally:
        db.close()


if __name__ == "__main__":
    count = reap()
    print(f"✅ Abandoned {count} overdue attempts")
