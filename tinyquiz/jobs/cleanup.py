"""
Hourly sweep of expired quizzes.

The job reschedules itself on the rq queue after every run, so one seeded
run keeps the sweep going for as long as a scheduler-enabled worker is up.
"""
import logging
from datetime import timedelta
from typing import Callable, Optional
from rq import Queue
from sqlalchemy.orm import Session
from tinyquiz.core.config import settings
from tinyquiz.core.database import SessionLocal
from tinyquiz.services.quizzes import purge_expired_quizzes

logger = logging.getLogger(__name__)

def run_cleanup(session_factory: Callable[[], Session] = SessionLocal) -> int:
    db = session_factory()
    try:
        deleted = purge_expired_quizzes(db)
    except Exception:
        db.rollback()
        logger.exception("Expired quiz cleanup failed")
        raise
    finally:
        db.close()
    logger.info("Cleaned up %d expired quizzes", deleted)
    return deleted

def schedule_cleanup(queue: Optional[Queue] = None, delay_seconds: Optional[int] = None):
    """Enqueue the next sweep ``delay_seconds`` from now (immediately when 0)."""
    if queue is None:
        from tinyquiz.jobs.queue import queue
    delay = settings.CLEANUP_INTERVAL_SECONDS if delay_seconds is None else delay_seconds
    if delay <= 0:
        return queue.enqueue(cleanup_job)
    return queue.enqueue_in(timedelta(seconds=delay), cleanup_job)

def cleanup_job():
    """rq entry point: sweep, then book the next run one interval later."""
    try:
        return run_cleanup()
    finally:
        schedule_cleanup()
