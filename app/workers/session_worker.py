"""
Dramatiq worker that purges expired sessions.

Run with ``dramatiq app.workers.session_worker`` and start the cycle once
with ``python -m app.cli schedule-purge``; each run re-enqueues itself
``session_purge_interval`` seconds later.
"""
import logging

import dramatiq

# Import broker setup (must be before actor definitions)
from app.workers import broker  # noqa: F401
from app.config import settings
from app.database import SessionLocal
from app.services.session_store import SessionStore

logger = logging.getLogger(__name__)


def purge_once(session_factory=None) -> int:
    """Delete expired session rows and return how many went."""
    db = (session_factory or SessionLocal)()
    try:
        return SessionStore(ttl=settings.session_ttl).purge_expired(db)
    finally:
        db.close()


@dramatiq.actor(max_retries=3, min_backoff=5000, max_backoff=60000)
def purge_expired_sessions(reschedule: bool = True):
    count = purge_once()
    logger.info("Session purge removed %d rows", count)
    if reschedule:
        purge_expired_sessions.send_with_options(
            kwargs={"reschedule": True},
            delay=settings.session_purge_interval * 1000,
        )
