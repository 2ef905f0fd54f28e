"""
Mark chat sessions past their expiry as expired. Runs every few minutes from the
app scheduler; deleting old rows is left to database maintenance.
"""
import logging

from tripplanner.db.session import SessionLocal
from tripplanner.services.chat_session_service import expire_stale_sessions

logger = logging.getLogger(__name__)


def run_session_expiry_job(session_factory=SessionLocal) -> int:
    db = session_factory()
    try:
        count = expire_stale_sessions(db)
        if count:
            logger.info("Session expiry: marked %s session(s) expired", count)
        return count
    except Exception as e:
        logger.warning("Session expiry job failed: %s", e, exc_info=True)
        return 0
    finally:
        db.close()
