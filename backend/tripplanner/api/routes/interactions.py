"""
Interaction ledger endpoints: recent model calls and single records, for debugging prompts.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tripplanner.core.constants import INTERACTION_LIST_LIMIT
from tripplanner.core.errors import error_to_http
from tripplanner.db.session import get_db
from tripplanner.services.llm_interaction_service import get_interaction, get_recent_interactions

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("")
async def list_interactions(limit: int = 100, user_id: str | None = None, db: Session = Depends(get_db)):
    """Recent model interactions, newest first (prompt, raw response, model, latency)."""
    try:
        return {"interactions": get_recent_interactions(db, limit=min(limit, INTERACTION_LIST_LIMIT), user_id=user_id)}
    except Exception as e:
        logger.warning("get_recent_interactions failed (run migrations?): %s", e, exc_info=True)
        return {"interactions": []}


@router.get("/{interaction_id}")
async def read_interaction(interaction_id: int, db: Session = Depends(get_db)):
    try:
        return get_interaction(db, interaction_id)
    except Exception as e:
        raise error_to_http(e) from e
