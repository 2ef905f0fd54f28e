"""
Interaction ledger: append-only audit log of model calls.
Rows are inserted once and never updated; readers get plain dicts.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripplanner.core.errors import NotFound, PersistenceFailed
from tripplanner.models.llm_interaction import LlmInteraction

logger = logging.getLogger(__name__)


def record_interaction(
    db: Session,
    *,
    user_id: str,
    prompt: str,
    response_text: str,
    model_used: str,
    latency_ms: int,
) -> LlmInteraction:
    """Append one interaction. Raises PersistenceFailed if the insert fails."""
    row = LlmInteraction(
        user_id=user_id,
        prompt=prompt,
        response_text=response_text,
        model_used=model_used,
        latency_ms=max(int(latency_ms), 0),
    )
    try:
        db.add(row)
        db.commit()
        db.refresh(row)
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceFailed(f"could not record interaction: {e}") from e
    logger.debug("Recorded interaction %s (model=%s, %sms)", row.id, model_used, row.latency_ms)
    return row


def _to_dict(r: LlmInteraction) -> dict:
    return {
        "id": r.id,
        "user_id": r.user_id,
        "prompt": r.prompt,
        "response_text": r.response_text,
        "model_used": r.model_used,
        "latency_ms": r.latency_ms,
        "created_at": r.created_at.isoformat() if r.created_at else None,
    }


def get_interaction(db: Session, interaction_id: int) -> dict:
    row = db.query(LlmInteraction).filter(LlmInteraction.id == interaction_id).first()
    if not row:
        raise NotFound(f"Interaction {interaction_id} not found.")
    return _to_dict(row)


def get_recent_interactions(db: Session, limit: int = 100, user_id: str | None = None) -> list[dict]:
    """Recent interactions, newest first, optionally for one user."""
    q = db.query(LlmInteraction)
    if user_id:
        q = q.filter(LlmInteraction.user_id == user_id)
    rows = q.order_by(LlmInteraction.created_at.desc(), LlmInteraction.id.desc()).limit(limit).all()
    return [_to_dict(r) for r in rows]
