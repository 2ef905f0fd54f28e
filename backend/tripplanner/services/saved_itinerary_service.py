"""
Saved itineraries: a user's bookmarks of generated itineraries.

A bookmark snapshots the raw response of the interaction it points at, so it survives
later edits to the session that produced it. Removal is scoped to the owning user.
"""
import json
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripplanner.core.errors import NotFound, PersistenceFailed
from tripplanner.models.llm_interaction import LlmInteraction
from tripplanner.models.saved_itinerary import SavedItinerary
from tripplanner.schemas import SaveItineraryRequest, SavedItineraryData

logger = logging.getLogger(__name__)


def _to_data(row: SavedItinerary) -> SavedItineraryData:
    return SavedItineraryData(
        id=row.id,
        user_id=row.user_id,
        source_llm_interaction_id=row.source_llm_interaction_id,
        primary_city_id=row.primary_city_id,
        title=row.title,
        description=row.description,
        content=row.content or "",
        tags=json.loads(row.tags) if row.tags else [],
        is_public=bool(row.is_public),
        created_at=row.created_at,
    )


def save_itinerary(db: Session, user_id: str, request: SaveItineraryRequest) -> SavedItineraryData:
    """Bookmark the itinerary produced by one interaction. Raises NotFound for an unknown interaction."""
    source = db.query(LlmInteraction).filter(LlmInteraction.id == request.llm_interaction_id).first()
    if source is None:
        raise NotFound(f"Interaction {request.llm_interaction_id} not found.")
    row = SavedItinerary(
        user_id=user_id,
        source_llm_interaction_id=source.id,
        primary_city_id=request.primary_city_id,
        title=request.title.strip(),
        description=request.description,
        content=source.response_text or "",
        tags=json.dumps(request.tags),
        is_public=request.is_public,
    )
    try:
        db.add(row)
        db.commit()
        db.refresh(row)
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceFailed(f"could not save itinerary: {e}") from e
    logger.info("User %s saved itinerary %s from interaction %s", user_id, row.id, source.id)
    return _to_data(row)


def list_saved_itineraries(db: Session, user_id: str, limit: int = 50) -> list[SavedItineraryData]:
    rows = (
        db.query(SavedItinerary)
        .filter(SavedItinerary.user_id == user_id)
        .order_by(SavedItinerary.created_at.desc(), SavedItinerary.id.desc())
        .limit(limit)
        .all()
    )
    return [_to_data(r) for r in rows]


def remove_itinerary(db: Session, user_id: str, itinerary_id: int) -> None:
    """Delete one of the user's bookmarks. Raises NotFound if the user has no such bookmark."""
    try:
        deleted = (
            db.query(SavedItinerary)
            .filter(SavedItinerary.id == itinerary_id, SavedItinerary.user_id == user_id)
            .delete(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceFailed(f"could not remove itinerary {itinerary_id}: {e}") from e
    if not deleted:
        raise NotFound(f"No saved itinerary {itinerary_id} for user {user_id}.")
    logger.info("User %s removed saved itinerary %s", user_id, itinerary_id)
