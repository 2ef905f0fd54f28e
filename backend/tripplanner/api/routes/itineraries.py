"""
Saved itinerary endpoints: bookmark a generated itinerary, list and remove bookmarks.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tripplanner.core.constants import SAVED_ITINERARY_LIST_LIMIT
from tripplanner.core.errors import error_to_http
from tripplanner.db.session import get_db
from tripplanner.schemas import SaveItineraryRequest, SavedItineraryData
from tripplanner.services.saved_itinerary_service import list_saved_itineraries, remove_itinerary, save_itinerary

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=SavedItineraryData, status_code=201)
async def save(user_id: str, body: SaveItineraryRequest, db: Session = Depends(get_db)):
    """Bookmark the itinerary generated by an interaction (see /interactions)."""
    try:
        return save_itinerary(db, user_id, body)
    except Exception as e:
        raise error_to_http(e) from e


@router.get("")
async def list_saved(user_id: str, limit: int = 20, db: Session = Depends(get_db)):
    try:
        return {"itineraries": list_saved_itineraries(db, user_id, limit=min(limit, SAVED_ITINERARY_LIST_LIMIT))}
    except Exception as e:
        logger.warning("list_saved_itineraries failed: %s", e, exc_info=True)
        return {"itineraries": []}


@router.delete("/{itinerary_id}", status_code=204)
async def remove(itinerary_id: int, user_id: str, db: Session = Depends(get_db)) -> None:
    try:
        remove_itinerary(db, user_id, itinerary_id)
    except Exception as e:
        raise error_to_http(e) from e
