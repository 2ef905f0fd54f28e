"""
Session endpoints: start a trip-planning session (plain or SSE), send follow-ups, read/close.
"""
import json
import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tripplanner.core.constants import SESSION_LIST_LIMIT
from tripplanner.core.errors import error_to_http
from tripplanner.db.session import get_db
from tripplanner.orchestrator.chat import ChatService
from tripplanner.schemas import ChatSessionData, GenerationRequest, GeoPoint, Itinerary, PreferenceBundle, StreamEvent
from tripplanner.services.chat_session_service import get_session, list_user_sessions
from tripplanner.services.model_gateway import ModelGateway, get_gateway

router = APIRouter()
logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class StartSessionRequest(BaseModel):
    city_name: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    profile_id: str | None = None
    message: str = ""
    origin: GeoPoint | None = None
    preferences: PreferenceBundle = Field(default_factory=PreferenceBundle)

    def to_generation_request(self) -> GenerationRequest:
        return GenerationRequest(
            city_name=self.city_name,
            user_id=self.user_id,
            profile_id=self.profile_id,
            origin=self.origin,
            preferences=self.preferences,
        )


class StartSessionResponse(BaseModel):
    session_id: str
    data: Itinerary


class ContinueSessionRequest(BaseModel):
    message: str = Field(min_length=1)
    origin: GeoPoint | None = None


class ContinueSessionResponse(BaseModel):
    response: str
    data: Itinerary | None = None


def _handle_error(exc: Exception, log_message: str) -> NoReturn:
    logger.exception(log_message)
    raise error_to_http(exc) from exc


def _sse_line(event: StreamEvent) -> bytes:
    """One SSE frame: event name line, JSON data line, blank line."""
    body = {
        "id": event.id,
        "type": event.type,
        "timestamp": event.timestamp.isoformat() if event.timestamp else None,
        "is_final": event.is_final,
    }
    if event.payload is not None:
        body["data"] = event.payload
    if event.error:
        body["error"] = event.error
    return f"event: {event.type}\ndata: {json.dumps(body, default=str)}\n\n".encode("utf-8")


def _service(db: Session, gateway: ModelGateway) -> ChatService:
    return ChatService(db, gateway)


@router.post("", response_model=StartSessionResponse)
async def start_session(
    body: StartSessionRequest,
    db: Session = Depends(get_db),
    gateway: ModelGateway = Depends(get_gateway),
) -> StartSessionResponse:
    """Generate an initial itinerary for a city and open a chat session for it."""
    try:
        session_id, itinerary = await _service(db, gateway).start_session(
            body.to_generation_request(), body.message
        )
    except Exception as e:  # noqa: BLE001
        _handle_error(e, "Start session failed")
    return StartSessionResponse(session_id=session_id, data=itinerary)


async def _stream_session_sse(request: Request, emitter):
    try:
        async for event in emitter.events():
            if await request.is_disconnected():
                logger.info("Client disconnected; cancelling stream")
                break
            yield _sse_line(event)
    finally:
        await emitter.cancel()


@router.post("/stream")
async def start_session_stream(
    body: StartSessionRequest,
    request: Request,
    db: Session = Depends(get_db),
    gateway: ModelGateway = Depends(get_gateway),
):
    """Streamed start as SSE: start, progress and partial data, itinerary, then complete or error."""
    emitter = _service(db, gateway).start_session_stream(body.to_generation_request(), body.message)
    emitter.start()
    return StreamingResponse(
        _stream_session_sse(request, emitter),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/{session_id}/messages", response_model=ContinueSessionResponse)
async def continue_session(
    session_id: str,
    body: ContinueSessionRequest,
    db: Session = Depends(get_db),
    gateway: ModelGateway = Depends(get_gateway),
) -> ContinueSessionResponse:
    """Refine the session's itinerary with a follow-up message (add, remove, replace, ask)."""
    try:
        reply, itinerary = await _service(db, gateway).continue_session(session_id, body.message, body.origin)
    except Exception as e:  # noqa: BLE001
        _handle_error(e, "Continue session failed")
    return ContinueSessionResponse(response=reply, data=itinerary)


@router.post("/{session_id}/messages/stream")
async def continue_session_stream(
    session_id: str,
    body: ContinueSessionRequest,
    request: Request,
    db: Session = Depends(get_db),
    gateway: ModelGateway = Depends(get_gateway),
):
    """Streamed follow-up as SSE. Unknown or inactive sessions end with an error event."""
    emitter = _service(db, gateway).continue_session_stream(session_id, body.message, body.origin)
    emitter.start()
    return StreamingResponse(
        _stream_session_sse(request, emitter),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("", response_model=None)
async def list_sessions(user_id: str, limit: int = 20, db: Session = Depends(get_db)):
    """List a user's sessions, most recently updated first."""
    try:
        return {"sessions": list_user_sessions(db, user_id, limit=min(limit, SESSION_LIST_LIMIT))}
    except Exception as e:
        logger.warning("list_sessions failed: %s", e, exc_info=True)
        return {"sessions": []}


@router.get("/{session_id}", response_model=ChatSessionData)
async def read_session(session_id: str, db: Session = Depends(get_db)) -> ChatSessionData:
    try:
        return get_session(db, session_id)
    except Exception as e:  # noqa: BLE001
        _handle_error(e, "Read session failed")


@router.delete("/{session_id}", response_model=ChatSessionData)
async def end_session(
    session_id: str,
    db: Session = Depends(get_db),
    gateway: ModelGateway = Depends(get_gateway),
) -> ChatSessionData:
    """Close a session. Closed sessions reject further messages."""
    try:
        return _service(db, gateway).end_session(session_id)
    except Exception as e:  # noqa: BLE001
        _handle_error(e, "End session failed")
