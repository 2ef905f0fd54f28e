"""
Chat session store: conversation history, current itinerary snapshot and lifecycle per session.

History, itinerary and context are JSON text columns, (de)serialized with pydantic
TypeAdapters. History is append-only and ordered; the itinerary is replaced wholesale.
append_message is read-modify-write: callers keep to one writer per session.
"""
import json
import logging
import uuid
from datetime import datetime, timedelta, timezone

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripplanner.config import settings
from tripplanner.core.errors import NotFound, PersistenceFailed
from tripplanner.models.chat_session import ChatSession
from tripplanner.schemas import (
    ChatSessionData,
    ConversationMessage,
    Itinerary,
    MessageRole,
    MessageType,
    SessionContext,
    SessionStatus,
)

logger = logging.getLogger(__name__)

_HistoryAdapter = TypeAdapter(list[ConversationMessage])


def create_session_id() -> str:
    """Generate a new session id (UUID hex)."""
    return uuid.uuid4().hex


def new_message(
    role: MessageRole,
    content: str,
    message_type: MessageType,
    metadata: dict | None = None,
) -> ConversationMessage:
    return ConversationMessage(
        id=uuid.uuid4().hex,
        role=role,
        content=content,
        message_type=message_type,
        timestamp=datetime.now(timezone.utc),
        metadata=metadata or {},
    )


def _utc(dt: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _expiry(now: datetime) -> datetime:
    return now + timedelta(hours=settings.session_ttl_hours)


def _load_history(row: ChatSession) -> list[ConversationMessage]:
    if not row.conversation_history or not row.conversation_history.strip():
        return []
    try:
        return _HistoryAdapter.validate_json(row.conversation_history)
    except ValidationError:
        logger.warning("Unreadable history for session %s; treating as empty", row.session_id, exc_info=True)
        return []


def _dump_history(history: list[ConversationMessage]) -> str:
    return _HistoryAdapter.dump_json(history).decode("utf-8")


def _to_data(row: ChatSession) -> ChatSessionData:
    itinerary = None
    if row.current_itinerary and row.current_itinerary.strip():
        try:
            itinerary = Itinerary.model_validate_json(row.current_itinerary)
        except ValidationError:
            logger.warning("Unreadable itinerary for session %s", row.session_id, exc_info=True)
    context = SessionContext(city_name="")
    if row.session_context and row.session_context.strip():
        try:
            context = SessionContext.model_validate_json(row.session_context)
        except ValidationError:
            logger.warning("Unreadable context for session %s", row.session_id, exc_info=True)
    return ChatSessionData(
        session_id=row.session_id,
        user_id=row.user_id,
        profile_id=row.profile_id,
        conversation_history=_load_history(row),
        current_itinerary=itinerary,
        context=context,
        status=SessionStatus(row.status),
        created_at=_utc(row.created_at),
        updated_at=_utc(row.updated_at),
        expires_at=_utc(row.expires_at),
    )


def _get_row(db: Session, session_id: str) -> ChatSession:
    row = db.query(ChatSession).filter(ChatSession.session_id == session_id).first()
    if not row:
        raise NotFound(f"Session {session_id} not found.")
    return row


def _touch(row: ChatSession, now: datetime) -> None:
    """Advance updated_at without ever moving it backwards."""
    previous = _utc(row.updated_at)
    row.updated_at = max(now, previous) if previous else now


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceFailed(f"could not {what}: {e}") from e


def create_session(
    db: Session,
    *,
    user_id: str,
    context: SessionContext,
    profile_id: str | None = None,
    conversation_history: list[ConversationMessage] | None = None,
    current_itinerary: Itinerary | None = None,
    session_id: str | None = None,
) -> ChatSessionData:
    now = datetime.now(timezone.utc)
    row = ChatSession(
        session_id=session_id or create_session_id(),
        user_id=user_id,
        profile_id=profile_id,
        conversation_history=_dump_history(conversation_history or []),
        current_itinerary=current_itinerary.model_dump_json() if current_itinerary else None,
        session_context=context.model_dump_json(),
        status=SessionStatus.ACTIVE.value,
        created_at=now,
        updated_at=now,
        expires_at=_expiry(now),
    )
    db.add(row)
    _commit(db, "create session")
    db.refresh(row)
    logger.info("Created session %s for user %s (%s)", row.session_id, user_id, context.city_name)
    return _to_data(row)


def get_session(db: Session, session_id: str) -> ChatSessionData:
    """Load a session. Raises NotFound."""
    return _to_data(_get_row(db, session_id))


def update_session(db: Session, data: ChatSessionData) -> ChatSessionData:
    """
    Write the whole session back: history, itinerary (wholesale), context, status, expiry.
    updated_at is set to now, or kept if already later.
    """
    row = _get_row(db, data.session_id)
    row.profile_id = data.profile_id
    row.conversation_history = _dump_history(data.conversation_history)
    row.current_itinerary = data.current_itinerary.model_dump_json() if data.current_itinerary else None
    row.session_context = data.context.model_dump_json()
    row.status = data.status.value
    row.expires_at = data.expires_at
    _touch(row, datetime.now(timezone.utc))
    _commit(db, "update session")
    db.refresh(row)
    return _to_data(row)


def append_message(db: Session, session_id: str, message: ConversationMessage) -> ChatSessionData:
    """Append one message to the end of the history."""
    row = _get_row(db, session_id)
    history = _load_history(row)
    history.append(message)
    row.conversation_history = _dump_history(history)
    _touch(row, datetime.now(timezone.utc))
    _commit(db, "append message")
    db.refresh(row)
    return _to_data(row)


def refresh_expiry(data: ChatSessionData) -> ChatSessionData:
    """New expiry counted from now (applied on the next update_session)."""
    return data.model_copy(update={"expires_at": _expiry(datetime.now(timezone.utc))})


def list_user_sessions(db: Session, user_id: str, limit: int = 20) -> list[dict]:
    """Sessions for a user, most recently updated first."""
    rows = (
        db.query(ChatSession)
        .filter(ChatSession.user_id == user_id)
        .order_by(ChatSession.updated_at.desc(), ChatSession.id.desc())
        .limit(limit)
        .all()
    )
    out = []
    for r in rows:
        city_name = None
        if r.session_context:
            try:
                city_name = json.loads(r.session_context).get("city_name")
            except (TypeError, json.JSONDecodeError, AttributeError):
                city_name = None
        out.append({
            "session_id": r.session_id,
            "city_name": city_name,
            "status": r.status,
            "updated_at": _utc(r.updated_at).isoformat() if r.updated_at else None,
            "expires_at": _utc(r.expires_at).isoformat() if r.expires_at else None,
        })
    return out


def _set_status(db: Session, session_id: str, status: SessionStatus) -> ChatSessionData:
    row = _get_row(db, session_id)
    row.status = status.value
    _touch(row, datetime.now(timezone.utc))
    _commit(db, f"mark session {status.value}")
    db.refresh(row)
    return _to_data(row)


def close_session(db: Session, session_id: str) -> ChatSessionData:
    return _set_status(db, session_id, SessionStatus.CLOSED)


def expire_session(db: Session, session_id: str) -> ChatSessionData:
    return _set_status(db, session_id, SessionStatus.EXPIRED)


def expire_stale_sessions(db: Session, now: datetime | None = None) -> int:
    """Mark active sessions past their expiry as expired. Returns how many were marked."""
    now = now or datetime.now(timezone.utc)
    rows = (
        db.query(ChatSession)
        .filter(ChatSession.status == SessionStatus.ACTIVE.value, ChatSession.expires_at < now)
        .all()
    )
    for row in rows:
        row.status = SessionStatus.EXPIRED.value
        _touch(row, now)
    if rows:
        _commit(db, "expire sessions")
    return len(rows)
