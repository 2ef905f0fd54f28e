"""
Chat session: conversation history, current itinerary snapshot and lifecycle per session.
"""
from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from tripplanner.db.base import Base


class ChatSession(Base):
    __tablename__ = "chat_sessions"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    profile_id = Column(String(64), nullable=True)
    conversation_history = Column(Text, nullable=True)  # JSON array of ConversationMessage
    current_itinerary = Column(Text, nullable=True)  # JSON Itinerary, replaced wholesale
    session_context = Column(Text, nullable=True)  # JSON SessionContext
    status = Column(String(16), nullable=False, default="active", index=True)  # active | expired | closed
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
