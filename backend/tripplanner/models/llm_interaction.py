"""Audit log of every model call. Rows are written once and never updated."""
from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from tripplanner.db.base import Base


class LlmInteraction(Base):
    __tablename__ = "llm_interactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    prompt = Column(Text, nullable=False)
    response_text = Column(Text, nullable=True)
    model_used = Column(String(128), nullable=False)
    latency_ms = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
