"""POIs as suggested by one model interaction; source rows for the distance-ordered query."""
from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from tripplanner.db.base import Base


class LlmSuggestedPoi(Base):
    __tablename__ = "llm_suggested_pois"

    id = Column(Integer, primary_key=True, autoincrement=True)
    llm_interaction_id = Column(Integer, ForeignKey("llm_interactions.id"), nullable=True, index=True)
    city_id = Column(Integer, ForeignKey("cities.id", ondelete="CASCADE"), nullable=True, index=True)
    user_id = Column(String(64), nullable=True)
    name = Column(String(256), nullable=False)
    category = Column(String(128), nullable=True)
    description = Column(Text, nullable=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
