"""A user's bookmark of one generated itinerary, snapshotted from its interaction's response."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from tripplanner.db.base import Base


class SavedItinerary(Base):
    __tablename__ = "saved_itineraries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    source_llm_interaction_id = Column(Integer, ForeignKey("llm_interactions.id"), nullable=True, index=True)
    primary_city_id = Column(Integer, ForeignKey("cities.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(256), nullable=False)
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=False, default="")  # raw model response of the source interaction
    tags = Column(Text, nullable=True)  # JSON array of strings
    is_public = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())
