"""Canonical point of interest; one row per (name, city)."""
from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from tripplanner.db.base import Base


class PointOfInterest(Base):
    __tablename__ = "points_of_interest"
    __table_args__ = (UniqueConstraint("name", "city_id", name="uq_points_of_interest_name_city"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    city_id = Column(Integer, ForeignKey("cities.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(256), nullable=False)
    category = Column(String(128), nullable=True)
    description = Column(Text, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
