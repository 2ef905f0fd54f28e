"""Canonical city record; created lazily the first time a city is generated, reused afterwards."""
from sqlalchemy import Column, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from tripplanner.db.base import Base


class City(Base):
    __tablename__ = "cities"
    __table_args__ = (UniqueConstraint("name", "country", name="uq_cities_name_country"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(256), nullable=False, index=True)
    country = Column(String(128), nullable=False, default="")
    state_province = Column(String(128), nullable=True)
    ai_summary = Column(Text, nullable=True)
    center_latitude = Column(Float, nullable=True)
    center_longitude = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
