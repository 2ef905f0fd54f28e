from tripplanner.db.base import Base
from tripplanner.db.session import get_db, engine, SessionLocal
from tripplanner.db.tables import ALL_TABLE_NAMES

__all__ = ["get_db", "engine", "SessionLocal", "Base", "ALL_TABLE_NAMES"]
