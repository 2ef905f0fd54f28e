from tripplanner.services.chat_session_service import create_session_id, get_session, update_session
from tripplanner.services.city_poi_service import reconcile
from tripplanner.services.geo_ranker import rank_by_distance

__all__ = ["create_session_id", "get_session", "update_session", "reconcile", "rank_by_distance"]
