"""
Geo ranker: order POIs by geodesic distance from the user, computed by the database.

geodesic_distance(lat1, lon1, lat2, lon2) is a SQL construct: on PostgreSQL it compiles
to PostGIS ST_Distance over geography (meters); elsewhere it compiles to a plain
geodesic_distance() call, which install_sqlite_geodesic registers for SQLite.
Ranking is best-effort: without an origin, or on any failure, the input comes back unchanged.
"""
import logging
import math

from sqlalchemy import Float, event, literal
from sqlalchemy.engine import Engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import Session
from sqlalchemy.sql.functions import FunctionElement

from tripplanner.models.suggested_poi import LlmSuggestedPoi
from tripplanner.schemas import POI, GeoPoint

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000


class geodesic_distance(FunctionElement):
    type = Float()
    name = "geodesic_distance"
    inherit_cache = True


@compiles(geodesic_distance)
def _compile_default(element, compiler, **kw):
    return "geodesic_distance(%s)" % compiler.process(element.clauses, **kw)


@compiles(geodesic_distance, "postgresql")
def _compile_postgis(element, compiler, **kw):
    lat1, lon1, lat2, lon2 = [compiler.process(c, **kw) for c in element.clauses]
    return (
        f"ST_Distance(ST_SetSRID(ST_MakePoint({lon1}, {lat1}), 4326)::geography, "
        f"ST_SetSRID(ST_MakePoint({lon2}, {lat2}), 4326)::geography)"
    )


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dp = math.radians(lat2 - lat1)
    dl = math.radians(lon2 - lon1)
    a = math.sin(dp / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


def install_sqlite_geodesic(engine: Engine) -> None:
    """Register geodesic_distance() on every new SQLite connection of this engine."""

    @event.listens_for(engine, "connect")
    def _register(dbapi_connection, connection_record):
        dbapi_connection.create_function("geodesic_distance", 4, haversine_m, deterministic=True)


def _persist_unstored(
    db: Session, pois: list[POI], city_id: int | None, user_id: str | None
) -> list[int]:
    """Insert POIs that have no id yet. Returns ids aligned with `pois`."""
    rows: list[LlmSuggestedPoi | None] = []
    for poi in pois:
        if poi.id is not None:
            rows.append(None)
            continue
        row = LlmSuggestedPoi(
            llm_interaction_id=poi.llm_interaction_id,
            city_id=city_id,
            user_id=user_id,
            name=poi.name,
            category=poi.category,
            description=poi.description,
            latitude=poi.latitude,
            longitude=poi.longitude,
        )
        db.add(row)
        rows.append(row)
    db.commit()
    return [poi.id if row is None else row.id for poi, row in zip(pois, rows)]


def rank_by_distance(
    db: Session,
    pois: list[POI],
    origin: GeoPoint | None,
    *,
    city_id: int | None = None,
    user_id: str | None = None,
) -> list[POI]:
    """
    POIs sorted by non-decreasing distance (meters) from origin, each with its stored id
    and distance set. No origin: input order, untouched.
    """
    if origin is None or not pois:
        return list(pois)
    try:
        ids = _persist_unstored(db, pois, city_id, user_id)
        distance = geodesic_distance(
            LlmSuggestedPoi.latitude,
            LlmSuggestedPoi.longitude,
            literal(origin.latitude, Float),
            literal(origin.longitude, Float),
        ).label("distance")
        rows = (
            db.query(LlmSuggestedPoi.id, distance)
            .filter(LlmSuggestedPoi.id.in_(ids))
            .order_by(distance.asc(), LlmSuggestedPoi.id.asc())
            .all()
        )
    except Exception as e:
        db.rollback()
        logger.warning("Distance ranking failed, keeping input order: %s", e, exc_info=True)
        return list(pois)

    by_id = {poi_id: poi for poi_id, poi in zip(ids, pois)}
    ranked: list[POI] = []
    for poi_id, dist in rows:
        poi = by_id.pop(poi_id, None)
        if poi is not None:
            ranked.append(poi.model_copy(update={"id": poi_id, "distance": float(dist)}))
    # Ids the query did not return (stale ids from an earlier session) keep their relative order
    ranked.extend(by_id.values())
    return ranked
