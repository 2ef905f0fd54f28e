"""
City/POI reconciler: find-or-create cities by (name, country) and POIs by (name, city).

City creation must succeed (PersistenceFailed otherwise). POI persistence is
best-effort: a failed POI is rolled back, logged and skipped.
Find-then-insert is not atomic; the unique constraints turn a concurrent duplicate
insert into an IntegrityError, handled like any other per-row failure.
"""
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tripplanner.core.errors import PersistenceFailed
from tripplanner.models.city import City
from tripplanner.models.poi import PointOfInterest
from tripplanner.schemas import POI, CityData

logger = logging.getLogger(__name__)


def find_city(db: Session, name: str, country: str | None = None) -> City | None:
    q = db.query(City).filter(City.name == (name or "").strip())
    if country is not None:
        q = q.filter(City.country == country.strip())
    return q.order_by(City.id).first()


def _get_or_create_city(db: Session, city_data: CityData) -> City:
    name = city_data.city_name.strip()
    country = (city_data.country or "").strip()
    city = find_city(db, name, country)
    if city is not None:
        return city
    city = City(
        name=name,
        country=country,
        state_province=city_data.state_province,
        ai_summary=city_data.description,
        center_latitude=city_data.center_latitude,
        center_longitude=city_data.center_longitude,
    )
    try:
        db.add(city)
        db.commit()
        db.refresh(city)
    except IntegrityError:
        # Lost the race with a concurrent insert; use the winner's row
        db.rollback()
        existing = find_city(db, name, country)
        if existing is None:
            raise PersistenceFailed(f"could not create city {name!r}")
        return existing
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceFailed(f"could not create city {name!r}: {e}") from e
    logger.info("Created city %s (%s) id=%s", name, country or "-", city.id)
    return city


def find_poi(db: Session, name: str, city_id: int) -> PointOfInterest | None:
    return (
        db.query(PointOfInterest)
        .filter(PointOfInterest.name == name.strip(), PointOfInterest.city_id == city_id)
        .first()
    )


def _get_or_create_poi(db: Session, city_id: int, poi: POI) -> PointOfInterest:
    existing = find_poi(db, poi.name, city_id)
    if existing is not None:
        return existing
    row = PointOfInterest(
        city_id=city_id,
        name=poi.name.strip(),
        category=poi.category,
        description=poi.description,
        latitude=poi.latitude,
        longitude=poi.longitude,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def reconcile(db: Session, city_data: CityData, pois: list[POI]) -> int:
    """
    Ensure the city and every POI exist. Returns the city id.
    Raises PersistenceFailed only when the city itself cannot be stored.
    """
    city_id = _get_or_create_city(db, city_data).id
    stored = 0
    for poi in pois:
        if not poi.name or not poi.name.strip():
            continue
        try:
            _get_or_create_poi(db, city_id, poi)
            stored += 1
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Skipping POI %r for city %s: %s", poi.name, city_id, e, exc_info=True)
    logger.debug("Reconciled %s/%s POIs for city %s", stored, len(pois), city_id)
    return city_id
