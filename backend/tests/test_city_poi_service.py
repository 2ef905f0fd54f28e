import pytest
from sqlalchemy.exc import SQLAlchemyError

from tripplanner.core.errors import PersistenceFailed
from tripplanner.models import City, PointOfInterest
from tripplanner.schemas import POI, CityData
from tripplanner.services import city_poi_service
from tripplanner.services.city_poi_service import find_city, reconcile

LISBON = CityData(city_name="Lisbon", country="Portugal", description="Capital.", center_latitude=38.72, center_longitude=-9.14)


def _poi(name: str) -> POI:
    return POI(name=name, category="Sight", description=f"{name}.", latitude=38.7, longitude=-9.1)


def test_reconcile_twice_creates_one_city_and_one_row_per_poi(db):
    first = reconcile(db, LISBON, [_poi("Belem Tower"), _poi("LX Factory")])
    second = reconcile(db, LISBON, [_poi("LX Factory"), _poi("Alfama"), _poi("Alfama")])

    assert first == second
    assert db.query(City).count() == 1
    names = sorted(p.name for p in db.query(PointOfInterest).all())
    assert names == ["Alfama", "Belem Tower", "LX Factory"]


def test_same_name_different_country_is_a_different_city(db):
    a = reconcile(db, LISBON, [])
    b = reconcile(db, CityData(city_name="Lisbon", country="USA"), [])
    assert a != b
    assert find_city(db, "Lisbon", "USA").id == b
    assert find_city(db, "Lisbon") is not None


def test_city_fields_are_stored(db):
    city_id = reconcile(db, LISBON, [])
    city = db.query(City).filter(City.id == city_id).one()
    assert city.ai_summary == "Capital."
    assert city.center_latitude == 38.72


def test_single_poi_failure_is_skipped(db, monkeypatch):
    real_upsert = city_poi_service._get_or_create_poi

    def flaky(session, city_id, poi):
        if poi.name == "Broken":
            raise SQLAlchemyError("insert failed")
        return real_upsert(session, city_id, poi)

    monkeypatch.setattr(city_poi_service, "_get_or_create_poi", flaky)
    reconcile(db, LISBON, [_poi("Belem Tower"), _poi("Broken"), _poi("Alfama")])

    assert sorted(p.name for p in db.query(PointOfInterest).all()) == ["Alfama", "Belem Tower"]


def test_city_creation_failure_raises(db, monkeypatch):
    def fail_commit():
        raise SQLAlchemyError("db down")

    monkeypatch.setattr(db, "commit", fail_commit)
    with pytest.raises(PersistenceFailed):
        reconcile(db, LISBON, [])
