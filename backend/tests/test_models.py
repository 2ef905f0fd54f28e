from sqlalchemy import inspect

from tripplanner.db import ALL_TABLE_NAMES, Base


def test_models_match_table_list():
    assert set(Base.metadata.tables) == set(ALL_TABLE_NAMES)


def test_unique_constraints(engine):
    insp = inspect(engine)
    cities = {tuple(c["column_names"]) for c in insp.get_unique_constraints("cities")}
    pois = {tuple(c["column_names"]) for c in insp.get_unique_constraints("points_of_interest")}
    assert ("name", "country") in cities
    assert ("name", "city_id") in pois
