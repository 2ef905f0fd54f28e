"""
Shared fixtures: in-memory SQLite with geodesic_distance registered, and a scripted
model gateway so no test talks to a real model.
"""
import asyncio
import json
from collections.abc import AsyncIterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tripplanner.db.base import Base
from tripplanner.models import (  # noqa: F401
    ChatSession,
    City,
    LlmInteraction,
    LlmSuggestedPoi,
    PointOfInterest,
    SavedItinerary,
)
from tripplanner.services.geo_ranker import install_sqlite_geodesic
from tripplanner.services.model_gateway import GenerationConfig, StreamingUnavailable


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    install_sqlite_geodesic(eng)
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Scripted gateway
# ---------------------------------------------------------------------------

CITY_JSON = {
    "city_name": "Lisbon",
    "country": "Portugal",
    "state_province": "Lisbon District",
    "description": "Hilly coastal capital.",
    "center_latitude": 38.7223,
    "center_longitude": -9.1393,
}

GENERAL_JSON = {
    "points_of_interest": [
        {"name": "Belem Tower", "latitude": 38.6916, "longitude": -9.2160, "category": "Historical Site",
         "description_poi": "Fortified tower on the Tagus."},
        {"name": "Sao Jorge Castle", "latitude": 38.7139, "longitude": -9.1335, "category": "Castle",
         "description_poi": "Moorish castle above Alfama."},
    ]
}

PERSONALIZED_JSON = {
    "itinerary_name": "Lisbon Slow Days",
    "overall_description": "Trams, tiles and viewpoints.",
    "points_of_interest": [
        {"name": "Belem Tower", "latitude": 38.6916, "longitude": -9.2160, "category": "Historical Site",
         "description_poi": "Far west."},
        {"name": "Miradouro da Graca", "latitude": 38.7163, "longitude": -9.1310, "category": "Viewpoint",
         "description_poi": "Close to the center."},
        {"name": "LX Factory", "latitude": 38.7033, "longitude": -9.1786, "category": "Market",
         "description_poi": "In between."},
    ],
}


def poi_json(name: str, lat: float = 38.71, lon: float = -9.14) -> str:
    return json.dumps({
        "name": name, "latitude": lat, "longitude": lon, "category": "Museum",
        "description_poi": f"About {name}.",
    })


def route_prompt(prompt: str) -> str:
    """Which generation kind a prompt belongs to."""
    if "Provide detailed information about the city" in prompt:
        return "city_data"
    if "general points of interest" in prompt:
        return "general_pois"
    if "itinerary name" in prompt:
        return "personalized_itinerary"
    return "poi_detail"


class FakeGateway:
    """
    Scripted ModelGateway. `replies` maps a kind to raw text or an Exception to raise;
    poi_detail replies default to a JSON POI named after the quoted name in the prompt.
    """

    model_name = "fake:test-model"

    def __init__(self, replies: dict | None = None, *, stream: bool = True, delay: float = 0.0, chunk_size: int = 40):
        self.replies = {
            "city_data": "Sure!\n```json\n" + json.dumps(CITY_JSON) + "\n```",
            "general_pois": json.dumps(GENERAL_JSON),
            "personalized_itinerary": "Here you go:\n" + json.dumps(PERSONALIZED_JSON) + "\nEnjoy!",
        }
        self.replies.update(replies or {})
        self.stream = stream
        self.delay = delay
        self.chunk_size = chunk_size
        self.prompts: list[str] = []
        self.configs: list[GenerationConfig] = []

    def _reply(self, prompt: str) -> str:
        kind = route_prompt(prompt)
        reply = self.replies.get(kind)
        if reply is None and kind == "poi_detail":
            name = prompt.split('"', 2)[1]
            reply = poi_json(name)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def generate(self, prompt: str, config: GenerationConfig) -> str:
        self.prompts.append(prompt)
        self.configs.append(config)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self._reply(prompt)

    async def generate_stream(self, prompt: str, config: GenerationConfig) -> AsyncIterator[str]:
        if not self.stream:
            raise StreamingUnavailable()
        self.prompts.append(prompt)
        self.configs.append(config)
        if self.delay:
            await asyncio.sleep(self.delay)
        text = self._reply(prompt)
        for i in range(0, len(text), self.chunk_size):
            await asyncio.sleep(0)
            yield text[i : i + self.chunk_size]


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def make_gateway():
    return FakeGateway
