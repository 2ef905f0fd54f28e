"""
Domain types shared by the generation pipeline, the session store and the API.

Model payloads are pydantic models so the response parser can strict-decode raw model
output into them. ModelCallResult is a tagged union: one dataclass per generation kind,
each carrying exactly one payload, plus TaskFailure for the error case.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Union

from pydantic import BaseModel, ConfigDict, Field


class TaskKind(str, Enum):
    CITY_DATA = "city_data"
    GENERAL_POIS = "general_pois"
    PERSONALIZED_ITINERARY = "personalized_itinerary"
    POI_DETAIL = "poi_detail"


class TaskState(str, Enum):
    PENDING = "pending"
    CALLING = "calling"
    PARSING = "parsing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Model output schemas (field names must match the JSON embedded in prompts)
# ---------------------------------------------------------------------------


class POI(BaseModel):
    """One point of interest. id is set once persisted; distance is transient (meters)."""

    model_config = ConfigDict(populate_by_name=True)

    id: int | None = None
    name: str
    category: str = ""
    description: str = Field(default="", alias="description_poi")
    latitude: float = 0.0
    longitude: float = 0.0
    distance: float | None = None
    llm_interaction_id: int | None = None


class CityData(BaseModel):
    city_name: str
    country: str = ""
    state_province: str | None = None
    description: str = ""
    center_latitude: float | None = None
    center_longitude: float | None = None


class GeneralPOIs(BaseModel):
    points_of_interest: list[POI]


class PersonalizedItinerary(BaseModel):
    itinerary_name: str
    overall_description: str = ""
    points_of_interest: list[POI]


class Itinerary(BaseModel):
    """A fully-populated itinerary: personalized POIs plus the city and general POIs it came with."""

    name: str
    description: str = ""
    points_of_interest: list[POI] = Field(default_factory=list)
    city_id: int | None = None
    city: CityData | None = None
    general_points_of_interest: list[POI] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class GeoPoint(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class Tag(BaseModel):
    name: str
    description: str | None = None


class PreferenceBundle(BaseModel):
    """User preferences as supplied by the (external) profile store."""

    interests: list[str] = Field(default_factory=list)
    tags: list[Tag] = Field(default_factory=list)
    search_radius_km: float = 5.0
    preferred_time: str = "any"
    budget_level: int = 0
    prefer_outdoor_seating: bool = False
    prefer_dog_friendly: bool = False
    dietary_needs: list[str] = Field(default_factory=list)
    preferred_pace: str = "moderate"
    prefer_accessible_pois: bool = False
    preferred_vibes: list[str] = Field(default_factory=list)
    preferred_transport: str = "any"


class GenerationRequest(BaseModel):
    city_name: str
    user_id: str
    profile_id: str | None = None
    origin: GeoPoint | None = None
    session_id: str | None = None
    preferences: PreferenceBundle = Field(default_factory=PreferenceBundle)


# ---------------------------------------------------------------------------
# ModelCallResult: tagged union
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CityDataResult:
    kind: ClassVar[TaskKind] = TaskKind.CITY_DATA
    payload: CityData
    interaction_id: int | None = None


@dataclass(frozen=True)
class GeneralPOIsResult:
    kind: ClassVar[TaskKind] = TaskKind.GENERAL_POIS
    payload: GeneralPOIs
    interaction_id: int | None = None


@dataclass(frozen=True)
class PersonalizedItineraryResult:
    kind: ClassVar[TaskKind] = TaskKind.PERSONALIZED_ITINERARY
    payload: PersonalizedItinerary
    interaction_id: int | None = None


@dataclass(frozen=True)
class POIDetailResult:
    kind: ClassVar[TaskKind] = TaskKind.POI_DETAIL
    payload: POI
    interaction_id: int | None = None


@dataclass(frozen=True)
class TaskFailure:
    kind: TaskKind
    error: Exception


ModelCallResult = Union[
    CityDataResult, GeneralPOIsResult, PersonalizedItineraryResult, POIDetailResult, TaskFailure
]

PAYLOAD_TYPES: dict[TaskKind, type[BaseModel]] = {
    TaskKind.CITY_DATA: CityData,
    TaskKind.GENERAL_POIS: GeneralPOIs,
    TaskKind.PERSONALIZED_ITINERARY: PersonalizedItinerary,
    TaskKind.POI_DETAIL: POI,
}

RESULT_TYPES = {
    TaskKind.CITY_DATA: CityDataResult,
    TaskKind.GENERAL_POIS: GeneralPOIsResult,
    TaskKind.PERSONALIZED_ITINERARY: PersonalizedItineraryResult,
    TaskKind.POI_DETAIL: POIDetailResult,
}


# ---------------------------------------------------------------------------
# Chat sessions
# ---------------------------------------------------------------------------


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageType(str, Enum):
    INITIAL_REQUEST = "initial_request"
    MODIFICATION_REQUEST = "modification_request"
    RESPONSE = "response"
    CLARIFICATION = "clarification"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CLOSED = "closed"


class ConversationMessage(BaseModel):
    id: str
    role: MessageRole
    content: str
    message_type: MessageType
    timestamp: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)


class SessionContext(BaseModel):
    city_name: str
    city_id: int | None = None
    conversation_summary: str = ""
    active_interests: list[str] = Field(default_factory=list)


class ChatSessionData(BaseModel):
    """Session as seen by services and the API (the ORM row stores JSON text columns)."""

    session_id: str
    user_id: str
    profile_id: str | None = None
    conversation_history: list[ConversationMessage] = Field(default_factory=list)
    current_itinerary: Itinerary | None = None
    context: SessionContext
    status: SessionStatus = SessionStatus.ACTIVE
    created_at: datetime
    updated_at: datetime
    expires_at: datetime


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------


class EventType(str, Enum):
    START = "start"
    PROGRESS = "progress"
    CITY_DATA = "city_data"
    GENERAL_POI = "general_poi"
    PERSONALIZED_POI = "personalized_poi"
    ITINERARY = "itinerary"
    MESSAGE = "message"
    ERROR = "error"
    COMPLETE = "complete"


@dataclass
class StreamEvent:
    type: str
    payload: Any = None
    id: str = ""
    timestamp: datetime | None = None
    is_final: bool = False
    error: str | None = None


# ---------------------------------------------------------------------------
# Saved itineraries
# ---------------------------------------------------------------------------


class SaveItineraryRequest(BaseModel):
    llm_interaction_id: int
    title: str = Field(min_length=1)
    primary_city_id: int | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    is_public: bool = False


class SavedItineraryData(BaseModel):
    id: int
    user_id: str
    source_llm_interaction_id: int | None = None
    primary_city_id: int | None = None
    title: str
    description: str | None = None
    content: str = ""
    tags: list[str] = Field(default_factory=list)
    is_public: bool = False
    created_at: datetime | None = None
