from tripplanner.models.chat_session import ChatSession
from tripplanner.models.city import City
from tripplanner.models.llm_interaction import LlmInteraction
from tripplanner.models.poi import PointOfInterest
from tripplanner.models.saved_itinerary import SavedItinerary
from tripplanner.models.suggested_poi import LlmSuggestedPoi

__all__ = [
    "ChatSession",
    "City",
    "LlmInteraction",
    "LlmSuggestedPoi",
    "PointOfInterest",
    "SavedItinerary",
]
