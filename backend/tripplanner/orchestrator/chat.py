"""
Chat flow: start a session with a generated itinerary, refine it with follow-up messages.

A session is only created after initial generation succeeded, so a failed start leaves
nothing behind. Follow-ups classify the message (intent.py), edit the itinerary, then
write the session back with the itinerary replaced wholesale.
"""
import logging
from typing import Any

from sqlalchemy.orm import Session

from tripplanner.config import settings
from tripplanner.core.errors import ModelCallFailed, NotFound, PersistenceFailed
from tripplanner.orchestrator.intent import Intent, classify_intent, extract_poi_name, parse_replacement
from tripplanner.orchestrator.orchestrator import GenerationOrchestrator
from tripplanner.orchestrator.stream import Emit, StreamEmitter
from tripplanner.schemas import (
    ChatSessionData,
    EventType,
    GenerationRequest,
    GeoPoint,
    Itinerary,
    MessageRole,
    MessageType,
    SessionContext,
    SessionStatus,
)
from tripplanner.services import chat_session_service as sessions
from tripplanner.services.geo_ranker import rank_by_distance
from tripplanner.services.model_gateway import ModelGateway

logger = logging.getLogger(__name__)

ASK_REPLY = (
    "I'm here to help! For now, I'll assume you're asking about your trip. "
    "What specifically would you like to know?"
)
MODIFY_HINT_REPLY = (
    "I've noted your request to modify the itinerary. "
    "Please specify the changes (e.g., 'replace X with Y')."
)


class ChatService:
    def __init__(self, db: Session, gateway: ModelGateway) -> None:
        self.db = db
        self.gateway = gateway
        self.orchestrator = GenerationOrchestrator(db, gateway)

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    def _create_session(
        self, request: GenerationRequest, message: str, itinerary: Itinerary, session_id: str | None = None
    ) -> ChatSessionData:
        city_name = request.city_name.strip()
        history = [
            sessions.new_message(MessageRole.USER, message, MessageType.INITIAL_REQUEST),
            sessions.new_message(
                MessageRole.ASSISTANT,
                f"Here's your initial trip plan for {city_name}",
                MessageType.RESPONSE,
                {"itinerary_name": itinerary.name},
            ),
        ]
        context = SessionContext(
            city_name=city_name,
            city_id=itinerary.city_id,
            conversation_summary=f"Initial trip plan for {city_name}",
            active_interests=list(request.preferences.interests),
        )
        return sessions.create_session(
            self.db,
            user_id=request.user_id,
            profile_id=request.profile_id,
            context=context,
            conversation_history=history,
            current_itinerary=itinerary,
            session_id=session_id,
        )

    async def start_session(self, request: GenerationRequest, message: str = "") -> tuple[str, Itinerary]:
        """Generate the initial itinerary and open a session for it. Returns (session_id, itinerary)."""
        message = (message or "").strip() or f"Plan a trip to {request.city_name.strip()}"
        itinerary = await self.orchestrator.run(request)
        data = self._create_session(request, message, itinerary, session_id=request.session_id)
        logger.info(
            "New session %s: %r with %s POIs", data.session_id, itinerary.name, len(itinerary.points_of_interest)
        )
        return data.session_id, itinerary

    def start_session_stream(self, request: GenerationRequest, message: str = "") -> StreamEmitter:
        """
        Streaming start: start{session_id}, orchestrator progress/partial events, itinerary,
        then complete{session_id}. The id is allocated up front but the session row is only
        written once generation succeeded.
        """
        session_id = request.session_id or sessions.create_session_id()
        message = (message or "").strip() or f"Plan a trip to {request.city_name.strip()}"

        async def run(emit: Emit) -> dict[str, Any]:
            await emit(EventType.START.value, {"session_id": session_id, "city_name": request.city_name})
            itinerary = await self.orchestrator.run(request, on_event=emit)
            self._create_session(request, message, itinerary, session_id=session_id)
            await emit(EventType.ITINERARY.value, itinerary.model_dump(mode="json", by_alias=True))
            return {"session_id": session_id}

        return StreamEmitter(run, queue_size=settings.stream_queue_size)

    # ------------------------------------------------------------------
    # Continue
    # ------------------------------------------------------------------

    def _active_session(self, session_id: str) -> ChatSessionData:
        data = sessions.get_session(self.db, session_id)
        if data.status != SessionStatus.ACTIVE:
            raise NotFound(f"Session {session_id} is {data.status.value}.")
        return data

    async def _add_poi(self, data: ChatSessionData, itinerary: Itinerary, message: str, origin: GeoPoint | None) -> str:
        poi_name = extract_poi_name(message)
        if any(p.name.lower() == poi_name.lower() for p in itinerary.points_of_interest):
            return f"{poi_name} is already in your itinerary."
        try:
            poi = await self.orchestrator.generate_poi_detail(
                poi_name, data.context.city_name, data.user_id, origin=origin, city_id=itinerary.city_id
            )
        except (ModelCallFailed, PersistenceFailed) as e:
            logger.error("Failed to generate POI data for %r: %s", poi_name, e)
            return f"Could not add {poi_name} due to an error."
        itinerary.points_of_interest.append(poi)
        return f"I've added {poi_name} to your itinerary."

    def _remove_poi(self, itinerary: Itinerary, message: str) -> str:
        poi_name = extract_poi_name(message)
        needle = poi_name.lower()
        for i, poi in enumerate(itinerary.points_of_interest):
            if needle in poi.name.lower():
                del itinerary.points_of_interest[i]
                return f"I've removed {poi_name} from your itinerary."
        return f"Could not find {poi_name} in your itinerary."

    async def _replace_poi(
        self, data: ChatSessionData, itinerary: Itinerary, message: str, origin: GeoPoint | None
    ) -> str:
        replacement = parse_replacement(message)
        if replacement is None:
            return MODIFY_HINT_REPLY
        old, new = replacement
        for i, poi in enumerate(itinerary.points_of_interest):
            if old in poi.name.lower():
                try:
                    new_poi = await self.orchestrator.generate_poi_detail(
                        new, data.context.city_name, data.user_id, origin=origin, city_id=itinerary.city_id
                    )
                except (ModelCallFailed, PersistenceFailed) as e:
                    logger.error("Failed to generate POI data for %r: %s", new, e)
                    return f"Could not replace {old} with {new} due to an error."
                itinerary.points_of_interest[i] = new_poi
                return f"I've replaced {old} with {new} in your itinerary."
        return f"Could not find {old} in your itinerary."

    async def _progress(self, on_event: Emit | None, status: str, **extra: Any) -> None:
        if on_event is not None:
            await on_event(EventType.PROGRESS.value, {"status": status, **extra})

    async def continue_session(
        self,
        session_id: str,
        message: str,
        origin: GeoPoint | None = None,
        *,
        on_event: Emit | None = None,
    ) -> tuple[str, Itinerary | None]:
        """
        Apply one follow-up message. Returns (assistant reply, updated itinerary).
        Raises NotFound for unknown, closed or expired sessions.
        """
        data = self._active_session(session_id)
        await self._progress(on_event, "session_validated")
        data = sessions.append_message(
            self.db,
            session_id,
            sessions.new_message(MessageRole.USER, message, MessageType.MODIFICATION_REQUEST),
        )
        intent = classify_intent(message)
        await self._progress(on_event, "intent_classified", intent=intent.value)
        itinerary = data.current_itinerary.model_copy(deep=True) if data.current_itinerary else None

        if itinerary is None:
            reply = "There is no itinerary in this session yet."
        elif intent == Intent.ADD_POI:
            reply = await self._add_poi(data, itinerary, message, origin)
        elif intent == Intent.REMOVE_POI:
            reply = self._remove_poi(itinerary, message)
        elif intent == Intent.ASK_QUESTION:
            reply = ASK_REPLY
        else:
            reply = await self._replace_poi(data, itinerary, message, origin)

        if itinerary is not None and origin is not None and intent in (Intent.ADD_POI, Intent.MODIFY_ITINERARY):
            itinerary.points_of_interest = rank_by_distance(
                self.db,
                itinerary.points_of_interest,
                origin,
                city_id=itinerary.city_id,
                user_id=data.user_id,
            )

        data.conversation_history.append(
            sessions.new_message(MessageRole.ASSISTANT, reply, MessageType.RESPONSE, {"intent": intent.value})
        )
        data = sessions.refresh_expiry(data)
        data = data.model_copy(update={"current_itinerary": itinerary})
        data = sessions.update_session(self.db, data)
        logger.info("Session %s continued (intent=%s)", session_id, intent.value)
        return reply, data.current_itinerary

    def end_session(self, session_id: str) -> ChatSessionData:
        return sessions.close_session(self.db, session_id)

    def continue_session_stream(
        self, session_id: str, message: str, origin: GeoPoint | None = None
    ) -> StreamEmitter:
        """
        Streaming follow-up: start{session_id}, progress, itinerary, message{response}, then
        complete{session_id, response}. A missing or inactive session ends with an error event.
        """

        async def run(emit: Emit) -> dict[str, Any]:
            await emit(EventType.START.value, {"session_id": session_id})
            reply, itinerary = await self.continue_session(session_id, message, origin, on_event=emit)
            if itinerary is not None:
                await emit(EventType.ITINERARY.value, itinerary.model_dump(mode="json", by_alias=True))
            await emit(EventType.MESSAGE.value, {"response": reply})
            return {"session_id": session_id, "response": reply}

        return StreamEmitter(run, queue_size=settings.stream_queue_size)
