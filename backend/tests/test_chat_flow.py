import pytest

from tripplanner.core.errors import IncompleteResult, ModelCallFailed, NotFound
from tripplanner.models import ChatSession
from tripplanner.orchestrator.chat import ASK_REPLY, MODIFY_HINT_REPLY, ChatService
from tripplanner.schemas import GenerationRequest, GeoPoint, MessageRole, MessageType, SessionStatus
from tripplanner.services.chat_session_service import get_session


def _request(**kw) -> GenerationRequest:
    data = {"city_name": "Lisbon", "user_id": "u1"}
    data.update(kw)
    return GenerationRequest(**data)


async def _started(db, gateway):
    service = ChatService(db, gateway)
    session_id, itinerary = await service.start_session(_request())
    return service, session_id, itinerary


async def test_start_session_creates_session_with_history(db, gateway):
    service, session_id, itinerary = await _started(db, gateway)
    data = get_session(db, session_id)
    assert data.current_itinerary == itinerary
    assert [(m.role, m.message_type) for m in data.conversation_history] == [
        (MessageRole.USER, MessageType.INITIAL_REQUEST),
        (MessageRole.ASSISTANT, MessageType.RESPONSE),
    ]
    assert data.conversation_history[0].content == "Plan a trip to Lisbon"
    assert data.context.city_id == itinerary.city_id


async def test_failed_start_creates_no_session(db, make_gateway):
    service = ChatService(db, make_gateway({"city_data": ModelCallFailed("quota")}))
    with pytest.raises(IncompleteResult):
        await service.start_session(_request(), "Plan it")
    assert db.query(ChatSession).count() == 0


async def test_add_poi(db, gateway):
    service, session_id, _ = await _started(db, gateway)
    reply, itinerary = await service.continue_session(session_id, "Add Gulbenkian Museum")
    assert reply == "I've added Gulbenkian Museum to your itinerary."
    assert itinerary.points_of_interest[-1].name == "Gulbenkian Museum"
    assert len(itinerary.points_of_interest) == 4


async def test_add_existing_poi_is_not_duplicated(db, gateway):
    service, session_id, _ = await _started(db, gateway)
    reply, itinerary = await service.continue_session(session_id, "add lx factory")
    assert reply == "Lx Factory is already in your itinerary."
    assert len(itinerary.points_of_interest) == 3


async def test_add_poi_model_failure_keeps_itinerary(db, make_gateway):
    gateway = make_gateway({"poi_detail": ModelCallFailed("down")})
    service, session_id, _ = await _started(db, gateway)
    reply, itinerary = await service.continue_session(session_id, "add Oceanario")
    assert reply == "Could not add Oceanario due to an error."
    assert len(itinerary.points_of_interest) == 3


async def test_remove_poi(db, gateway):
    service, session_id, _ = await _started(db, gateway)
    reply, itinerary = await service.continue_session(session_id, "remove belem")
    assert reply == "I've removed Belem from your itinerary."
    assert [p.name for p in itinerary.points_of_interest] == ["Miradouro da Graca", "LX Factory"]

    reply, _ = await service.continue_session(session_id, "remove Jeronimos")
    assert reply == "Could not find Jeronimos in your itinerary."


async def test_replace_poi(db, gateway):
    service, session_id, _ = await _started(db, gateway)
    reply, itinerary = await service.continue_session(session_id, "replace lx factory with Time Out Market")
    assert reply == "I've replaced lx factory with time out market in your itinerary."
    assert [p.name for p in itinerary.points_of_interest][2] == "time out market"


async def test_modify_without_replacement_gives_hint(db, gateway):
    service, session_id, itinerary = await _started(db, gateway)
    reply, updated = await service.continue_session(session_id, "make it more relaxed")
    assert reply == MODIFY_HINT_REPLY
    assert updated == itinerary


async def test_question_gets_canned_reply_and_history_grows(db, gateway):
    service, session_id, _ = await _started(db, gateway)
    reply, _ = await service.continue_session(session_id, "What should I wear?")
    assert reply == ASK_REPLY
    history = get_session(db, session_id).conversation_history
    assert len(history) == 4
    assert history[2].message_type == MessageType.MODIFICATION_REQUEST
    assert history[3].content == ASK_REPLY


async def test_add_with_origin_reranks(db, gateway):
    service, session_id, _ = await _started(db, gateway)
    origin = GeoPoint(latitude=38.6916, longitude=-9.2160)  # at Belem Tower
    _, itinerary = await service.continue_session(session_id, "add Jeronimos", origin=origin)
    assert itinerary.points_of_interest[0].name == "Belem Tower"
    distances = [p.distance for p in itinerary.points_of_interest]
    assert distances == sorted(distances)


async def test_continue_unknown_or_closed_session_raises_not_found(db, gateway):
    service, session_id, _ = await _started(db, gateway)
    with pytest.raises(NotFound):
        await service.continue_session("nope", "add X")
    assert service.end_session(session_id).status == SessionStatus.CLOSED
    with pytest.raises(NotFound):
        await service.continue_session(session_id, "add X")


async def test_stream_start_emits_events_and_creates_session(db, gateway):
    service = ChatService(db, gateway)
    emitter = service.start_session_stream(_request()).start()
    events = [e async for e in emitter.events()]

    types = [e.type for e in events]
    assert types[0] == "start"
    assert types[-2:] == ["itinerary", "complete"]
    assert "city_data" in types and "general_poi" in types and "personalized_poi" in types
    session_id = events[0].payload["session_id"]
    assert events[-1].payload == {"session_id": session_id}
    assert get_session(db, session_id).current_itinerary.name == "Lisbon Slow Days"


async def test_stream_start_failure_ends_with_error_and_no_session(db, make_gateway):
    service = ChatService(db, make_gateway({"general_pois": "nonsense"}))
    emitter = service.start_session_stream(_request()).start()
    events = [e async for e in emitter.events()]
    assert events[-1].type == "error"
    assert events[-1].is_final
    assert db.query(ChatSession).count() == 0


async def test_stream_continue_emits_progress_itinerary_and_reply(db, gateway):
    service, session_id, _ = await _started(db, gateway)
    emitter = service.continue_session_stream(session_id, "remove belem tower").start()
    events = [e async for e in emitter.events()]

    assert [e.type for e in events] == ["start", "progress", "progress", "itinerary", "message", "complete"]
    assert events[1].payload == {"status": "session_validated"}
    assert events[2].payload == {"status": "intent_classified", "intent": "remove_poi"}
    assert len(events[3].payload["points_of_interest"]) == 2
    reply = "I've removed Belem Tower from your itinerary."
    assert events[-1].payload == {"session_id": session_id, "response": reply}
    assert events[-1].is_final
    assert len(get_session(db, session_id).current_itinerary.points_of_interest) == 2


async def test_stream_continue_inactive_session_ends_with_error(db, gateway):
    service, session_id, _ = await _started(db, gateway)
    service.end_session(session_id)

    for sid in ("nope", session_id):
        events = [e async for e in service.continue_session_stream(sid, "add X").start().events()]
        assert [e.type for e in events] == ["start", "error"]
        assert events[-1].is_final
        assert sid in events[-1].error
