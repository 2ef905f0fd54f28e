import pytest

from tripplanner.orchestrator.intent import UNKNOWN_POI, Intent, classify_intent, extract_poi_name, parse_replacement


@pytest.mark.parametrize(
    "message, intent",
    [
        ("Add the Louvre to my itinerary", Intent.ADD_POI),
        ("I'd like to visit Montmartre", Intent.ADD_POI),
        ("Please remove Eiffel Tower", Intent.REMOVE_POI),
        ("skip the museum", Intent.REMOVE_POI),
        ("What time does it open?", Intent.ASK_QUESTION),
        ("replace Louvre with Orsay", Intent.MODIFY_ITINERARY),
        ("make it more relaxed", Intent.MODIFY_ITINERARY),
        # whole words only
        ("what is the address", Intent.ASK_QUESTION),
    ],
)
def test_classify_intent(message, intent):
    assert classify_intent(message) == intent


def test_add_wins_over_question():
    assert classify_intent("Where should I add lunch?") == Intent.ADD_POI


def test_extract_poi_name():
    assert extract_poi_name("Add the louvre museum to my itinerary") == "Louvre Museum"
    assert extract_poi_name("remove Belem Tower.") == "Belem Tower"
    assert extract_poi_name("add to my itinerary") == UNKNOWN_POI


def test_parse_replacement():
    assert parse_replacement("Replace Louvre with Musee d'Orsay in my itinerary") == ("louvre", "musee d'orsay")
    assert parse_replacement("replace the castle with the aquarium.") == ("the castle", "the aquarium")
    assert parse_replacement("make it cheaper") is None
