from tripplanner.core.constants import DEFAULT_INTERESTS
from tripplanner.schemas import PreferenceBundle, Tag
from tripplanner.services import prompt_builder


def test_empty_interests_fall_back_to_defaults():
    bundle = prompt_builder.canonicalize(PreferenceBundle(interests=[]))
    assert bundle.interests == list(DEFAULT_INTERESTS)
    prompt = prompt_builder.personalized_itinerary_prompt("Lisbon", PreferenceBundle())
    assert "[general sightseeing, local experiences]" in prompt


def test_canonicalize_strips_and_dedupes_preserving_order():
    bundle = PreferenceBundle(
        interests=["  food ", "Art", "food", "", "art", "history"],
        tags=[Tag(name="quiet ", description=" no crowds "), Tag(name="Quiet"), Tag(name=" ")],
    )
    out = prompt_builder.canonicalize(bundle)
    assert out.interests == ["food", "Art", "history"]
    assert [(t.name, t.description) for t in out.tags] == [("quiet", "no crowds")]


def test_prompts_are_deterministic():
    bundle = PreferenceBundle(
        interests=["food", "museums"],
        tags=[Tag(name="local", description="avoid tourist traps")],
        budget_level=2,
        preferred_vibes=["cozy"],
    )
    a = prompt_builder.personalized_itinerary_prompt("Porto", bundle)
    b = prompt_builder.personalized_itinerary_prompt("Porto", bundle.model_copy(deep=True))
    assert a == b
    assert prompt_builder.city_data_prompt(" Porto ") == prompt_builder.city_data_prompt("Porto")


def test_equivalent_preferences_give_identical_prompts():
    a = PreferenceBundle(interests=["food", "art"])
    b = PreferenceBundle(interests=[" food", "art ", "FOOD"])
    assert prompt_builder.personalized_itinerary_prompt("Rome", a) == prompt_builder.personalized_itinerary_prompt(
        "Rome", b
    )


def test_tags_render_with_meaning():
    part = prompt_builder.tags_prompt_part([Tag(name="quiet", description="no crowds"), Tag(name="local")])
    assert "quiet (meaning: no crowds); local" in part
    assert prompt_builder.tags_prompt_part([]) == ""


def test_prompts_embed_output_schema():
    assert '"center_latitude": <float>' in prompt_builder.city_data_prompt("Lisbon")
    assert '"description_poi"' in prompt_builder.general_pois_prompt("Lisbon")
    personalized = prompt_builder.personalized_itinerary_prompt("Lisbon", PreferenceBundle())
    assert '"itinerary_name"' in personalized
    assert '"overall_description"' in personalized
    detail = prompt_builder.poi_detail_prompt("Belem Tower", "Lisbon")
    assert detail.startswith('Provide detailed information about "Belem Tower" in Lisbon.')


def test_preferences_prompt_lists_fields():
    text = prompt_builder.preferences_prompt(
        PreferenceBundle(search_radius_km=2.5, prefer_dog_friendly=True, dietary_needs=["vegan", "halal"])
    )
    assert "Search Radius: 2.5 km" in text
    assert "Prefers Dog Friendly: true" in text
    assert "Preferred Dietary Needs: [vegan, halal]" in text
