"""
Prompt builder: deterministic prompt strings per generation kind.

Pure functions, no I/O. Every prompt embeds the exact JSON shape the response parser
decodes, so field names here must stay in sync with tripplanner.schemas.
"""
from tripplanner.core.constants import DEFAULT_INTERESTS
from tripplanner.schemas import PreferenceBundle, Tag

_POI_SCHEMA = """                {
                "name": "Name of the Point of Interest",
                "latitude": <float>,
                "longitude": <float>,
                "category": "Primary category (e.g., Museum, Historical Site, Park, Restaurant, Bar)",
                "description_poi": "%s"
                }"""


def _dedupe(values: list[str]) -> list[str]:
    """Strip, drop empties and repeats (case-insensitive), keep first occurrence order."""
    seen: set[str] = set()
    out: list[str] = []
    for v in values:
        s = (v or "").strip()
        if not s or s.lower() in seen:
            continue
        seen.add(s.lower())
        out.append(s)
    return out


def canonicalize(bundle: PreferenceBundle) -> PreferenceBundle:
    """
    Normalize a preference bundle so equal preferences produce equal prompts.
    Empty interests fall back to DEFAULT_INTERESTS.
    """
    interests = _dedupe(bundle.interests) or list(DEFAULT_INTERESTS)
    tags: list[Tag] = []
    seen_tags: set[str] = set()
    for tag in bundle.tags:
        name = (tag.name or "").strip()
        if not name or name.lower() in seen_tags:
            continue
        seen_tags.add(name.lower())
        description = (tag.description or "").strip() or None
        tags.append(Tag(name=name, description=description))
    return bundle.model_copy(
        update={
            "interests": interests,
            "tags": tags,
            "dietary_needs": _dedupe(bundle.dietary_needs),
            "preferred_vibes": _dedupe(bundle.preferred_vibes),
        }
    )


def tags_prompt_part(tags: list[Tag]) -> str:
    """Tag annotations, e.g. 'quiet (meaning: no crowds); local'. Empty string when no tags."""
    if not tags:
        return ""
    parts = []
    for tag in tags:
        detail = tag.name
        if tag.description:
            detail += f" (meaning: {tag.description})"
        parts.append(detail)
    return f"\n    - Additionally, consider these specific user tags/preferences: [{'; '.join(parts)}]."


def preferences_prompt(bundle: PreferenceBundle) -> str:
    return f"""
    - Search Radius: {bundle.search_radius_km:.1f} km
    - Preferred Time: {bundle.preferred_time}
    - Budget Level: {bundle.budget_level} (0=any, 1=cheap, 4=expensive)
    - Prefers Outdoor Seating: {str(bundle.prefer_outdoor_seating).lower()}
    - Prefers Dog Friendly: {str(bundle.prefer_dog_friendly).lower()}
    - Preferred Dietary Needs: [{", ".join(bundle.dietary_needs)}]
    - Preferred Pace: {bundle.preferred_pace}
    - Prefers Accessible POIs: {str(bundle.prefer_accessible_pois).lower()}
    - Preferred Vibes: [{", ".join(bundle.preferred_vibes)}]
    - Preferred Transport: {bundle.preferred_transport}
"""


def city_data_prompt(city_name: str) -> str:
    city_name = city_name.strip()
    return f"""
            Provide detailed information about the city {city_name}.
            Return the response STRICTLY as a JSON object with:
            {{
            "city_name": "{city_name}",
            "country": "Country name",
            "state_province": "State or province, if applicable",
            "description": "A brief description of the city, including its history and main attractions.",
            "center_latitude": <float>,
            "center_longitude": <float>
            }}"""


def general_pois_prompt(city_name: str) -> str:
    city_name = city_name.strip()
    poi = _POI_SCHEMA % "A 2-3 sentence description of this specific POI and why it's relevant."
    return f"""
            Generate a list of maximum 5 general points of interest that people usually see no matter the taste or preference for this city {city_name}.
            Return the response STRICTLY as a JSON object with:
            {{
            "points_of_interest": [
{poi}
            ]
            }}"""


def personalized_itinerary_prompt(city_name: str, bundle: PreferenceBundle) -> str:
    city_name = city_name.strip()
    bundle = canonicalize(bundle)
    poi = _POI_SCHEMA % (
        "A 2-3 very short sentence description of this specific POI and why it's relevant to the user's interests."
    )
    return f"""
            Generate a creative itinerary name, a personalized description, and a list of personalized points of interest for {city_name} based on the user's interests: [{", ".join(bundle.interests)}].{tags_prompt_part(bundle.tags)}
            The user's general preferences are:
            {preferences_prompt(bundle)}
            Return the response STRICTLY as a JSON object with:
            {{
            "itinerary_name": "A creative and descriptive name for this itinerary",
            "overall_description": "A 1 paragraph short descriptive story about exploring {city_name} with these interests and preferences.",
            "points_of_interest": [
{poi}
            ]
            }}"""


def poi_detail_prompt(poi_name: str, city_name: str) -> str:
    return f"""Provide detailed information about "{poi_name.strip()}" in {city_name.strip()}.
    Return the response STRICTLY as a JSON object with:
    {{
        "name": "string (the POI name)",
        "latitude": <float>,
        "longitude": <float>,
        "category": "string (e.g., Museum, Park, Historical Site)",
        "description_poi": "string (50-100 words description)"
    }}
    If the POI is not found, return: {{"name": "", "latitude": 0, "longitude": 0, "category": "", "description_poi": ""}}"""
