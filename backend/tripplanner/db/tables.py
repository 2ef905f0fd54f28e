"""
Single source of truth for database tables that exist after migrations.

Use these names when writing raw SQL (e.g. TRUNCATE). Alembic env asserts the
registered models match this list.
"""
ALL_TABLE_NAMES = (
    "cities",
    "points_of_interest",
    "llm_interactions",
    "llm_suggested_pois",
    "chat_sessions",
    "saved_itineraries",
)
