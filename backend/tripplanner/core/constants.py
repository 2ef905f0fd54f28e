"""
Centralized constants for generation, streaming and the scheduler.

Change job IDs, defaults or timeouts here instead of scattering literals across modules.
"""

# Used when the profile has no interests
DEFAULT_INTERESTS = ("general sightseeing", "local experiences")

# Generation temperature for single-POI lookups (continue session add/replace)
POI_DETAIL_TEMPERATURE = 0.7

# Max characters of raw model output kept on MalformedModelOutput
MALFORMED_SNIPPET_LENGTH = 200

# Stream: bounded event queue and the only explicit timeout in the system
STREAM_EVENT_QUEUE_SIZE = 100
STREAM_SEND_TIMEOUT_SECONDS = 2.0

# Scheduler job IDs (must match ids used in main.py add_job)
SESSION_EXPIRY_JOB_ID = "session_expiry"
SESSION_EXPIRY_INTERVAL_MINUTES = 10

# Listing caps so response size stays bounded
SESSION_LIST_LIMIT = 50
INTERACTION_LIST_LIMIT = 200
SAVED_ITINERARY_LIST_LIMIT = 50
