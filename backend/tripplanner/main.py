"""
FastAPI app entrypoint: itinerary sessions (plain and streamed) and the interaction ledger.
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from tripplanner.api.routes import interactions, itineraries, sessions
from tripplanner.config import settings
from tripplanner.core.constants import SESSION_EXPIRY_INTERVAL_MINUTES, SESSION_EXPIRY_JOB_ID
from tripplanner.scheduler.session_expiry_job import run_session_expiry_job

if settings.openai_api_key:
    os.environ["OPENAI_API_KEY"] = settings.openai_api_key

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    _scheduler.add_job(
        run_session_expiry_job,
        "interval",
        minutes=SESSION_EXPIRY_INTERVAL_MINUTES,
        id=SESSION_EXPIRY_JOB_ID,
        replace_existing=True,
    )
    _scheduler.start()
    app.state.scheduler = _scheduler
    logger.info("Trip planner ready (model=%s); session expiry every %s min", settings.ai_model, SESSION_EXPIRY_INTERVAL_MINUTES)
    yield
    _scheduler.shutdown(wait=False)


app = FastAPI(title="Trip Planner", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS (comma-separated) for a deployed frontend
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_origins.extend(settings.cors_origins_list)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sessions.router, prefix="/sessions", tags=["sessions"])
app.include_router(interactions.router, prefix="/interactions", tags=["interactions"])
app.include_router(itineraries.router, prefix="/itineraries", tags=["itineraries"])


@app.get("/", include_in_schema=False)
def root():
    return {"message": "Trip Planner API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
