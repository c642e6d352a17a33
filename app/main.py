import asyncio
import logging

from fastapi import FastAPI
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from app.db.init_db import create_database
from app.db.base import Base
from app.db.session import engine
from app.core.config import settings
from app.api.deps import get_engine
from app.api.v1.router import api_router
from app.services.engine import AvailabilityEngine

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def sweep_expired_holds(availability: AvailabilityEngine) -> None:
    """Release expired holds and resync the index. Errors are logged, never raised."""
    try:
        availability.resolver.expire_holds()
        availability.refresh()
    except Exception:
        logger.exception("Error during hold-expiry sweep.")


async def _hold_expiry_loop() -> None:
    """Background task: run the hold sweep every HOLD_SWEEP_INTERVAL_SECONDS."""
    availability = get_engine()
    while True:
        await asyncio.to_thread(sweep_expired_holds, availability)
        await asyncio.sleep(settings.HOLD_SWEEP_INTERVAL_SECONDS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Ensure DB exists and create tables
    if settings.AVAILABILITY_BACKEND == "sql":
        create_database()
    Base.metadata.create_all(bind=engine)

    # Run an immediate sweep, then keep running in the background
    sweep_task = asyncio.create_task(_hold_expiry_loop())
    yield

    # Shutdown: cancel background task
    sweep_task.cancel()
    try:
        await sweep_task
    except asyncio.CancelledError:
        pass


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/")
def read_root():
    return {"Hello": "Temple Halls"}
