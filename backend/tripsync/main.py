import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.gzip import GZipMiddleware

from . import __version__
from .config import settings
from .db.core import init_and_migrate_db
from .errors import TripError
from .realtime.broker import RoomBroker
from .routers import auth, itinerary, public, realtime, trips
from .utils.utils import configure_logging, silence_http_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    Path(settings.STORAGE_FOLDER).mkdir(parents=True, exist_ok=True)
    Path(settings.RECEIPTS_FOLDER).mkdir(parents=True, exist_ok=True)
    await init_and_migrate_db()
    silence_http_logging()
    logger.info("tripsync %s ready", __version__)
    yield
    logger.info("Shutting down with %d live trip room(s)", len(app.state.broker.rooms()))


app = FastAPI(lifespan=lifespan)
app.state.broker = RoomBroker()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.exception_handler(TripError)
async def trip_error_handler(request: Request, exc: TripError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


app.include_router(auth.router)
app.include_router(trips.router)
app.include_router(itinerary.router)
app.include_router(public.router)
app.include_router(realtime.router)


@app.get("/api/info")
def info():
    return {"version": __version__}
