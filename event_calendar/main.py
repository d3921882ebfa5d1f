from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from event_calendar.api.errors import envelope, register_error_handlers
from event_calendar.api.v1.router import router as v1_router
from event_calendar.core.config import settings
from event_calendar.core.logging import configure_logging
from event_calendar.db import dispose_engine, get_engine, init_db
from event_calendar.middleware.rate_limit import RateLimitMiddleware
from event_calendar.middleware.request_id import RequestIdMiddleware
from event_calendar.middleware.security_headers import SecurityHeadersMiddleware
from event_calendar.redis_client import close_redis

configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        init_db()
    except SQLAlchemyError as exc:
        # Keep serving; requests that need the database answer 503 until it is back.
        logger.error("database_init_failed", error=str(exc))
    yield
    dispose_engine()
    close_redis()


app = FastAPI(title="Event Calendar API", lifespan=lifespan)

# Starlette runs the LAST added middleware FIRST (outermost).
app.add_middleware(RateLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIdMiddleware)

register_error_handlers(app)

Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)


@app.get("/")
def root():
    return envelope(True, "Event Calendar API", data={"status": "running"})


@app.get("/api/health")
def health():
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError:
        database = "disconnected"
    return envelope(
        True,
        "Server is running",
        data={
            "database": database,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


app.include_router(v1_router, prefix="/api/v1")

if settings.storage_backend == "local":
    app.mount(
        "/uploads",
        StaticFiles(directory=settings.storage_root, check_dir=False),
        name="uploads",
    )
