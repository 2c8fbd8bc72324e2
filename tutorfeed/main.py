from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tutorfeed.api.v1.router import v1_router
from tutorfeed.config import settings
from tutorfeed.core.database import close_db, init_db
from tutorfeed.core.exceptions import FeedError, feed_error_handler
from tutorfeed.core.middleware import RequestLoggingMiddleware
from tutorfeed.services.feed import ActivityFeedService, ActivityLogWriter, FeedRepository

_NAME_TO_LEVEL = {
    "debug": 10,
    "info": 20,
    "warning": 30,
    "warn": 30,
    "error": 40,
    "critical": 50,
}

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        _NAME_TO_LEVEL.get(settings.tutor_log_level.lower(), 20)
    ),
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    await init_db()

    app.state.feed_service = ActivityFeedService(
        repository=FeedRepository(),
        default_limit=settings.tutor_feed_page_size,
    )
    app.state.activity_log_writer = ActivityLogWriter()

    logger.info("tutor_feed_starting", db_url=settings.tutor_db_url.split("://", 1)[0])
    yield

    await close_db()
    logger.info("tutor_feed_stopping")


app = FastAPI(
    title="Tutor Activity Feed",
    description="Merged, cursor-paginated activity timeline for tutors",
    version="0.1.0",
    lifespan=lifespan,
)

# Exception handler
app.add_exception_handler(FeedError, feed_error_handler)

# Middleware (Starlette: last-added = outermost)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.tutor_cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# Routes
app.include_router(v1_router)


@app.get("/")
async def root():
    return {"service": "tutor-activity-feed", "version": "0.1.0"}
