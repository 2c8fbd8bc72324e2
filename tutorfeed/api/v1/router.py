from fastapi import APIRouter

from tutorfeed.api.v1.activity_feed import router as activity_feed_router
from tutorfeed.api.v1.health import router as health_router

v1_router = APIRouter()

v1_router.include_router(health_router, tags=["Health"])
v1_router.include_router(activity_feed_router, tags=["Activity Feed"])
