from fastapi import Request

from tutorfeed.core.exceptions import TenantRequiredError
from tutorfeed.services.feed import ActivityFeedService, ActivityLogWriter


def get_feed_service(request: Request) -> ActivityFeedService:
    """Return the feed service stored on app state during lifespan."""
    service = getattr(request.app.state, "feed_service", None)
    return service or ActivityFeedService()


def get_activity_log_writer(request: Request) -> ActivityLogWriter:
    writer = getattr(request.app.state, "activity_log_writer", None)
    return writer or ActivityLogWriter()


def require_teacher(request: Request) -> int:
    """Resolve the tenant from the X-Teacher-Id header set by the upstream gateway."""
    raw = request.headers.get("x-teacher-id", "").strip()
    try:
        teacher_id = int(raw)
    except ValueError:
        raise TenantRequiredError() from None
    if teacher_id <= 0:
        raise TenantRequiredError()

    request.state.teacher_id = teacher_id
    return teacher_id
