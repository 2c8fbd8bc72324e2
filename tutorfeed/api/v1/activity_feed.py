from datetime import datetime

from fastapi import APIRouter, Depends, Query, Response, status

from tutorfeed.core.exceptions import InvalidRequestError
from tutorfeed.dependencies import get_activity_log_writer, get_feed_service, require_teacher
from tutorfeed.schemas.activity_feed import (
    ActivityEventCreate,
    ActivityEventRecorded,
    FeedPage,
    MarkSeenRequest,
    UnreadStatus,
)
from tutorfeed.services.feed import ActivityFeedService, ActivityLogWriter
from tutorfeed.services.feed.normalizer import as_utc
from tutorfeed.services.feed.planner import parse_categories
from tutorfeed.services.feed.types import FeedQuery

router = APIRouter()


def parse_query_date(value: str | None) -> datetime | None:
    """ISO-8601 timestamp, or None when absent or unparseable."""
    if not value:
        return None
    try:
        return as_utc(datetime.fromisoformat(value.strip()))
    except (ValueError, OverflowError):
        return None


def _parse_student_id(value: str | None) -> int | None:
    if not value:
        return None
    try:
        student_id = int(value)
    except ValueError:
        return None
    return student_id if student_id > 0 else None


def _parse_limit(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


@router.get("/api/activity-feed")
async def list_activity_feed(
    limit: str | None = Query(None, description="Page size, clamped to 1..50"),
    cursor: str | None = Query(None, description="Opaque token from a previous page"),
    categories: str | None = Query(None, description="Comma-separated categories"),
    student_id: str | None = Query(None, alias="studentId"),
    occurred_from: str | None = Query(None, alias="from"),
    occurred_to: str | None = Query(None, alias="to"),
    teacher_id: int = Depends(require_teacher),
    service: ActivityFeedService = Depends(get_feed_service),
) -> FeedPage:
    """One page of the merged activity timeline, newest first."""
    query = FeedQuery(
        limit=_parse_limit(limit),
        cursor=cursor,
        categories=parse_categories(categories),
        student_id=_parse_student_id(student_id),
        occurred_from=parse_query_date(occurred_from),
        occurred_to=parse_query_date(occurred_to),
    )
    return await service.list_feed(teacher_id, query)


@router.get("/api/activity-feed/unread-status")
async def activity_feed_unread_status(
    teacher_id: int = Depends(require_teacher),
    service: ActivityFeedService = Depends(get_feed_service),
) -> UnreadStatus:
    return await service.unread_status(teacher_id)


@router.post("/api/activity-feed/mark-seen")
async def mark_activity_feed_seen(
    body: MarkSeenRequest | None = None,
    teacher_id: int = Depends(require_teacher),
    service: ActivityFeedService = Depends(get_feed_service),
) -> UnreadStatus:
    seen_through = None
    if body is not None and body.seen_through is not None:
        seen_through = parse_query_date(body.seen_through)
        if seen_through is None:
            raise InvalidRequestError("seenThrough must be an ISO-8601 timestamp.", code="invalid_seen_through")
    return await service.mark_seen(teacher_id, seen_through)


@router.post("/api/activity-feed/events", status_code=status.HTTP_201_CREATED)
async def record_activity_event(
    body: ActivityEventCreate,
    response: Response,
    teacher_id: int = Depends(require_teacher),
    writer: ActivityLogWriter = Depends(get_activity_log_writer),
) -> ActivityEventRecorded:
    row = await writer.log_event(teacher_id, body)
    if row is None:
        response.status_code = status.HTTP_200_OK
        return ActivityEventRecorded(recorded=False)
    return ActivityEventRecorded(recorded=True, id=row.id)
