"""Activity feed aggregator: fan-out, enrichment, normalize, dedupe, merge."""

import asyncio
from datetime import datetime, timedelta

import structlog

from tutorfeed.schemas.activity_feed import FeedItem, FeedPage, UnreadStatus
from tutorfeed.services.feed.cursor import FeedCursor, decode_cursor
from tutorfeed.services.feed.dedupe import suppress_duplicate_reminders
from tutorfeed.services.feed.normalizer import as_utc, map_activity_event, map_notification_log, map_payment_event
from tutorfeed.services.feed.pagination import merge_and_paginate
from tutorfeed.services.feed.planner import normalize_limit, plan_fanout
from tutorfeed.services.feed.repository import FeedRepository
from tutorfeed.services.feed.types import FeedItemContext, FeedQuery, SourceQuery

logger = structlog.get_logger()


async def _skipped() -> list:
    return []


def cursor_upper_bound(cursor: FeedCursor) -> datetime:
    """Last instant of the cursor's millisecond.

    Ordering works on whole milliseconds, so rows sharing the cursor's
    millisecond must still reach the merge step for the tie-breaks.
    """
    start = cursor.occurred_at.replace(microsecond=cursor.occurred_at.microsecond // 1000 * 1000)
    return start + timedelta(microseconds=999)


class ActivityFeedService:
    def __init__(self, repository: FeedRepository | None = None, default_limit: int | None = None):
        self._repository = repository or FeedRepository()
        self._default_limit = normalize_limit(default_limit)

    async def list_feed(self, teacher_id: int, query: FeedQuery) -> FeedPage:
        limit = normalize_limit(query.limit, default=self._default_limit)
        cursor = decode_cursor(query.cursor)
        plan = plan_fanout(query.categories, limit)

        source_query = SourceQuery(
            teacher_id=teacher_id,
            limit=plan.fetch_size,
            student_id=query.student_id,
            occurred_from=query.occurred_from,
            occurred_to=query.occurred_to,
            upper_bound=cursor_upper_bound(cursor) if cursor else None,
            categories=plan.activity_categories,
        )

        repo = self._repository
        activity_rows, payment_rows, notification_rows = await asyncio.gather(
            repo.list_activity_events(source_query) if plan.load_activity else _skipped(),
            repo.list_payment_events(source_query) if plan.load_payments else _skipped(),
            repo.list_notification_logs(source_query) if plan.load_notifications else _skipped(),
        )

        all_rows = [*activity_rows, *payment_rows, *notification_rows]
        student_ids = {row.student_id for row in all_rows if row.student_id}
        lesson_ids = {row.lesson_id for row in all_rows if row.lesson_id}
        names, lesson_starts = await asyncio.gather(
            repo.student_names(teacher_id, student_ids),
            repo.lesson_starts(teacher_id, lesson_ids),
        )

        def context_for(row) -> FeedItemContext:
            return FeedItemContext(
                student_name=names.get(row.student_id) if row.student_id else None,
                lesson_start_at=lesson_starts.get(row.lesson_id) if row.lesson_id else None,
            )

        items: list[FeedItem] = [
            *(map_activity_event(row, context_for(row)) for row in activity_rows),
            *(map_payment_event(row, context_for(row)) for row in payment_rows),
            *(map_notification_log(row, context_for(row)) for row in notification_rows),
        ]

        page = merge_and_paginate(suppress_duplicate_reminders(items), limit, cursor)

        logger.info(
            "activity_feed_listed",
            teacher_id=teacher_id,
            limit=limit,
            has_cursor=cursor is not None,
            activity_rows=len(activity_rows),
            payment_rows=len(payment_rows),
            notification_rows=len(notification_rows),
            items=len(page.items),
            has_more=page.next_cursor is not None,
        )
        return page

    async def unread_status(self, teacher_id: int) -> UnreadStatus:
        latest, seen_at = await asyncio.gather(
            self._repository.latest_occurred_at(teacher_id),
            self._repository.get_seen_at(teacher_id),
        )
        return _build_unread_status(latest, seen_at)

    async def mark_seen(self, teacher_id: int, seen_through: datetime | None = None) -> UnreadStatus:
        """Advance the teacher's seen marker, never past the newest event and never backwards."""
        latest, seen_at = await asyncio.gather(
            self._repository.latest_occurred_at(teacher_id),
            self._repository.get_seen_at(teacher_id),
        )

        target = as_utc(seen_through) if seen_through is not None else None
        if target is not None and latest is not None and target > latest:
            target = latest
        if target is None:
            target = latest

        if target is not None and (seen_at is None or target > seen_at):
            seen_at = await self._repository.set_seen_at(teacher_id, target)
            logger.info("activity_feed_marked_seen", teacher_id=teacher_id, seen_at=seen_at.isoformat())

        return _build_unread_status(latest, seen_at)


def _build_unread_status(latest: datetime | None, seen_at: datetime | None) -> UnreadStatus:
    return UnreadStatus(
        has_unread=bool(latest and (seen_at is None or latest > seen_at)),
        latest_occurred_at=latest,
        seen_at=seen_at,
    )
