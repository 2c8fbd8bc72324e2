"""Append path for the activity log."""

import json
from datetime import datetime, timezone
from typing import Callable

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

import tutorfeed.core.database as db_module
from tutorfeed.core.database import ActivityEvent
from tutorfeed.schemas.activity_feed import ActivityEventCreate
from tutorfeed.services.feed.repository import to_db_time

logger = structlog.get_logger()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ActivityLogWriter:
    def __init__(
        self,
        session_factory: async_sessionmaker | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._session_factory_override = session_factory
        self._clock = clock

    @property
    def _session_factory(self) -> async_sessionmaker:
        return self._session_factory_override or db_module.async_session

    async def log_event(self, teacher_id: int, event: ActivityEventCreate) -> ActivityEvent | None:
        """Append one activity event.

        Returns the stored row, or None when an event with the same
        dedupe key was already recorded.
        """
        occurred_at = event.occurred_at or self._clock()
        row = ActivityEvent(
            teacher_id=teacher_id,
            student_id=event.student_id,
            lesson_id=event.lesson_id,
            homework_id=event.homework_id,
            category=event.category.value,
            action=event.action,
            status=event.status.value,
            source=event.source.value,
            title=event.title,
            details=event.details,
            payload=json.dumps(event.payload) if event.payload is not None else None,
            occurred_at=to_db_time(occurred_at),
            dedupe_key=event.dedupe_key,
        )

        async with self._session_factory() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                if event.dedupe_key is None:
                    raise
                logger.info("activity_event_duplicate", teacher_id=teacher_id, dedupe_key=event.dedupe_key)
                return None
            await session.refresh(row)

        logger.debug("activity_event_recorded", teacher_id=teacher_id, event_id=row.id, action=row.action)
        return row
