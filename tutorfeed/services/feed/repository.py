"""SQL-backed source stores, enrichment lookups and per-teacher feed state.

Each call opens its own session so the aggregator can issue the source
queries concurrently. Database failures surface as SourceUnavailableError
naming the store that failed.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

import tutorfeed.core.database as db_module
from tutorfeed.config import settings
from tutorfeed.core.database import ActivityEvent, Lesson, NotificationLog, PaymentEvent, Teacher, TeacherStudent
from tutorfeed.core.exceptions import SourceUnavailableError
from tutorfeed.services.feed.types import SourceQuery

logger = structlog.get_logger()


def to_db_time(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_db_time(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _apply_time_filters(stmt, column, query: SourceQuery):
    if query.occurred_from is not None:
        stmt = stmt.where(column >= to_db_time(query.occurred_from))
    if query.occurred_to is not None:
        stmt = stmt.where(column <= to_db_time(query.occurred_to))
    if query.upper_bound is not None:
        stmt = stmt.where(column <= to_db_time(query.upper_bound))
    return stmt


def _payment_owned_by(teacher_id: int):
    """Payments carry a teacher directly, or (legacy rows) through their lesson."""
    lesson_ids = select(Lesson.id).where(Lesson.teacher_id == teacher_id)
    return or_(
        PaymentEvent.teacher_id == teacher_id,
        and_(PaymentEvent.teacher_id.is_(None), PaymentEvent.lesson_id.in_(lesson_ids)),
    )


class FeedRepository:
    def __init__(self, session_factory: async_sessionmaker | None = None):
        self._session_factory_override = session_factory

    @property
    def _session_factory(self) -> async_sessionmaker:
        return self._session_factory_override or db_module.async_session

    @asynccontextmanager
    async def _session(self, source: str):
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("feed_source_failed", source=source, error=str(exc))
            raise SourceUnavailableError(source) from exc

    # ── Source logs ──────────────────────────────────────────────────────────

    async def list_activity_events(self, query: SourceQuery) -> list[ActivityEvent]:
        stmt = select(ActivityEvent).where(ActivityEvent.teacher_id == query.teacher_id)
        if query.student_id is not None:
            stmt = stmt.where(ActivityEvent.student_id == query.student_id)
        if query.categories:
            stmt = stmt.where(ActivityEvent.category.in_([c.value for c in query.categories]))
        stmt = _apply_time_filters(stmt, ActivityEvent.occurred_at, query)
        stmt = stmt.order_by(ActivityEvent.occurred_at.desc(), ActivityEvent.id.desc()).limit(query.limit)

        async with self._session("activity_log") as session:
            return list((await session.execute(stmt)).scalars().all())

    async def list_payment_events(self, query: SourceQuery) -> list[PaymentEvent]:
        stmt = select(PaymentEvent).where(_payment_owned_by(query.teacher_id))
        if query.student_id is not None:
            stmt = stmt.where(PaymentEvent.student_id == query.student_id)
        stmt = _apply_time_filters(stmt, PaymentEvent.created_at, query)
        stmt = stmt.order_by(PaymentEvent.created_at.desc(), PaymentEvent.id.desc()).limit(query.limit)

        async with self._session("payment_log") as session:
            return list((await session.execute(stmt)).scalars().all())

    async def list_notification_logs(self, query: SourceQuery) -> list[NotificationLog]:
        stmt = select(NotificationLog).where(NotificationLog.teacher_id == query.teacher_id)
        if query.student_id is not None:
            stmt = stmt.where(NotificationLog.student_id == query.student_id)
        stmt = _apply_time_filters(stmt, NotificationLog.created_at, query)
        stmt = stmt.order_by(NotificationLog.created_at.desc(), NotificationLog.id.desc()).limit(query.limit)

        async with self._session("notification_log") as session:
            return list((await session.execute(stmt)).scalars().all())

    # ── Enrichment ───────────────────────────────────────────────────────────

    async def student_names(self, teacher_id: int, student_ids: set[int]) -> dict[int, str]:
        if not student_ids:
            return {}
        stmt = select(TeacherStudent.student_id, TeacherStudent.custom_name).where(
            TeacherStudent.teacher_id == teacher_id,
            TeacherStudent.student_id.in_(sorted(student_ids)),
        )
        async with self._session("students") as session:
            rows = (await session.execute(stmt)).all()

        names = {}
        for student_id, custom_name in rows:
            name = custom_name.strip() if isinstance(custom_name, str) else ""
            names[student_id] = name or settings.tutor_student_fallback_name
        return names

    async def lesson_starts(self, teacher_id: int, lesson_ids: set[int]) -> dict[int, datetime]:
        if not lesson_ids:
            return {}
        stmt = select(Lesson.id, Lesson.start_at).where(
            Lesson.teacher_id == teacher_id,
            Lesson.id.in_(sorted(lesson_ids)),
        )
        async with self._session("lessons") as session:
            rows = (await session.execute(stmt)).all()
        return {lesson_id: from_db_time(start_at) for lesson_id, start_at in rows}

    # ── Unread state ─────────────────────────────────────────────────────────

    async def _latest(self, source: str, stmt) -> datetime | None:
        async with self._session(source) as session:
            return from_db_time(await session.scalar(stmt))

    async def latest_occurred_at(self, teacher_id: int) -> datetime | None:
        """Newest timestamp across the three source logs, or None when all are empty."""
        timestamps = await asyncio.gather(
            self._latest(
                "activity_log",
                select(func.max(ActivityEvent.occurred_at)).where(ActivityEvent.teacher_id == teacher_id),
            ),
            self._latest(
                "payment_log",
                select(func.max(PaymentEvent.created_at)).where(_payment_owned_by(teacher_id)),
            ),
            self._latest(
                "notification_log",
                select(func.max(NotificationLog.created_at)).where(NotificationLog.teacher_id == teacher_id),
            ),
        )
        present = [ts for ts in timestamps if ts is not None]
        return max(present) if present else None

    async def get_seen_at(self, teacher_id: int) -> datetime | None:
        async with self._session("teachers") as session:
            teacher = await session.get(Teacher, teacher_id)
            return from_db_time(teacher.activity_feed_seen_at) if teacher else None

    async def set_seen_at(self, teacher_id: int, seen_at: datetime) -> datetime:
        async with self._session("teachers") as session:
            teacher = await session.get(Teacher, teacher_id)
            if teacher is None:
                teacher = Teacher(chat_id=teacher_id)
                session.add(teacher)
            teacher.activity_feed_seen_at = to_db_time(seen_at)
            await session.commit()
            return from_db_time(teacher.activity_feed_seen_at)
