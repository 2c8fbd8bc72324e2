import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from tutorfeed.config import settings


class Base(DeclarativeBase):
    pass


# ── Tenants & lookups ────────────────────────────────────────────────────────


class Teacher(Base):
    __tablename__ = "teachers"

    chat_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(255), default="")
    activity_feed_seen_at: Mapped[datetime.datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime, server_default=func.now()
    )


class Student(Base):
    __tablename__ = "students"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    username: Mapped[str | None] = mapped_column(String(255), nullable=True)


class TeacherStudent(Base):
    __tablename__ = "teacher_students"
    __table_args__ = (UniqueConstraint("teacher_id", "student_id", name="uq_teacher_students_pair"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    teacher_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("teachers.chat_id"), index=True)
    student_id: Mapped[int] = mapped_column(Integer, ForeignKey("students.id"))
    custom_name: Mapped[str | None] = mapped_column(String(255), nullable=True)


class Lesson(Base):
    __tablename__ = "lessons"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    teacher_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("teachers.chat_id"), index=True)
    start_at: Mapped[datetime.datetime] = mapped_column(DateTime)


# ── Source logs ──────────────────────────────────────────────────────────────


class ActivityEvent(Base):
    __tablename__ = "activity_events"
    __table_args__ = (Index("ix_activity_events_teacher_occurred", "teacher_id", "occurred_at"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    teacher_id: Mapped[int] = mapped_column(BigInteger)
    student_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lesson_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    homework_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    category: Mapped[str] = mapped_column(String(20))
    action: Mapped[str] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(String(20), default="SUCCESS")
    source: Mapped[str] = mapped_column(String(20), default="USER")
    title: Mapped[str] = mapped_column(String(500))
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    payload: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON object
    occurred_at: Mapped[datetime.datetime] = mapped_column(DateTime)
    dedupe_key: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime, server_default=func.now()
    )


class PaymentEvent(Base):
    __tablename__ = "payment_events"
    __table_args__ = (Index("ix_payment_events_teacher_created", "teacher_id", "created_at"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    # Legacy rows have no teacher and belong to the teacher of their lesson
    teacher_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    student_id: Mapped[int] = mapped_column(Integer)
    lesson_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("lessons.id"), nullable=True)
    type: Mapped[str] = mapped_column(String(30))  # TOP_UP/SUBSCRIPTION/AUTO_CHARGE/MANUAL_PAID/ADJUSTMENT
    lessons_delta: Mapped[int] = mapped_column(Integer, default=0)
    price_snapshot: Mapped[int] = mapped_column(Integer, default=0)
    money_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_by: Mapped[str] = mapped_column(String(20), default="SYSTEM")
    reason: Mapped[str | None] = mapped_column(String(50), nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime)


class NotificationLog(Base):
    __tablename__ = "notification_logs"
    __table_args__ = (Index("ix_notification_logs_teacher_created", "teacher_id", "created_at"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    teacher_id: Mapped[int] = mapped_column(BigInteger)
    student_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lesson_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    type: Mapped[str] = mapped_column(String(50))
    source: Mapped[str | None] = mapped_column(String(20), nullable=True)  # MANUAL/AUTO
    status: Mapped[str] = mapped_column(String(20), default="SENT")  # SENT/FAILED/...
    error_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime)
    sent_at: Mapped[datetime.datetime | None] = mapped_column(DateTime, nullable=True)


# ── Engine & Session ──────────────────────────────────────────────────────────

engine = create_async_engine(settings.tutor_db_url, echo=False)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    """Ensure database schema is up to date via Alembic migrations."""
    from tutorfeed.core.migrations import ensure_db_migrated

    await ensure_db_migrated()


async def close_db() -> None:
    """Dispose of the engine."""
    await engine.dispose()
