from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_epoch_ms(dt: datetime) -> int:
    """Whole milliseconds since the Unix epoch. Naive datetimes are read as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (dt - _EPOCH) // timedelta(milliseconds=1)


class SourceRecordKind(str, Enum):
    activity = "ACTIVITY"
    payment = "PAYMENT"
    notification = "NOTIFICATION"

    @property
    def priority(self) -> int:
        return _SOURCE_PRIORITY[self]

    @property
    def id_prefix(self) -> str:
        return self.value.lower()


_SOURCE_PRIORITY = {
    SourceRecordKind.activity: 3,
    SourceRecordKind.payment: 2,
    SourceRecordKind.notification: 1,
}


class ActivityCategory(str, Enum):
    lesson = "LESSON"
    student = "STUDENT"
    homework = "HOMEWORK"
    settings = "SETTINGS"
    payment = "PAYMENT"
    notification = "NOTIFICATION"


# Pseudo-categories, each backed by exactly one non-activity source
SOURCE_CATEGORIES = frozenset({ActivityCategory.payment, ActivityCategory.notification})


class ActivityStatus(str, Enum):
    success = "SUCCESS"
    failed = "FAILED"


class ActivitySource(str, Enum):
    user = "USER"
    system = "SYSTEM"
    auto = "AUTO"
    legacy = "LEGACY"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FeedItem(CamelModel):
    """One normalized event from any of the three source logs."""

    model_config = ConfigDict(frozen=True)

    id: str
    source_record_kind: SourceRecordKind
    category: ActivityCategory
    action: str
    status: ActivityStatus
    source: ActivitySource
    title: str
    details: str | None = None
    payload: dict | None = None
    occurred_at: datetime
    student_id: int | None = None
    student_name: str | None = None
    lesson_id: int | None = None
    homework_id: int | None = None

    # Ordering only. Excluded from output, so re-validated responses carry 0
    source_id: int = Field(default=0, exclude=True)

    @property
    def occurred_at_ms(self) -> int:
        return to_epoch_ms(self.occurred_at)


class FeedPage(CamelModel):
    items: list[FeedItem]
    next_cursor: str | None = None


class UnreadStatus(CamelModel):
    has_unread: bool
    latest_occurred_at: datetime | None = None
    seen_at: datetime | None = None


class MarkSeenRequest(CamelModel):
    # Kept as a raw string so malformed values map to invalid_seen_through
    seen_through: str | None = None


class ActivityEventCreate(CamelModel):
    category: ActivityCategory
    action: str = Field(min_length=1, max_length=100)
    title: str = Field(min_length=1, max_length=500)
    status: ActivityStatus = ActivityStatus.success
    source: ActivitySource = ActivitySource.user
    details: str | None = None
    payload: dict | None = None
    student_id: int | None = None
    lesson_id: int | None = None
    homework_id: int | None = None
    occurred_at: datetime | None = None
    dedupe_key: str | None = Field(default=None, max_length=255)

    @field_validator("category")
    @classmethod
    def _activity_log_category(cls, value: ActivityCategory) -> ActivityCategory:
        if value in SOURCE_CATEGORIES:
            raise ValueError(f"{value.value} events are recorded by their own log")
        return value

    @field_validator("occurred_at")
    @classmethod
    def _occurred_at_utc(cls, value: datetime | None) -> datetime | None:
        if value is None or value.tzinfo is None:
            return value
        try:
            return value.astimezone(timezone.utc)
        except OverflowError:
            raise ValueError("occurredAt is out of range") from None


class ActivityEventRecorded(CamelModel):
    recorded: bool
    id: int | None = None
