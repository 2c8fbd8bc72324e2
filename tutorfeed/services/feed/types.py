"""Request-scoped value types shared by the feed pipeline stages."""

from dataclasses import dataclass, field
from datetime import datetime

from tutorfeed.schemas.activity_feed import ActivityCategory


@dataclass(frozen=True)
class FeedItemContext:
    """Enrichment looked up by the caller and handed to the normalizer."""

    student_name: str | None = None
    lesson_start_at: datetime | None = None


@dataclass(frozen=True)
class FeedQuery:
    """Read-path options as accepted from the caller, before normalization."""

    limit: int | None = None
    cursor: str | None = None
    categories: list[ActivityCategory] | None = None
    student_id: int | None = None
    occurred_from: datetime | None = None
    occurred_to: datetime | None = None


@dataclass(frozen=True)
class FanoutPlan:
    load_activity: bool
    load_payments: bool
    load_notifications: bool
    activity_categories: list[ActivityCategory] = field(default_factory=list)
    fetch_size: int = 0


@dataclass(frozen=True)
class SourceQuery:
    """Filters applied by every source store. All time bounds are inclusive."""

    teacher_id: int
    limit: int
    student_id: int | None = None
    occurred_from: datetime | None = None
    occurred_to: datetime | None = None
    upper_bound: datetime | None = None  # Resume point from the cursor
    categories: list[ActivityCategory] = field(default_factory=list)  # Activity log only
