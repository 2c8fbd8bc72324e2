"""Maps raw rows from the three source logs onto the canonical FeedItem.

Every mapper is pure: enrichment arrives through FeedItemContext and no
malformed optional field (payload JSON, unknown enum values) raises.
"""

import json
from datetime import datetime, timezone

from tutorfeed.core.database import ActivityEvent, NotificationLog, PaymentEvent
from tutorfeed.schemas.activity_feed import (
    ActivityCategory,
    ActivitySource,
    ActivityStatus,
    FeedItem,
    SourceRecordKind,
)
from tutorfeed.services.feed.types import FeedItemContext

_EMPTY_CONTEXT = FeedItemContext()

PAYMENT_REVERT_REFUND_REASONS = {"PAYMENT_REVERT_REFUND", "PAYMENT_REVERT"}

NOTIFICATION_TITLES = {
    "PAYMENT_REMINDER_STUDENT": "Payment reminder",
    "PAYMENT_REMINDER_TEACHER": "Teacher notification",
    "STUDENT_LESSON_REMINDER": "Lesson reminder to student",
    "TEACHER_LESSON_REMINDER": "Lesson reminder to teacher",
    "TEACHER_DAILY_SUMMARY": "Today's summary",
    "TEACHER_TOMORROW_SUMMARY": "Tomorrow's summary",
}


def as_utc(value: datetime) -> datetime:
    """Source logs store naive UTC timestamps."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_category(value: str | None) -> ActivityCategory | None:
    try:
        return ActivityCategory(value)
    except ValueError:
        return None


def parse_status(value: str | None) -> ActivityStatus:
    return ActivityStatus.failed if value == ActivityStatus.failed.value else ActivityStatus.success


def parse_source(value: str | None) -> ActivitySource:
    if value in (ActivitySource.user.value, ActivitySource.system.value, ActivitySource.auto.value):
        return ActivitySource(value)
    return ActivitySource.legacy


def parse_payload(value: str | None) -> dict | None:
    """Decode a stored JSON object. Anything else yields None."""
    if not value:
        return None
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def with_lesson_start_at(payload: dict | None, lesson_start_at: datetime | None) -> dict | None:
    """Fold the lesson start into the payload unless it already carries one."""
    if lesson_start_at is None:
        return payload
    start_iso = as_utc(lesson_start_at).isoformat().replace("+00:00", "Z")
    if payload is None:
        return {"lessonStartAt": start_iso}
    existing = payload.get("lessonStartAt")
    if isinstance(existing, str) and existing.strip():
        return payload
    return {**payload, "lessonStartAt": start_iso}


def resolve_payment_title(event_type: str, lessons_delta: int, reason: str | None) -> str:
    if event_type == "TOP_UP":
        return f"Balance top-up: +{lessons_delta} lessons"
    if event_type == "SUBSCRIPTION":
        return f"Subscription: +{lessons_delta} lessons"
    if event_type == "AUTO_CHARGE":
        return "Automatic charge for lesson"
    if event_type == "MANUAL_PAID":
        if reason == "BALANCE_PAYMENT":
            return "Lesson paid from balance"
        return "Lesson marked as paid"
    if event_type == "ADJUSTMENT":
        if reason == "LESSON_CANCELED":
            return "Lesson returned after cancellation"
        if reason in PAYMENT_REVERT_REFUND_REASONS:
            return "Payment reversed with refund"
        if reason == "PAYMENT_REVERT_WRITE_OFF":
            return "Payment reversed without refund"
        return "Balance adjustment (credit)" if lessons_delta >= 0 else "Balance adjustment (debit)"
    return "Payment change"


def resolve_notification_title(event_type: str, status: str | None) -> str:
    suffix = "not sent" if status == ActivityStatus.failed.value else "sent"
    return f"{NOTIFICATION_TITLES.get(event_type, 'Notification')} {suffix}"


def _feed_id(kind: SourceRecordKind, source_id: int) -> str:
    return f"{kind.id_prefix}_{source_id}"


def map_activity_event(event: ActivityEvent, context: FeedItemContext = _EMPTY_CONTEXT) -> FeedItem:
    kind = SourceRecordKind.activity
    return FeedItem(
        id=_feed_id(kind, event.id),
        source_record_kind=kind,
        category=parse_category(event.category) or ActivityCategory.settings,
        action=event.action,
        status=parse_status(event.status),
        source=parse_source(event.source),
        title=event.title,
        details=event.details,
        payload=with_lesson_start_at(parse_payload(event.payload), context.lesson_start_at),
        occurred_at=as_utc(event.occurred_at),
        student_id=event.student_id,
        student_name=context.student_name,
        lesson_id=event.lesson_id,
        homework_id=event.homework_id,
        source_id=event.id,
    )


def map_payment_event(event: PaymentEvent, context: FeedItemContext = _EMPTY_CONTEXT) -> FeedItem:
    kind = SourceRecordKind.payment
    payload = {
        "reason": event.reason,
        "lessonsDelta": event.lessons_delta,
        "priceSnapshot": event.price_snapshot,
        "moneyAmount": event.money_amount,
    }
    return FeedItem(
        id=_feed_id(kind, event.id),
        source_record_kind=kind,
        category=ActivityCategory.payment,
        action=event.type,
        status=ActivityStatus.success,
        source=ActivitySource.user if event.created_by == "TEACHER" else ActivitySource.system,
        title=resolve_payment_title(event.type, event.lessons_delta, event.reason),
        details=event.comment,
        payload=with_lesson_start_at(payload, context.lesson_start_at),
        occurred_at=as_utc(event.created_at),
        student_id=event.student_id,
        student_name=context.student_name,
        lesson_id=event.lesson_id,
        homework_id=None,
        source_id=event.id,
    )


def map_notification_log(event: NotificationLog, context: FeedItemContext = _EMPTY_CONTEXT) -> FeedItem:
    kind = SourceRecordKind.notification
    status = parse_status(event.status)
    payload = {
        "notificationType": event.type,
        "notificationSource": event.source,
    }
    return FeedItem(
        id=_feed_id(kind, event.id),
        source_record_kind=kind,
        category=ActivityCategory.notification,
        action=event.type,
        status=status,
        source=ActivitySource.user if event.source == "MANUAL" else ActivitySource.auto,
        title=resolve_notification_title(event.type, event.status),
        details=event.error_text if status is ActivityStatus.failed else None,
        payload=with_lesson_start_at(payload, context.lesson_start_at),
        occurred_at=as_utc(event.sent_at or event.created_at),
        student_id=event.student_id,
        student_name=context.student_name,
        lesson_id=event.lesson_id,
        homework_id=None,
        source_id=event.id,
    )
