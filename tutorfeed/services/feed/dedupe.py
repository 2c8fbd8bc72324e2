"""Drops activity-log entries that repeat a manual payment reminder.

A teacher pressing "remind about payment" is logged once by the activity
log and once by the notification log. The notification entry wins; the
activity entry is dropped when one for the same (student, lesson) lies
within the window. Everything else passes through untouched.
"""

from collections import defaultdict
from datetime import timedelta

import structlog

from tutorfeed.schemas.activity_feed import ActivityCategory, ActivitySource, FeedItem, SourceRecordKind

logger = structlog.get_logger()

MANUAL_REMINDER_DEDUPE_WINDOW = timedelta(minutes=10)


def is_manual_payment_reminder_notification(item: FeedItem) -> bool:
    return (
        item.source_record_kind is SourceRecordKind.notification
        and item.category is ActivityCategory.notification
        and item.action == "PAYMENT_REMINDER_STUDENT"
        and item.source is ActivitySource.user
    )


def is_manual_payment_reminder_activity(item: FeedItem) -> bool:
    return (
        item.source_record_kind is SourceRecordKind.activity
        and item.category is ActivityCategory.lesson
        and item.action == "REMIND_PAYMENT"
        and item.source is ActivitySource.user
    )


def suppress_duplicate_reminders(
    items: list[FeedItem],
    window: timedelta = MANUAL_REMINDER_DEDUPE_WINDOW,
) -> list[FeedItem]:
    window_ms = window // timedelta(milliseconds=1)

    notification_times: dict[tuple[int | None, int | None], list[int]] = defaultdict(list)
    for item in items:
        if is_manual_payment_reminder_notification(item):
            notification_times[(item.student_id, item.lesson_id)].append(item.occurred_at_ms)

    if not notification_times:
        return list(items)

    kept = []
    for item in items:
        if is_manual_payment_reminder_activity(item):
            times = notification_times.get((item.student_id, item.lesson_id), [])
            if any(abs(t - item.occurred_at_ms) <= window_ms for t in times):
                continue
        kept.append(item)

    dropped = len(items) - len(kept)
    if dropped:
        logger.debug("feed_reminders_deduplicated", dropped=dropped)
    return kept
