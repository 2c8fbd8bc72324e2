"""Unit tests for mapping source-log rows onto FeedItem."""

import json
from datetime import datetime, timezone

import pytest

from tests.mocks.fake_feed_repository import activity_row, notification_row, payment_row
from tutorfeed.schemas.activity_feed import (
    ActivityCategory,
    ActivitySource,
    ActivityStatus,
    SourceRecordKind,
)
from tutorfeed.services.feed.normalizer import (
    map_activity_event,
    map_notification_log,
    map_payment_event,
    parse_payload,
    resolve_notification_title,
    resolve_payment_title,
    with_lesson_start_at,
)
from tutorfeed.services.feed.types import FeedItemContext

T0 = datetime(2026, 3, 2, 12, 0)
LESSON_START = datetime(2026, 3, 5, 9, 30)


class TestActivityMapping:
    def test_maps_fields(self):
        row = activity_row(
            5,
            T0,
            student_id=7,
            lesson_id=70,
            homework_id=700,
            details="moved to Friday",
            payload=json.dumps({"from": "Thu"}),
        )
        item = map_activity_event(row, FeedItemContext(student_name="Ann"))
        assert item.id == "activity_5"
        assert item.source_record_kind is SourceRecordKind.activity
        assert item.category is ActivityCategory.lesson
        assert item.action == "LESSON_CREATED"
        assert item.status is ActivityStatus.success
        assert item.source is ActivitySource.user
        assert item.title == "Activity 5"
        assert item.details == "moved to Friday"
        assert item.payload == {"from": "Thu"}
        assert item.occurred_at == T0.replace(tzinfo=timezone.utc)
        assert item.student_name == "Ann"
        assert item.homework_id == 700
        assert item.source_id == 5

    def test_unknown_source_and_status_degrade(self):
        item = map_activity_event(activity_row(1, T0, source="CRON", status="WEIRD"))
        assert item.source is ActivitySource.legacy
        assert item.status is ActivityStatus.success

    def test_failed_status_kept(self):
        item = map_activity_event(activity_row(1, T0, status="FAILED"))
        assert item.status is ActivityStatus.failed

    @pytest.mark.parametrize("payload", [None, "", "not json", "[1, 2]", '"text"', "42"])
    def test_malformed_payload_is_none(self, payload):
        assert map_activity_event(activity_row(1, T0, payload=payload)).payload is None

    def test_lesson_start_folded_into_payload(self):
        item = map_activity_event(activity_row(1, T0, lesson_id=70), FeedItemContext(lesson_start_at=LESSON_START))
        assert item.payload == {"lessonStartAt": "2026-03-05T09:30:00Z"}


class TestPaymentMapping:
    def test_maps_fields(self):
        row = payment_row(9, T0, student_id=7, lesson_id=70, comment="cash", reason=None)
        item = map_payment_event(row, FeedItemContext(student_name="Ann", lesson_start_at=LESSON_START))
        assert item.id == "payment_9"
        assert item.category is ActivityCategory.payment
        assert item.action == "TOP_UP"
        assert item.status is ActivityStatus.success
        assert item.source is ActivitySource.user
        assert item.title == "Balance top-up: +4 lessons"
        assert item.details == "cash"
        assert item.payload == {
            "reason": None,
            "lessonsDelta": 4,
            "priceSnapshot": 1500,
            "moneyAmount": 6000,
            "lessonStartAt": "2026-03-05T09:30:00Z",
        }
        assert item.homework_id is None

    def test_system_created_payment(self):
        item = map_payment_event(payment_row(1, T0, created_by="SYSTEM", type="AUTO_CHARGE", lessons_delta=-1))
        assert item.source is ActivitySource.system

    @pytest.mark.parametrize(
        "event_type,delta,reason,title",
        [
            ("TOP_UP", 8, None, "Balance top-up: +8 lessons"),
            ("SUBSCRIPTION", 4, None, "Subscription: +4 lessons"),
            ("AUTO_CHARGE", -1, None, "Automatic charge for lesson"),
            ("MANUAL_PAID", -1, None, "Lesson marked as paid"),
            ("MANUAL_PAID", -1, "BALANCE_PAYMENT", "Lesson paid from balance"),
            ("ADJUSTMENT", 1, "LESSON_CANCELED", "Lesson returned after cancellation"),
            ("ADJUSTMENT", 1, "PAYMENT_REVERT_REFUND", "Payment reversed with refund"),
            ("ADJUSTMENT", 1, "PAYMENT_REVERT", "Payment reversed with refund"),
            ("ADJUSTMENT", 0, "PAYMENT_REVERT_WRITE_OFF", "Payment reversed without refund"),
            ("ADJUSTMENT", 2, None, "Balance adjustment (credit)"),
            ("ADJUSTMENT", 0, "OTHER", "Balance adjustment (credit)"),
            ("ADJUSTMENT", -2, None, "Balance adjustment (debit)"),
            ("SOMETHING_NEW", 3, None, "Payment change"),
        ],
    )
    def test_title(self, event_type, delta, reason, title):
        assert resolve_payment_title(event_type, delta, reason) == title


class TestNotificationMapping:
    def test_uses_sent_at_when_present(self):
        sent = datetime(2026, 3, 2, 12, 5)
        item = map_notification_log(notification_row(3, T0, sent_at=sent))
        assert item.occurred_at == sent.replace(tzinfo=timezone.utc)

    def test_falls_back_to_created_at(self):
        item = map_notification_log(notification_row(3, T0))
        assert item.occurred_at == T0.replace(tzinfo=timezone.utc)

    def test_sent_notification(self):
        item = map_notification_log(notification_row(3, T0, error_text="ignored"))
        assert item.id == "notification_3"
        assert item.category is ActivityCategory.notification
        assert item.action == "STUDENT_LESSON_REMINDER"
        assert item.source is ActivitySource.auto
        assert item.status is ActivityStatus.success
        assert item.title == "Lesson reminder to student sent"
        assert item.details is None
        assert item.payload == {"notificationType": "STUDENT_LESSON_REMINDER", "notificationSource": "AUTO"}

    def test_failed_manual_notification(self):
        row = notification_row(
            4, T0, type="PAYMENT_REMINDER_STUDENT", source="MANUAL", status="FAILED", error_text="chat blocked"
        )
        item = map_notification_log(row)
        assert item.source is ActivitySource.user
        assert item.status is ActivityStatus.failed
        assert item.title == "Payment reminder not sent"
        assert item.details == "chat blocked"

    @pytest.mark.parametrize(
        "event_type,status,title",
        [
            ("TEACHER_DAILY_SUMMARY", "SENT", "Today's summary sent"),
            ("TEACHER_TOMORROW_SUMMARY", "FAILED", "Tomorrow's summary not sent"),
            ("TEACHER_LESSON_REMINDER", "SENT", "Lesson reminder to teacher sent"),
            ("PAYMENT_REMINDER_TEACHER", "SENT", "Teacher notification sent"),
            ("BRAND_NEW_TYPE", "SENT", "Notification sent"),
        ],
    )
    def test_title(self, event_type, status, title):
        assert resolve_notification_title(event_type, status) == title


class TestPayloadHelpers:
    def test_parse_payload_object(self):
        assert parse_payload('{"a": 1}') == {"a": 1}

    def test_existing_lesson_start_kept(self):
        payload = {"lessonStartAt": "2026-01-01T00:00:00Z"}
        assert with_lesson_start_at(payload, LESSON_START) == payload

    def test_blank_lesson_start_replaced(self):
        payload = {"lessonStartAt": "  ", "x": 1}
        assert with_lesson_start_at(payload, LESSON_START) == {"lessonStartAt": "2026-03-05T09:30:00Z", "x": 1}

    def test_no_lesson_start_leaves_payload(self):
        assert with_lesson_start_at(None, None) is None
        assert with_lesson_start_at({"x": 1}, None) == {"x": 1}


class TestSerialization:
    def test_camel_case_without_source_id(self):
        item = map_activity_event(activity_row(5, T0, student_id=7), FeedItemContext(student_name="Ann"))
        data = item.model_dump(mode="json", by_alias=True)
        assert "sourceId" not in data
        assert "source_id" not in data
        assert data["sourceRecordKind"] == "ACTIVITY"
        assert data["studentName"] == "Ann"
        assert data["occurredAt"] == "2026-03-02T12:00:00Z"
