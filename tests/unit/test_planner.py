"""Unit tests for page-size clamping and source fan-out planning."""

import pytest

from tutorfeed.schemas.activity_feed import ActivityCategory
from tutorfeed.services.feed.planner import (
    DEFAULT_LIMIT,
    MAX_FETCH_SIZE,
    fetch_size_for,
    normalize_limit,
    parse_categories,
    plan_fanout,
)


class TestNormalizeLimit:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, DEFAULT_LIMIT),
            (0, 1),
            (-5, 1),
            (1, 1),
            (20, 20),
            (50, 50),
            (51, 50),
            (1000, 50),
            (2.4, 2),
            (2.5, 3),
            (0.4, 1),
            ("7", 7),
            ("abc", DEFAULT_LIMIT),
            (float("nan"), DEFAULT_LIMIT),
            (float("inf"), DEFAULT_LIMIT),
            (True, DEFAULT_LIMIT),
        ],
    )
    def test_clamps_and_rounds(self, value, expected):
        assert normalize_limit(value) == expected

    def test_custom_default(self):
        assert normalize_limit(None, default=15) == 15


class TestParseCategories:
    def test_empty_means_all(self):
        assert parse_categories(None) is None
        assert parse_categories("") is None
        assert parse_categories(" , ,") is None

    def test_unknown_tokens_dropped(self):
        assert parse_categories("PAYMENT,BOGUS") == [ActivityCategory.payment]

    def test_only_unknown_means_all(self):
        assert parse_categories("BOGUS,NOPE") is None

    def test_case_and_whitespace_tolerant(self):
        assert parse_categories(" lesson , Payment ") == [ActivityCategory.lesson, ActivityCategory.payment]

    def test_duplicates_collapsed(self):
        assert parse_categories("LESSON,LESSON,HOMEWORK") == [ActivityCategory.lesson, ActivityCategory.homework]


class TestPlanFanout:
    def test_no_filter_loads_everything(self):
        plan = plan_fanout(None, 20)
        assert plan.load_activity and plan.load_payments and plan.load_notifications
        assert plan.activity_categories == []
        assert plan.fetch_size == 120

    def test_payment_only(self):
        plan = plan_fanout([ActivityCategory.payment], 20)
        assert plan.load_payments
        assert not plan.load_activity
        assert not plan.load_notifications

    def test_notification_only(self):
        plan = plan_fanout([ActivityCategory.notification], 20)
        assert plan.load_notifications
        assert not plan.load_activity
        assert not plan.load_payments

    def test_activity_categories_narrow_activity_query(self):
        plan = plan_fanout([ActivityCategory.lesson, ActivityCategory.homework], 20)
        assert plan.load_activity
        assert not plan.load_payments
        assert not plan.load_notifications
        assert plan.activity_categories == [ActivityCategory.lesson, ActivityCategory.homework]

    def test_mixed_request(self):
        plan = plan_fanout([ActivityCategory.student, ActivityCategory.payment], 20)
        assert plan.load_activity and plan.load_payments
        assert not plan.load_notifications
        assert plan.activity_categories == [ActivityCategory.student]

    @pytest.mark.parametrize("limit,expected", [(1, 6), (20, 120), (50, MAX_FETCH_SIZE)])
    def test_fetch_size(self, limit, expected):
        assert fetch_size_for(limit) == expected
        assert plan_fanout(None, limit).fetch_size == expected
