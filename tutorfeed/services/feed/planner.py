"""Decides which source logs a feed request touches and how deep to read each."""

import math

from tutorfeed.schemas.activity_feed import SOURCE_CATEGORIES, ActivityCategory
from tutorfeed.services.feed.types import FanoutPlan

MIN_LIMIT = 1
MAX_LIMIT = 50
DEFAULT_LIMIT = 20

FETCH_MULTIPLIER = 6
MAX_FETCH_SIZE = 300


def normalize_limit(value: float | int | None, default: int = DEFAULT_LIMIT) -> int:
    """Clamp a requested page size into [MIN_LIMIT, MAX_LIMIT]."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    # JS-style half-up rounding
    return min(max(math.floor(number + 0.5), MIN_LIMIT), MAX_LIMIT)


def parse_categories(raw: str | None) -> list[ActivityCategory] | None:
    """Parse a comma-separated category list. Unknown tokens are dropped; empty means all."""
    if not raw:
        return None
    categories = []
    for token in raw.split(","):
        token = token.strip().upper()
        if not token:
            continue
        try:
            category = ActivityCategory(token)
        except ValueError:
            continue
        if category not in categories:
            categories.append(category)
    return categories or None


def fetch_size_for(limit: int) -> int:
    return min(limit * FETCH_MULTIPLIER, MAX_FETCH_SIZE)


def plan_fanout(categories: list[ActivityCategory] | None, limit: int) -> FanoutPlan:
    requested = list(dict.fromkeys(categories or []))
    if not requested:
        return FanoutPlan(
            load_activity=True,
            load_payments=True,
            load_notifications=True,
            activity_categories=[],
            fetch_size=fetch_size_for(limit),
        )

    activity_categories = [c for c in requested if c not in SOURCE_CATEGORIES]
    return FanoutPlan(
        load_activity=bool(activity_categories),
        load_payments=ActivityCategory.payment in requested,
        load_notifications=ActivityCategory.notification in requested,
        activity_categories=activity_categories,
        fetch_size=fetch_size_for(limit),
    )
