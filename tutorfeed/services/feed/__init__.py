"""Activity feed aggregation over the activity, payment and notification logs."""

from tutorfeed.services.feed.activity_log import ActivityLogWriter
from tutorfeed.services.feed.repository import FeedRepository
from tutorfeed.services.feed.service import ActivityFeedService

__all__ = [
    "ActivityFeedService",
    "ActivityLogWriter",
    "FeedRepository",
]
