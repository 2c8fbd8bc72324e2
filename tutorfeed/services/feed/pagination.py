"""Global ordering of merged feed items and cursor-bounded page slicing.

Items are ordered newest first by (occurred_at_ms, source priority,
source_id), all descending. The key is a strict total order because
(source kind, source id) is unique per item.
"""

from tutorfeed.schemas.activity_feed import FeedItem, FeedPage
from tutorfeed.services.feed.cursor import FeedCursor, encode_cursor


def sort_key(item: FeedItem | FeedCursor) -> tuple[int, int, int]:
    """Ascending key for a newest-first order; sort with reverse=True."""
    return (item.occurred_at_ms, item.source_record_kind.priority, item.source_id)


def is_after_cursor(item: FeedItem, cursor: FeedCursor) -> bool:
    """True when the item sorts strictly after (is older than) the cursor position."""
    return sort_key(item) < sort_key(cursor)


def merge_and_paginate(items: list[FeedItem], limit: int, cursor: FeedCursor | None = None) -> FeedPage:
    ordered = sorted(items, key=sort_key, reverse=True)
    if cursor is not None:
        ordered = [item for item in ordered if is_after_cursor(item, cursor)]

    page = ordered[:limit]
    next_cursor = None
    if len(ordered) > limit and page:
        next_cursor = encode_cursor(FeedCursor.from_item(page[-1]))

    return FeedPage(items=page, next_cursor=next_cursor)
