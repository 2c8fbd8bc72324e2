"""Opaque pagination token: the ordering key of the last item on a page.

The token is compact JSON in URL-safe base64 without padding, so it can
sit in a query string unescaped. Decoding never raises; any malformed
token reads as "no cursor".
"""

import base64
import binascii
import json
from datetime import datetime, timezone

import structlog
from pydantic import Field, field_validator

from tutorfeed.schemas.activity_feed import CamelModel, FeedItem, SourceRecordKind, to_epoch_ms

logger = structlog.get_logger()

MAX_TOKEN_LENGTH = 512


class FeedCursor(CamelModel):
    occurred_at: datetime
    source_record_kind: SourceRecordKind
    source_id: int = Field(strict=True)

    @field_validator("occurred_at", mode="before")
    @classmethod
    def _timestamp_string(cls, value):
        if not isinstance(value, (str, datetime)):
            raise ValueError("occurredAt must be an ISO timestamp string")
        return value

    @field_validator("occurred_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        try:
            return value.astimezone(timezone.utc)
        except OverflowError:
            raise ValueError("occurredAt is out of range") from None

    @property
    def occurred_at_ms(self) -> int:
        return to_epoch_ms(self.occurred_at)

    @classmethod
    def from_item(cls, item: FeedItem) -> "FeedCursor":
        return cls(
            occurred_at=item.occurred_at,
            source_record_kind=item.source_record_kind,
            source_id=item.source_id,
        )


def encode_cursor(cursor: FeedCursor) -> str:
    raw = json.dumps(cursor.model_dump(mode="json", by_alias=True), separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(token: str | None) -> FeedCursor | None:
    if not token:
        return None
    if len(token) > MAX_TOKEN_LENGTH:
        logger.debug("feed_cursor_rejected", reason="too_long", length=len(token))
        return None
    try:
        padded = token + "=" * (-len(token) % 4)
        raw = base64.b64decode(padded, altchars=b"-_", validate=True).decode("utf-8")
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("cursor payload is not an object")
        return FeedCursor.model_validate(data)
    except (binascii.Error, ValueError, TypeError, OverflowError) as exc:
        logger.debug("feed_cursor_rejected", reason=type(exc).__name__)
        return None
