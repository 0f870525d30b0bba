"""Data models for emoji map records."""

from emojimap.models._base import EmojiMapBaseModel, MarkerId, Timestamp, coerce_marker_id, parse_timestamp
from emojimap.models.marker import EmojiMarker

__all__ = [
    "EmojiMapBaseModel",
    "EmojiMarker",
    "MarkerId",
    "Timestamp",
    "coerce_marker_id",
    "parse_timestamp",
]
