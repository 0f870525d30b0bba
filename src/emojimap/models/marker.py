"""Emoji marker record."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from emojimap._constants import LATITUDE_RANGE, LONGITUDE_RANGE
from emojimap.models._base import EmojiMapBaseModel, MarkerId, Timestamp


class EmojiMarker(EmojiMapBaseModel):
    """One emoji dropped on the map, with a running click count.

    ``id`` is assigned by the backend, or synthesized locally when the
    marker was created while offline.
    """

    id: MarkerId
    emoji: str
    lat: float = Field(ge=LATITUDE_RANGE[0], le=LATITUDE_RANGE[1])
    lng: float = Field(ge=LONGITUDE_RANGE[0], le=LONGITUDE_RANGE[1])
    count: int = Field(default=1, ge=1)
    created_at: Timestamp = None
    updated_at: Timestamp = None

    @field_validator("emoji")
    @classmethod
    def _require_glyph(cls, value: str) -> str:
        glyph = value.strip()
        if not glyph:
            raise ValueError("emoji must be non-empty")
        return glyph

    def to_record(self) -> dict[str, Any]:
        """JSON-compatible dict, as stored by the backend and the mirror."""
        return self.model_dump(mode="json")
