"""Dedup/increment policy.

A click of glyph *g* at (lat, lng) refers to an existing marker when the
marker carries the same glyph and its stored coordinate lies inside the
inclusive box ``[lat ± window] x [lng ± window]``.  The box is measured
in degrees, so its ground size shrinks in longitude toward the poles.
"""

from __future__ import annotations

import math
import secrets
import time
from collections.abc import Iterable
from datetime import UTC, datetime

from emojimap._constants import LATITUDE_RANGE, LONGITUDE_RANGE, PROXIMITY_WINDOW
from emojimap.models.marker import EmojiMarker


def validate_click(glyph: str, lat: float, lng: float) -> str:
    """Check click input and return the stripped glyph.

    Raises :class:`ValueError` for an empty glyph or out-of-range coordinates.
    """
    stripped = glyph.strip() if isinstance(glyph, str) else ""
    if not stripped:
        raise ValueError("emoji must be a non-empty string")
    for name, value, (low, high) in (
        ("latitude", lat, LATITUDE_RANGE),
        ("longitude", lng, LONGITUDE_RANGE),
    ):
        if not isinstance(value, (int, float)) or isinstance(value, bool) or math.isnan(value):
            raise ValueError(f"{name} must be a number, got {value!r}")
        if not low <= value <= high:
            raise ValueError(f"{name} must be between {low} and {high}, got {value}")
    return stripped


def bounding_box(lat: float, lng: float, window: float = PROXIMITY_WINDOW) -> tuple[float, float, float, float]:
    """Return ``(lat_min, lat_max, lng_min, lng_max)`` around a click."""
    return lat - window, lat + window, lng - window, lng + window


def within_window(
    marker: EmojiMarker,
    glyph: str,
    lat: float,
    lng: float,
    window: float = PROXIMITY_WINDOW,
) -> bool:
    if marker.emoji != glyph:
        return False
    lat_min, lat_max, lng_min, lng_max = bounding_box(lat, lng, window)
    return lat_min <= marker.lat <= lat_max and lng_min <= marker.lng <= lng_max


def find_match(
    markers: Iterable[EmojiMarker],
    glyph: str,
    lat: float,
    lng: float,
    window: float = PROXIMITY_WINDOW,
) -> EmojiMarker | None:
    """First marker (in iteration order) matching the glyph inside the window."""
    for marker in markers:
        if within_window(marker, glyph, lat, lng, window):
            return marker
    return None


def _utcnow() -> datetime:
    return datetime.now(UTC)


def synthesize_local_id() -> str:
    """Identifier for a marker created while the backend is unreachable.

    Millisecond wall clock plus a random suffix, prefixed so it can never
    collide with a numeric or UUID backend identifier.
    """
    return f"local-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def incremented(marker: EmojiMarker, *, now: datetime | None = None) -> EmojiMarker:
    """Copy of *marker* with one more click and a fresh ``updated_at``."""
    return marker.model_copy(update={"count": marker.count + 1, "updated_at": now or _utcnow()})


def new_local_marker(glyph: str, lat: float, lng: float, *, now: datetime | None = None) -> EmojiMarker:
    stamp = now or _utcnow()
    return EmojiMarker(
        id=synthesize_local_id(),
        emoji=glyph,
        lat=lat,
        lng=lng,
        count=1,
        created_at=stamp,
        updated_at=stamp,
    )
