"""Marker table operations.

Endpoints (relative to ``<backend>/rest/v1``):
  - GET    /<table>?select=*&order=created_at.desc
  - GET    /<table>?select=*&order=created_at.asc,id.asc&emoji=eq.<g>&lat=gte.<a>&lat=lte.<b>&lng=gte.<c>&lng=lte.<d>
  - POST   /<table>
  - PATCH  /<table>?id=eq.<id>
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from emojimap._transport import Transport
from emojimap.exceptions import BackendUnavailable
from emojimap.models.marker import EmojiMarker
from emojimap.state.policy import bounding_box

_logger = logging.getLogger(__name__)


def _parse_rows(rows: list[dict[str, Any]], endpoint: str) -> list[EmojiMarker]:
    try:
        return [EmojiMarker.model_validate(row) for row in rows]
    except ValidationError as exc:
        raise BackendUnavailable(
            f"Unexpected row shape from {endpoint}: {exc.error_count()} error(s)",
            endpoint=endpoint,
        ) from exc


def _single_row(rows: list[dict[str, Any]], endpoint: str) -> EmojiMarker:
    markers = _parse_rows(rows, endpoint)
    if not markers:
        raise BackendUnavailable(f"{endpoint} returned no row", endpoint=endpoint)
    return markers[0]


# Oldest first; the first row is the one that gets incremented.
NEAR_ORDER = "created_at.asc,id.asc"


def _filter_number(value: float) -> str:
    return repr(float(value))


async def fetch_all(transport: Transport, table: str) -> list[EmojiMarker]:
    """All markers, newest first."""
    rows = await transport.request(
        "GET",
        table,
        params=(("select", "*"), ("order", "created_at.desc")),
    )
    return _parse_rows(rows, table)


async def fetch_near(
    transport: Transport,
    table: str,
    glyph: str,
    lat: float,
    lng: float,
    window: float,
) -> list[EmojiMarker]:
    """Markers of *glyph* inside the inclusive bounding box around (lat, lng)."""
    lat_min, lat_max, lng_min, lng_max = bounding_box(lat, lng, window)
    rows = await transport.request(
        "GET",
        table,
        params=(
            ("select", "*"),
            ("order", NEAR_ORDER),
            ("emoji", f"eq.{glyph}"),
            ("lat", f"gte.{_filter_number(lat_min)}"),
            ("lat", f"lte.{_filter_number(lat_max)}"),
            ("lng", f"gte.{_filter_number(lng_min)}"),
            ("lng", f"lte.{_filter_number(lng_max)}"),
        ),
    )
    return _parse_rows(rows, table)


async def insert_marker(
    transport: Transport,
    table: str,
    glyph: str,
    lat: float,
    lng: float,
    now: datetime,
) -> EmojiMarker:
    stamp = now.isoformat()
    rows = await transport.request(
        "POST",
        table,
        body=[
            {
                "emoji": glyph,
                "lat": lat,
                "lng": lng,
                "count": 1,
                "created_at": stamp,
                "updated_at": stamp,
            }
        ],
    )
    marker = _single_row(rows, table)
    _logger.debug("Inserted marker id=%s emoji=%s", marker.id, marker.emoji)
    return marker


async def update_marker_count(
    transport: Transport,
    table: str,
    marker: EmojiMarker,
    count: int,
    now: datetime,
) -> EmojiMarker:
    rows = await transport.request(
        "PATCH",
        table,
        params=(("id", f"eq.{marker.id}"),),
        body={"count": count, "updated_at": now.isoformat()},
    )
    updated = _single_row(rows, table)
    _logger.debug("Updated marker id=%s count=%s", updated.id, updated.count)
    return updated
