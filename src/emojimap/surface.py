"""Map surface: renders markers as a clustered folium map and forwards clicks."""

from __future__ import annotations

import html
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path
from typing import Any

import folium
from folium.plugins import MarkerCluster

from emojimap._constants import (
    MAP_CENTER,
    MAP_MAX_ZOOM,
    MAP_MIN_ZOOM,
    MAP_ZOOM,
    TILE_ATTRIBUTION,
    TILE_URL,
)
from emojimap.models.marker import EmojiMarker

_logger = logging.getLogger(__name__)

ClickCallback = Callable[[float, float], Awaitable[Any] | Any]

# Picks the glyph with the highest summed count among the cluster's children.
# Glyphs are set as text content, never as markup.
CLUSTER_ICON_JS = """
function (cluster) {
    var markers = cluster.getAllChildMarkers();
    var totals = {};
    markers.forEach(function (marker) {
        var glyph = marker.options.emoji;
        totals[glyph] = (totals[glyph] || 0) + (marker.options.count || 1);
    });
    var best = Object.keys(totals).reduce(function (a, b) {
        return totals[a] >= totals[b] ? a : b;
    });
    var holder = document.createElement("div");
    holder.className = "emoji-cluster";
    holder.textContent = best;
    var badge = document.createElement("span");
    badge.className = "emoji-cluster-count";
    badge.textContent = String(cluster.getChildCount());
    holder.appendChild(badge);
    return L.divIcon({
        html: holder,
        className: "custom-cluster-icon",
        iconSize: L.point(40, 40)
    });
}
"""

_MARKER_STYLE = "font-size: 28px; text-shadow: 2px 2px 4px rgba(0,0,0,0.3); position: relative;"
_BADGE_STYLE = (
    "position: absolute; bottom: -5px; right: -5px; background: #ff6b6b; color: white; "
    "border-radius: 50%; width: 16px; height: 16px; display: flex; align-items: center; "
    "justify-content: center; font-size: 10px; font-weight: bold; border: 2px solid white;"
)
_CLUSTER_CSS = """
<style>
.emoji-cluster {
    background: rgba(255,255,255,0.9); border: 2px solid #3388ff; border-radius: 50%;
    width: 40px; height: 40px; display: flex; align-items: center; justify-content: center;
    font-size: 20px; position: relative;
}
.emoji-cluster-count {
    position: absolute; bottom: -5px; right: -5px; background: #3388ff; color: white;
    border-radius: 50%; width: 18px; height: 18px; display: flex; align-items: center;
    justify-content: center; font-size: 10px; font-weight: bold;
}
</style>
"""


def escape_glyph_markup(text: str) -> str:
    """Escape *text* for HTML that folium embeds in a JS template literal."""
    return html.escape(text).replace("`", "&#96;").replace("$", "&#36;")


def tooltip_text(marker: EmojiMarker) -> str:
    if marker.count > 1:
        return f"{marker.emoji} Added {marker.count} times"
    return f"{marker.emoji} Added by 1 user"


def marker_icon_html(marker: EmojiMarker) -> str:
    """Glyph with a count badge when the marker was clicked more than once."""
    badge = f'<span style="{_BADGE_STYLE}">{marker.count}</span>' if marker.count > 1 else ""
    return f'<div style="{_MARKER_STYLE}">{escape_glyph_markup(marker.emoji)}{badge}</div>'


def dominant_glyph(markers: Iterable[EmojiMarker]) -> str | None:
    """Glyph with the highest summed count; first seen wins ties."""
    totals: dict[str, int] = {}
    for marker in markers:
        totals[marker.emoji] = totals.get(marker.emoji, 0) + marker.count
    if not totals:
        return None
    return max(totals, key=lambda glyph: totals[glyph])


def build_marker(marker: EmojiMarker) -> folium.Marker:
    icon = folium.DivIcon(
        html=marker_icon_html(marker),
        icon_size=(32, 32),
        icon_anchor=(16, 16),
        class_name="emoji-marker",
    )
    return folium.Marker(
        location=[marker.lat, marker.lng],
        icon=icon,
        tooltip=folium.Tooltip(escape_glyph_markup(tooltip_text(marker)), direction="top", offset=(0, -10)),
        emoji=marker.emoji,
        count=marker.count,
    )


def build_map(
    markers: Iterable[EmojiMarker],
    *,
    center: tuple[float, float] = MAP_CENTER,
    zoom: int = MAP_ZOOM,
) -> folium.Map:
    """Build a folium map with one clustered marker per record."""
    fmap = folium.Map(
        location=list(center),
        zoom_start=zoom,
        min_zoom=MAP_MIN_ZOOM,
        max_zoom=MAP_MAX_ZOOM,
        tiles=TILE_URL,
        attr=TILE_ATTRIBUTION,
        world_copy_jump=True,
    )
    fmap.get_root().header.add_child(folium.Element(_CLUSTER_CSS))

    cluster = MarkerCluster(
        name="emojis",
        icon_create_function=CLUSTER_ICON_JS,
        spiderfy_on_max_zoom=True,
        show_coverage_on_hover=False,
        zoom_to_bounds_on_click=True,
        max_cluster_radius=50,
        disable_clustering_at_zoom=10,
    )
    count = 0
    for marker in markers:
        build_marker(marker).add_to(cluster)
        count += 1
    cluster.add_to(fmap)
    _logger.debug("Built map with %d markers", count)
    return fmap


class MapSurface:
    """Holds the current rendering and routes map clicks to a callback."""

    def __init__(
        self,
        on_click: ClickCallback | None = None,
        *,
        center: tuple[float, float] = MAP_CENTER,
        zoom: int = MAP_ZOOM,
    ) -> None:
        self._on_click = on_click
        self._center = center
        self._zoom = zoom
        self.map: folium.Map | None = None

    def set_click_callback(self, on_click: ClickCallback | None) -> None:
        self._on_click = on_click

    def render(self, markers: Iterable[EmojiMarker]) -> folium.Map:
        self.map = build_map(markers, center=self._center, zoom=self._zoom)
        return self.map

    async def click(self, lat: float, lng: float) -> Any:
        """Emit a click at (lat, lng); awaits coroutine callbacks."""
        if self._on_click is None:
            return None
        result = self._on_click(lat, lng)
        if inspect.isawaitable(result):
            return await result
        return result

    def save(self, path: Path | str) -> Path:
        """Write the current rendering as standalone HTML."""
        fmap = self.map if self.map is not None else self.render([])
        target = Path(path)
        fmap.save(str(target))
        return target
