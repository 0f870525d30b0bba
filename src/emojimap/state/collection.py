"""Ordered in-memory marker collection.

This is the only component allowed to mutate the local marker list.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator

from emojimap.models.marker import EmojiMarker
from emojimap.state.events import MarkerDeleted, MarkerInserted, MarkerUpdated

_logger = logging.getLogger(__name__)

CollectionListener = Callable[[list[EmojiMarker]], None]


class MarkerCollection:
    """Markers keyed by identifier, in display order.

    Every operation is idempotent per identifier: applying the same
    record or change twice leaves the collection as after the first
    application.  The listener receives a snapshot after each call that
    actually changed the contents, and after every bulk replace.
    """

    def __init__(
        self,
        markers: Iterable[EmojiMarker] = (),
        *,
        listener: CollectionListener | None = None,
    ) -> None:
        self._markers: dict[str, EmojiMarker] = {}
        self._listener = listener
        for marker in markers:
            self._markers.setdefault(marker.id, marker)

    def __len__(self) -> int:
        return len(self._markers)

    def __iter__(self) -> Iterator[EmojiMarker]:
        return iter(list(self._markers.values()))

    def __contains__(self, marker_id: object) -> bool:
        return marker_id in self._markers

    def get(self, marker_id: str) -> EmojiMarker | None:
        return self._markers.get(marker_id)

    def snapshot(self) -> list[EmojiMarker]:
        return list(self._markers.values())

    def set_listener(self, listener: CollectionListener | None) -> None:
        self._listener = listener

    def _notify(self) -> None:
        if self._listener is None:
            return
        self._listener(self.snapshot())

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def replace_all(self, markers: Iterable[EmojiMarker]) -> None:
        """Replace the whole collection, keeping the first of any duplicate identifiers."""
        replacement: dict[str, EmojiMarker] = {}
        for marker in markers:
            if marker.id in replacement:
                _logger.debug("Ignoring duplicate marker id=%s in bulk load", marker.id)
                continue
            replacement[marker.id] = marker
        self._markers = replacement
        self._notify()

    def insert(self, marker: EmojiMarker) -> bool:
        """Append *marker* unless its identifier is already present."""
        if marker.id in self._markers:
            return False
        self._markers[marker.id] = marker
        self._notify()
        return True

    def update(self, marker: EmojiMarker) -> bool:
        """Replace the marker with the same identifier; unknown identifiers are ignored."""
        current = self._markers.get(marker.id)
        if current is None or current == marker:
            return False
        self._markers[marker.id] = marker
        self._notify()
        return True

    def delete(self, marker_id: str) -> bool:
        """Remove a marker; unknown identifiers are ignored."""
        if self._markers.pop(marker_id, None) is None:
            return False
        self._notify()
        return True

    def merge(self, marker: EmojiMarker) -> bool:
        """Replace if present, append if absent."""
        current = self._markers.get(marker.id)
        if current == marker:
            return False
        self._markers[marker.id] = marker
        self._notify()
        return True

    def apply(self, change: MarkerInserted | MarkerUpdated | MarkerDeleted) -> bool:
        """Apply a realtime change.  Returns whether the collection changed."""
        if isinstance(change, MarkerInserted):
            return self.insert(change.record)
        if isinstance(change, MarkerUpdated):
            return self.update(change.record)
        return self.delete(change.id)
