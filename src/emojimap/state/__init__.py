"""State layer.

This package is the single source of truth for how markers arriving from
the bulk load, the realtime feed, and optimistic local writes are merged
into one ordered, identifier-keyed collection.
"""

from emojimap.state.collection import MarkerCollection
from emojimap.state.events import (
    ChangeKind,
    MarkerChange,
    MarkerDeleted,
    MarkerInserted,
    MarkerUpdated,
    parse_change_payload,
)

__all__ = [
    "ChangeKind",
    "MarkerChange",
    "MarkerCollection",
    "MarkerDeleted",
    "MarkerInserted",
    "MarkerUpdated",
    "parse_change_payload",
]
