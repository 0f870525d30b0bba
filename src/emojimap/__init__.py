"""emojimap - Async Python client for a shared, live-synced emoji world map."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("emojimap")
except PackageNotFoundError:
    __version__ = "0+local"
from emojimap.backend import EmojiBackend, HostedEmojiBackend, Subscription, subscription
from emojimap.client import EmojiMapClient
from emojimap.config import EmojiMapConfig
from emojimap.exceptions import (
    BackendUnavailable,
    ConfigurationMissing,
    EmojiMapError,
    MalformedLocalState,
)
from emojimap.models import EmojiMarker
from emojimap.state import (
    ChangeKind,
    MarkerCollection,
    MarkerDeleted,
    MarkerInserted,
    MarkerUpdated,
    parse_change_payload,
)
from emojimap.storage import DeviceStorage, FileStorage, MemoryStorage
from emojimap.surface import MapSurface, build_map

__all__ = [
    "__version__",
    "BackendUnavailable",
    "ChangeKind",
    "ConfigurationMissing",
    "DeviceStorage",
    "EmojiBackend",
    "EmojiMapClient",
    "EmojiMapConfig",
    "EmojiMapError",
    "EmojiMarker",
    "FileStorage",
    "HostedEmojiBackend",
    "MalformedLocalState",
    "MapSurface",
    "MarkerCollection",
    "MarkerDeleted",
    "MarkerInserted",
    "MarkerUpdated",
    "MemoryStorage",
    "Subscription",
    "build_map",
    "parse_change_payload",
    "subscription",
]
