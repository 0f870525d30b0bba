"""On-device mirror of the marker collection.

The mirror is a single JSON array stored under one key, rewritten in full
on every change (last write wins).
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from emojimap.exceptions import MalformedLocalState
from emojimap.models.marker import EmojiMarker

_logger = logging.getLogger(__name__)

_MARKER_LIST: TypeAdapter[list[EmojiMarker]] = TypeAdapter(list[EmojiMarker])
_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class DeviceStorage(Protocol):
    """Key/value storage for serialized collections."""

    def save(self, key: str, value: str) -> None: ...

    def load(self, key: str) -> str | None: ...


class MemoryStorage:
    """In-process storage; useful for tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(initial or {})

    def save(self, key: str, value: str) -> None:
        self.values[key] = value

    def load(self, key: str) -> str | None:
        return self.values.get(key)


class FileStorage:
    """One UTF-8 file per key under *directory*."""

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory)

    def path_for(self, key: str) -> Path:
        safe = _UNSAFE_KEY_CHARS.sub("_", key) or "_"
        return self._directory / f"{safe}.json"

    def save(self, key: str, value: str) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def load(self, key: str) -> str | None:
        path = self.path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as exc:
            raise MalformedLocalState(f"Mirror file {path} is not valid UTF-8") from exc


def dump_markers(markers: list[EmojiMarker]) -> str:
    """Serialize markers to the mirror format."""
    return json.dumps([marker.to_record() for marker in markers], ensure_ascii=False)


def load_markers(serialized: str) -> list[EmojiMarker]:
    """Deserialize the mirror format.

    Raises :class:`MalformedLocalState` when the text is not a JSON array
    of valid marker records.
    """
    try:
        return _MARKER_LIST.validate_json(serialized)
    except ValidationError as exc:
        raise MalformedLocalState(f"Mirrored markers are not valid: {exc.error_count()} error(s)") from exc


def restore_markers(storage: DeviceStorage, key: str) -> list[EmojiMarker]:
    """Read the last mirror, treating absent or malformed data as empty."""
    try:
        serialized = storage.load(key)
    except OSError:
        _logger.warning("Could not read on-device mirror key=%s", key, exc_info=True)
        return []
    except MalformedLocalState:
        _logger.warning("Ignoring unreadable on-device mirror key=%s", key, exc_info=True)
        return []
    if serialized is None:
        return []
    try:
        return load_markers(serialized)
    except MalformedLocalState:
        _logger.warning("Ignoring malformed on-device mirror key=%s", key, exc_info=True)
        return []


def mirror_markers(storage: DeviceStorage, key: str, markers: list[EmojiMarker]) -> None:
    """Write the full collection; write failures are logged, not raised."""
    try:
        storage.save(key, dump_markers(markers))
    except OSError:
        _logger.warning("Could not write on-device mirror key=%s", key, exc_info=True)
