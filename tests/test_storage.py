from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from emojimap.exceptions import MalformedLocalState
from emojimap.models.marker import EmojiMarker
from emojimap.storage import (
    FileStorage,
    MemoryStorage,
    dump_markers,
    load_markers,
    mirror_markers,
    restore_markers,
)


def _markers() -> list[EmojiMarker]:
    return [
        EmojiMarker(
            id="12",
            emoji="🌟",
            lat=10.0,
            lng=20.0,
            count=3,
            created_at=datetime(2026, 1, 1, tzinfo=UTC),
            updated_at=datetime(2026, 1, 2, tzinfo=UTC),
        ),
        EmojiMarker(id="local-1-abcd", emoji="🍕", lat=-33.9, lng=151.2),
    ]


def test_mirror_round_trip_preserves_markers() -> None:
    storage = MemoryStorage()
    mirror_markers(storage, "k", _markers())
    restored = restore_markers(storage, "k")
    assert [(m.id, m.emoji, m.lat, m.lng, m.count) for m in restored] == [
        (m.id, m.emoji, m.lat, m.lng, m.count) for m in _markers()
    ]
    assert restored == _markers()


def test_dump_keeps_emoji_readable() -> None:
    assert "🌟" in dump_markers(_markers())


def test_load_markers_accepts_legacy_numeric_ids() -> None:
    loaded = load_markers('[{"id": 1700000000000.5, "emoji": "🌟", "lat": 1, "lng": 2, "count": 1}]')
    assert loaded[0].id == "1700000000000.5"


@pytest.mark.parametrize("text", ["not json", "{}", '[{"id": 1}]', '[{"id": 1, "emoji": "x", "lat": 500, "lng": 0}]'])
def test_load_markers_rejects_malformed(text: str) -> None:
    with pytest.raises(MalformedLocalState):
        load_markers(text)


def test_restore_treats_malformed_as_empty() -> None:
    storage = MemoryStorage({"k": "garbage"})
    assert restore_markers(storage, "k") == []


def test_restore_absent_key_is_empty() -> None:
    assert restore_markers(MemoryStorage(), "k") == []


def test_file_storage_round_trip(tmp_path: Path) -> None:
    storage = FileStorage(tmp_path / "nested")
    assert storage.load("emojiWorldMap") is None
    storage.save("emojiWorldMap", "[]")
    assert storage.load("emojiWorldMap") == "[]"
    assert storage.path_for("emojiWorldMap").exists()


def test_file_storage_sanitizes_keys(tmp_path: Path) -> None:
    storage = FileStorage(tmp_path)
    path = storage.path_for("../../etc/passwd")
    assert path.parent == tmp_path


def test_mirror_write_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    class _BrokenStorage(MemoryStorage):
        def save(self, key: str, value: str) -> None:
            raise OSError("disk full")

    mirror_markers(_BrokenStorage(), "k", _markers())
    assert "Could not write on-device mirror" in caplog.text


def test_file_storage_rejects_undecodable_bytes(tmp_path: Path) -> None:
    storage = FileStorage(tmp_path)
    storage.path_for("emojiWorldMap").write_bytes(b"\xff\xfe[]")
    with pytest.raises(MalformedLocalState):
        storage.load("emojiWorldMap")
    assert restore_markers(storage, "emojiWorldMap") == []


def test_restore_treats_out_of_range_timestamp_as_empty() -> None:
    storage = MemoryStorage({"k": '[{"id":"1","emoji":"🌟","lat":1,"lng":2,"created_at":1e300}]'})
    assert restore_markers(storage, "k") == []
