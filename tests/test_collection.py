from __future__ import annotations

import random
from datetime import UTC, datetime

from emojimap.models.marker import EmojiMarker
from emojimap.state.collection import MarkerCollection
from emojimap.state.events import MarkerDeleted, MarkerInserted, MarkerUpdated


def _marker(ident: str, count: int = 1, glyph: str = "🌟") -> EmojiMarker:
    return EmojiMarker(
        id=ident,
        emoji=glyph,
        lat=10.0,
        lng=20.0,
        count=count,
        created_at=datetime(2026, 1, 1, tzinfo=UTC),
    )


def _ids(collection: MarkerCollection) -> list[str]:
    return [m.id for m in collection]


def test_replace_all_keeps_order_and_drops_duplicate_ids() -> None:
    collection = MarkerCollection()
    collection.replace_all([_marker("b"), _marker("a"), _marker("b", count=9)])
    assert _ids(collection) == ["b", "a"]
    assert collection.get("b") == _marker("b")


def test_insert_is_idempotent() -> None:
    collection = MarkerCollection([_marker("a")])
    change = MarkerInserted(record=_marker("b"))
    assert collection.apply(change) is True
    after_once = collection.snapshot()
    assert collection.apply(change) is False
    assert collection.snapshot() == after_once


def test_insert_ignores_existing_id_even_with_different_payload() -> None:
    collection = MarkerCollection([_marker("a", count=1)])
    assert collection.apply(MarkerInserted(record=_marker("a", count=5))) is False
    assert collection.get("a") == _marker("a", count=1)


def test_update_is_idempotent_and_keeps_position() -> None:
    collection = MarkerCollection([_marker("a"), _marker("b"), _marker("c")])
    change = MarkerUpdated(record=_marker("b", count=3))
    assert collection.apply(change) is True
    after_once = collection.snapshot()
    assert collection.apply(change) is False
    assert collection.snapshot() == after_once
    assert _ids(collection) == ["a", "b", "c"]
    assert collection.get("b").count == 3  # type: ignore[union-attr]


def test_update_unknown_id_is_noop() -> None:
    collection = MarkerCollection([_marker("a")])
    assert collection.apply(MarkerUpdated(record=_marker("zzz", count=2))) is False
    assert _ids(collection) == ["a"]


def test_delete_removes() -> None:
    collection = MarkerCollection([_marker("a"), _marker("b")])
    assert collection.apply(MarkerDeleted(id="a")) is True
    assert _ids(collection) == ["b"]


def test_delete_unknown_id_is_noop() -> None:
    notified: list[list[EmojiMarker]] = []
    collection = MarkerCollection([_marker("a")], listener=notified.append)
    assert collection.apply(MarkerDeleted(id="missing")) is False
    assert _ids(collection) == ["a"]
    assert notified == []


def test_merge_replaces_or_appends() -> None:
    collection = MarkerCollection([_marker("a")])
    collection.merge(_marker("b"))
    collection.merge(_marker("a", count=2))
    assert _ids(collection) == ["a", "b"]
    assert collection.get("a").count == 2  # type: ignore[union-attr]


def test_merge_then_realtime_echo_is_idempotent() -> None:
    collection = MarkerCollection([_marker("a")])
    record = _marker("a", count=2)
    collection.merge(record)
    snapshot = collection.snapshot()
    collection.apply(MarkerUpdated(record=record))
    collection.apply(MarkerInserted(record=record))
    assert collection.snapshot() == snapshot


def test_listener_notified_on_each_change() -> None:
    notified: list[list[EmojiMarker]] = []
    collection = MarkerCollection(listener=notified.append)
    collection.replace_all([_marker("a")])
    collection.merge(_marker("b"))
    collection.merge(_marker("b"))
    assert [[m.id for m in snap] for snap in notified] == [["a"], ["a", "b"]]


def test_identifiers_stay_unique_under_random_sequences() -> None:
    rng = random.Random(1234)
    collection = MarkerCollection()
    for _ in range(500):
        ident = str(rng.randint(0, 20))
        op = rng.choice(["insert", "update", "merge", "delete"])
        record = _marker(ident, count=rng.randint(1, 5))
        if op == "insert":
            collection.apply(MarkerInserted(record=record))
        elif op == "update":
            collection.apply(MarkerUpdated(record=record))
        elif op == "merge":
            collection.merge(record)
        else:
            collection.apply(MarkerDeleted(id=ident))
        ids = _ids(collection)
        assert len(ids) == len(set(ids))
