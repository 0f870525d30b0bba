"""Normalized realtime change events.

The realtime feed delivers loosely shaped JSON.  It is converted into
one of the variants below at the boundary; only the collection is
allowed to apply them.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from emojimap.models._base import MarkerId
from emojimap.models.marker import EmojiMarker

_logger = logging.getLogger(__name__)


class ChangeKind(StrEnum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class MarkerInserted(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[ChangeKind.INSERT] = ChangeKind.INSERT
    record: EmojiMarker


class MarkerUpdated(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[ChangeKind.UPDATE] = ChangeKind.UPDATE
    record: EmojiMarker


class MarkerDeleted(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[ChangeKind.DELETE] = ChangeKind.DELETE
    id: MarkerId


MarkerChange = Annotated[MarkerInserted | MarkerUpdated | MarkerDeleted, Field(discriminator="kind")]

_CHANGE_ADAPTER: TypeAdapter[MarkerInserted | MarkerUpdated | MarkerDeleted] = TypeAdapter(MarkerChange)


def _event_kind(payload: dict[str, Any]) -> ChangeKind | None:
    raw_kind = payload.get("eventType", payload.get("type"))
    if not isinstance(raw_kind, str):
        return None
    try:
        return ChangeKind(raw_kind.strip().lower())
    except ValueError:
        return None


def parse_change_payload(payload: Any) -> MarkerInserted | MarkerUpdated | MarkerDeleted | None:
    """Validate a raw feed message into a change event.

    Expected shape::

        {"eventType": "INSERT" | "UPDATE" | "DELETE", "new": {...}, "old": {...}}

    Insert and update read the record from ``new``; delete reads ``id``
    from ``old``.  Returns ``None`` for anything that does not validate.
    """
    if not isinstance(payload, dict):
        return None
    kind = _event_kind(payload)
    if kind is None:
        _logger.debug("Dropping change with unknown event type: %s", payload.get("eventType", payload.get("type")))
        return None

    candidate: dict[str, Any]
    if kind is ChangeKind.DELETE:
        old = payload.get("old")
        if not isinstance(old, dict):
            return None
        candidate = {"kind": kind, "id": old.get("id")}
    else:
        new = payload.get("new")
        if not isinstance(new, dict):
            return None
        candidate = {"kind": kind, "record": new}

    try:
        return _CHANGE_ADAPTER.validate_python(candidate)
    except ValidationError:
        _logger.debug("Dropping invalid %s change", kind, exc_info=True)
        return None
