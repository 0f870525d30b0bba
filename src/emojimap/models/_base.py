"""Base model and value coercions for backend records.

Every record model inherits from :class:`EmojiMapBaseModel` which
provides:

* frozen instances, so records can be compared and shared freely
  between the collection, the mirror, and the map surface;
* a ``model_validator(mode="before")`` that drops ``None`` and blank
  string values so the field default is used instead.

:data:`MarkerId` and :data:`Timestamp` normalize the two value shapes
the backend and the on-device mirror disagree on: identifiers arrive as
integers, UUID strings, or synthesized local strings; timestamps arrive
as ISO strings or epoch numbers.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_timestamp(value: Any) -> datetime | None:
    """Convert an ISO string or epoch number (seconds **or** ms) to a UTC datetime.

    Naive datetimes are assumed to be UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        ts = float(value)
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        try:
            return datetime.fromtimestamp(ts, tz=UTC)
        except (OverflowError, OSError) as exc:
            raise ValueError(f"timestamp out of range: {value!r}") from exc
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip())
    else:
        raise ValueError(f"unsupported timestamp value: {value!r}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


def coerce_marker_id(value: Any) -> str:
    """Normalize a record identifier to a non-empty string."""
    if isinstance(value, bool):
        raise ValueError("identifier must not be a boolean")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, str):
        ident = value.strip()
        if not ident:
            raise ValueError("identifier must be non-empty")
        return ident
    raise ValueError(f"unsupported identifier value: {value!r}")


Timestamp = Annotated[datetime | None, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces ISO strings and epoch numbers to UTC datetimes."""

MarkerId = Annotated[str, BeforeValidator(coerce_marker_id)]
"""Annotated type that coerces int/float/str identifiers to a stripped string."""


class EmojiMapBaseModel(BaseModel):
    """Base for record models exchanged with the backend and the mirror."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_empty_values(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip() and key != "emoji":
                continue
            cleaned[key] = value
        return cleaned
