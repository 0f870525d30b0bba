"""Redaction of the access key before it reaches a DEBUG log.

The key travels in the ``apikey`` and ``authorization`` request headers.
Change-feed payloads are plain row data but are passed through as well,
so a row carrying a credential-like column is never logged verbatim.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_SENSITIVE_KEYS: frozenset[str] = frozenset({"apikey", "authorization", "password"})

_MAX_STRING = 200


def redact_for_log(value: Any) -> Any:
    """Return a copy of a header map or feed payload with secrets masked."""
    if isinstance(value, Mapping):
        return {
            str(k): "<redacted>" if str(k).lower() in _SENSITIVE_KEYS else redact_for_log(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [redact_for_log(v) for v in value]
    if isinstance(value, str) and len(value) > _MAX_STRING:
        return f"{value[:_MAX_STRING]}…<truncated>"
    return value
