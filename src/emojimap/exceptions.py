"""Custom exception hierarchy for emojimap."""

from __future__ import annotations


class EmojiMapError(Exception):
    """Base exception for all emojimap errors."""


class ConfigurationMissing(EmojiMapError):
    """Required backend settings are absent."""

    def __init__(self, message: str, *, missing: tuple[str, ...] = ()) -> None:
        self.missing = missing
        super().__init__(message)


class BackendUnavailable(EmojiMapError):
    """Backend read, write, or subscription failed.

    Covers network errors, non-2xx responses, and payloads that are not
    the JSON shape the table API promises.  Callers treat every instance
    the same way: fall back to on-device state.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class MalformedLocalState(EmojiMapError):
    """On-device storage holds data that cannot be decoded into markers."""
