"""Client configuration for emojimap."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from emojimap._constants import DEFAULT_STORAGE_KEY, DEFAULT_TABLE, PROXIMITY_WINDOW
from emojimap.exceptions import ConfigurationMissing


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _first_env(env: Mapping[str, str], *keys: str) -> str | None:
    for key in keys:
        value = env.get(key)
        if value is not None and value.strip():
            return value.strip()
    return None


@dataclasses.dataclass(frozen=True)
class EmojiMapConfig:
    """Client configuration.

    Parameters
    ----------
    backend_url : str or None
        Base URL of the hosted backend (e.g. ``https://xyz.supabase.co``).
        Required for online operation.
    access_key : str or None
        Public access key sent as ``apikey`` and bearer token.  Required
        for online operation.
    table : str
        Name of the marker table.
    proximity_window : float
        Half-width of the dedup bounding box in degrees.
    storage_dir : Path
        Directory holding the on-device mirror.
    storage_key : str
        Key under which the collection is mirrored.
    realtime_enabled : bool
        Subscribe to the change feed when entering the client.  The broker
        connect runs during ``__aenter__`` and can hold startup for up to
        ``realtime_connect_timeout`` seconds when no broker answers; disable
        it for backends without a change feed.
    realtime_host : str or None
        Change-feed broker host.  Defaults to the backend URL host.
    realtime_port : int
        Change-feed broker port.
    realtime_topic : str or None
        Change-feed topic.  Defaults to ``realtime/public/<table>``.
    realtime_tls : bool
        Use TLS for the broker connection.
    realtime_keepalive : int
        Broker keepalive in seconds.
    realtime_connect_timeout : float
        Seconds to wait for the broker TCP connect.
    """

    backend_url: str | None = None
    access_key: str | None = None
    table: str = DEFAULT_TABLE
    proximity_window: float = PROXIMITY_WINDOW
    storage_dir: Path = dataclasses.field(default_factory=lambda: Path.home() / ".emojimap")
    storage_key: str = DEFAULT_STORAGE_KEY
    realtime_enabled: bool = True
    realtime_host: str | None = None
    realtime_port: int = 8883
    realtime_topic: str | None = None
    realtime_tls: bool = True
    realtime_keepalive: int = 60
    realtime_connect_timeout: float = 5.0

    @property
    def rest_url(self) -> str:
        """Base URL of the table REST API."""
        base = (self.backend_url or "").rstrip("/")
        return f"{base}/rest/v1"

    @property
    def broker_host(self) -> str | None:
        if self.realtime_host:
            return self.realtime_host
        if not self.backend_url:
            return None
        return urlsplit(self.backend_url).hostname

    @property
    def change_topic(self) -> str:
        return self.realtime_topic or f"realtime/public/{self.table}"

    def missing_settings(self) -> tuple[str, ...]:
        """Names of required settings that are absent."""
        missing: list[str] = []
        if not self.backend_url:
            missing.append("backend_url")
        if not self.access_key:
            missing.append("access_key")
        return tuple(missing)

    def require_backend(self) -> None:
        """Raise :class:`ConfigurationMissing` unless both backend settings are present."""
        missing = self.missing_settings()
        if missing:
            raise ConfigurationMissing(
                "Missing backend settings: " + ", ".join(missing)
                + " (set EMOJIMAP_BACKEND_URL and EMOJIMAP_BACKEND_KEY)",
                missing=missing,
            )

    @classmethod
    def from_env(cls, **overrides: Any) -> EmojiMapConfig:
        """Create configuration from environment variables.

        Reads ``EMOJIMAP_BACKEND_URL`` and ``EMOJIMAP_BACKEND_KEY``
        (falling back to ``SUPABASE_URL`` / ``SUPABASE_ANON_KEY``) and the
        optional ``EMOJIMAP_*`` variables.  Explicit keyword arguments
        override environment values.  Missing required values are not an
        error here; see :meth:`require_backend`.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        backend_url = _first_env(env, "EMOJIMAP_BACKEND_URL", "SUPABASE_URL")
        if backend_url is not None:
            config_kwargs["backend_url"] = backend_url
        access_key = _first_env(env, "EMOJIMAP_BACKEND_KEY", "SUPABASE_ANON_KEY")
        if access_key is not None:
            config_kwargs["access_key"] = access_key

        _ENV_STR_MAP = {
            "EMOJIMAP_TABLE": "table",
            "EMOJIMAP_STORAGE_KEY": "storage_key",
            "EMOJIMAP_REALTIME_HOST": "realtime_host",
            "EMOJIMAP_REALTIME_TOPIC": "realtime_topic",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        storage_dir = env.get("EMOJIMAP_STORAGE_DIR")
        if storage_dir is not None:
            config_kwargs["storage_dir"] = Path(storage_dir).expanduser()

        window_env = env.get("EMOJIMAP_PROXIMITY_WINDOW")
        if window_env is not None and "proximity_window" not in overrides:
            config_kwargs["proximity_window"] = float(window_env)

        port_env = env.get("EMOJIMAP_REALTIME_PORT")
        if port_env is not None and "realtime_port" not in overrides:
            config_kwargs["realtime_port"] = int(port_env)

        keepalive_env = env.get("EMOJIMAP_REALTIME_KEEPALIVE")
        if keepalive_env is not None and "realtime_keepalive" not in overrides:
            config_kwargs["realtime_keepalive"] = int(keepalive_env)

        timeout_env = env.get("EMOJIMAP_REALTIME_CONNECT_TIMEOUT")
        if timeout_env is not None and "realtime_connect_timeout" not in overrides:
            config_kwargs["realtime_connect_timeout"] = float(timeout_env)

        if "realtime_enabled" not in overrides:
            config_kwargs["realtime_enabled"] = _env_bool(env.get("EMOJIMAP_REALTIME_ENABLED"), True)
        if "realtime_tls" not in overrides:
            config_kwargs["realtime_tls"] = _env_bool(env.get("EMOJIMAP_REALTIME_TLS"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
