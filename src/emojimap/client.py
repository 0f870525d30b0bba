"""High-level async client: the local reconciliation layer."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import aiohttp

from emojimap._constants import ADVISORY_ADD_FAILED, ADVISORY_LOAD_FAILED, ADVISORY_NOT_CONFIGURED
from emojimap._transport import RestTransport
from emojimap.backend import EmojiBackend, HostedEmojiBackend, Subscription
from emojimap.config import EmojiMapConfig
from emojimap.exceptions import BackendUnavailable, ConfigurationMissing
from emojimap.models.marker import EmojiMarker
from emojimap.state.collection import MarkerCollection
from emojimap.state.events import MarkerDeleted, MarkerInserted, MarkerUpdated
from emojimap.state.policy import find_match, incremented, new_local_marker, validate_click
from emojimap.storage import DeviceStorage, FileStorage, mirror_markers, restore_markers

_logger = logging.getLogger(__name__)


class EmojiMapClient:
    """Keeps the local marker list consistent with the backend.

    Three sources feed the collection: :meth:`load` (bulk snapshot),
    the realtime feed (subscribed on enter, released on exit), and
    :meth:`add_emoji` (optimistic merge of the write result).  Every
    change is mirrored to on-device storage, which :meth:`load` and
    :meth:`add_emoji` fall back to when the backend is unreachable.

    Usage::

        async with EmojiMapClient(EmojiMapConfig.from_env()) as client:
            await client.load()
            await client.add_emoji("🌟", 10.0, 20.0)
    """

    def __init__(
        self,
        config: EmojiMapConfig,
        *,
        backend: EmojiBackend | None = None,
        storage: DeviceStorage | None = None,
        session: aiohttp.ClientSession | None = None,
        on_markers: Callable[[list[EmojiMarker]], None] | None = None,
        on_change: Callable[[MarkerInserted | MarkerUpdated | MarkerDeleted], None] | None = None,
    ) -> None:
        self._config = config
        self._backend = backend
        self._external_backend = backend is not None
        self._http_session = session
        self._external_session = session is not None
        self._storage: DeviceStorage = storage if storage is not None else FileStorage(config.storage_dir)
        self._on_markers = on_markers
        self._on_change = on_change
        self._collection = MarkerCollection(listener=self._on_collection_changed)
        self._subscription: Subscription | None = None
        self._advisory: str | None = None
        self._loading = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> EmojiMapClient:
        if self._backend is None:
            try:
                self._config.require_backend()
            except ConfigurationMissing as exc:
                _logger.error("%s", exc)
                self._advisory = ADVISORY_NOT_CONFIGURED
            else:
                if self._http_session is None:
                    self._http_session = aiohttp.ClientSession()
                transport = RestTransport(self._config, self._http_session)
                self._backend = HostedEmojiBackend(self._config, transport)
        await self._start_subscription()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self._stop_subscription()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if not self._external_backend:
            self._backend = None

    async def _start_subscription(self) -> None:
        if not self._config.realtime_enabled or self._backend is None:
            return
        if self._subscription is not None and not self._subscription.closed:
            return
        try:
            self._subscription = await self._backend.subscribe(self.apply_change)
        except BackendUnavailable:
            _logger.warning("Realtime updates unavailable", exc_info=True)

    async def _stop_subscription(self) -> None:
        handle = self._subscription
        self._subscription = None
        if handle is None or self._backend is None:
            return
        try:
            await self._backend.unsubscribe(handle)
        except BackendUnavailable:
            _logger.debug("Change feed release failed", exc_info=True)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def markers(self) -> list[EmojiMarker]:
        return self._collection.snapshot()

    @property
    def advisory(self) -> str | None:
        """User-visible message describing the current degraded mode, if any."""
        return self._advisory

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def is_offline(self) -> bool:
        return self._backend is None

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None and not self._subscription.closed

    def _on_collection_changed(self, snapshot: list[EmojiMarker]) -> None:
        mirror_markers(self._storage, self._config.storage_key, snapshot)
        if self._on_markers is not None:
            try:
                self._on_markers(snapshot)
            except Exception:
                _logger.debug("on_markers callback failed", exc_info=True)

    # ------------------------------------------------------------------
    # Event sources
    # ------------------------------------------------------------------

    async def load(self) -> list[EmojiMarker]:
        """Replace the collection with the backend snapshot, newest first.

        Falls back to the on-device mirror (or an empty list) when the
        backend is unreachable or not configured.
        """
        self._loading = True
        try:
            if self._backend is None:
                raise BackendUnavailable("Backend is not configured")
            markers = await self._backend.list_all()
        except BackendUnavailable:
            _logger.warning("Loading markers from backend failed; using on-device mirror", exc_info=True)
            if self._backend is not None:
                self._advisory = ADVISORY_LOAD_FAILED
            self._collection.replace_all(restore_markers(self._storage, self._config.storage_key))
        else:
            self._advisory = None
            self._collection.replace_all(markers)
        finally:
            self._loading = False
        return self.markers

    def apply_change(self, change: MarkerInserted | MarkerUpdated | MarkerDeleted) -> bool:
        """Apply one realtime change.  Safe to call with echoes of local writes."""
        changed = self._collection.apply(change)
        _logger.debug("Applied %s change changed=%s", change.kind, changed)
        if self._on_change is not None:
            try:
                self._on_change(change)
            except Exception:
                _logger.debug("on_change callback failed", exc_info=True)
        return changed

    async def add_emoji(self, glyph: str, lat: float, lng: float) -> EmojiMarker:
        """Record a click of *glyph* at (lat, lng) and return the resulting marker.

        Raises :class:`ValueError` for invalid input.  Backend failures
        are absorbed: the same create-or-increment runs against the local
        collection instead.
        """
        glyph = validate_click(glyph, lat, lng)
        if self._backend is not None:
            try:
                record = await self._backend.upsert_by_proximity(glyph, lat, lng)
            except BackendUnavailable:
                _logger.warning("Adding emoji via backend failed; applying locally", exc_info=True)
                self._advisory = ADVISORY_ADD_FAILED
            else:
                self._collection.merge(record)
                return record
        return self._add_locally(glyph, lat, lng)

    def _add_locally(self, glyph: str, lat: float, lng: float) -> EmojiMarker:
        match = find_match(self._collection, glyph, lat, lng, self._config.proximity_window)
        record = incremented(match) if match is not None else new_local_marker(glyph, lat, lng)
        self._collection.merge(record)
        return record

    def click_handler(self, glyph: str) -> Callable[[float, float], Awaitable[EmojiMarker]]:
        """Bind *glyph* to a ``(lat, lng)`` callback for a map surface."""

        async def _on_click(lat: float, lng: float) -> EmojiMarker:
            return await self.add_emoji(glyph, lat, lng)

        return _on_click
