"""Backend collaborator: table reads/writes plus the realtime change feed."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, Protocol

from emojimap._api import emojis as _emojis_api
from emojimap._realtime import ChangeFeedRuntime, FeedBootstrap, build_feed_bootstrap
from emojimap._redact import redact_for_log
from emojimap._transport import Transport
from emojimap.config import EmojiMapConfig
from emojimap.exceptions import BackendUnavailable, EmojiMapError
from emojimap.models.marker import EmojiMarker
from emojimap.state.events import MarkerDeleted, MarkerInserted, MarkerUpdated, parse_change_payload
from emojimap.state.policy import validate_click

_logger = logging.getLogger(__name__)

ChangeCallback = Callable[[MarkerInserted | MarkerUpdated | MarkerDeleted], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Subscription:
    """Handle for an active change-feed subscription.

    Closing is idempotent: the underlying release runs exactly once no
    matter how many times :meth:`close` is awaited.
    """

    def __init__(self, release: Callable[[], Awaitable[None]]) -> None:
        self._release = release
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._release()


class EmojiBackend(Protocol):
    """Operations the reconciliation layer needs from the backend."""

    async def list_all(self) -> list[EmojiMarker]: ...

    async def find_near(
        self, glyph: str, lat: float, lng: float, window: float | None = None
    ) -> list[EmojiMarker]: ...

    async def upsert_by_proximity(self, glyph: str, lat: float, lng: float) -> EmojiMarker: ...

    async def subscribe(self, on_change: ChangeCallback) -> Subscription: ...

    async def unsubscribe(self, handle: Subscription) -> None: ...


@contextlib.asynccontextmanager
async def subscription(backend: EmojiBackend, on_change: ChangeCallback) -> AsyncIterator[Subscription]:
    """Scoped subscription, released on exit even when the body raises."""
    handle = await backend.subscribe(on_change)
    try:
        yield handle
    finally:
        await backend.unsubscribe(handle)


class HostedEmojiBackend:
    """:class:`EmojiBackend` over the hosted table API and change feed."""

    def __init__(
        self,
        config: EmojiMapConfig,
        transport: Transport,
        *,
        clock: Callable[[], datetime] = _utcnow,
        runtime_factory: Callable[..., ChangeFeedRuntime] = ChangeFeedRuntime,
    ) -> None:
        self._config = config
        self._transport = transport
        self._clock = clock
        self._runtime_factory = runtime_factory

    # ------------------------------------------------------------------
    # Table operations
    # ------------------------------------------------------------------

    async def list_all(self) -> list[EmojiMarker]:
        return await _emojis_api.fetch_all(self._transport, self._config.table)

    async def find_near(
        self,
        glyph: str,
        lat: float,
        lng: float,
        window: float | None = None,
    ) -> list[EmojiMarker]:
        effective_window = self._config.proximity_window if window is None else window
        return await _emojis_api.fetch_near(
            self._transport,
            self._config.table,
            glyph,
            lat,
            lng,
            effective_window,
        )

    async def upsert_by_proximity(self, glyph: str, lat: float, lng: float) -> EmojiMarker:
        """Increment the first same-glyph marker inside the window, or create one.

        Returns the post-write record as stored by the backend.
        """
        glyph = validate_click(glyph, lat, lng)
        nearby = await self.find_near(glyph, lat, lng)
        now = self._clock()
        if nearby:
            existing = nearby[0]
            return await _emojis_api.update_marker_count(
                self._transport,
                self._config.table,
                existing,
                existing.count + 1,
                now,
            )
        return await _emojis_api.insert_marker(self._transport, self._config.table, glyph, lat, lng, now)

    # ------------------------------------------------------------------
    # Change feed
    # ------------------------------------------------------------------

    async def subscribe(self, on_change: ChangeCallback) -> Subscription:
        """Start the change feed; *on_change* runs on the event loop."""
        loop = asyncio.get_running_loop()

        def dispatch(payload: dict[str, Any]) -> None:
            change = parse_change_payload(payload)
            if change is None:
                _logger.debug("Ignoring change payload %s", redact_for_log(payload))
                return
            try:
                on_change(change)
            except Exception:
                _logger.debug("Change callback failed", exc_info=True)

        try:
            bootstrap: FeedBootstrap = build_feed_bootstrap(self._config)
        except EmojiMapError as exc:
            raise BackendUnavailable(f"Change feed unavailable: {exc}", endpoint=self._config.change_topic) from exc

        runtime = self._runtime_factory(
            loop=loop,
            on_message=dispatch,
            keepalive=self._config.realtime_keepalive,
            logger=_logger,
        )
        try:
            await loop.run_in_executor(None, runtime.start, bootstrap)
        except (OSError, ValueError) as exc:
            raise BackendUnavailable(
                f"Change feed connect to {bootstrap.broker_host}:{bootstrap.broker_port} failed: {exc}",
                endpoint=bootstrap.topic,
            ) from exc

        async def release() -> None:
            await loop.run_in_executor(None, runtime.stop)

        return Subscription(release)

    async def unsubscribe(self, handle: Subscription) -> None:
        await handle.close()
