"""Internal change-feed bootstrap and runtime helpers."""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from emojimap.config import EmojiMapConfig
from emojimap.exceptions import EmojiMapError


@dataclass(frozen=True)
class FeedBootstrap:
    """Broker data required to connect to the change feed."""

    broker_host: str
    broker_port: int
    topic: str
    client_id: str
    username: str
    password: str
    tls: bool = True
    connect_timeout: float = 5.0


def build_feed_bootstrap(config: EmojiMapConfig) -> FeedBootstrap:
    """Derive broker connection details from configuration."""
    config.require_backend()
    host = config.broker_host
    if not host:
        raise EmojiMapError("Cannot derive change-feed host from configuration")
    return FeedBootstrap(
        broker_host=host,
        broker_port=config.realtime_port,
        topic=config.change_topic,
        client_id=f"emojimap_{secrets.token_hex(6)}",
        username="anon",
        password=config.access_key or "",
        tls=config.realtime_tls,
        connect_timeout=config.realtime_connect_timeout,
    )


def decode_feed_payload(payload: bytes) -> dict[str, Any]:
    """Parse a change-feed message body into a JSON object."""
    parsed = json.loads(payload.decode("utf-8"))
    if not isinstance(parsed, dict):
        raise EmojiMapError("Change-feed payload is not a JSON object")
    return parsed


class ChangeFeedRuntime:
    """Threaded paho-mqtt runtime that emits decoded messages onto an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_message: Callable[[dict[str, Any]], None],
        keepalive: int = 60,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_message = on_message
        self._keepalive = keepalive
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._topic: str | None = None

    @property
    def is_running(self) -> bool:
        """Whether the runtime is actively running."""
        return self._running

    def start(self, bootstrap: FeedBootstrap) -> None:
        """Connect and subscribe with provided broker details."""
        self.stop()
        self._logger.debug(
            "Change feed start requested host=%s port=%s topic=%s client_id=%s",
            bootstrap.broker_host,
            bootstrap.broker_port,
            bootstrap.topic,
            bootstrap.client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=bootstrap.client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        client.username_pw_set(bootstrap.username, bootstrap.password)
        client.connect_timeout = bootstrap.connect_timeout
        if bootstrap.tls:
            client.tls_set()

        self._topic = bootstrap.topic

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("Change feed connect failed: %s", reason_code)
                return
            self._logger.debug("Change feed connected reason=%s", reason_code)
            if self._topic:
                c.subscribe(self._topic, qos=0)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            try:
                parsed = decode_feed_payload(msg.payload)
            except (UnicodeDecodeError, ValueError, EmojiMapError):
                self._logger.debug("Change feed payload parse failure topic=%s", msg.topic, exc_info=True)
                return
            self._logger.debug("Change feed message topic=%s parsed=%s", msg.topic, parsed)
            self._loop.call_soon_threadsafe(self._on_message, parsed)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("Change feed disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect(bootstrap.broker_host, bootstrap.broker_port, keepalive=self._keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("Change feed network loop started")

    def stop(self) -> None:
        """Stop and disconnect the current client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._topic = None

        if client is None:
            return
        try:
            if was_running:
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("Change feed network loop stopped")
