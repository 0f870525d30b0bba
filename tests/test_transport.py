from __future__ import annotations

import json
from typing import Any

import aiohttp
import pytest

from emojimap._transport import RestTransport
from emojimap.config import EmojiMapConfig
from emojimap.exceptions import BackendUnavailable, ConfigurationMissing


class _FakeResponse:
    def __init__(self, status: int, text: str) -> None:
        self.status = status
        self._text = text

    async def text(self) -> str:
        return self._text

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class _FakeSession:
    def __init__(self, status: int = 200, text: str = "[]", error: Exception | None = None) -> None:
        self._status = status
        self._text = text
        self._error = error
        self.calls: list[dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> _FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        if self._error is not None:
            raise self._error
        return _FakeResponse(self._status, self._text)


@pytest.fixture
def config() -> EmojiMapConfig:
    return EmojiMapConfig(backend_url="https://demo.example.co/", access_key="anon-key")


def _transport(config: EmojiMapConfig, session: _FakeSession) -> RestTransport:
    return RestTransport(config, session)  # type: ignore[arg-type]


def test_requires_backend_settings() -> None:
    with pytest.raises(ConfigurationMissing):
        RestTransport(EmojiMapConfig(backend_url="https://demo.example.co"), _FakeSession())  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_request_sends_key_headers_and_json_body(config: EmojiMapConfig) -> None:
    session = _FakeSession(text=json.dumps([{"id": 1}]))
    rows = await _transport(config, session).request(
        "POST",
        "emojis",
        params=(("select", "*"),),
        body=[{"emoji": "🌟"}],
    )

    assert rows == [{"id": 1}]
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://demo.example.co/rest/v1/emojis"
    assert call["params"] == [("select", "*")]
    assert json.loads(call["data"]) == [{"emoji": "🌟"}]
    assert call["headers"]["apikey"] == "anon-key"
    assert call["headers"]["authorization"] == "Bearer anon-key"
    assert call["headers"]["prefer"] == "return=representation"


@pytest.mark.asyncio
async def test_empty_body_is_no_rows(config: EmojiMapConfig) -> None:
    session = _FakeSession(text="")
    assert await _transport(config, session).request("GET", "emojis") == []
    assert session.calls[0]["data"] is None


@pytest.mark.asyncio
async def test_http_error_maps_to_backend_unavailable(config: EmojiMapConfig) -> None:
    session = _FakeSession(status=503, text="upstream down")
    with pytest.raises(BackendUnavailable) as exc_info:
        await _transport(config, session).request("GET", "emojis")
    assert exc_info.value.status_code == 503
    assert exc_info.value.endpoint == "emojis"


@pytest.mark.asyncio
async def test_network_error_maps_to_backend_unavailable(config: EmojiMapConfig) -> None:
    session = _FakeSession(error=aiohttp.ClientConnectionError("refused"))
    with pytest.raises(BackendUnavailable):
        await _transport(config, session).request("GET", "emojis")


@pytest.mark.asyncio
async def test_timeout_maps_to_backend_unavailable(config: EmojiMapConfig) -> None:
    session = _FakeSession(error=TimeoutError())
    with pytest.raises(BackendUnavailable):
        await _transport(config, session).request("GET", "emojis")


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["not json", '{"id": 1}', "[1, 2]"])
async def test_unexpected_payload_maps_to_backend_unavailable(config: EmojiMapConfig, text: str) -> None:
    session = _FakeSession(text=text)
    with pytest.raises(BackendUnavailable):
        await _transport(config, session).request("GET", "emojis")
