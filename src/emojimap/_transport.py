"""HTTP transport for the hosted table API."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any, Protocol

import aiohttp

from emojimap._constants import USER_AGENT
from emojimap._redact import redact_for_log
from emojimap.config import EmojiMapConfig
from emojimap.exceptions import BackendUnavailable

_logger = logging.getLogger(__name__)

QueryParams = Sequence[tuple[str, str]]


class Transport(Protocol):
    """Structural transport interface used by the table operations.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`RestTransport`) concrete.
    """

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: QueryParams = (),
        body: Any = None,
    ) -> list[dict[str, Any]]: ...


class RestTransport:
    """aiohttp transport for a PostgREST-style API.

    Every response is expected to be a JSON array of row objects
    (``Prefer: return=representation`` makes writes return rows too).
    """

    def __init__(self, config: EmojiMapConfig, http_session: aiohttp.ClientSession) -> None:
        config.require_backend()
        self._config = config
        self._http = http_session
        self._headers: dict[str, str] = {
            "apikey": config.access_key or "",
            "authorization": f"Bearer {config.access_key}",
            "accept": "application/json",
            "content-type": "application/json; charset=UTF-8",
            "prefer": "return=representation",
            "user-agent": USER_AGENT,
        }

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: QueryParams = (),
        body: Any = None,
    ) -> list[dict[str, Any]]:
        url = f"{self._config.rest_url}/{path.lstrip('/')}"
        data = json.dumps(body, ensure_ascii=False) if body is not None else None

        _logger.debug(
            "%s %s params=%s headers=%s",
            method,
            url,
            list(params),
            redact_for_log(self._headers),
        )

        try:
            async with self._http.request(method, url, params=list(params), data=data, headers=self._headers) as resp:
                text = await resp.text()
                if resp.status < 200 or resp.status >= 300:
                    raise BackendUnavailable(
                        f"HTTP {resp.status} from {path}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=path,
                    )
        except BackendUnavailable:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise BackendUnavailable(
                f"Request to {path} failed: {exc}",
                endpoint=path,
            ) from exc

        try:
            payload = json.loads(text) if text.strip() else []
        except json.JSONDecodeError as exc:
            raise BackendUnavailable(
                f"Invalid JSON from {path}: {text[:200]}",
                endpoint=path,
            ) from exc

        if not isinstance(payload, list) or not all(isinstance(row, dict) for row in payload):
            raise BackendUnavailable(
                f"Expected a JSON array of rows from {path}",
                endpoint=path,
            )
        return payload
