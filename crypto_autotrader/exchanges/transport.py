"""HTTP transport shared by the exchange clients."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Optional, Protocol

import aiohttp
from yarl import URL

from .errors import ConnectorTransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


@dataclass(frozen=True)
class HttpResponse:
    status: int
    payload: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class HttpTransport(Protocol):
    async def request(
        self,
        method: str,
        url: str,
        *,
        body: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> HttpResponse:
        """Send ``url`` (query string already encoded) and ``body`` verbatim."""


def parse_payload(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text, parse_float=Decimal)
    except ValueError:
        return text


class AiohttpTransport:
    """Lazily opens one aiohttp session and applies a total timeout per request.

    The transport never retries: a repeated order submission without an
    idempotency key could execute twice.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None
        self._lock = asyncio.Lock()

    async def session(self) -> aiohttp.ClientSession:
        async with self._lock:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession(timeout=self._timeout)
            return self._session

    async def request(
        self,
        method: str,
        url: str,
        *,
        body: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> HttpResponse:
        session = await self.session()
        data = body.encode('utf-8') if body is not None else None
        try:
            async with session.request(method, URL(url, encoded=True), data=data, headers=dict(headers or {})) as response:
                text = await response.text()
                return HttpResponse(status=response.status, payload=parse_payload(text))
        except asyncio.TimeoutError as exc:
            raise ConnectorTransportError(f'{method} request timed out') from exc
        except aiohttp.ClientError as exc:
            raise ConnectorTransportError(f'{method} request failed: {exc}') from exc

    async def close(self) -> None:
        async with self._lock:
            if self._session is not None:
                await self._session.close()
                self._session = None


__all__ = ['AiohttpTransport', 'DEFAULT_TIMEOUT', 'HttpResponse', 'HttpTransport', 'parse_payload']
