"""Capability interface shared by every exchange client."""

from __future__ import annotations

import abc
import base64
import enum
import hashlib
import hmac
import json
import logging
import time
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Callable, ClassVar, Dict, FrozenSet, Iterator, List, Mapping, Optional, Tuple
from urllib.parse import urlencode

from ..config.exchange_config import Exchange, ExchangeCredentials
from ..monitoring.logger import register_secrets
from .errors import (
    ConnectorTransportError,
    CredentialError,
    ExchangeRejectedError,
    UnexpectedResponseError,
    UnsupportedOperationError,
)
from .models import BalanceInfo, OrderRequest, OrderResponse, PositionInfo, format_decimal
from .transport import AiohttpTransport, HttpResponse, HttpTransport

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

# Raised when a 2xx payload is missing fields or holds unparsable values.
PAYLOAD_ERRORS = (KeyError, IndexError, TypeError, AttributeError, ValueError)


def hmac_sha256_hex(secret: str, message: str) -> str:
    return hmac.new(secret.encode('utf-8'), message.encode('utf-8'), hashlib.sha256).hexdigest()


def hmac_sha256_base64(secret: str, message: str) -> str:
    digest = hmac.new(secret.encode('utf-8'), message.encode('utf-8'), hashlib.sha256).digest()
    return base64.b64encode(digest).decode('utf-8')


def wire_value(value: Any) -> str:
    """Render a parameter exactly as it is signed and transmitted."""
    if isinstance(value, enum.Enum):
        value = value.value
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, Decimal):
        return format_decimal(value)
    return str(value)


def json_value(value: Any) -> Any:
    """Like :func:`wire_value` but keeps booleans as JSON literals."""
    if isinstance(value, bool):
        return value
    return wire_value(value)


class ExchangeClient(abc.ABC):
    """One exchange session: signs requests and normalizes responses.

    Clients hold nothing but their credentials between calls. Subclasses
    implement the capabilities they support and flag them with the
    ``supports_*`` class attributes; the rest raise
    :class:`UnsupportedOperationError` without touching the network.
    """

    exchange: ClassVar[Exchange]
    supports_orders: ClassVar[bool] = True
    supports_positions: ClassVar[bool] = False
    supports_cancel: ClassVar[bool] = False
    auth_error_codes: ClassVar[FrozenSet[str]] = frozenset()

    def __init__(
        self,
        credentials: ExchangeCredentials,
        transport: Optional[HttpTransport] = None,
        *,
        clock: Clock = time.time,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        if credentials.exchange is not self.exchange:
            raise ValueError(
                f'{type(self).__name__} cannot use {credentials.exchange.value} credentials'
            )
        register_secrets(credentials.secrets)
        self._credentials = credentials
        self._owns_transport = transport is None
        if transport is None:
            transport = AiohttpTransport(timeout) if timeout is not None else AiohttpTransport()
        self._transport = transport
        self._clock = clock
        self.base_url = (base_url or credentials.base_url).rstrip('/')

    @property
    def name(self) -> str:
        return self.exchange.value

    def timestamp_ms(self) -> int:
        return int(self._clock() * 1000)

    async def validate_credentials(self) -> bool:
        """Return True iff a balance query succeeds with at least one entry."""
        try:
            balances = await self.get_balance()
        except Exception as error:  # noqa: BLE001
            logger.warning('Credential validation failed for %s: %s', self.name, error)
            return False
        return len(balances) > 0

    async def get_balance(self) -> List[BalanceInfo]:
        """Return normalized balances for every asset the account reports."""
        with self._parsing('balance'):
            return await self._fetch_balance()

    async def get_positions(self) -> List[PositionInfo]:
        if not self.supports_positions:
            logger.debug('%s has no positions endpoint wired; reporting none', self.name)
            return []
        with self._parsing('positions'):
            positions = await self._fetch_positions()
        return [position for position in positions if position.position_amt != 0]

    async def place_order(self, request: OrderRequest) -> OrderResponse:
        if not self.supports_orders:
            raise UnsupportedOperationError('order placement is not supported', exchange=self.name)
        request.validate()
        with self._parsing('order acknowledgement'):
            response = await self._place_order(request)
        logger.info(
            'Order accepted by %s: %s %s %s (id=%s, status=%s)',
            self.name,
            response.side.value,
            response.quantity,
            response.symbol,
            response.order_id,
            response.status.value,
        )
        return response

    async def cancel_order(self, symbol: str, order_id: str) -> None:
        if not self.supports_cancel:
            raise UnsupportedOperationError('order cancellation is not supported', exchange=self.name)
        await self._cancel_order(symbol.strip().upper(), str(order_id))
        logger.info('Order %s on %s cancelled via %s', order_id, symbol, self.name)

    @abc.abstractmethod
    async def _fetch_balance(self) -> List[BalanceInfo]:
        """Query and normalize the exchange's balance payload."""

    async def _fetch_positions(self) -> List[PositionInfo]:
        raise UnsupportedOperationError('position listing is not supported', exchange=self.name)

    async def _place_order(self, request: OrderRequest) -> OrderResponse:
        raise UnsupportedOperationError('order placement is not supported', exchange=self.name)

    async def _cancel_order(self, symbol: str, order_id: str) -> None:
        raise UnsupportedOperationError('order cancellation is not supported', exchange=self.name)

    async def _send(
        self,
        method: str,
        endpoint: str,
        url: str,
        *,
        body: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        try:
            response = await self._transport.request(method, url, body=body, headers=headers)
        except ConnectorTransportError as error:
            logger.warning('%s %s %s failed: %s', self.name, method, endpoint, error)
            raise ConnectorTransportError(
                str(error.args[0]) if error.args else 'request failed',
                exchange=self.name,
                endpoint=endpoint,
            ) from error
        if not response.ok:
            raise self._http_error(response, endpoint)
        return self._unwrap(response.payload, endpoint)

    def _http_error(self, response: HttpResponse, endpoint: str) -> Exception:
        code, message = self._error_details(response.payload)
        message = message or f'HTTP {response.status}'
        logger.warning('%s %s returned HTTP %s: %s', self.name, endpoint, response.status, message)
        if response.status in (401, 403) or (code is not None and code in self.auth_error_codes):
            return CredentialError(message, exchange=self.name, endpoint=endpoint)
        return ConnectorTransportError(message, status=response.status, exchange=self.name, endpoint=endpoint)

    def _rejection(self, code: Optional[str], message: str, endpoint: str) -> Exception:
        logger.warning('%s %s rejected request (code=%s): %s', self.name, endpoint, code, message)
        if code is not None and code in self.auth_error_codes:
            return CredentialError(message, exchange=self.name, endpoint=endpoint)
        return ExchangeRejectedError(message, code=code, exchange=self.name, endpoint=endpoint)

    @contextmanager
    def _parsing(self, what: str) -> Iterator[None]:
        try:
            yield
        except PAYLOAD_ERRORS as error:
            logger.error('%s returned an unexpected %s payload: %r', self.name, what, error)
            raise UnexpectedResponseError(f'unexpected {what} payload ({error!r})', exchange=self.name) from error

    def _error_details(self, payload: Any) -> Tuple[Optional[str], str]:
        if isinstance(payload, Mapping):
            code = payload.get('code')
            message = payload.get('msg') or payload.get('message') or ''
            return (str(code) if code is not None else None), str(message)
        return None, str(payload or '')

    def _unwrap(self, payload: Any, endpoint: str) -> Any:
        return payload

    async def close(self) -> None:
        if self._owns_transport and hasattr(self._transport, 'close'):
            await self._transport.close()

    async def __aenter__(self) -> 'ExchangeClient':
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f'{type(self).__name__}(api_key={self._credentials.api_key!r}, base_url={self.base_url!r})'


class PrehashSigningClient(ExchangeClient):
    """Exchanges that sign ``timestamp + METHOD + requestPath + body`` (base64 HMAC).

    ``requestPath`` includes the query string for GET requests; the JSON body
    is serialized once and the same string is both signed and transmitted.
    """

    content_type: ClassVar[str] = 'application/json'

    def request_timestamp(self) -> str:
        return str(self.timestamp_ms())

    def sign(self, timestamp: str, method: str, request_path: str, body: str = '') -> str:
        return hmac_sha256_base64(self._credentials.secret_key, f'{timestamp}{method}{request_path}{body}')

    @abc.abstractmethod
    def auth_headers(self, timestamp: str, signature: str) -> Dict[str, str]:
        """Exchange-specific header names for key, signature, timestamp and passphrase."""

    async def _request(self, method: str, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        params = params or {}
        body = ''
        request_path = endpoint
        if method == 'GET':
            if params:
                request_path = f'{endpoint}?{urlencode({key: wire_value(value) for key, value in params.items()})}'
        else:
            body = json.dumps({key: json_value(value) for key, value in params.items()}, separators=(',', ':'))
        timestamp = self.request_timestamp()
        signature = self.sign(timestamp, method, request_path, body)
        headers = self.auth_headers(timestamp, signature)
        headers['Content-Type'] = self.content_type
        return await self._send(
            method,
            endpoint,
            f'{self.base_url}{request_path}',
            body=body or None,
            headers=headers,
        )


__all__ = [
    'ExchangeClient',
    'PrehashSigningClient',
    'hmac_sha256_base64',
    'hmac_sha256_hex',
    'json_value',
    'wire_value',
]
