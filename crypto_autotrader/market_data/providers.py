"""Collaborator interfaces consumed by the engine, and their adapters."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Dict, Mapping, Optional, Protocol

from ..config.exchange_config import Exchange, ExchangeCredentials
from ..exchanges.base import ExchangeClient
from ..exchanges.binance_service import BinanceAPIException, BinanceRequestException, BinanceService
from ..exchanges.errors import ConnectorError, DataUnavailableError
from ..signals.models import TradeSignal

logger = logging.getLogger(__name__)


class PriceProvider(Protocol):
    async def get_current_price(self, symbol: str) -> Decimal:
        """Return the latest price or raise :class:`DataUnavailableError`."""


class BalanceProvider(Protocol):
    async def get_account_balance(self) -> Decimal:
        """Return the quote-currency balance used for position sizing."""


class SignalProvider(Protocol):
    async def get_latest_signal(self, symbol: str) -> Optional[TradeSignal]:
        """Return the most recent scored signal for ``symbol``, if any."""


class CredentialStore(Protocol):
    def get_credentials(self, exchange: Exchange) -> Optional[ExchangeCredentials]:
        """Return the user's credentials for ``exchange``, if stored."""


class BinanceTickerPriceProvider:
    """Reads the last traded futures price through python-binance."""

    def __init__(self, service: BinanceService, timeout: Optional[float] = None) -> None:
        self._service = service
        self._timeout = timeout if timeout is not None else service.request_timeout

    async def get_current_price(self, symbol: str) -> Decimal:
        try:
            price = await asyncio.wait_for(self._service.ticker_price(symbol), self._timeout)
        except asyncio.TimeoutError as exc:
            raise DataUnavailableError(f'Price request for {symbol} timed out') from exc
        except (BinanceAPIException, BinanceRequestException) as exc:
            raise DataUnavailableError(f'Price unavailable for {symbol}: {exc}') from exc
        if price <= 0:
            raise DataUnavailableError(f'Invalid price for {symbol}: {price}')
        return price


class ConnectorBalanceProvider:
    """Uses the connected exchange's free balance of ``asset`` for sizing."""

    def __init__(self, client: ExchangeClient, asset: str = 'USDT') -> None:
        self._client = client
        self._asset = asset.upper()

    async def get_account_balance(self) -> Decimal:
        try:
            balances = await self._client.get_balance()
        except ConnectorError as exc:
            raise DataUnavailableError(f'Balance unavailable from {self._client.name}: {exc}') from exc
        for balance in balances:
            if balance.asset.upper() == self._asset:
                return balance.free
        raise DataUnavailableError(f'{self._client.name} reports no {self._asset} balance')


class InMemoryCredentialStore:
    def __init__(self, credentials: Optional[Mapping[Exchange, ExchangeCredentials]] = None) -> None:
        self._credentials: Dict[Exchange, ExchangeCredentials] = dict(credentials or {})

    def save(self, credentials: ExchangeCredentials) -> None:
        self._credentials[credentials.exchange] = credentials

    def get_credentials(self, exchange: Exchange) -> Optional[ExchangeCredentials]:
        return self._credentials.get(Exchange.parse(exchange))


class EnvironmentCredentialStore:
    """Reads ``<EXCHANGE>_API_KEY`` / ``_SECRET_KEY`` / ``_PASSPHRASE``."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self._environ = environ

    def get_credentials(self, exchange: Exchange) -> Optional[ExchangeCredentials]:
        try:
            return ExchangeCredentials.from_env(exchange, self._environ)
        except ValueError as error:
            logger.debug('No usable credentials for %s in environment: %s', exchange, error)
            return None


__all__ = [
    'BalanceProvider',
    'BinanceTickerPriceProvider',
    'ConnectorBalanceProvider',
    'CredentialStore',
    'EnvironmentCredentialStore',
    'InMemoryCredentialStore',
    'PriceProvider',
    'SignalProvider',
]
