"""Streaming price cache fed by the Binance futures ticker stream."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import AsyncIterator, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from ..exchanges.binance_service import BinanceAPIException, BinanceRequestException, BinanceService
from ..exchanges.errors import DataUnavailableError
from ..exchanges.models import to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceTick:
    symbol: str
    price: Decimal
    timestamp: int


TickListener = Callable[[PriceTick], Awaitable[None]]
TickSource = Callable[[List[str]], AsyncIterator[PriceTick]]
Sleep = Callable[[float], Awaitable[None]]

STREAM_ERRORS = (OSError, asyncio.TimeoutError, BinanceAPIException, BinanceRequestException)


class StreamingPriceCache:
    """Latest price per symbol; stale or missing prices are unavailable."""

    def __init__(self, max_age: float = 30.0, clock: Callable[[], float] = time.time) -> None:
        self._max_age = max_age
        self._clock = clock
        self._prices: Dict[str, Tuple[Decimal, float]] = {}

    def update(self, symbol: str, price: Decimal) -> None:
        self._prices[symbol.upper()] = (price, self._clock())

    async def get_current_price(self, symbol: str) -> Decimal:
        entry = self._prices.get(symbol.upper())
        if entry is None:
            raise DataUnavailableError(f'No streamed price for {symbol}')
        price, received_at = entry
        age = self._clock() - received_at
        if age > self._max_age:
            raise DataUnavailableError(f'Streamed price for {symbol} is {age:.0f}s old')
        return price


class PriceStream:
    """Keeps a :class:`StreamingPriceCache` current, reconnecting on failure.

    The n-th consecutive reconnect waits ``base_delay * 2 ** (n - 1)``
    seconds; after ``max_attempts`` failures in a row the stream gives up
    with :class:`DataUnavailableError`. A received tick resets the count.
    """

    def __init__(
        self,
        cache: StreamingPriceCache,
        service: Optional[BinanceService] = None,
        *,
        tick_source: Optional[TickSource] = None,
        base_delay: float = 3.0,
        max_attempts: int = 5,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if service is None and tick_source is None:
            raise ValueError('PriceStream needs a BinanceService or a tick source')
        self._cache = cache
        self._service = service
        self._tick_source = tick_source or self._binance_ticks
        self._base_delay = base_delay
        self._max_attempts = max_attempts
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        return self._base_delay * 2 ** (attempt - 1)

    async def run(self, symbols: Iterable[str], listener: Optional[TickListener] = None) -> None:
        tracked = [symbol.upper() for symbol in symbols]
        attempt = 0
        while True:
            try:
                async for tick in self._tick_source(tracked):
                    attempt = 0
                    self._cache.update(tick.symbol, tick.price)
                    if listener is not None:
                        await listener(tick)
                logger.warning('Price stream for %s closed by server', ','.join(tracked))
            except STREAM_ERRORS as error:
                logger.warning('Price stream for %s failed: %s', ','.join(tracked), error)
            attempt += 1
            if attempt > self._max_attempts:
                logger.error('Max reconnection attempts (%s) reached for price stream', self._max_attempts)
                raise DataUnavailableError('Price stream unavailable')
            delay = self.backoff_delay(attempt)
            logger.info('Reconnecting price stream in %.1fs (attempt %s)', delay, attempt)
            await self._sleep(delay)

    async def _binance_ticks(self, symbols: List[str]) -> AsyncIterator[PriceTick]:
        socket = await self._service.mini_ticker_socket(symbols)
        async with socket as stream:
            while True:
                message = await stream.recv()
                data = message.get('data', message)
                if data.get('e') == 'error':
                    raise ConnectionError(data.get('m', 'stream error'))
                yield PriceTick(symbol=data['s'], price=to_decimal(data['c']), timestamp=int(data['E']))


__all__ = ['PriceStream', 'PriceTick', 'StreamingPriceCache']
