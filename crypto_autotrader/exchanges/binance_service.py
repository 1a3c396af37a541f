"""Public Binance futures market data over python-binance."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any, Optional, Sequence

from binance import AsyncClient, BinanceSocketManager
from binance.exceptions import BinanceAPIException, BinanceRequestException

from .models import to_decimal


class BinanceService:
    """Unauthenticated futures ticker access shared by the price providers.

    The AsyncClient is created on first use. Signed order flow never goes
    through here; it uses :class:`~crypto_autotrader.exchanges.binance.BinanceClient`.
    """

    def __init__(self, *, testnet: bool = False, request_timeout: float = 15.0) -> None:
        self.testnet = testnet
        self.request_timeout = request_timeout
        self._client: Optional[AsyncClient] = None
        self._guard = asyncio.Lock()

    async def _ensure_client(self) -> AsyncClient:
        async with self._guard:
            if self._client is None:
                self._client = await AsyncClient.create(
                    testnet=self.testnet,
                    requests_params={'timeout': self.request_timeout},
                )
            return self._client

    async def ticker_price(self, symbol: str) -> Decimal:
        """Last traded USDⓈ-M futures price for ``symbol``."""
        client = await self._ensure_client()
        ticker = await client.futures_symbol_ticker(symbol=symbol.upper())
        return to_decimal(ticker.get('price'))

    async def mini_ticker_socket(self, symbols: Sequence[str]) -> Any:
        sockets = BinanceSocketManager(await self._ensure_client())
        streams = [f'{symbol.lower()}@miniTicker' for symbol in symbols]
        return sockets.futures_multiplex_socket(streams)

    async def close(self) -> None:
        async with self._guard:
            client, self._client = self._client, None
        if client is not None:
            await client.close_connection()


__all__ = ['BinanceService', 'BinanceAPIException', 'BinanceRequestException']
