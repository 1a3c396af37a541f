"""Binance USD-M futures client."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlencode

from ..config.exchange_config import Exchange
from .base import ExchangeClient, hmac_sha256_hex, wire_value
from .models import (
    BalanceInfo,
    OrderRequest,
    OrderResponse,
    OrderSide,
    OrderStatus,
    OrderType,
    PositionInfo,
    to_decimal,
)


class BinanceClient(ExchangeClient):
    """Signs the full query string (params then ``timestamp``) with HMAC-SHA256 hex."""

    exchange = Exchange.BINANCE
    supports_positions = True
    supports_cancel = True
    auth_error_codes = frozenset({'-1022', '-2008', '-2014', '-2015'})

    def sign(self, query: str) -> str:
        return hmac_sha256_hex(self._credentials.secret_key, query)

    def build_query(self, params: Optional[Mapping[str, Any]] = None) -> str:
        pairs = [(key, wire_value(value)) for key, value in (params or {}).items()]
        pairs.append(('timestamp', str(self.timestamp_ms())))
        return urlencode(pairs)

    async def _request(self, method: str, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        query = self.build_query(params)
        signature = self.sign(query)
        url = f'{self.base_url}{endpoint}?{query}&signature={signature}'
        headers = {'X-MBX-APIKEY': self._credentials.api_key}
        return await self._send(method, endpoint, url, headers=headers)

    async def _fetch_balance(self) -> List[BalanceInfo]:
        data = await self._request('GET', '/fapi/v2/account')
        return [
            BalanceInfo.from_free_and_total(asset['asset'], asset.get('availableBalance'), asset.get('walletBalance'))
            for asset in data.get('assets', [])
        ]

    async def _fetch_positions(self) -> List[PositionInfo]:
        data = await self._request('GET', '/fapi/v2/positionRisk')
        return [
            PositionInfo.parse(
                position['symbol'],
                position.get('positionAmt'),
                position.get('entryPrice'),
                position.get('markPrice'),
                position.get('unRealizedProfit'),
            )
            for position in data
        ]

    async def _place_order(self, request: OrderRequest) -> OrderResponse:
        params: Dict[str, Any] = {
            'symbol': request.symbol,
            'side': request.side.value,
            'type': request.order_type.value,
            'quantity': request.quantity,
        }
        if request.order_type is OrderType.LIMIT:
            params['price'] = request.limit_price
            params['timeInForce'] = 'GTC'
        if request.reduce_only:
            params['reduceOnly'] = True

        response = await self._request('POST', '/fapi/v1/order', params)

        price = to_decimal(response.get('price'))
        if price == 0:
            price = to_decimal(response.get('avgPrice'))
        return OrderResponse(
            order_id=str(response['orderId']),
            symbol=response.get('symbol', request.symbol),
            side=OrderSide(response.get('side', request.side.value)),
            quantity=to_decimal(response.get('origQty'), request.quantity),
            price=price,
            status=OrderStatus.normalize(response.get('status')),
            timestamp=int(response.get('updateTime') or self.timestamp_ms()),
            exchange=self.exchange,
        )

    async def _cancel_order(self, symbol: str, order_id: str) -> None:
        await self._request('DELETE', '/fapi/v1/order', {'symbol': symbol, 'orderId': order_id})


__all__ = ['BinanceClient']
