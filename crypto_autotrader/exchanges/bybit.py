"""Bybit v5 (linear contracts) client."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlencode

from ..config.exchange_config import Exchange
from .base import ExchangeClient, hmac_sha256_hex, json_value, wire_value
from .models import ZERO, BalanceInfo, OrderRequest, OrderResponse, OrderStatus, OrderType, PositionInfo, to_decimal

RECV_WINDOW = '5000'
CATEGORY = 'linear'


class BybitClient(ExchangeClient):
    """Signs ``timestamp + apiKey + recvWindow + payload`` with HMAC-SHA256 hex.

    ``payload`` is the query string for GET and the JSON body for POST.
    """

    exchange = Exchange.BYBIT
    supports_positions = True
    supports_cancel = True
    auth_error_codes = frozenset({'10003', '10004', '10005', '10007', '33004'})

    def sign(self, timestamp: str, payload: str) -> str:
        message = f'{timestamp}{self._credentials.api_key}{RECV_WINDOW}{payload}'
        return hmac_sha256_hex(self._credentials.secret_key, message)

    async def _request(self, method: str, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        timestamp = str(self.timestamp_ms())
        params = params or {}
        headers = {
            'X-BAPI-API-KEY': self._credentials.api_key,
            'X-BAPI-TIMESTAMP': timestamp,
            'X-BAPI-RECV-WINDOW': RECV_WINDOW,
        }
        body: Optional[str] = None
        url = f'{self.base_url}{endpoint}'
        if method == 'GET':
            payload = urlencode({key: wire_value(value) for key, value in params.items()})
            if payload:
                url = f'{url}?{payload}'
        else:
            body = payload = json.dumps({key: json_value(value) for key, value in params.items()}, separators=(',', ':'))
            headers['Content-Type'] = 'application/json'
        headers['X-BAPI-SIGN'] = self.sign(timestamp, payload)
        return await self._send(method, endpoint, url, body=body, headers=headers)

    def _error_details(self, payload: Any):
        if isinstance(payload, Mapping) and 'retCode' in payload:
            return str(payload['retCode']), str(payload.get('retMsg', ''))
        return super()._error_details(payload)

    def _unwrap(self, payload: Any, endpoint: str) -> Any:
        code, message = self._error_details(payload)
        if code != '0':
            raise self._rejection(code, message or 'request rejected', endpoint)
        return payload.get('result') or {}

    async def _fetch_balance(self) -> List[BalanceInfo]:
        data = await self._request('GET', '/v5/account/wallet-balance', {'accountType': 'UNIFIED'})
        accounts = data.get('list') or []
        if not accounts:
            return []
        return [
            BalanceInfo.from_free_and_total(coin['coin'], coin.get('availableToWithdraw'), coin.get('walletBalance'))
            for coin in accounts[0].get('coin', [])
        ]

    async def _fetch_positions(self) -> List[PositionInfo]:
        data = await self._request('GET', '/v5/position/list', {'category': CATEGORY, 'settleCoin': 'USDT'})
        positions = []
        for position in data.get('list', []):
            size = to_decimal(position.get('size'))
            if position.get('side') == 'Sell':
                size = -size
            positions.append(
                PositionInfo.parse(
                    position['symbol'],
                    size,
                    position.get('avgPrice'),
                    position.get('markPrice'),
                    position.get('unrealisedPnl'),
                )
            )
        return positions

    async def _place_order(self, request: OrderRequest) -> OrderResponse:
        params: Dict[str, Any] = {
            'category': CATEGORY,
            'symbol': request.symbol,
            'side': request.side.value.capitalize(),
            'orderType': request.order_type.value.capitalize(),
            'qty': request.quantity,
        }
        if request.order_type is OrderType.LIMIT:
            params['price'] = request.limit_price
        if request.stop_loss is not None:
            params['stopLoss'] = request.stop_loss
        if request.take_profit is not None:
            params['takeProfit'] = request.take_profit
        if request.reduce_only:
            params['reduceOnly'] = True

        result = await self._request('POST', '/v5/order/create', params)

        return OrderResponse(
            order_id=str(result['orderId']),
            symbol=request.symbol,
            side=request.side,
            quantity=request.quantity,
            price=request.limit_price or ZERO,
            status=OrderStatus.PENDING,
            timestamp=self.timestamp_ms(),
            exchange=self.exchange,
        )

    async def _cancel_order(self, symbol: str, order_id: str) -> None:
        await self._request('POST', '/v5/order/cancel', {'category': CATEGORY, 'symbol': symbol, 'orderId': order_id})


__all__ = ['BybitClient']
