"""Bitget client (spot balances, USDT-M mix v1 orders and positions)."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from ..config.exchange_config import Exchange
from .base import PrehashSigningClient
from .models import ZERO, BalanceInfo, OrderRequest, OrderResponse, OrderStatus, OrderType, PositionInfo, to_decimal

PRODUCT_TYPE = 'umcbl'
MARGIN_COIN = 'USDT'
SUCCESS_CODE = '00000'


class BitgetClient(PrehashSigningClient):
    exchange = Exchange.BITGET
    supports_positions = True
    supports_cancel = True
    auth_error_codes = frozenset({'40006', '40009', '40012', '40037'})

    def auth_headers(self, timestamp: str, signature: str) -> Dict[str, str]:
        return {
            'ACCESS-KEY': self._credentials.api_key,
            'ACCESS-SIGN': signature,
            'ACCESS-TIMESTAMP': timestamp,
            'ACCESS-PASSPHRASE': self._credentials.passphrase or '',
            'locale': 'en-US',
        }

    def _unwrap(self, payload: Any, endpoint: str) -> Any:
        code, message = self._error_details(payload)
        if code != SUCCESS_CODE:
            raise self._rejection(code, message or 'request rejected', endpoint)
        return payload.get('data')

    async def _fetch_balance(self) -> List[BalanceInfo]:
        data = await self._request('GET', '/api/spot/v1/account/assets')
        return [
            BalanceInfo.from_free_and_locked(asset['coinName'], asset.get('available'), asset.get('frozen'))
            for asset in data or []
        ]

    async def _fetch_positions(self) -> List[PositionInfo]:
        data = await self._request('GET', '/api/mix/v1/position/allPosition', {'productType': PRODUCT_TYPE})
        positions = []
        for position in data or []:
            size = to_decimal(position.get('total'))
            if position.get('holdSide') == 'short':
                size = -size
            positions.append(
                PositionInfo.parse(
                    position['symbol'],
                    size,
                    position.get('averageOpenPrice'),
                    position.get('marketPrice'),
                    position.get('unrealizedPL'),
                )
            )
        return positions

    async def _place_order(self, request: OrderRequest) -> OrderResponse:
        params: Dict[str, Any] = {
            'symbol': request.symbol,
            'marginCoin': MARGIN_COIN,
            'side': f'{request.side.value.lower()}_single',
            'orderType': request.order_type.value.lower(),
            'size': request.quantity,
        }
        if request.order_type is OrderType.LIMIT:
            params['price'] = request.limit_price
            params['timeInForceValue'] = 'normal'
        if request.stop_loss is not None:
            params['presetStopLossPrice'] = request.stop_loss
        if request.take_profit is not None:
            params['presetTakeProfitPrice'] = request.take_profit
        if request.reduce_only:
            params['reduceOnly'] = True

        data: Mapping[str, Any] = await self._request('POST', '/api/mix/v1/order/placeOrder', params)

        return OrderResponse(
            order_id=str(data['orderId']),
            symbol=request.symbol,
            side=request.side,
            quantity=request.quantity,
            price=request.limit_price or ZERO,
            status=OrderStatus.PENDING,
            timestamp=self.timestamp_ms(),
            exchange=self.exchange,
        )

    async def _cancel_order(self, symbol: str, order_id: str) -> None:
        await self._request(
            'POST',
            '/api/mix/v1/order/cancel-order',
            {'symbol': symbol, 'marginCoin': MARGIN_COIN, 'orderId': order_id},
        )


__all__ = ['BitgetClient']
