"""OKX v5 client."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

from ..config.exchange_config import Exchange
from .base import PrehashSigningClient
from .models import ZERO, BalanceInfo, OrderRequest, OrderResponse, OrderStatus, OrderType

SUCCESS_CODE = '0'


def iso_timestamp(epoch_ms: int) -> str:
    """UTC ISO-8601 with millisecond precision, e.g. ``2020-12-08T09:08:57.715Z``."""
    moment = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return moment.strftime('%Y-%m-%dT%H:%M:%S.') + f'{epoch_ms % 1000:03d}Z'


class OkxClient(PrehashSigningClient):
    """Spot trading in `cash` mode; OKX ignores `reduceOnly` there, so it is not sent."""

    exchange = Exchange.OKX
    auth_error_codes = frozenset({'50100', '50101', '50102', '50103', '50104', '50105', '50111', '50112', '50113'})

    def request_timestamp(self) -> str:
        return iso_timestamp(self.timestamp_ms())

    def auth_headers(self, timestamp: str, signature: str) -> Dict[str, str]:
        return {
            'OK-ACCESS-KEY': self._credentials.api_key,
            'OK-ACCESS-SIGN': signature,
            'OK-ACCESS-TIMESTAMP': timestamp,
            'OK-ACCESS-PASSPHRASE': self._credentials.passphrase or '',
        }

    def _unwrap(self, payload: Any, endpoint: str) -> Any:
        code, message = self._error_details(payload)
        if code != SUCCESS_CODE:
            raise self._rejection(code, message or 'request rejected', endpoint)
        return payload.get('data') or []

    async def _fetch_balance(self) -> List[BalanceInfo]:
        data = await self._request('GET', '/api/v5/account/balance')
        if not data:
            return []
        return [
            BalanceInfo.from_free_and_locked(detail['ccy'], detail.get('availBal'), detail.get('frozenBal'))
            for detail in data[0].get('details', [])
        ]

    async def _place_order(self, request: OrderRequest) -> OrderResponse:
        params: Dict[str, Any] = {
            'instId': request.symbol,
            'tdMode': 'cash',
            'side': request.side.value.lower(),
            'ordType': request.order_type.value.lower(),
            'sz': request.quantity,
        }
        if request.order_type is OrderType.LIMIT:
            params['px'] = request.limit_price

        endpoint = '/api/v5/trade/order'
        data = await self._request('POST', endpoint, params)
        if not data:
            raise self._rejection(None, 'empty order acknowledgement', endpoint)
        ack = data[0]
        if str(ack.get('sCode', SUCCESS_CODE)) != SUCCESS_CODE:
            raise self._rejection(str(ack.get('sCode')), str(ack.get('sMsg', 'order rejected')), endpoint)

        return OrderResponse(
            order_id=str(ack['ordId']),
            symbol=request.symbol,
            side=request.side,
            quantity=request.quantity,
            price=request.limit_price or ZERO,
            status=OrderStatus.PENDING,
            timestamp=self.timestamp_ms(),
            exchange=self.exchange,
        )


__all__ = ['OkxClient', 'iso_timestamp']
