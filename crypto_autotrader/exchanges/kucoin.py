"""KuCoin spot client."""

from __future__ import annotations

import uuid
from typing import Any, Dict, List

from ..config.exchange_config import Exchange
from .base import PrehashSigningClient, hmac_sha256_base64
from .models import ZERO, BalanceInfo, OrderRequest, OrderResponse, OrderStatus, OrderType

SUCCESS_CODE = '200000'


class KucoinClient(PrehashSigningClient):
    """API key version 2: the passphrase is sent HMAC-encrypted with the secret.

    Spot orders cannot open a short, so reduce-only requests need no flag.
    """

    exchange = Exchange.KUCOIN
    auth_error_codes = frozenset({'400001', '400002', '400003', '400004', '400005', '400006', '400007'})

    def encrypted_passphrase(self) -> str:
        return hmac_sha256_base64(self._credentials.secret_key, self._credentials.passphrase or '')

    def auth_headers(self, timestamp: str, signature: str) -> Dict[str, str]:
        return {
            'KC-API-KEY': self._credentials.api_key,
            'KC-API-SIGN': signature,
            'KC-API-TIMESTAMP': timestamp,
            'KC-API-PASSPHRASE': self.encrypted_passphrase(),
            'KC-API-KEY-VERSION': '2',
        }

    def _unwrap(self, payload: Any, endpoint: str) -> Any:
        code, message = self._error_details(payload)
        if code != SUCCESS_CODE:
            raise self._rejection(code, message or 'request rejected', endpoint)
        return payload.get('data')

    async def _fetch_balance(self) -> List[BalanceInfo]:
        data = await self._request('GET', '/api/v1/accounts', {'type': 'trade'})
        return [
            BalanceInfo.from_free_and_total(account['currency'], account.get('available'), account.get('balance'))
            for account in data or []
            if account.get('type') == 'trade'
        ]

    async def _place_order(self, request: OrderRequest) -> OrderResponse:
        params: Dict[str, Any] = {
            'clientOid': uuid.uuid4().hex,
            'symbol': request.symbol,
            'side': request.side.value.lower(),
            'type': request.order_type.value.lower(),
            'size': request.quantity,
        }
        if request.order_type is OrderType.LIMIT:
            params['price'] = request.limit_price

        data = await self._request('POST', '/api/v1/orders', params)

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


__all__ = ['KucoinClient']
