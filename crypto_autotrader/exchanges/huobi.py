"""Huobi (HTX) spot client: balances only."""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote, urlsplit

from ..config.exchange_config import Exchange
from .base import ExchangeClient, hmac_sha256_base64, wire_value
from .models import ZERO, BalanceInfo, to_decimal


def huobi_timestamp(epoch_ms: int) -> str:
    """UTC ``YYYY-MM-DDThh:mm:ss`` as required by signature version 2."""
    return datetime.fromtimestamp(epoch_ms // 1000, tz=timezone.utc).strftime('%Y-%m-%dT%H:%M:%S')


def encode_sorted(params: Mapping[str, str]) -> str:
    return '&'.join(f'{key}={quote(params[key], safe="")}' for key in sorted(params))


class HuobiClient(ExchangeClient):
    """Signature version 2: ``METHOD\\nhost\\npath\\nsorted-encoded-params``, base64.

    Order placement is not wired for Huobi.
    """

    exchange = Exchange.HUOBI
    supports_orders = False
    auth_error_codes = frozenset({
        'api-signature-not-valid',
        'api-signature-check-failed',
        'invalid-access-key',
        'api-key-invalid',
    })

    @property
    def host(self) -> str:
        return urlsplit(self.base_url).netloc.lower()

    def signed_query(self, method: str, path: str, params: Optional[Mapping[str, Any]] = None) -> Tuple[str, str]:
        """Return the canonical parameter string and its signature."""
        request_params = {key: wire_value(value) for key, value in (params or {}).items()}
        request_params.update({
            'AccessKeyId': self._credentials.api_key,
            'SignatureMethod': 'HmacSHA256',
            'SignatureVersion': '2',
            'Timestamp': huobi_timestamp(self.timestamp_ms()),
        })
        canonical = encode_sorted(request_params)
        payload = f'{method}\n{self.host}\n{path}\n{canonical}'
        return canonical, hmac_sha256_base64(self._credentials.secret_key, payload)

    async def _request(self, method: str, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        canonical, signature = self.signed_query(method, path, params)
        url = f'{self.base_url}{path}?{canonical}&Signature={quote(signature, safe="")}'
        return await self._send(method, path, url)

    def _error_details(self, payload: Any):
        if isinstance(payload, Mapping) and 'status' in payload:
            return payload.get('err-code'), str(payload.get('err-msg', ''))
        return super()._error_details(payload)

    def _unwrap(self, payload: Any, endpoint: str) -> Any:
        if not isinstance(payload, Mapping) or payload.get('status') != 'ok':
            code, message = self._error_details(payload)
            raise self._rejection(code, message or 'request rejected', endpoint)
        return payload.get('data')

    async def _account_id(self) -> str:
        accounts = await self._request('GET', '/v1/account/accounts') or []
        if not accounts:
            raise self._rejection(None, 'no accounts available', '/v1/account/accounts')
        spot = next((account for account in accounts if account.get('type') == 'spot'), accounts[0])
        return str(spot['id'])

    async def _fetch_balance(self) -> List[BalanceInfo]:
        account_id = await self._account_id()
        data = await self._request('GET', f'/v1/account/accounts/{account_id}/balance')
        totals: Dict[str, Dict[str, Any]] = OrderedDict()
        for entry in (data or {}).get('list', []):
            bucket = totals.setdefault(entry['currency'].upper(), {'free': ZERO, 'locked': ZERO})
            key = 'locked' if entry.get('type') == 'frozen' else 'free'
            bucket[key] += to_decimal(entry.get('balance'))
        return [
            BalanceInfo.from_free_and_locked(asset, amounts['free'], amounts['locked'])
            for asset, amounts in totals.items()
        ]


__all__ = ['HuobiClient', 'encode_sorted', 'huobi_timestamp']
