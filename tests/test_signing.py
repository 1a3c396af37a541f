"""Golden-value signature tests for every exchange signing scheme.

Expected values were computed independently with ``openssl dgst -sha256 -hmac``.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal

from crypto_autotrader.config import Exchange, ExchangeCredentials
from crypto_autotrader.exchanges import (
    BinanceClient,
    BitgetClient,
    BybitClient,
    HttpResponse,
    HuobiClient,
    KucoinClient,
    OkxClient,
    OrderRequest,
)
from crypto_autotrader.exchanges.base import hmac_sha256_base64, hmac_sha256_hex
from crypto_autotrader.exchanges.okx import iso_timestamp

FIXED_CLOCK = lambda: 1_700_000_000.0  # noqa: E731


class RecordingTransport:
    def __init__(self, payload) -> None:
        self.payload = payload
        self.calls: list[dict] = []

    async def request(self, method, url, *, body=None, headers=None):
        self.calls.append({'method': method, 'url': url, 'body': body, 'headers': dict(headers or {})})
        return HttpResponse(status=200, payload=self.payload)


def test_binance_documented_example_signature() -> None:
    credentials = ExchangeCredentials(
        Exchange.BINANCE,
        api_key='vmPUZE6mv9SD5VNHk4HlWFsOr6aKE2zvsw0MuIgwCIPy6utIco14y7Ju91duEh8A',
        secret_key='NhqPtmdSJYdKjVHjA7PZj4Mge3R5YNiP1e3UZjInClVN65XAbvqqM6A7H5fATj0j',
    )
    client = BinanceClient(credentials, RecordingTransport({}))
    query = 'symbol=LTCBTC&side=BUY&type=LIMIT&timeInForce=GTC&quantity=1&price=0.1&recvWindow=5000&timestamp=1499827319559'

    assert client.sign(query) == 'c8db56825ae71d6d79447849e617115f4a920fa2acdcab2b053c4b2838bd6b71'


def test_binance_order_query_is_signed_in_parameter_order() -> None:
    transport = RecordingTransport({'orderId': 1, 'status': 'NEW', 'price': '0', 'avgPrice': '0'})
    credentials = ExchangeCredentials(Exchange.BINANCE, api_key='binance-key', secret_key='binance-secret')
    client = BinanceClient(credentials, transport, clock=FIXED_CLOCK)
    request = OrderRequest(symbol='BTCUSDT', side='BUY', quantity=Decimal('0.01'))

    asyncio.run(client.place_order(request))

    call = transport.calls[0]
    assert call['method'] == 'POST'
    assert call['url'] == (
        'https://fapi.binance.com/fapi/v1/order?symbol=BTCUSDT&side=BUY&type=MARKET&quantity=0.01'
        '&timestamp=1700000000000'
        '&signature=cdda27c261bdfdf50152c98f4f147f86864449f5f766182ec50f57ce2abf9140'
    )
    assert call['headers']['X-MBX-APIKEY'] == 'binance-key'


def test_bybit_get_signs_query_string() -> None:
    transport = RecordingTransport({'retCode': 0, 'result': {'list': []}})
    credentials = ExchangeCredentials(Exchange.BYBIT, api_key='bybit-key', secret_key='bybit-secret')
    client = BybitClient(credentials, transport, clock=FIXED_CLOCK)

    asyncio.run(client.get_balance())

    call = transport.calls[0]
    assert call['url'] == 'https://api.bybit.com/v5/account/wallet-balance?accountType=UNIFIED'
    assert call['headers']['X-BAPI-TIMESTAMP'] == '1700000000000'
    assert call['headers']['X-BAPI-RECV-WINDOW'] == '5000'
    assert call['headers']['X-BAPI-SIGN'] == 'cc6beab87ff58b6f05612e03316846ad09d6336bda1a3c292570b580f2696d48'


def test_bybit_post_signs_the_exact_body_it_sends() -> None:
    transport = RecordingTransport({'retCode': 0, 'result': {'orderId': 'abc'}})
    credentials = ExchangeCredentials(Exchange.BYBIT, api_key='bybit-key', secret_key='bybit-secret')
    client = BybitClient(credentials, transport, clock=FIXED_CLOCK)

    asyncio.run(client.place_order(OrderRequest(symbol='BTCUSDT', side='BUY', quantity='0.01')))

    call = transport.calls[0]
    assert call['body'] == '{"category":"linear","symbol":"BTCUSDT","side":"Buy","orderType":"Market","qty":"0.01"}'
    assert call['headers']['X-BAPI-SIGN'] == 'd73df7fccab9d2c154e14ba566873f0c8683bbed5293a85318dfdd338dfcb51f'


def test_kucoin_signs_path_with_query_and_encrypts_passphrase() -> None:
    transport = RecordingTransport({'code': '200000', 'data': []})
    credentials = ExchangeCredentials(
        Exchange.KUCOIN, api_key='kucoin-key', secret_key='prehash-secret', passphrase='kucoin-pass'
    )
    client = KucoinClient(credentials, transport, clock=FIXED_CLOCK)

    asyncio.run(client.get_balance())

    headers = transport.calls[0]['headers']
    assert transport.calls[0]['url'] == 'https://api.kucoin.com/api/v1/accounts?type=trade'
    assert headers['KC-API-SIGN'] == 'yiR7JQRUgFGYf/hMaaaEc3AHRAi7EgY9lyvSz+RasEc='
    assert headers['KC-API-PASSPHRASE'] == '24Ry9CGx5IaWwdtDv1HnPGhbSkf5r+uZQmwYuCCWF9c='
    assert headers['KC-API-KEY-VERSION'] == '2'
    assert headers['KC-API-TIMESTAMP'] == '1700000000000'


def test_bitget_signature() -> None:
    transport = RecordingTransport({'code': '00000', 'data': []})
    credentials = ExchangeCredentials(
        Exchange.BITGET, api_key='bitget-key', secret_key='prehash-secret', passphrase='bitget-pass'
    )
    client = BitgetClient(credentials, transport, clock=FIXED_CLOCK)

    asyncio.run(client.get_balance())

    headers = transport.calls[0]['headers']
    assert headers['ACCESS-SIGN'] == 'BNV6/UatGijjR7XxGVM67xLxNOXn2RHtlR+BLSj70+I='
    assert headers['ACCESS-PASSPHRASE'] == 'bitget-pass'


def test_okx_signature_uses_iso_timestamp() -> None:
    transport = RecordingTransport({'code': '0', 'data': []})
    credentials = ExchangeCredentials(Exchange.OKX, api_key='okx-key', secret_key='prehash-secret', passphrase='okx-pass')
    client = OkxClient(credentials, transport, clock=FIXED_CLOCK)

    asyncio.run(client.get_balance())

    headers = transport.calls[0]['headers']
    assert headers['OK-ACCESS-TIMESTAMP'] == '2023-11-14T22:13:20.000Z'
    assert headers['OK-ACCESS-SIGN'] == '4AEDfYg2N438LV+1ih+PCzeX3Nr1rUMcakO0R37F/7s='


def test_okx_iso_timestamp_keeps_milliseconds() -> None:
    assert iso_timestamp(1_700_000_000_123) == '2023-11-14T22:13:20.123Z'


def test_huobi_signature_version_two() -> None:
    credentials = ExchangeCredentials(Exchange.HUOBI, api_key='huobi-key', secret_key='huobi-secret')
    client = HuobiClient(credentials, RecordingTransport({}), clock=FIXED_CLOCK)

    canonical, signature = client.signed_query('GET', '/v1/account/accounts')

    assert canonical == (
        'AccessKeyId=huobi-key&SignatureMethod=HmacSHA256&SignatureVersion=2&Timestamp=2023-11-14T22%3A13%3A20'
    )
    assert signature == 'C9GYxcdBOPlStTdd9RBnkYtxiYR/zZXwWejRoq49GkU='


def test_huobi_request_appends_encoded_signature() -> None:
    transport = RecordingTransport({'status': 'ok', 'data': []})
    credentials = ExchangeCredentials(Exchange.HUOBI, api_key='huobi-key', secret_key='huobi-secret')
    client = HuobiClient(credentials, transport, clock=FIXED_CLOCK)

    asyncio.run(client._request('GET', '/v1/account/accounts'))

    assert transport.calls[0]['url'].endswith('&Signature=C9GYxcdBOPlStTdd9RBnkYtxiYR%2FzZXwWejRoq49GkU%3D')


def test_hmac_helpers_agree_on_digest() -> None:
    hex_digest = hmac_sha256_hex('bybit-secret', '1700000000000bybit-key5000accountType=UNIFIED')
    assert hex_digest == 'cc6beab87ff58b6f05612e03316846ad09d6336bda1a3c292570b580f2696d48'
    assert len(hmac_sha256_base64('k', 'm')) == 44
