"""Exchange client lookup keyed by exchange identifier."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Type

from ..config.exchange_config import Exchange, ExchangeCredentials
from .base import ExchangeClient
from .binance import BinanceClient
from .bitget import BitgetClient
from .bybit import BybitClient
from .huobi import HuobiClient
from .kucoin import KucoinClient
from .okx import OkxClient
from .transport import HttpTransport

_REGISTRY: Dict[Exchange, Type[ExchangeClient]] = {}


def register_exchange_client(client_cls: Type[ExchangeClient]) -> Type[ExchangeClient]:
    """Register (or replace) the client used for ``client_cls.exchange``."""
    _REGISTRY[client_cls.exchange] = client_cls
    return client_cls


for _client_cls in (BinanceClient, BybitClient, BitgetClient, KucoinClient, OkxClient, HuobiClient):
    register_exchange_client(_client_cls)


def client_class(exchange: Exchange | str) -> Type[ExchangeClient]:
    exchange = Exchange.parse(exchange)
    try:
        return _REGISTRY[exchange]
    except KeyError:
        raise ValueError(f'No client registered for {exchange.value}') from None


def supported_exchanges() -> List[Exchange]:
    return sorted(_REGISTRY, key=lambda exchange: exchange.value)


def create_exchange_client(
    credentials: ExchangeCredentials,
    transport: Optional[HttpTransport] = None,
    **kwargs: Any,
) -> ExchangeClient:
    return client_class(credentials.exchange)(credentials, transport, **kwargs)


__all__ = ['client_class', 'create_exchange_client', 'register_exchange_client', 'supported_exchanges']
