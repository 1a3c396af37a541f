"""Exchange integrations exposed to the rest of the system."""

from .base import ExchangeClient, PrehashSigningClient
from .binance import BinanceClient
from .bitget import BitgetClient
from .bybit import BybitClient
from .errors import (
    ConnectorError,
    ConnectorTransportError,
    CredentialError,
    DataUnavailableError,
    ExchangeRejectedError,
    InvalidOrderError,
    UnexpectedResponseError,
    UnsupportedOperationError,
)
from .huobi import HuobiClient
from .kucoin import KucoinClient
from .models import (
    BalanceInfo,
    OrderRequest,
    OrderResponse,
    OrderSide,
    OrderStatus,
    OrderType,
    PositionInfo,
)
from .okx import OkxClient
from .registry import client_class, create_exchange_client, register_exchange_client, supported_exchanges
from .transport import AiohttpTransport, HttpResponse, HttpTransport

__all__ = [
    'AiohttpTransport',
    'BalanceInfo',
    'BinanceClient',
    'BitgetClient',
    'BybitClient',
    'ConnectorError',
    'ConnectorTransportError',
    'CredentialError',
    'DataUnavailableError',
    'ExchangeClient',
    'ExchangeRejectedError',
    'HttpResponse',
    'HttpTransport',
    'HuobiClient',
    'InvalidOrderError',
    'KucoinClient',
    'OkxClient',
    'OrderRequest',
    'OrderResponse',
    'OrderSide',
    'OrderStatus',
    'OrderType',
    'PositionInfo',
    'PrehashSigningClient',
    'UnexpectedResponseError',
    'UnsupportedOperationError',
    'client_class',
    'create_exchange_client',
    'register_exchange_client',
    'supported_exchanges',
]
