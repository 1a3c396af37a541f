"""Adapters for the price, balance, signal and credential collaborators."""

from .price_stream import PriceStream, PriceTick, StreamingPriceCache
from .providers import (
    BalanceProvider,
    BinanceTickerPriceProvider,
    ConnectorBalanceProvider,
    CredentialStore,
    EnvironmentCredentialStore,
    InMemoryCredentialStore,
    PriceProvider,
    SignalProvider,
)

__all__ = [
    'BalanceProvider',
    'BinanceTickerPriceProvider',
    'ConnectorBalanceProvider',
    'CredentialStore',
    'EnvironmentCredentialStore',
    'InMemoryCredentialStore',
    'PriceProvider',
    'PriceStream',
    'PriceTick',
    'SignalProvider',
    'StreamingPriceCache',
]
