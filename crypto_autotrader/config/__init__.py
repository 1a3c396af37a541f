"""Configuration utilities for the auto-trader."""

from .config import Settings, load_environment, load_settings
from .exchange_config import BASE_URLS, Exchange, ExchangeCredentials
from .trading_config import AutoTradingConfig

__all__ = [
    'AutoTradingConfig',
    'BASE_URLS',
    'Exchange',
    'ExchangeCredentials',
    'Settings',
    'load_environment',
    'load_settings',
]
