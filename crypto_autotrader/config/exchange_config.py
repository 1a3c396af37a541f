"""Exchange identifiers, endpoints and API credentials."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional


class Exchange(str, enum.Enum):
    BINANCE = 'binance'
    BYBIT = 'bybit'
    BITGET = 'bitget'
    KUCOIN = 'kucoin'
    OKX = 'okx'
    HUOBI = 'huobi'

    @classmethod
    def parse(cls, value: 'Exchange | str') -> 'Exchange':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f'Unsupported exchange: {value}') from None


BASE_URLS: Mapping[Exchange, str] = {
    Exchange.BINANCE: 'https://fapi.binance.com',
    Exchange.BYBIT: 'https://api.bybit.com',
    Exchange.BITGET: 'https://api.bitget.com',
    Exchange.KUCOIN: 'https://api.kucoin.com',
    Exchange.OKX: 'https://www.okx.com',
    Exchange.HUOBI: 'https://api.huobi.pro',
}

PASSPHRASE_EXCHANGES = frozenset({Exchange.OKX, Exchange.BITGET, Exchange.KUCOIN})


@dataclass(frozen=True)
class ExchangeCredentials:
    """API key material for one exchange account.

    The secret and passphrase are excluded from ``repr`` so the object can be
    logged or put in an error message without leaking them.
    """

    exchange: Exchange
    api_key: str
    secret_key: str = field(repr=False)
    passphrase: Optional[str] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, 'exchange', Exchange.parse(self.exchange))
        if not self.api_key or not self.secret_key:
            raise ValueError(f'{self.exchange.value} credentials require an API key and a secret key')
        if self.exchange in PASSPHRASE_EXCHANGES and not self.passphrase:
            raise ValueError(f'{self.exchange.value} credentials require a passphrase')

    @property
    def base_url(self) -> str:
        return BASE_URLS[self.exchange]

    @property
    def secrets(self) -> tuple[str, ...]:
        return tuple(value for value in (self.secret_key, self.passphrase) if value)

    @classmethod
    def from_env(
        cls,
        exchange: Exchange | str,
        environ: Mapping[str, str] | None = None,
    ) -> 'ExchangeCredentials':
        exchange = Exchange.parse(exchange)
        env = environ if environ is not None else os.environ
        prefix = exchange.name
        return cls(
            exchange=exchange,
            api_key=env.get(f'{prefix}_API_KEY', ''),
            secret_key=env.get(f'{prefix}_SECRET_KEY', ''),
            passphrase=env.get(f'{prefix}_PASSPHRASE') or None,
        )


__all__ = ['BASE_URLS', 'Exchange', 'ExchangeCredentials', 'PASSPHRASE_EXCHANGES']
