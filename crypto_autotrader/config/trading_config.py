"""Auto-trading policy configuration."""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, FrozenSet, Iterable, Mapping

from .config import parse_bool

_CAMEL_TO_FIELD = {
    'enabled': 'enabled',
    'maxPositionSize': 'max_position_size',
    'maxLeverage': 'max_leverage',
    'stopLossPercent': 'stop_loss_percent',
    'takeProfitPercent': 'take_profit_percent',
    'riskRewardRatio': 'risk_reward_ratio',
    'maxOpenPositions': 'max_open_positions',
    'minConfidence': 'min_confidence',
    'tradingPairs': 'trading_pairs',
    'riskPerTradePercent': 'risk_per_trade_percent',
}
_FIELD_TO_CAMEL = {value: key for key, value in _CAMEL_TO_FIELD.items()}

_DECIMAL_FIELDS = (
    'max_position_size',
    'stop_loss_percent',
    'take_profit_percent',
    'risk_reward_ratio',
    'min_confidence',
    'risk_per_trade_percent',
)


def _to_decimal(name: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f'{name} must be numeric')
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f'{name} must be numeric, got {value!r}') from None
    if not result.is_finite():
        raise ValueError(f'{name} must be finite')
    return result


def _to_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f'{name} must be an integer')
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f'{name} must be an integer, got {value!r}') from None
    if not number.is_finite() or number != number.to_integral_value():
        raise ValueError(f'{name} must be an integer, got {value!r}')
    return int(number)


def _to_pairs(value: Any) -> FrozenSet[str]:
    if isinstance(value, str):
        value = value.split(',')
    elif isinstance(value, Mapping) or not isinstance(value, Iterable):
        raise ValueError(f'trading_pairs must be a list of symbols, got {value!r}')
    return frozenset(str(item).strip().upper() for item in value if str(item).strip())


@dataclass(frozen=True)
class AutoTradingConfig:
    """Risk policy read by every signal evaluation.

    ``min_confidence`` is on a 0-100 scale. ``risk_per_trade_percent`` is the
    share of the account balance committed to one auto-traded position,
    capped by ``max_position_size`` (quote currency, USD).
    """

    enabled: bool = False
    max_position_size: Decimal = Decimal('1000')
    max_leverage: int = 5
    stop_loss_percent: Decimal = Decimal('2')
    take_profit_percent: Decimal = Decimal('5')
    risk_reward_ratio: Decimal = Decimal('0.4')
    max_open_positions: int = 5
    min_confidence: Decimal = Decimal('60')
    trading_pairs: FrozenSet[str] = field(default_factory=lambda: frozenset({'BTCUSDT', 'ETHUSDT'}))
    risk_per_trade_percent: Decimal = Decimal('2')

    def __post_init__(self) -> None:
        for name in _DECIMAL_FIELDS:
            object.__setattr__(self, name, _to_decimal(name, getattr(self, name)))
        object.__setattr__(self, 'max_leverage', _to_int('max_leverage', self.max_leverage))
        object.__setattr__(self, 'max_open_positions', _to_int('max_open_positions', self.max_open_positions))
        object.__setattr__(self, 'trading_pairs', _to_pairs(self.trading_pairs))
        object.__setattr__(self, 'enabled', parse_bool(self.enabled))
        self._validate()

    def _validate(self) -> None:
        if self.max_position_size <= 0:
            raise ValueError('max_position_size must be positive')
        if self.max_leverage < 1:
            raise ValueError('max_leverage must be at least 1')
        if not 0 < self.stop_loss_percent < 100:
            raise ValueError('stop_loss_percent must be between 0 and 100')
        if self.take_profit_percent <= 0:
            raise ValueError('take_profit_percent must be positive')
        if self.risk_reward_ratio <= 0:
            raise ValueError('risk_reward_ratio must be positive')
        if self.max_open_positions < 1:
            raise ValueError('max_open_positions must be at least 1')
        if not 0 <= self.min_confidence <= 100:
            raise ValueError('min_confidence must be between 0 and 100')
        if not 0 < self.risk_per_trade_percent <= 100:
            raise ValueError('risk_per_trade_percent must be between 0 and 100')

    def merged(self, partial: Mapping[str, Any]) -> 'AutoTradingConfig':
        """Return a copy with only the provided fields overwritten."""
        if not isinstance(partial, Mapping):
            raise ValueError(f'Auto-trading settings must be a mapping, got {type(partial).__name__}')
        changes: Dict[str, Any] = {}
        for key, value in partial.items():
            name = _CAMEL_TO_FIELD.get(key, key)
            if name not in _FIELD_TO_CAMEL:
                raise ValueError(f'Unknown auto-trading setting: {key}')
            if value is None:
                continue
            changes[name] = value
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        for item in dataclasses.fields(self):
            value = getattr(self, item.name)
            if item.name == 'trading_pairs':
                value = sorted(value)
            payload[_FIELD_TO_CAMEL[item.name]] = value
        return payload

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> 'AutoTradingConfig':
        env = environ if environ is not None else os.environ
        overrides: Dict[str, Any] = {}
        for name in _FIELD_TO_CAMEL:
            raw = env.get(f'AUTO_TRADING_{name.upper()}')
            if raw is not None and raw.strip():
                overrides[name] = raw
        return cls(**overrides)


__all__ = ['AutoTradingConfig']
