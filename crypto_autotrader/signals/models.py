"""Trading signal contract consumed by the auto-trading engine."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional


class SignalAction(str, enum.Enum):
    BUY = 'BUY'
    SELL = 'SELL'
    HOLD = 'HOLD'


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TradeSignal:
    """Scored recommendation for one symbol.

    ``confidence`` is on a 0-1 scale; :attr:`confidence_percent` is the only
    conversion to the 0-100 scale used by ``AutoTradingConfig.min_confidence``.
    """

    symbol: str
    action: SignalAction
    confidence: float
    technical_score: float = 50.0
    on_chain_score: float = 50.0
    sentiment_score: float = 50.0
    macro_score: float = 50.0
    reasoning: str = ''
    timestamp: int = field(default_factory=_now_ms)
    score: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, 'symbol', self.symbol.strip().upper())
        object.__setattr__(self, 'action', SignalAction(str(getattr(self.action, 'value', self.action)).upper()))
        if not 0 <= float(self.confidence) <= 1:
            raise ValueError(f'Signal confidence must be within [0, 1], got {self.confidence}')

    @property
    def confidence_percent(self) -> Decimal:
        return Decimal(str(self.confidence)) * 100


__all__ = ['SignalAction', 'TradeSignal']
