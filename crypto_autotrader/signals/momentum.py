"""Price-momentum signal source."""

from __future__ import annotations

from collections import deque
from decimal import Decimal
from typing import Deque, Dict, Optional

from .models import SignalAction, TradeSignal


class MomentumSignalSource:
    """Turns price ticks into BUY/SELL/HOLD signals.

    The latest price is compared with the moving average of the last
    ``window`` ticks; deviations beyond ``threshold`` produce a directional
    signal whose confidence reaches 1 at ``saturation``.
    """

    def __init__(self, window: int = 5, threshold: float = 0.002, saturation: float = 0.01) -> None:
        if not 0 < threshold < saturation:
            raise ValueError('threshold must be positive and below saturation')
        self.window = window
        self.threshold = threshold
        self.saturation = saturation
        self._prices: Dict[str, Deque[float]] = {}

    def on_price(self, symbol: str, price: Decimal | float) -> None:
        history = self._prices.setdefault(symbol.upper(), deque(maxlen=self.window))
        history.append(float(price))

    async def get_latest_signal(self, symbol: str) -> Optional[TradeSignal]:
        history = self._prices.get(symbol.upper())
        if not history or len(history) < self.window:
            return None
        average = sum(history) / len(history)
        delta = (history[-1] - average) / average if average else 0.0
        if abs(delta) <= self.threshold:
            return TradeSignal(
                symbol=symbol,
                action=SignalAction.HOLD,
                confidence=0.5,
                reasoning=f'Price within {self.threshold:.2%} of its {self.window}-tick average',
            )
        action = SignalAction.BUY if delta > 0 else SignalAction.SELL
        confidence = min(1.0, abs(delta) / self.saturation)
        return TradeSignal(
            symbol=symbol,
            action=action,
            confidence=confidence,
            technical_score=50.0 + 50.0 * confidence * (1 if delta > 0 else -1),
            reasoning=f'Price {delta:+.2%} from its {self.window}-tick average',
        )


__all__ = ['MomentumSignalSource']
