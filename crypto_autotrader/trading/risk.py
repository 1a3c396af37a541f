"""Risk gates, position sizing and protective levels."""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal
from typing import Iterable, Tuple

from ..config.trading_config import AutoTradingConfig
from ..exchanges.models import ZERO, OrderSide
from ..signals.models import SignalAction, TradeSignal
from .models import TradeExecution, TradingStats

QUANTITY_STEP = Decimal('0.00001')
HUNDRED = Decimal('100')


class RiskManager:
    """Stateless policy helpers; the engine supplies the config and registry counts."""

    def __init__(self, quantity_step: Decimal = QUANTITY_STEP) -> None:
        self.quantity_step = quantity_step

    def validate_signal(
        self,
        signal: TradeSignal,
        config: AutoTradingConfig,
        open_count: int,
        symbol_is_open: bool,
    ) -> Tuple[bool, str]:
        """Apply the gates in order; the first failure wins."""
        if not config.enabled:
            return False, 'Auto-trading disabled'
        if signal.confidence_percent < config.min_confidence:
            return False, f'Confidence {signal.confidence_percent}% below minimum {config.min_confidence}%'
        if signal.symbol not in config.trading_pairs:
            return False, f'{signal.symbol} is not an enabled trading pair'
        if signal.action is SignalAction.HOLD:
            return False, 'HOLD signal'
        if open_count >= config.max_open_positions:
            return False, f'Maximum open positions reached ({config.max_open_positions})'
        if symbol_is_open:
            return False, f'Trade already open for {signal.symbol}'
        return True, 'OK'

    def position_size(self, balance: Decimal, price: Decimal, config: AutoTradingConfig) -> Decimal:
        """Quantity for ``risk_per_trade_percent`` of ``balance``, capped at ``max_position_size``."""
        if price <= 0 or balance <= 0:
            return ZERO
        notional = min(balance * config.risk_per_trade_percent / HUNDRED, config.max_position_size)
        return (notional / price).quantize(self.quantity_step, rounding=ROUND_DOWN)

    def protective_levels(
        self, side: OrderSide, entry_price: Decimal, config: AutoTradingConfig
    ) -> Tuple[Decimal, Decimal]:
        """Return ``(stop_loss, take_profit)`` for a position entered at ``entry_price``."""
        stop = config.stop_loss_percent / HUNDRED
        target = config.take_profit_percent / HUNDRED
        if side is OrderSide.BUY:
            return entry_price * (1 - stop), entry_price * (1 + target)
        return entry_price * (1 + stop), entry_price * (1 - target)

    @staticmethod
    def realized_pnl(side: OrderSide, entry_price: Decimal, exit_price: Decimal, quantity: Decimal) -> Decimal:
        if side is OrderSide.BUY:
            return (exit_price - entry_price) * quantity
        return (entry_price - exit_price) * quantity

    @staticmethod
    def stop_triggered(trade: TradeExecution, price: Decimal) -> str | None:
        """Name the protective level ``price`` has crossed, if any."""
        if trade.action is OrderSide.BUY:
            if price <= trade.stop_loss:
                return 'stop-loss'
            if price >= trade.take_profit:
                return 'take-profit'
        else:
            if price >= trade.stop_loss:
                return 'stop-loss'
            if price <= trade.take_profit:
                return 'take-profit'
        return None


def summarize(history: Iterable[TradeExecution]) -> TradingStats:
    trades = list(history)
    total = len(trades)
    if total == 0:
        return TradingStats()
    pnls = [trade.pnl for trade in trades if trade.pnl is not None]
    winning = sum(1 for pnl in pnls if pnl > 0)
    losing = sum(1 for pnl in pnls if pnl < 0)
    total_pnl = sum(pnls, ZERO)
    return TradingStats(
        total_trades=total,
        winning_trades=winning,
        losing_trades=losing,
        total_pnl=total_pnl,
        avg_pnl=total_pnl / total,
        win_rate=Decimal(winning) / total * HUNDRED,
    )


__all__ = ['QUANTITY_STEP', 'RiskManager', 'summarize']
