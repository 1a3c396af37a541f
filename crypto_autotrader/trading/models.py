"""Trade lifecycle records owned by the auto-trading engine."""

from __future__ import annotations

import enum
import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

from ..exchanges.models import ZERO, OrderSide


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_trade_id() -> str:
    return uuid.uuid4().hex


class TradeStatus(str, enum.Enum):
    PENDING = 'PENDING'
    EXECUTED = 'EXECUTED'
    FAILED = 'FAILED'
    CLOSED = 'CLOSED'


@dataclass
class TradeExecution:
    """One position opened by the engine, from entry to close."""

    symbol: str
    action: OrderSide
    quantity: Decimal
    entry_price: Decimal
    stop_loss: Decimal
    take_profit: Decimal
    leverage: int = 1
    id: str = field(default_factory=_new_trade_id)
    executed_at: int = field(default_factory=_now_ms)
    order_id: Optional[str] = None
    status: TradeStatus = TradeStatus.PENDING
    pnl: Optional[Decimal] = None
    closed_at: Optional[int] = None
    exit_price: Optional[Decimal] = None

    @property
    def is_open(self) -> bool:
        return self.status is TradeStatus.EXECUTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'symbol': self.symbol,
            'action': self.action.value,
            'quantity': self.quantity,
            'entryPrice': self.entry_price,
            'stopLoss': self.stop_loss,
            'takeProfit': self.take_profit,
            'leverage': self.leverage,
            'executedAt': self.executed_at,
            'orderId': self.order_id,
            'status': self.status.value,
            'pnl': self.pnl,
            'closedAt': self.closed_at,
            'exitPrice': self.exit_price,
        }


@dataclass(frozen=True)
class TradingStats:
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    total_pnl: Decimal = ZERO
    avg_pnl: Decimal = ZERO
    win_rate: Decimal = ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalTrades': self.total_trades,
            'winningTrades': self.winning_trades,
            'losingTrades': self.losing_trades,
            'totalPnL': self.total_pnl,
            'avgPnL': self.avg_pnl,
            'winRate': self.win_rate,
        }


__all__ = ['TradeExecution', 'TradeStatus', 'TradingStats']
