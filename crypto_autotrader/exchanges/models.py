"""Exchange-neutral order, balance and position shapes."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from ..config.exchange_config import Exchange
from .errors import InvalidOrderError

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """Parse an exchange numeric field without going through float."""
    if value is None or value == '':
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f'Not a decimal value: {value!r}') from None


def format_decimal(value: Decimal) -> str:
    """Plain notation without exponent or trailing zeros, as exchanges expect."""
    return format(value.normalize(), 'f')


class OrderSide(str, enum.Enum):
    BUY = 'BUY'
    SELL = 'SELL'

    @property
    def opposite(self) -> 'OrderSide':
        return OrderSide.SELL if self is OrderSide.BUY else OrderSide.BUY


class OrderType(str, enum.Enum):
    MARKET = 'MARKET'
    LIMIT = 'LIMIT'


class OrderStatus(str, enum.Enum):
    PENDING = 'PENDING'
    OPEN = 'OPEN'
    PARTIALLY_FILLED = 'PARTIALLY_FILLED'
    FILLED = 'FILLED'
    CANCELLED = 'CANCELLED'
    REJECTED = 'REJECTED'
    EXPIRED = 'EXPIRED'

    @classmethod
    def normalize(cls, native: Optional[str]) -> 'OrderStatus':
        if not native:
            return cls.PENDING
        return _NATIVE_STATUS.get(str(native).replace(' ', '').upper(), cls.PENDING)


_NATIVE_STATUS = {
    'NEW': OrderStatus.OPEN,
    'OPEN': OrderStatus.OPEN,
    'LIVE': OrderStatus.OPEN,
    'SUBMITTED': OrderStatus.OPEN,
    'CREATED': OrderStatus.PENDING,
    'PENDING': OrderStatus.PENDING,
    'PARTIALLY_FILLED': OrderStatus.PARTIALLY_FILLED,
    'PARTIALLYFILLED': OrderStatus.PARTIALLY_FILLED,
    'PARTIAL-FILLED': OrderStatus.PARTIALLY_FILLED,
    'FILLED': OrderStatus.FILLED,
    'FULL_FILL': OrderStatus.FILLED,
    'CANCELED': OrderStatus.CANCELLED,
    'CANCELLED': OrderStatus.CANCELLED,
    'REJECTED': OrderStatus.REJECTED,
    'EXPIRED': OrderStatus.EXPIRED,
}


@dataclass(frozen=True)
class OrderRequest:
    symbol: str
    side: OrderSide
    quantity: Decimal
    price: Optional[Decimal] = None
    order_type: OrderType = OrderType.MARKET
    leverage: Optional[int] = None
    stop_loss: Optional[Decimal] = None
    take_profit: Optional[Decimal] = None
    reduce_only: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, 'symbol', self.symbol.strip().upper())
        object.__setattr__(self, 'side', OrderSide(str(getattr(self.side, 'value', self.side)).upper()))
        object.__setattr__(self, 'order_type', OrderType(str(getattr(self.order_type, 'value', self.order_type)).upper()))
        object.__setattr__(self, 'quantity', to_decimal(self.quantity))
        for name in ('price', 'stop_loss', 'take_profit'):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, to_decimal(value))

    def validate(self) -> None:
        """Raise :class:`InvalidOrderError` if the request must not reach an exchange."""
        if not self.symbol:
            raise InvalidOrderError('Order symbol is required')
        if self.quantity <= 0:
            raise InvalidOrderError(f'Order quantity must be positive, got {self.quantity}')
        if self.order_type is OrderType.LIMIT and self.price is None:
            raise InvalidOrderError('LIMIT orders require a price')
        if self.price is not None and self.price <= 0:
            raise InvalidOrderError(f'Order price must be positive, got {self.price}')
        if self.leverage is not None and self.leverage < 1:
            raise InvalidOrderError(f'Leverage must be a positive integer, got {self.leverage}')
        if self.reduce_only and (self.stop_loss is not None or self.take_profit is not None):
            raise InvalidOrderError('Reduce-only orders cannot carry stop-loss or take-profit levels')

    @property
    def limit_price(self) -> Optional[Decimal]:
        """Price to transmit; ``None`` for market orders."""
        return self.price if self.order_type is OrderType.LIMIT else None


@dataclass(frozen=True)
class OrderResponse:
    order_id: str
    symbol: str
    side: OrderSide
    quantity: Decimal
    price: Decimal
    status: OrderStatus
    timestamp: int
    exchange: Exchange

    def to_dict(self) -> Dict[str, Any]:
        return {
            'orderId': self.order_id,
            'symbol': self.symbol,
            'side': self.side.value,
            'quantity': self.quantity,
            'price': self.price,
            'status': self.status.value,
            'timestamp': self.timestamp,
            'exchange': self.exchange.value,
        }


@dataclass(frozen=True)
class BalanceInfo:
    asset: str
    free: Decimal
    locked: Decimal
    total: Decimal

    @classmethod
    def from_free_and_total(cls, asset: str, free: Any, total: Any) -> 'BalanceInfo':
        """Derive ``locked`` as ``total - free``, clamped at zero."""
        free_value = to_decimal(free)
        total_value = to_decimal(total)
        locked = total_value - free_value
        if locked < 0:
            logger.warning(
                'Inconsistent balance for %s: free %s exceeds total %s; clamping locked to 0',
                asset,
                free_value,
                total_value,
            )
            locked = ZERO
        return cls(asset=asset, free=free_value, locked=locked, total=total_value)

    @classmethod
    def from_free_and_locked(cls, asset: str, free: Any, locked: Any) -> 'BalanceInfo':
        free_value = to_decimal(free)
        locked_value = to_decimal(locked)
        return cls(asset=asset, free=free_value, locked=locked_value, total=free_value + locked_value)

    def to_dict(self) -> Dict[str, Any]:
        return {'asset': self.asset, 'free': self.free, 'locked': self.locked, 'total': self.total}


@dataclass(frozen=True)
class PositionInfo:
    symbol: str
    position_amt: Decimal
    entry_price: Decimal
    mark_price: Decimal
    unrealized_profit: Decimal

    @property
    def percentage(self) -> Decimal:
        cost = abs(self.position_amt) * self.entry_price
        if cost == 0:
            return ZERO
        return self.unrealized_profit / cost * 100

    @classmethod
    def parse(cls, symbol: str, size: Any, entry: Any, mark: Any, pnl: Any) -> 'PositionInfo':
        return cls(
            symbol=symbol,
            position_amt=to_decimal(size),
            entry_price=to_decimal(entry),
            mark_price=to_decimal(mark),
            unrealized_profit=to_decimal(pnl),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'positionAmt': self.position_amt,
            'entryPrice': self.entry_price,
            'markPrice': self.mark_price,
            'unRealizedProfit': self.unrealized_profit,
            'percentage': self.percentage,
        }


__all__ = [
    'BalanceInfo',
    'OrderRequest',
    'OrderResponse',
    'OrderSide',
    'OrderStatus',
    'OrderType',
    'PositionInfo',
    'ZERO',
    'format_decimal',
    'to_decimal',
]
