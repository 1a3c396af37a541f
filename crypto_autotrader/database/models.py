"""SQLAlchemy ORM model for persisted trade executions."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, TypeDecorator, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class DecimalString(TypeDecorator):
    """Exact decimal stored as text, portable to SQLite."""

    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return format(Decimal(value), 'f')

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


class TradeExecutionRow(Base):
    """One engine trade; at most one row per symbol may be ``EXECUTED``."""

    __tablename__ = 'trade_executions'
    __table_args__ = (
        Index(
            'uq_trade_executions_open_symbol',
            'symbol',
            unique=True,
            sqlite_where=text("status = 'EXECUTED'"),
            postgresql_where=text("status = 'EXECUTED'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    trade_id: Mapped[str] = mapped_column(String(64), unique=True)
    symbol: Mapped[str] = mapped_column(String(32), index=True)
    action: Mapped[str] = mapped_column(String(8))
    quantity: Mapped[Decimal] = mapped_column(DecimalString)
    entry_price: Mapped[Decimal] = mapped_column(DecimalString)
    stop_loss: Mapped[Decimal] = mapped_column(DecimalString)
    take_profit: Mapped[Decimal] = mapped_column(DecimalString)
    leverage: Mapped[int] = mapped_column(Integer, default=1)
    executed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    order_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(12), index=True)
    pnl: Mapped[Optional[Decimal]] = mapped_column(DecimalString, nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    exit_price: Mapped[Optional[Decimal]] = mapped_column(DecimalString, nullable=True)


__all__ = ['Base', 'DecimalString', 'TradeExecutionRow']
