"""Trade persistence on a SQLAlchemy engine."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from sqlalchemy import Select, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ..exchanges.models import OrderSide
from ..trading.models import TradeExecution, TradeStatus
from .models import Base, TradeExecutionRow

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    """Treat naive values (SQLite drops tzinfo) as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def ms_to_datetime(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def datetime_to_ms(value: datetime) -> int:
    return int(round(_as_utc(value).timestamp() * 1000))


def row_to_trade(row: TradeExecutionRow) -> TradeExecution:
    return TradeExecution(
        id=row.trade_id,
        symbol=row.symbol,
        action=OrderSide(row.action),
        quantity=row.quantity,
        entry_price=row.entry_price,
        stop_loss=row.stop_loss,
        take_profit=row.take_profit,
        leverage=row.leverage,
        executed_at=datetime_to_ms(row.executed_at),
        order_id=row.order_id,
        status=TradeStatus(row.status),
        pnl=row.pnl,
        closed_at=datetime_to_ms(row.closed_at) if row.closed_at is not None else None,
        exit_price=row.exit_price,
    )


class DatabaseManager:
    """Owns the engine for the `trade_executions` table and its queries."""

    def __init__(self, database_url: str, *, echo: bool = False) -> None:
        self._database_url = database_url
        connect_args: dict[str, object] = {}
        if database_url.startswith('sqlite:///'):
            db_path = Path(database_url.replace('sqlite:///', '', 1))
            db_path.parent.mkdir(parents=True, exist_ok=True)
            connect_args['check_same_thread'] = False
        self._engine: Engine = create_engine(
            database_url,
            echo=echo,
            connect_args=connect_args,
        )
        self._session_factory = sessionmaker(
            self._engine,
            expire_on_commit=False,
        )
        self.create_schema()

    def create_schema(self) -> None:
        """Create `trade_executions` and its indexes when missing."""

        Base.metadata.create_all(self._engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session that commits on success and rolls back on error."""

        session: Session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def insert_trade(self, trade: TradeExecution) -> None:
        """Insert a new trade row; the open-symbol index rejects a second open trade."""

        with self.session() as session:
            session.add(
                TradeExecutionRow(
                    trade_id=trade.id,
                    symbol=trade.symbol,
                    action=trade.action.value,
                    quantity=trade.quantity,
                    entry_price=trade.entry_price,
                    stop_loss=trade.stop_loss,
                    take_profit=trade.take_profit,
                    leverage=trade.leverage,
                    executed_at=ms_to_datetime(trade.executed_at),
                    order_id=trade.order_id,
                    status=trade.status.value,
                )
            )

    def record_close(self, trade: TradeExecution) -> bool:
        """Persist the close of ``trade``; False if no open row matched."""

        stmt: Select[tuple[TradeExecutionRow]] = select(TradeExecutionRow).where(
            TradeExecutionRow.trade_id == trade.id,
            TradeExecutionRow.status == TradeStatus.EXECUTED.value,
        )
        with self.session() as session:
            row = session.execute(stmt).scalars().first()
            if row is None:
                return False
            row.status = trade.status.value
            row.pnl = trade.pnl
            row.exit_price = trade.exit_price
            row.closed_at = ms_to_datetime(trade.closed_at) if trade.closed_at is not None else None
        return True

    def load_open_trade(self, symbol: str) -> Optional[TradeExecution]:
        stmt: Select[tuple[TradeExecutionRow]] = select(TradeExecutionRow).where(
            TradeExecutionRow.symbol == symbol,
            TradeExecutionRow.status == TradeStatus.EXECUTED.value,
        )
        with self.session() as session:
            row = session.execute(stmt).scalars().first()
            return row_to_trade(row) if row is not None else None

    def load_trades(self, *, open_only: bool = False) -> List[TradeExecution]:
        """Return trades oldest first."""

        stmt: Select[tuple[TradeExecutionRow]] = select(TradeExecutionRow).order_by(TradeExecutionRow.id)
        if open_only:
            stmt = stmt.where(TradeExecutionRow.status == TradeStatus.EXECUTED.value)
        with self.session() as session:
            rows = session.execute(stmt).scalars().all()
            return [row_to_trade(row) for row in rows]

    def close(self) -> None:
        """Release pooled connections."""

        self._engine.dispose()


__all__ = ['DatabaseManager', 'datetime_to_ms', 'ms_to_datetime', 'row_to_trade']
