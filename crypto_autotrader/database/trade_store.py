"""Durable open-trade registry backed by :class:`DatabaseManager`."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..trading.models import TradeExecution, TradeStatus
from ..trading.store import DuplicateTradeError, TradeStoreError
from .db_manager import DatabaseManager

logger = logging.getLogger(__name__)


class SqlTradeStore:
    """Keeps open trades and history across restarts.

    The conditional write relies on the partial unique index over open
    trades, so two processes sharing one database cannot both register a
    trade for the same symbol. Other database failures are raised as
    :class:`TradeStoreError`.
    """

    def __init__(self, database: DatabaseManager) -> None:
        self._db = database

    @contextmanager
    def _guarded(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as error:
            logger.error('Trade store could not %s: %s', action, error)
            raise TradeStoreError(f'could not {action}: {type(error).__name__}') from error

    def get(self, symbol: str) -> Optional[TradeExecution]:
        with self._guarded(f'load open trade for {symbol}'):
            return self._db.load_open_trade(symbol)

    def open(self, trade: TradeExecution) -> None:
        with self._guarded(f'record trade {trade.id}'):
            try:
                self._db.insert_trade(trade)
            except IntegrityError as error:
                logger.warning('Open trade for %s rejected by database: %s', trade.symbol, error.orig)
                raise DuplicateTradeError(trade.symbol) from error

    def close(self, trade: TradeExecution) -> None:
        if trade.status is not TradeStatus.CLOSED:
            raise ValueError(f'Trade {trade.id} is not closed')
        with self._guarded(f'record close of trade {trade.id}'):
            recorded = self._db.record_close(trade)
        if not recorded:
            logger.warning('Trade %s for %s was not open in the database', trade.id, trade.symbol)

    def open_trades(self) -> List[TradeExecution]:
        with self._guarded('load open trades'):
            return self._db.load_trades(open_only=True)

    def count(self) -> int:
        return len(self.open_trades())

    def history(self) -> List[TradeExecution]:
        with self._guarded('load trade history'):
            return self._db.load_trades()


__all__ = ['SqlTradeStore']
