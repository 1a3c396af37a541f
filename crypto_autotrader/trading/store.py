"""Open-trade registry and trade history."""

from __future__ import annotations

from typing import Dict, List, Optional, Protocol

from .models import TradeExecution, TradeStatus


class TradeStoreError(Exception):
    """The registry could not be read or written."""


class DuplicateTradeError(TradeStoreError):
    """Raised when a second open trade is registered for one symbol."""

    def __init__(self, symbol: str) -> None:
        super().__init__(f'A trade is already open for {symbol}')
        self.symbol = symbol


class OpenTradeStore(Protocol):
    """Registry keyed by symbol plus an append-only history.

    ``open`` must be a conditional write: it fails with
    :class:`DuplicateTradeError` instead of replacing an open trade. Backend
    failures surface as :class:`TradeStoreError`.
    """

    def get(self, symbol: str) -> Optional[TradeExecution]:
        ...

    def open(self, trade: TradeExecution) -> None:
        ...

    def close(self, trade: TradeExecution) -> None:
        ...

    def open_trades(self) -> List[TradeExecution]:
        ...

    def count(self) -> int:
        ...

    def history(self) -> List[TradeExecution]:
        ...


class InMemoryTradeStore:
    def __init__(self) -> None:
        self._open: Dict[str, TradeExecution] = {}
        self._history: List[TradeExecution] = []

    def get(self, symbol: str) -> Optional[TradeExecution]:
        return self._open.get(symbol)

    def open(self, trade: TradeExecution) -> None:
        if trade.symbol in self._open:
            raise DuplicateTradeError(trade.symbol)
        self._open[trade.symbol] = trade
        self._history.append(trade)

    def close(self, trade: TradeExecution) -> None:
        if trade.status is not TradeStatus.CLOSED:
            raise ValueError(f'Trade {trade.id} is not closed')
        current = self._open.get(trade.symbol)
        if current is not None and current.id == trade.id:
            del self._open[trade.symbol]

    def open_trades(self) -> List[TradeExecution]:
        return list(self._open.values())

    def count(self) -> int:
        return len(self._open)

    def history(self) -> List[TradeExecution]:
        return list(self._history)


__all__ = ['DuplicateTradeError', 'InMemoryTradeStore', 'OpenTradeStore', 'TradeStoreError']
