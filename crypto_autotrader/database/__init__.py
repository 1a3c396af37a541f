"""Persistence layer exports."""

from .db_manager import DatabaseManager
from .models import Base, TradeExecutionRow
from .trade_store import SqlTradeStore

__all__ = [
    'Base',
    'DatabaseManager',
    'SqlTradeStore',
    'TradeExecutionRow',
]
