"""Auto-trading engine and the records it manages."""

from .engine import AutoTradingEngine
from .models import TradeExecution, TradeStatus, TradingStats
from .risk import RiskManager, summarize
from .store import DuplicateTradeError, InMemoryTradeStore, OpenTradeStore, TradeStoreError

__all__ = [
    'AutoTradingEngine',
    'DuplicateTradeError',
    'InMemoryTradeStore',
    'OpenTradeStore',
    'RiskManager',
    'TradeExecution',
    'TradeStoreError',
    'TradeStatus',
    'TradingStats',
    'summarize',
]
