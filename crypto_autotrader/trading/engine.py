"""Turns scored signals into risk-managed trades and manages their lifecycle."""

from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set, TypeVar

from ..config.trading_config import AutoTradingConfig
from ..exchanges.base import ExchangeClient
from ..exchanges.errors import ConnectorError, DataUnavailableError, UnexpectedResponseError
from ..exchanges.models import OrderRequest, OrderSide, OrderType, to_decimal
from ..market_data.providers import BalanceProvider, PriceProvider
from ..monitoring.alerts import Alert, AlertLevel, AlertManager
from ..signals.models import TradeSignal
from .models import TradeExecution, TradeStatus, TradingStats
from .risk import RiskManager, summarize
from .store import DuplicateTradeError, InMemoryTradeStore, OpenTradeStore, TradeStoreError

logger = logging.getLogger(__name__)

T = TypeVar('T')

ENGINE_ERRORS = (ConnectorError, DataUnavailableError, TradeStoreError, asyncio.TimeoutError)


class AutoTradingEngine:
    """Owns the open-trade registry for one exchange account.

    Every operation on a symbol runs under that symbol's lock. Opening a
    trade first reserves the symbol synchronously, so gate evaluation and
    the reservation cannot interleave with another task: the registry never
    holds two trades for one symbol, and auto-traded positions never exceed
    ``max_open_positions``. Failures are logged and reported as ``None`` or
    ``False``; nothing is retried. Closing orders are reduce-only so they
    cannot reverse a position the exchange already closed on its own stop.

    When the exchange has acted but the outcome cannot be recorded (an
    unreadable acknowledgement or a store failure) a CRITICAL alert is raised.
    A close that reached the exchange but not the store is remembered and
    only re-recorded on the next close attempt, never re-sent.
    """

    def __init__(
        self,
        client: ExchangeClient,
        price_provider: PriceProvider,
        balance_provider: BalanceProvider,
        config: Optional[AutoTradingConfig] = None,
        *,
        store: Optional[OpenTradeStore] = None,
        alerts: Optional[AlertManager] = None,
        risk: Optional[RiskManager] = None,
        call_timeout: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._prices = price_provider
        self._balances = balance_provider
        self._config = config or AutoTradingConfig()
        self._store: OpenTradeStore = store if store is not None else InMemoryTradeStore()
        self._alerts = alerts
        self._risk = risk or RiskManager()
        self._call_timeout = call_timeout
        self._clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._pending: Set[str] = set()
        self._unrecorded_closes: Dict[str, TradeExecution] = {}

    @property
    def config(self) -> AutoTradingConfig:
        return self._config

    def update_config(self, partial: Mapping[str, Any]) -> AutoTradingConfig:
        """Overwrite only the provided fields; open trades are unaffected."""
        self._config = self._config.merged(partial)
        logger.info('Auto-trading config updated: %s', sorted(partial))
        return self._config

    def toggle_auto_trading(self, enabled: bool) -> bool:
        self._config = self._config.merged({'enabled': enabled})
        logger.info('Auto-trading %s', 'enabled' if self._config.enabled else 'disabled')
        return self._config.enabled

    async def process_signal(self, signal: TradeSignal) -> Optional[TradeExecution]:
        config = self._config
        symbol = signal.symbol
        try:
            open_count = self._store.count() + len(self._pending)
            symbol_is_open = self._is_taken(symbol)
        except TradeStoreError as error:
            self._report_failure('Signal execution', symbol, error)
            return None
        allowed, reason = self._risk.validate_signal(
            signal,
            config,
            open_count=open_count,
            symbol_is_open=symbol_is_open,
        )
        if not allowed:
            logger.info('Signal %s %s skipped: %s', signal.action.value, symbol, reason)
            return None

        self._pending.add(symbol)
        try:
            async with self._lock(symbol):
                price = await self._current_price(symbol)
                balance = await self._call(self._balances.get_account_balance())
                quantity = self._risk.position_size(balance, price, config)
                if quantity <= 0:
                    logger.info(
                        'Signal %s %s skipped: position size rounds to zero (balance %s, price %s)',
                        signal.action.value,
                        symbol,
                        balance,
                        price,
                    )
                    return None
                side = OrderSide(signal.action.value)
                stop_loss, take_profit = self._risk.protective_levels(side, price, config)
                request = OrderRequest(
                    symbol=symbol,
                    side=side,
                    quantity=quantity,
                    order_type=OrderType.MARKET,
                    leverage=config.max_leverage,
                    stop_loss=stop_loss,
                    take_profit=take_profit,
                )
                logger.info(
                    'Executing %s %s from signal (confidence %s%%): %s',
                    side.value,
                    symbol,
                    signal.confidence_percent,
                    signal.reasoning or 'no reasoning given',
                )
                return await self._open(request, price)
        except ENGINE_ERRORS as error:
            self._report_failure('Signal execution', symbol, error)
            return None
        finally:
            self._pending.discard(symbol)

    async def execute_manual_trade(
        self,
        symbol: str,
        side: OrderSide | str,
        quantity: Decimal | str | float,
        entry_price: Decimal | str | float,
        leverage: int = 1,
    ) -> Optional[TradeExecution]:
        """Submit a LIMIT order at ``entry_price`` without applying the signal gates."""
        symbol = symbol.strip().upper()
        try:
            taken = self._is_taken(symbol)
        except TradeStoreError as error:
            self._report_failure('Manual trade', symbol, error)
            return None
        if taken:
            logger.info('Manual trade for %s refused: a trade is already open', symbol)
            return None

        self._pending.add(symbol)
        try:
            async with self._lock(symbol):
                entry = to_decimal(entry_price)
                order_side = OrderSide(str(getattr(side, 'value', side)).upper())
                stop_loss, take_profit = self._risk.protective_levels(order_side, entry, self._config)
                request = OrderRequest(
                    symbol=symbol,
                    side=order_side,
                    quantity=to_decimal(quantity),
                    price=entry,
                    order_type=OrderType.LIMIT,
                    leverage=leverage,
                    stop_loss=stop_loss,
                    take_profit=take_profit,
                )
                return await self._open(request, entry)
        except (ValueError, *ENGINE_ERRORS) as error:
            self._report_failure('Manual trade', symbol, error)
            return None
        finally:
            self._pending.discard(symbol)

    async def close_position(self, symbol: str) -> bool:
        symbol = symbol.strip().upper()
        try:
            trade = self._store.get(symbol)
        except TradeStoreError as error:
            self._report_failure('Close', symbol, error)
            return False
        if trade is None:
            logger.info('No open trade for %s to close', symbol)
            return False
        return await self._close(symbol, 'manual')

    async def on_price_tick(self, symbol: str, price: Decimal) -> bool:
        """Close the open trade for ``symbol`` if ``price`` crossed a protective level."""
        symbol = symbol.upper()
        try:
            trade = self._store.get(symbol)
        except TradeStoreError as error:
            self._report_failure('Stop check', symbol, error)
            return False
        if trade is None:
            return False
        trigger = self._risk.stop_triggered(trade, price)
        if trigger is None or self._lock(symbol).locked():
            return False
        logger.info('%s hit for %s at %s', trigger, symbol, price)
        return await self._close(symbol, trigger, price)

    def get_open_positions(self) -> List[TradeExecution]:
        return self._store.open_trades()

    def get_trade_history(self) -> List[TradeExecution]:
        return self._store.history()

    def get_trading_stats(self) -> TradingStats:
        return summarize(self._store.history())

    def _lock(self, symbol: str) -> asyncio.Lock:
        lock = self._locks.get(symbol)
        if lock is None:
            lock = self._locks[symbol] = asyncio.Lock()
        return lock

    def _is_taken(self, symbol: str) -> bool:
        return symbol in self._pending or self._store.get(symbol) is not None

    async def _call(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(awaitable, self._call_timeout)

    async def _current_price(self, symbol: str) -> Decimal:
        price = await self._call(self._prices.get_current_price(symbol))
        if price <= 0:
            raise DataUnavailableError(f'Invalid price for {symbol}: {price}')
        return price

    async def _open(self, request: OrderRequest, entry_price: Decimal) -> Optional[TradeExecution]:
        request.validate()
        stop_loss = request.stop_loss
        take_profit = request.take_profit
        trade = TradeExecution(
            symbol=request.symbol,
            action=request.side,
            quantity=request.quantity,
            entry_price=entry_price,
            stop_loss=stop_loss,
            take_profit=take_profit,
            leverage=request.leverage or 1,
            executed_at=self._now_ms(),
        )
        try:
            response = await self._call(self._client.place_order(request))
        except UnexpectedResponseError as error:
            trade.status = TradeStatus.FAILED
            logger.error('Order for %s may be live but was not confirmed: %s', trade.symbol, error)
            self._alert(f'Unconfirmed order on {trade.symbol}: {error}', AlertLevel.CRITICAL, trade.symbol)
            return None
        except ENGINE_ERRORS:
            trade.status = TradeStatus.FAILED
            raise
        trade.order_id = response.order_id
        trade.status = TradeStatus.EXECUTED
        try:
            self._store.open(trade)
        except DuplicateTradeError:
            logger.error(
                'Order %s for %s placed but another trade is already registered; not tracking it',
                response.order_id,
                trade.symbol,
            )
            self._alert(f'Untracked order {response.order_id} on {trade.symbol}', AlertLevel.CRITICAL, trade.symbol)
            return None
        except TradeStoreError as error:
            logger.error('Order %s for %s placed but could not be recorded: %s', response.order_id, trade.symbol, error)
            self._alert(f'Unrecorded order {response.order_id} on {trade.symbol}', AlertLevel.CRITICAL, trade.symbol)
            return None
        logger.info(
            'Opened %s %s %s @ %s (SL %s, TP %s, order %s)',
            trade.action.value,
            trade.quantity,
            trade.symbol,
            trade.entry_price,
            trade.stop_loss,
            trade.take_profit,
            trade.order_id,
        )
        self._alert(
            f'Opened {trade.action.value} {trade.quantity} {trade.symbol} @ {trade.entry_price}',
            AlertLevel.INFO,
            trade.symbol,
        )
        return trade

    async def _close(self, symbol: str, reason: str, price: Optional[Decimal] = None) -> bool:
        async with self._lock(symbol):
            unrecorded = self._unrecorded_closes.get(symbol)
            if unrecorded is not None:
                logger.info('Close of %s already reached the exchange; recording it again', symbol)
                return self._record_close(unrecorded, reason)
            try:
                trade = self._store.get(symbol)
                if trade is None:
                    logger.info('Trade for %s was closed concurrently', symbol)
                    return False
                exit_price = price if price is not None else await self._current_price(symbol)
                request = OrderRequest(
                    symbol=symbol,
                    side=trade.action.opposite,
                    quantity=trade.quantity,
                    order_type=OrderType.MARKET,
                    leverage=trade.leverage,
                    reduce_only=True,
                )
                await self._call(self._client.place_order(request))
            except UnexpectedResponseError as error:
                logger.error('Close order for %s may be live but was not confirmed: %s', symbol, error)
                self._alert(f'Unconfirmed close order on {symbol}: {error}', AlertLevel.CRITICAL, symbol)
                return False
            except ENGINE_ERRORS as error:
                self._report_failure('Close', symbol, error)
                return False

            trade.exit_price = exit_price
            trade.pnl = self._risk.realized_pnl(trade.action, trade.entry_price, exit_price, trade.quantity)
            trade.closed_at = self._now_ms()
            trade.status = TradeStatus.CLOSED
            return self._record_close(trade, reason)

    def _record_close(self, trade: TradeExecution, reason: str) -> bool:
        symbol = trade.symbol
        try:
            self._store.close(trade)
        except TradeStoreError as error:
            self._unrecorded_closes[symbol] = trade
            logger.error('Position %s closed on the exchange but the close was not recorded: %s', symbol, error)
            self._alert(f'Unrecorded close of {symbol}: {error}', AlertLevel.CRITICAL, symbol)
            return False
        self._unrecorded_closes.pop(symbol, None)
        logger.info('Closed %s (%s) @ %s, P&L %s', symbol, reason, trade.exit_price, trade.pnl)
        self._alert(f'Closed {symbol} ({reason}) P&L {trade.pnl}', AlertLevel.INFO, symbol)
        return True

    def _report_failure(self, operation: str, symbol: str, error: BaseException) -> None:
        if isinstance(error, asyncio.TimeoutError):
            detail = f'timed out after {self._call_timeout}s'
        else:
            detail = str(error)
        logger.warning('%s for %s failed: %s', operation, symbol, detail)
        self._alert(f'{operation} for {symbol} failed: {detail}', AlertLevel.WARNING, symbol)

    def _alert(self, message: str, level: AlertLevel, symbol: str) -> None:
        if self._alerts is not None:
            self._alerts.emit(Alert(message=message, level=level, symbol=symbol))

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)


__all__ = ['AutoTradingEngine']
