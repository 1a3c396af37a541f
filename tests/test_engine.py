"""Tests for :mod:`crypto_autotrader.trading.engine`."""

from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest

from crypto_autotrader.config import AutoTradingConfig, Exchange, ExchangeCredentials
from crypto_autotrader.exchanges import (
    BinanceClient,
    BybitClient,
    ConnectorTransportError,
    DataUnavailableError,
    HttpResponse,
    OrderResponse,
    OrderSide,
    OrderStatus,
    OrderType,
    UnexpectedResponseError,
)
from crypto_autotrader.monitoring import AlertLevel, AlertManager
from crypto_autotrader.signals import SignalAction, TradeSignal
from crypto_autotrader.trading import AutoTradingEngine, InMemoryTradeStore, TradeStatus, TradeStoreError


class StubClient:
    def __init__(self, delay: float = 0.0) -> None:
        self.requests = []
        self.error: Exception | None = None
        self.delay = delay

    async def place_order(self, request):
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return OrderResponse(
            order_id=str(len(self.requests)),
            symbol=request.symbol,
            side=request.side,
            quantity=request.quantity,
            price=request.price or Decimal('0'),
            status=OrderStatus.FILLED,
            timestamp=1,
            exchange=Exchange.BINANCE,
        )


class StubPrices:
    def __init__(self, price: str = '100') -> None:
        self.price = Decimal(price)
        self.calls = []
        self.error: Exception | None = None

    async def get_current_price(self, symbol):
        self.calls.append(symbol)
        if self.error is not None:
            raise self.error
        return self.price


class StubBalance:
    def __init__(self, balance: str = '10000') -> None:
        self.balance = Decimal(balance)
        self.calls = 0

    async def get_account_balance(self):
        self.calls += 1
        return self.balance


def enabled_config(**overrides) -> AutoTradingConfig:
    values = {'enabled': True, 'trading_pairs': {'BTCUSDT', 'ETHUSDT', 'SOLUSDT'}}
    values.update(overrides)
    return AutoTradingConfig(**values)


def make_engine(config=None, client=None, prices=None, balance=None, alerts=None, store=None) -> AutoTradingEngine:
    return AutoTradingEngine(
        client or StubClient(),
        prices or StubPrices(),
        balance or StubBalance(),
        config or enabled_config(),
        store=store,
        alerts=alerts,
    )


def signal(symbol='BTCUSDT', action=SignalAction.BUY, confidence=0.8) -> TradeSignal:
    return TradeSignal(symbol=symbol, action=action, confidence=confidence, reasoning='test')


def test_disabled_engine_makes_no_lookups_or_orders() -> None:
    client, prices, balance = StubClient(), StubPrices(), StubBalance()
    engine = make_engine(AutoTradingConfig(enabled=False), client, prices, balance)

    assert asyncio.run(engine.process_signal(signal())) is None
    assert client.requests == []
    assert prices.calls == []
    assert balance.calls == 0


def test_confidence_threshold_is_inclusive() -> None:
    engine = make_engine(enabled_config(min_confidence=60))

    assert asyncio.run(engine.process_signal(signal(confidence=0.59))) is None
    trade = asyncio.run(engine.process_signal(signal(confidence=0.60)))

    assert trade is not None
    assert trade.status is TradeStatus.EXECUTED


@pytest.mark.parametrize(
    'rejected',
    [signal(symbol='DOGEUSDT'), signal(action=SignalAction.HOLD)],
)
def test_pair_and_hold_gates(rejected) -> None:
    client = StubClient()
    engine = make_engine(client=client)

    assert asyncio.run(engine.process_signal(rejected)) is None
    assert client.requests == []


def test_buy_signal_sizes_position_and_sets_levels() -> None:
    client = StubClient()
    engine = make_engine(enabled_config(max_leverage=3), client, StubPrices('100'), StubBalance('10000'))

    trade = asyncio.run(engine.process_signal(signal()))

    # 2% of 10000 = 200 USD at price 100
    assert trade.quantity == Decimal('2')
    assert trade.stop_loss == Decimal('98')
    assert trade.take_profit == Decimal('105')
    assert trade.leverage == 3
    request = client.requests[0]
    assert request.order_type is OrderType.MARKET
    assert request.side is OrderSide.BUY
    assert request.leverage == 3
    assert engine.get_open_positions() == [trade]
    assert engine.get_trade_history() == [trade]


def test_sell_signal_inverts_levels_and_caps_notional() -> None:
    engine = make_engine(enabled_config(max_position_size=50), prices=StubPrices('100'), balance=StubBalance('10000'))

    trade = asyncio.run(engine.process_signal(signal(action=SignalAction.SELL)))

    assert trade.quantity == Decimal('0.5')
    assert trade.stop_loss == Decimal('102')
    assert trade.take_profit == Decimal('95')


def test_zero_quantity_aborts_without_order() -> None:
    client = StubClient()
    engine = make_engine(client=client, prices=StubPrices('1000000000'), balance=StubBalance('1'))

    assert asyncio.run(engine.process_signal(signal())) is None
    assert client.requests == []


def test_one_open_trade_per_symbol_and_position_limit() -> None:
    engine = make_engine(enabled_config(max_open_positions=2))

    async def scenario():
        first = await engine.process_signal(signal('BTCUSDT'))
        duplicate = await engine.process_signal(signal('BTCUSDT', SignalAction.SELL))
        second = await engine.process_signal(signal('ETHUSDT'))
        over_limit = await engine.process_signal(signal('SOLUSDT'))
        return first, duplicate, second, over_limit

    first, duplicate, second, over_limit = asyncio.run(scenario())

    assert first is not None and second is not None
    assert duplicate is None and over_limit is None
    assert len(engine.get_open_positions()) == 2


def test_concurrent_signals_for_one_symbol_open_one_trade() -> None:
    client = StubClient(delay=0.01)
    engine = make_engine(client=client)

    async def scenario():
        return await asyncio.gather(*(engine.process_signal(signal()) for _ in range(5)))

    results = asyncio.run(scenario())

    assert sum(result is not None for result in results) == 1
    assert len(client.requests) == 1
    assert len(engine.get_open_positions()) == 1


def test_concurrent_signals_respect_max_open_positions() -> None:
    client = StubClient(delay=0.01)
    engine = make_engine(enabled_config(max_open_positions=2), client=client)

    async def scenario():
        symbols = ['BTCUSDT', 'ETHUSDT', 'SOLUSDT']
        return await asyncio.gather(*(engine.process_signal(signal(symbol)) for symbol in symbols))

    results = asyncio.run(scenario())

    assert sum(result is not None for result in results) == 2
    assert len(engine.get_open_positions()) == 2


def test_connector_failure_consumes_no_slot() -> None:
    client = StubClient()
    client.error = ConnectorTransportError('timeout', exchange='binance', endpoint='/fapi/v1/order')
    alerts = AlertManager()
    engine = make_engine(client=client, alerts=alerts)

    assert asyncio.run(engine.process_signal(signal())) is None
    assert engine.get_open_positions() == []
    assert engine.get_trade_history() == []
    assert alerts.latest()[-1].level is AlertLevel.WARNING

    client.error = None
    assert asyncio.run(engine.process_signal(signal())) is not None


def test_price_unavailable_aborts_signal() -> None:
    prices = StubPrices()
    prices.error = DataUnavailableError('no price')
    client = StubClient()
    engine = make_engine(client=client, prices=prices)

    assert asyncio.run(engine.process_signal(signal())) is None
    assert client.requests == []


def test_slow_price_provider_times_out() -> None:
    class SlowPrices(StubPrices):
        async def get_current_price(self, symbol):
            await asyncio.sleep(1)
            return self.price

    engine = AutoTradingEngine(StubClient(), SlowPrices(), StubBalance(), enabled_config(), call_timeout=0.01)

    assert asyncio.run(engine.process_signal(signal())) is None


def test_pnl_sign_convention() -> None:
    for side, expected in ((OrderSide.BUY, Decimal('20')), (OrderSide.SELL, Decimal('-20'))):
        prices = StubPrices('100')
        client = StubClient()
        engine = make_engine(AutoTradingConfig(enabled=False), client, prices)

        async def scenario():
            trade = await engine.execute_manual_trade('BTCUSDT', side, '2', '100')
            prices.price = Decimal('110')
            closed = await engine.close_position('BTCUSDT')
            return trade, closed

        trade, closed = asyncio.run(scenario())

        assert closed is True
        assert trade.pnl == expected
        assert trade.status is TradeStatus.CLOSED
        assert trade.exit_price == Decimal('110')
        assert trade.closed_at is not None
        assert client.requests[-1].side is side.opposite
        assert client.requests[-1].quantity == Decimal('2')
        assert client.requests[-1].reduce_only is True
        assert engine.get_open_positions() == []
        assert engine.get_trade_history() == [trade]


def test_close_without_open_trade_is_noop() -> None:
    client, prices = StubClient(), StubPrices()
    engine = make_engine(client=client, prices=prices)

    assert asyncio.run(engine.close_position('BTCUSDT')) is False
    assert client.requests == []
    assert prices.calls == []


def test_failed_close_keeps_trade_open() -> None:
    client = StubClient()
    engine = make_engine(client=client)

    async def scenario():
        await engine.process_signal(signal())
        client.error = ConnectorTransportError('down')
        return await engine.close_position('BTCUSDT')

    assert asyncio.run(scenario()) is False
    assert engine.get_open_positions()[0].status is TradeStatus.EXECUTED


def test_manual_trade_bypasses_gates_with_limit_order() -> None:
    client = StubClient()
    engine = make_engine(AutoTradingConfig(enabled=False, trading_pairs={'ETHUSDT'}), client)

    trade = asyncio.run(engine.execute_manual_trade('xrpusdt', 'SELL', '10', '0.5', leverage=2))

    assert trade.symbol == 'XRPUSDT'
    assert trade.leverage == 2
    request = client.requests[0]
    assert request.order_type is OrderType.LIMIT
    assert request.price == Decimal('0.5')


def test_manual_trade_refused_when_symbol_open() -> None:
    engine = make_engine()

    async def scenario():
        await engine.execute_manual_trade('BTCUSDT', 'BUY', '1', '100')
        return await engine.execute_manual_trade('BTCUSDT', 'BUY', '1', '100')

    assert asyncio.run(scenario()) is None
    assert len(engine.get_open_positions()) == 1


def test_manual_trade_with_bad_input_returns_none() -> None:
    client = StubClient()
    engine = make_engine(client=client)

    assert asyncio.run(engine.execute_manual_trade('BTCUSDT', 'BUY', '0', '100')) is None
    assert asyncio.run(engine.execute_manual_trade('BTCUSDT', 'HOLD', '1', '100')) is None
    assert client.requests == []


def test_price_tick_triggers_stop_loss_close() -> None:
    client = StubClient()
    engine = make_engine(client=client)

    async def scenario():
        await engine.execute_manual_trade('BTCUSDT', 'BUY', '1', '100')
        untouched = await engine.on_price_tick('BTCUSDT', Decimal('99'))
        stopped = await engine.on_price_tick('BTCUSDT', Decimal('97.5'))
        return untouched, stopped

    untouched, stopped = asyncio.run(scenario())

    assert untouched is False
    assert stopped is True
    trade = engine.get_trade_history()[0]
    assert trade.exit_price == Decimal('97.5')
    assert trade.pnl == Decimal('-2.5')


def test_price_tick_triggers_take_profit_for_short() -> None:
    engine = make_engine()

    async def scenario():
        await engine.execute_manual_trade('BTCUSDT', 'SELL', '1', '100')
        return await engine.on_price_tick('BTCUSDT', Decimal('95'))

    assert asyncio.run(scenario()) is True
    assert engine.get_trade_history()[0].pnl == Decimal('5')


def test_stats_aggregate_history_and_are_idempotent() -> None:
    engine = make_engine()
    empty = engine.get_trading_stats()
    assert empty.total_trades == 0
    assert empty.win_rate == 0
    assert empty.avg_pnl == 0

    prices = StubPrices('100')
    engine = make_engine(prices=prices)

    async def scenario():
        await engine.execute_manual_trade('BTCUSDT', 'BUY', '1', '100')
        await engine.execute_manual_trade('ETHUSDT', 'SELL', '1', '100')
        await engine.execute_manual_trade('SOLUSDT', 'BUY', '1', '100')
        prices.price = Decimal('110')
        await engine.close_position('BTCUSDT')
        await engine.close_position('ETHUSDT')

    asyncio.run(scenario())
    first = engine.get_trading_stats()
    second = engine.get_trading_stats()

    assert first == second
    assert first.total_trades == 3
    assert first.winning_trades == 1
    assert first.losing_trades == 1
    assert first.total_pnl == Decimal('0')
    assert first.win_rate == Decimal(1) / 3 * 100


def test_update_config_merges_only_given_fields() -> None:
    engine = make_engine(enabled_config(max_open_positions=3))

    updated = engine.update_config({'minConfidence': 75, 'stopLossPercent': None})

    assert updated.min_confidence == Decimal('75')
    assert updated.max_open_positions == 3
    assert updated.stop_loss_percent == Decimal('2')
    assert engine.toggle_auto_trading(False) is False
    assert engine.config.min_confidence == Decimal('75')
    with pytest.raises(ValueError):
        engine.update_config({'minConfidence': 150})
    assert engine.config.min_confidence == Decimal('75')


class RecordingTransport:
    def __init__(self, *payloads) -> None:
        self.payloads = list(payloads)
        self.bodies = []

    async def request(self, method, url, *, body=None, headers=None):
        self.bodies.append(body)
        return HttpResponse(status=200, payload=self.payloads.pop(0))


def test_stop_close_on_bybit_cannot_open_reverse_position() -> None:
    transport = RecordingTransport(
        {'retCode': 0, 'result': {'orderId': 'open-1'}},
        {'retCode': 0, 'result': {'orderId': 'close-1'}},
    )
    client = BybitClient(ExchangeCredentials(Exchange.BYBIT, 'key', 'engine-bybit-secret'), transport)
    engine = make_engine(client=client)

    async def scenario():
        await engine.execute_manual_trade('BTCUSDT', 'BUY', '2', '100')
        return await engine.on_price_tick('BTCUSDT', Decimal('97'))

    assert asyncio.run(scenario()) is True
    opened, closed = transport.bodies
    assert '"stopLoss":"98"' in opened
    assert '"reduceOnly"' not in opened
    assert closed == '{"category":"linear","symbol":"BTCUSDT","side":"Sell","orderType":"Market","qty":"2","reduceOnly":true}'


def test_unreadable_order_acknowledgement_is_reported_not_raised() -> None:
    transport = RecordingTransport({'status': 'NEW'})
    client = BinanceClient(ExchangeCredentials(Exchange.BINANCE, 'key', 'engine-binance-secret'), transport)
    alerts = AlertManager()
    engine = make_engine(client=client, alerts=alerts)

    assert asyncio.run(engine.process_signal(signal())) is None
    assert engine.get_open_positions() == []
    assert alerts.latest()[-1].level is AlertLevel.CRITICAL


def test_unreadable_close_acknowledgement_keeps_trade_open() -> None:
    client, alerts = StubClient(), AlertManager()
    engine = make_engine(client=client, alerts=alerts)

    async def scenario():
        await engine.process_signal(signal())
        client.error = UnexpectedResponseError('unexpected order acknowledgement payload')
        return await engine.close_position('BTCUSDT')

    assert asyncio.run(scenario()) is False
    assert engine.get_open_positions()[0].status is TradeStatus.EXECUTED
    assert alerts.latest()[-1].level is AlertLevel.CRITICAL


class FlakyStore(InMemoryTradeStore):
    def __init__(self) -> None:
        super().__init__()
        self.fail_reads = False
        self.fail_open = False
        self.fail_close = False

    def get(self, symbol):
        if self.fail_reads:
            raise TradeStoreError('database is locked')
        return super().get(symbol)

    def count(self):
        if self.fail_reads:
            raise TradeStoreError('database is locked')
        return super().count()

    def open(self, trade):
        if self.fail_open:
            raise TradeStoreError('disk I/O error')
        super().open(trade)

    def close(self, trade):
        if self.fail_close:
            raise TradeStoreError('disk I/O error')
        super().close(trade)


def test_store_read_failures_abort_without_orders() -> None:
    client, store = StubClient(), FlakyStore()
    engine = make_engine(client=client, store=store)
    store.fail_reads = True

    async def scenario():
        return (
            await engine.process_signal(signal()),
            await engine.execute_manual_trade('BTCUSDT', 'BUY', '1', '100'),
            await engine.close_position('BTCUSDT'),
            await engine.on_price_tick('BTCUSDT', Decimal('50')),
        )

    assert asyncio.run(scenario()) == (None, None, False, False)
    assert client.requests == []


def test_store_write_failure_after_order_raises_critical_alert() -> None:
    client, store, alerts = StubClient(), FlakyStore(), AlertManager()
    engine = make_engine(client=client, store=store, alerts=alerts)
    store.fail_open = True

    assert asyncio.run(engine.process_signal(signal())) is None
    assert len(client.requests) == 1
    assert store.open_trades() == []
    assert alerts.latest()[-1].level is AlertLevel.CRITICAL


def test_unrecorded_close_is_not_sent_twice() -> None:
    client, store, alerts = StubClient(), FlakyStore(), AlertManager()
    engine = make_engine(client=client, store=store, alerts=alerts)

    async def scenario():
        await engine.process_signal(signal())
        store.fail_close = True
        first = await engine.close_position('BTCUSDT')
        store.fail_close = False
        second = await engine.close_position('BTCUSDT')
        return first, second

    first, second = asyncio.run(scenario())

    assert (first, second) == (False, True)
    assert len(client.requests) == 2
    assert engine.get_open_positions() == []
    assert engine.get_trade_history()[0].status is TradeStatus.CLOSED
    assert AlertLevel.CRITICAL in [alert.level for alert in alerts.latest()]
