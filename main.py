"""Command line entry point for the crypto auto-trader."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from crypto_autotrader.config import (
    AutoTradingConfig,
    Exchange,
    ExchangeCredentials,
    Settings,
    load_environment,
    load_settings,
)
from crypto_autotrader.database import DatabaseManager, SqlTradeStore
from crypto_autotrader.exchanges import DataUnavailableError, create_exchange_client
from crypto_autotrader.exchanges.binance_service import BinanceService
from crypto_autotrader.market_data import (
    ConnectorBalanceProvider,
    EnvironmentCredentialStore,
    PriceStream,
    PriceTick,
    StreamingPriceCache,
)
from crypto_autotrader.monitoring import AlertManager, configure_logging
from crypto_autotrader.service import TradingService
from crypto_autotrader.signals import MomentumSignalSource
from crypto_autotrader.trading import AutoTradingEngine, InMemoryTradeStore

logger = logging.getLogger(__name__)


def _print(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def run_check(service: TradingService, environ: Mapping[str, str], exchange: Exchange) -> Dict[str, Any]:
    try:
        credentials = ExchangeCredentials.from_env(exchange, environ)
    except ValueError as error:
        return {'success': False, 'error': str(error)}
    return await service.connect_exchange(credentials)


async def run_trading(
    settings: Settings,
    environ: Mapping[str, str],
    exchange: Exchange,
    symbols: Sequence[str],
    duration: int,
    enable: bool,
) -> None:
    credentials = ExchangeCredentials.from_env(exchange, environ)
    config = AutoTradingConfig.from_env(environ)
    if enable:
        config = config.merged({'enabled': True})
    symbols = [symbol.upper() for symbol in symbols]
    config = config.merged({'trading_pairs': set(config.trading_pairs) | set(symbols)})

    database: Optional[DatabaseManager] = None
    if settings.persist_trades:
        database = DatabaseManager(settings.database_url)
        store = SqlTradeStore(database)
    else:
        store = InMemoryTradeStore()

    market_data = BinanceService(request_timeout=settings.request_timeout)
    cache = StreamingPriceCache()
    stream = PriceStream(cache, market_data)
    momentum = MomentumSignalSource()
    alerts = AlertManager()

    async with create_exchange_client(credentials, timeout=settings.request_timeout) as client:
        engine = AutoTradingEngine(
            client,
            price_provider=cache,
            balance_provider=ConnectorBalanceProvider(client),
            config=config,
            store=store,
            alerts=alerts,
            call_timeout=settings.request_timeout * 2,
        )

        async def on_tick(tick: PriceTick) -> None:
            momentum.on_price(tick.symbol, tick.price)
            await engine.on_price_tick(tick.symbol, tick.price)
            signal = await momentum.get_latest_signal(tick.symbol)
            if signal is not None:
                await engine.process_signal(signal)

        logger.info(
            'Auto-trading %s on %s for %ss (enabled=%s)',
            ','.join(symbols),
            exchange.value,
            duration,
            config.enabled,
        )
        try:
            await asyncio.wait_for(stream.run(symbols, on_tick), timeout=duration)
        except asyncio.TimeoutError:
            logger.info('Run finished after %ss', duration)
        except DataUnavailableError as error:
            logger.error('Stopping early: %s', error)
        finally:
            await market_data.close()
            if database is not None:
                database.close()

        _print({
            'alerts': [alert.to_dict() for alert in alerts.drain()],
            'alertCounts': alerts.counts(),
            'stats': engine.get_trading_stats().to_dict(),
            'openPositions': [trade.to_dict() for trade in engine.get_open_positions()],
        })


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Crypto auto-trader CLI')
    parser.add_argument('--env-file', default='.env')
    sub = parser.add_subparsers(dest='command', required=True)

    exchanges = [exchange.value for exchange in Exchange]
    for name, help_text in (
        ('check', 'Validate exchange API credentials'),
        ('balance', 'Show normalized account balances'),
        ('positions', 'Show open positions'),
    ):
        command = sub.add_parser(name, help=help_text)
        command.add_argument('--exchange', choices=exchanges, default=Exchange.BINANCE.value)

    run = sub.add_parser('run', help='Trade momentum signals from the live price stream')
    run.add_argument('--exchange', choices=exchanges, default=Exchange.BINANCE.value)
    run.add_argument('--symbols', nargs='+', default=['BTCUSDT'])
    run.add_argument('--duration', type=int, default=300, help='Runtime in seconds')
    run.add_argument('--enable', action='store_true', help='Enable auto-trading regardless of AUTO_TRADING_ENABLED')

    return parser


async def async_main(args: argparse.Namespace) -> None:
    settings = load_settings(args.env_file)
    configure_logging(settings.log_level)
    environ = load_environment(args.env_file)
    exchange = Exchange.parse(args.exchange)
    service = TradingService(
        EnvironmentCredentialStore(environ),
        client_factory=lambda credentials: create_exchange_client(credentials, timeout=settings.request_timeout),
    )
    if args.command == 'check':
        _print(await run_check(service, environ, exchange))
    elif args.command == 'balance':
        _print(await service.get_balance(exchange))
    elif args.command == 'positions':
        _print(await service.get_positions(exchange))
    elif args.command == 'run':
        await run_trading(settings, environ, exchange, args.symbols, args.duration, args.enable)
    else:  # pragma: no cover
        raise ValueError(f'Unknown command {args.command}')


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    asyncio.run(async_main(args))


if __name__ == '__main__':
    main()
