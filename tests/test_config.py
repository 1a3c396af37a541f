"""Tests for settings, credentials and auto-trading configuration."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest

from crypto_autotrader.config import AutoTradingConfig, Exchange, ExchangeCredentials, Settings


def test_defaults_match_router_defaults() -> None:
    config = AutoTradingConfig()

    assert config.to_dict() == {
        'enabled': False,
        'maxPositionSize': Decimal('1000'),
        'maxLeverage': 5,
        'stopLossPercent': Decimal('2'),
        'takeProfitPercent': Decimal('5'),
        'riskRewardRatio': Decimal('0.4'),
        'maxOpenPositions': 5,
        'minConfidence': Decimal('60'),
        'tradingPairs': ['BTCUSDT', 'ETHUSDT'],
        'riskPerTradePercent': Decimal('2'),
    }


def test_merged_accepts_camel_and_snake_case() -> None:
    config = AutoTradingConfig().merged({'maxOpenPositions': '3', 'trading_pairs': 'solusdt, btcusdt'})

    assert config.max_open_positions == 3
    assert config.trading_pairs == frozenset({'SOLUSDT', 'BTCUSDT'})
    assert config.min_confidence == Decimal('60')


@pytest.mark.parametrize(
    'partial',
    [
        {'unknownSetting': 1},
        {'minConfidence': 101},
        {'maxLeverage': 0},
        {'maxLeverage': 2.5},
        {'stopLossPercent': 'abc'},
        {'maxOpenPositions': True},
        {'maxOpenPositions': 'Infinity'},
        {'enabled': 2},
        {'enabled': 'maybe'},
        {'tradingPairs': 5},
        {'tradingPairs': {'BTCUSDT': 1}},
    ],
)
def test_merged_rejects_invalid_values(partial) -> None:
    with pytest.raises(ValueError):
        AutoTradingConfig().merged(partial)


def test_merged_accepts_integer_flags() -> None:
    assert AutoTradingConfig(enabled=True).merged({'enabled': 0}).enabled is False
    assert AutoTradingConfig().merged({'enabled': 1}).enabled is True
    with pytest.raises(ValueError):
        AutoTradingConfig().merged([('enabled', True)])


def test_auto_trading_config_from_env() -> None:
    config = AutoTradingConfig.from_env({
        'AUTO_TRADING_ENABLED': 'true',
        'AUTO_TRADING_MIN_CONFIDENCE': '70',
        'AUTO_TRADING_TRADING_PAIRS': 'BTCUSDT',
    })

    assert config.enabled is True
    assert config.min_confidence == Decimal('70')
    assert config.trading_pairs == frozenset({'BTCUSDT'})


def test_credentials_from_env() -> None:
    credentials = ExchangeCredentials.from_env(
        'okx', {'OKX_API_KEY': 'k', 'OKX_SECRET_KEY': 's', 'OKX_PASSPHRASE': 'p'}
    )

    assert credentials.exchange is Exchange.OKX
    assert credentials.secrets == ('s', 'p')
    with pytest.raises(ValueError):
        ExchangeCredentials.from_env('binance', {})
    with pytest.raises(ValueError):
        Exchange.parse('ftx')


def test_settings_read_env_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_file = tmp_path / '.env'
    env_file.write_text(
        '# comment\n'
        f'DATA_DIRECTORY={tmp_path / "data"}\n'
        'EXCHANGE_REQUEST_TIMEOUT=20\n'
        'export PERSIST_TRADES=yes\n'
        'not a setting\n'
        'LOG_LEVEL="DEBUG"\n'
    )
    monkeypatch.setenv('LOG_LEVEL', 'WARNING')
    monkeypatch.delenv('EXCHANGE_REQUEST_TIMEOUT', raising=False)
    monkeypatch.delenv('DATA_DIRECTORY', raising=False)
    monkeypatch.delenv('PERSIST_TRADES', raising=False)

    settings = Settings.from_env(env_file)

    assert settings.request_timeout == 20.0
    assert settings.persist_trades is True
    assert settings.log_level == 'WARNING'
    assert (tmp_path / 'data').is_dir()


def test_request_timeout_must_be_bounded() -> None:
    with pytest.raises(ValueError):
        Settings(request_timeout=0)
    with pytest.raises(ValueError):
        Settings(request_timeout=120)
