"""Weighted multi-factor signal scoring.

Every factor is scored on 0-100 around a neutral 50 and blended as
technical 30%, on-chain 30%, sentiment 20%, macro 20%.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .models import SignalAction, TradeSignal

logger = logging.getLogger(__name__)

WEIGHTS = {'technical': 0.3, 'on_chain': 0.3, 'sentiment': 0.2, 'macro': 0.2}


@dataclass(frozen=True)
class TechnicalIndicators:
    rsi: float
    macd: float
    volume_change: float
    order_book_imbalance: float


@dataclass(frozen=True)
class OnChainMetrics:
    whale_activity: float
    stablecoin_flow: float
    exchange_flow: float


@dataclass(frozen=True)
class SentimentMetrics:
    twitter_sentiment: float
    news_sentiment: float
    fear_greed_index: float


@dataclass(frozen=True)
class MacroMetrics:
    dxy_change: float
    stock_market_change: float
    token_unlock_pressure: float


@dataclass(frozen=True)
class SignalInput:
    symbol: str
    technical: TechnicalIndicators
    on_chain: OnChainMetrics
    sentiment: SentimentMetrics
    macro: MacroMetrics


def _clamp(score: float) -> float:
    return max(0.0, min(100.0, score))


def technical_score(indicators: TechnicalIndicators) -> float:
    score = 50.0
    if indicators.rsi < 30:
        score += 15
    elif indicators.rsi > 70:
        score -= 15
    score += indicators.macd / 100 * 12.5
    score += indicators.volume_change / 100 * 12.5
    score += indicators.order_book_imbalance / 100 * 10
    return _clamp(score)


def on_chain_score(metrics: OnChainMetrics) -> float:
    score = 50.0
    score += metrics.whale_activity / 100 * 20
    score += metrics.stablecoin_flow / 100 * 17.5
    score += metrics.exchange_flow / 100 * 12.5
    return _clamp(score)


def sentiment_score(metrics: SentimentMetrics) -> float:
    score = 50.0
    score += metrics.twitter_sentiment / 100 * 25
    score += metrics.news_sentiment / 100 * 15
    # extreme fear reads as opportunity, extreme greed as caution
    if metrics.fear_greed_index < 25:
        score += 10
    elif metrics.fear_greed_index > 75:
        score -= 10
    return _clamp(score)


def macro_score(metrics: MacroMetrics) -> float:
    score = 50.0
    score -= metrics.dxy_change / 100 * 20
    score += metrics.stock_market_change / 100 * 17.5
    score -= metrics.token_unlock_pressure / 100 * 12.5
    return _clamp(score)


def generate_signal(data: SignalInput, timestamp: Optional[int] = None) -> TradeSignal:
    technical = technical_score(data.technical)
    on_chain = on_chain_score(data.on_chain)
    sentiment = sentiment_score(data.sentiment)
    macro = macro_score(data.macro)
    final = (
        technical * WEIGHTS['technical']
        + on_chain * WEIGHTS['on_chain']
        + sentiment * WEIGHTS['sentiment']
        + macro * WEIGHTS['macro']
    )

    if final >= 75:
        action, confidence = SignalAction.BUY, (final - 75) / 25
        reasoning = (
            f'Strong buy: technicals bullish (RSI {data.technical.rsi:.1f}), '
            'on-chain accumulation and positive sentiment.'
        )
    elif final >= 60:
        action, confidence = SignalAction.BUY, (final - 60) / 15
        reasoning = 'Buy: several indicators aligned bullish.'
    elif final >= 40:
        action, confidence = SignalAction.HOLD, 0.5
        reasoning = 'Neutral market without directional bias.'
    elif final >= 25:
        action, confidence = SignalAction.SELL, (40 - final) / 15
        reasoning = 'Sell: several bearish indicators present.'
    else:
        action, confidence = SignalAction.SELL, (25 - final) / 25
        reasoning = 'Strong sell: technicals bearish, on-chain distribution and negative sentiment.'

    kwargs = {} if timestamp is None else {'timestamp': timestamp}
    return TradeSignal(
        symbol=data.symbol,
        action=action,
        confidence=min(1.0, max(0.0, confidence)),
        technical_score=technical,
        on_chain_score=on_chain,
        sentiment_score=sentiment,
        macro_score=macro,
        reasoning=reasoning,
        score=final,
        **kwargs,
    )


MetricsSource = Callable[[str], Awaitable[Optional[SignalInput]]]


class ScoringSignalProvider:
    """Scores factor metrics fetched from an external data provider."""

    def __init__(self, metrics_source: MetricsSource) -> None:
        self._metrics_source = metrics_source

    async def get_latest_signal(self, symbol: str) -> Optional[TradeSignal]:
        data = await self._metrics_source(symbol)
        if data is None:
            logger.debug('No factor metrics available for %s', symbol)
            return None
        return generate_signal(data)


__all__ = [
    'MacroMetrics',
    'OnChainMetrics',
    'ScoringSignalProvider',
    'SentimentMetrics',
    'SignalInput',
    'TechnicalIndicators',
    'generate_signal',
    'macro_score',
    'on_chain_score',
    'sentiment_score',
    'technical_score',
]
