"""Trading signal contract and signal sources."""

from .models import SignalAction, TradeSignal
from .momentum import MomentumSignalSource
from .scoring import ScoringSignalProvider, SignalInput, generate_signal

__all__ = [
    'MomentumSignalSource',
    'ScoringSignalProvider',
    'SignalAction',
    'SignalInput',
    'TradeSignal',
    'generate_signal',
]
