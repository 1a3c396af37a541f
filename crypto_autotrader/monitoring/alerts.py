"""Trade lifecycle alerts raised by the auto-trading engine."""

from __future__ import annotations

import enum
import logging
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


class AlertLevel(str, enum.Enum):
    INFO = 'INFO'
    WARNING = 'WARNING'
    CRITICAL = 'CRITICAL'

    @property
    def log_level(self) -> int:
        return getattr(logging, self.value)


@dataclass(frozen=True)
class Alert:
    message: str
    level: AlertLevel
    symbol: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            'level': self.level.value,
            'symbol': self.symbol,
            'message': self.message,
            'createdAt': self.created_at.isoformat(),
        }


class AlertManager:
    """Keeps the most recent alerts plus an undelivered backlog.

    Notification glue calls :meth:`drain` to take everything raised since
    the previous call; :meth:`latest` is a read-only view for status output.
    """

    def __init__(self, max_alerts: int = 100) -> None:
        self._history: Deque[Alert] = deque(maxlen=max_alerts)
        self._undelivered: Deque[Alert] = deque(maxlen=max_alerts)
        self._counts: Counter[AlertLevel] = Counter()

    def emit(self, alert: Alert) -> None:
        self._history.append(alert)
        self._undelivered.append(alert)
        self._counts[alert.level] += 1
        if alert.level is AlertLevel.CRITICAL:
            logger.log(alert.level.log_level, 'Alert for %s: %s', alert.symbol or '-', alert.message)

    def drain(self) -> List[Alert]:
        alerts = list(self._undelivered)
        self._undelivered.clear()
        return alerts

    def latest(self, limit: int = 10) -> List[Alert]:
        return list(self._history)[-limit:]

    def counts(self) -> Dict[str, int]:
        return {level.value: self._counts[level] for level in AlertLevel}


__all__ = ['Alert', 'AlertLevel', 'AlertManager']
