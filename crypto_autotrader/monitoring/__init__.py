"""Monitoring and alerting helpers."""

from .alerts import Alert, AlertLevel, AlertManager
from .logger import SecretRedactingFilter, configure_logging, redact, register_secrets

__all__ = [
    'Alert',
    'AlertLevel',
    'AlertManager',
    'SecretRedactingFilter',
    'configure_logging',
    'redact',
    'register_secrets',
]
