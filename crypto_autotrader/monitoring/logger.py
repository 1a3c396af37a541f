"""Logging helpers."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Iterable, Optional, Set

_REDACTED = '***'
_secrets: Set[str] = set()
_secrets_lock = threading.Lock()


def register_secrets(values: Iterable[str]) -> None:
    """Remember secret strings so they are scrubbed from log output."""
    with _secrets_lock:
        _secrets.update(value for value in values if value)


def redact(text: str) -> str:
    with _secrets_lock:
        secrets = sorted(_secrets, key=len, reverse=True)
    for secret in secrets:
        text = text.replace(secret, _REDACTED)
    return text


_formatter = logging.Formatter()
_previous_factory: Optional[Callable[..., logging.LogRecord]] = None


def scrub_record(record: logging.LogRecord) -> logging.LogRecord:
    """Redact the rendered message, exception text and stack of ``record``."""
    try:
        message = record.getMessage()
    except (TypeError, ValueError):
        # malformed %-args; the handler reports it when formatting
        message = None
    if message is not None:
        scrubbed = redact(message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
    if record.exc_info and not record.exc_text:
        record.exc_text = _formatter.formatException(record.exc_info)
    if record.exc_text:
        record.exc_text = redact(record.exc_text)
    if record.stack_info:
        record.stack_info = redact(record.stack_info)
    return record


class SecretRedactingFilter(logging.Filter):
    """Handler filter applying :func:`scrub_record`."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        scrub_record(record)
        return True


def _install_record_factory() -> None:
    global _previous_factory
    if _previous_factory is not None:
        return
    _previous_factory = previous = logging.getLogRecordFactory()

    def factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
        return scrub_record(previous(*args, **kwargs))

    logging.setLogRecordFactory(factory)


def configure_logging(level: str = 'INFO', *, include_timestamp: bool = True) -> None:
    """Configure root logging and scrub secrets from every record created afterwards.

    The record factory covers handlers attached later; the handler filter
    covers records created before this call.
    """
    fmt = '%(asctime)s - %(name)s - %(levelname)s - %(message)s' if include_timestamp else '%(name)s - %(levelname)s - %(message)s'
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=fmt)
    _install_record_factory()
    for handler in logging.getLogger().handlers:
        if not any(isinstance(existing, SecretRedactingFilter) for existing in handler.filters):
            handler.addFilter(SecretRedactingFilter())


__all__ = ['SecretRedactingFilter', 'configure_logging', 'redact', 'register_secrets', 'scrub_record']
