"""Connector error taxonomy."""

from __future__ import annotations

from typing import Optional


class ConnectorError(Exception):
    """Base class for failures raised by an exchange client."""

    def __init__(self, message: str, *, exchange: Optional[str] = None, endpoint: Optional[str] = None) -> None:
        super().__init__(message)
        self.exchange = exchange
        self.endpoint = endpoint

    def __str__(self) -> str:
        message = super().__str__()
        if self.exchange and self.endpoint:
            return f'{self.exchange} {self.endpoint}: {message}'
        if self.exchange:
            return f'{self.exchange}: {message}'
        return message


class CredentialError(ConnectorError):
    """API key, passphrase or signature rejected by the exchange."""


class UnsupportedOperationError(ConnectorError):
    """The exchange client does not implement the requested capability."""


class ConnectorTransportError(ConnectorError):
    """Network failure, timeout or non-2xx response."""

    def __init__(self, message: str, *, status: Optional[int] = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.status = status


class ExchangeRejectedError(ConnectorError):
    """The exchange answered but refused the request."""

    def __init__(self, message: str, *, code: Optional[str] = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.code = code


class UnexpectedResponseError(ConnectorError):
    """A 2xx answer whose payload lacks the fields the client needs.

    For order placement the order may already be live on the exchange.
    """


class InvalidOrderError(ConnectorError):
    """Order parameters rejected locally, before any network call."""


class DataUnavailableError(Exception):
    """A price or balance provider could not answer."""


__all__ = [
    'ConnectorError',
    'ConnectorTransportError',
    'CredentialError',
    'DataUnavailableError',
    'ExchangeRejectedError',
    'InvalidOrderError',
    'UnexpectedResponseError',
    'UnsupportedOperationError',
]
