"""Caller-facing operations returning ``{success, ...}`` envelopes.

Every method converts failures into ``{'success': False, 'error': str}``
with registered secrets scrubbed from the message, so an RPC layer can
return the result unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from .config.exchange_config import Exchange, ExchangeCredentials
from .exchanges.base import ExchangeClient
from .exchanges.errors import ConnectorError, CredentialError
from .exchanges.models import OrderRequest
from .exchanges.registry import create_exchange_client
from .market_data.providers import CredentialStore
from .monitoring.logger import redact
from .trading.engine import AutoTradingEngine

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ExchangeCredentials], ExchangeClient]
Envelope = Dict[str, Any]


def _failure(error: BaseException | str) -> Envelope:
    return {'success': False, 'error': redact(str(error))}


class TradingService:
    def __init__(
        self,
        credential_store: CredentialStore,
        engine: Optional[AutoTradingEngine] = None,
        *,
        client_factory: ClientFactory = create_exchange_client,
    ) -> None:
        self._credentials = credential_store
        self._engine = engine
        self._client_factory = client_factory

    async def connect_exchange(self, credentials: ExchangeCredentials | Mapping[str, Any]) -> Envelope:
        """Check that the credentials work; storing them is the caller's job."""
        try:
            if not isinstance(credentials, ExchangeCredentials):
                credentials = ExchangeCredentials(
                    exchange=credentials.get('exchange', ''),
                    api_key=credentials.get('apiKey', ''),
                    secret_key=credentials.get('secretKey', ''),
                    passphrase=credentials.get('passphrase'),
                )
            async with self._client_factory(credentials) as client:
                valid = await client.validate_credentials()
        except (ValueError, ConnectorError) as error:
            logger.warning('Exchange connection check failed: %s', error)
            return _failure(error)
        if not valid:
            return _failure(f'Could not authenticate with {credentials.exchange.value}; check the API key and permissions')
        logger.info('Connected to %s', credentials.exchange.value)
        return {'success': True}

    async def place_order(self, exchange: Exchange | str, order: OrderRequest | Mapping[str, Any]) -> Envelope:
        try:
            request = order if isinstance(order, OrderRequest) else _order_from_mapping(order)
            async with self._client(exchange) as client:
                response = await client.place_order(request)
        except (ValueError, ConnectorError) as error:
            logger.warning('Order placement on %s failed: %s', exchange, error)
            return _failure(error)
        return {'success': True, 'order': response.to_dict()}

    async def cancel_order(self, exchange: Exchange | str, symbol: str, order_id: str) -> Envelope:
        try:
            async with self._client(exchange) as client:
                await client.cancel_order(symbol, order_id)
        except (ValueError, ConnectorError) as error:
            logger.warning('Cancel of %s on %s failed: %s', order_id, exchange, error)
            return _failure(error)
        return {'success': True}

    async def get_balance(self, exchange: Exchange | str) -> Envelope:
        try:
            async with self._client(exchange) as client:
                balances = await client.get_balance()
        except (ValueError, ConnectorError) as error:
            logger.warning('Balance query on %s failed: %s', exchange, error)
            return _failure(error)
        return {'success': True, 'balance': [balance.to_dict() for balance in balances]}

    async def get_positions(self, exchange: Exchange | str) -> Envelope:
        try:
            async with self._client(exchange) as client:
                positions = await client.get_positions()
                supported = client.supports_positions
        except (ValueError, ConnectorError) as error:
            logger.warning('Positions query on %s failed: %s', exchange, error)
            return _failure(error)
        return {
            'success': True,
            'positions': [position.to_dict() for position in positions],
            'positionsSupported': supported,
        }

    def update_auto_trading_config(self, partial: Mapping[str, Any]) -> Envelope:
        engine = self._require_engine()
        if isinstance(engine, dict):
            return engine
        try:
            config = engine.update_config(partial)
        except ValueError as error:
            return {**_failure(error), 'config': engine.config.to_dict()}
        return {'success': True, 'config': config.to_dict()}

    def toggle_auto_trading(self, enabled: bool) -> Envelope:
        engine = self._require_engine()
        if isinstance(engine, dict):
            return engine
        try:
            return {'success': True, 'enabled': engine.toggle_auto_trading(enabled)}
        except ValueError as error:
            return {**_failure(error), 'enabled': engine.config.enabled}

    async def close_position(self, symbol: str) -> Envelope:
        engine = self._require_engine()
        if isinstance(engine, dict):
            return engine
        if not await engine.close_position(symbol):
            return _failure(f'Could not close position for {symbol}')
        return {'success': True}

    def get_trading_stats(self) -> Dict[str, Any]:
        if self._engine is None:
            return {}
        return self._engine.get_trading_stats().to_dict()

    def get_trade_history(self) -> List[Dict[str, Any]]:
        if self._engine is None:
            return []
        return [trade.to_dict() for trade in self._engine.get_trade_history()]

    def _client(self, exchange: Exchange | str) -> ExchangeClient:
        exchange = Exchange.parse(exchange)
        credentials = self._credentials.get_credentials(exchange)
        if credentials is None:
            raise CredentialError('no API credentials stored', exchange=exchange.value)
        return self._client_factory(credentials)

    def _require_engine(self) -> AutoTradingEngine | Envelope:
        if self._engine is None:
            return _failure('Auto-trading engine is not configured')
        return self._engine


def _order_from_mapping(order: Mapping[str, Any]) -> OrderRequest:
    try:
        return OrderRequest(
            symbol=order['symbol'],
            side=order['side'],
            quantity=order['quantity'],
            price=order.get('price'),
            order_type=order.get('orderType', 'LIMIT' if order.get('price') is not None else 'MARKET'),
            leverage=order.get('leverage'),
            stop_loss=order.get('stopLoss'),
            take_profit=order.get('takeProfit'),
        )
    except KeyError as error:
        raise ValueError(f'Order is missing {error.args[0]}') from None


__all__ = ['TradingService']
