"""
WebSocket transport for Pacifica real-time data and trading

One WebSocketClient owns one persistent connection. Subscriptions and
signed operations issued while the socket is down are kept and applied on
the next successful open: subscriptions are replayed in the order they
were requested, then queued operations are signed (with a fresh
timestamp) and sent. A caller-initiated ``disconnect()`` is the only thing
that clears them.

Connection states::

    DISCONNECTED -> CONNECTING -> OPEN -> CLOSING -> DISCONNECTED
                                      \\-> RECONNECTING -> CONNECTING
"""

import asyncio
import inspect
import json
import logging
from collections import deque
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, NamedTuple, Optional, Tuple, Union

import websockets
from websockets.exceptions import WebSocketException

from ..config.settings import WebSocketConfig
from ..exceptions import EncodingError, NetworkError, PacificaError, SigningError, ValidationError
from ..signing.canonical import canonicalize
from ..signing.signer import BaseRequestSigner
from ..signing.types import OperationType
from ..signing.utils import operation_name, validate_payload
from .resilience import RetryPolicy

EventHandler = Callable[[Any], Union[None, Awaitable[None]]]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    RECONNECTING = "reconnecting"


class EventType(str, Enum):
    """Event channels a handler can listen on"""
    OPEN = "open"
    CLOSE = "close"
    ERROR = "error"
    MESSAGE = "message"
    RECONNECT = "reconnect"
    SUBSCRIPTION = "subscription"
    ORDER_UPDATE = "order_update"
    TRADE = "trade"
    TICKER = "ticker"
    ORDERBOOK = "orderbook"
    TWAP_ORDER = "twap_order"
    TWAP_ORDER_UPDATE = "twap_order_update"


# Frame discriminator -> typed channel; anything else only reaches MESSAGE
TYPED_EVENTS: Dict[str, EventType] = {
    'order_update': EventType.ORDER_UPDATE,
    'trade': EventType.TRADE,
    'ticker': EventType.TICKER,
    'orderbook': EventType.ORDERBOOK,
    'account_twap_orders': EventType.TWAP_ORDER,
    'account_twap_order_updates': EventType.TWAP_ORDER_UPDATE,
}


class Subscription(NamedTuple):
    channel: str
    subscribe_frame: Dict[str, Any]
    unsubscribe_frame: Dict[str, Any]


class SignedIntent(NamedTuple):
    operation: str
    payload: Dict[str, Any]
    agent_wallet: Optional[str]


def channel_subscription(channel: str) -> Subscription:
    return Subscription(
        channel,
        {'type': 'subscribe', 'channel': channel},
        {'type': 'unsubscribe', 'channel': channel},
    )


def account_source_subscription(channel: str, source: str, account: str) -> Subscription:
    params = {'source': source, 'account': account}
    return Subscription(
        channel,
        {'method': 'subscribe', 'params': dict(params)},
        {'method': 'unsubscribe', 'params': dict(params)},
    )


class WebSocketClient:
    """
    Persistent WebSocket connection with subscription replay.

    Args:
        config: Streaming settings (URL, reconnect behaviour, builder code)
        signer: Signer used for ``send_signed_operation``
        agent_wallet: Agent wallet address attached to signed operations
        connector: Replacement for ``websockets.connect``
        policy: Reconnect backoff, built from ``config`` when omitted
        logger: Logger to use instead of the module logger

    Example:
        >>> client = WebSocketClient(signer=RequestSigner(key))
        >>> client.on("ticker", print)
        >>> await client.connect()
        >>> await client.subscribe_to_ticker("BTC")
    """

    def __init__(self, config: Optional[WebSocketConfig] = None,
                 signer: Optional[BaseRequestSigner] = None,
                 agent_wallet: Optional[str] = None,
                 connector: Optional[Callable[..., Any]] = None,
                 policy: Optional[RetryPolicy] = None,
                 logger: Optional[logging.Logger] = None):
        self.config = config or WebSocketConfig()
        self.signer = signer
        self.agent_wallet = agent_wallet
        self.builder_code = self.config.builder_code
        self.logger = logger or logging.getLogger(__name__)
        self.reconnect_attempts = 0

        self._connector = connector or websockets.connect
        self._policy = policy or RetryPolicy(
            max_retries=self.config.max_reconnect_attempts,
            base_delay=self.config.reconnect_interval,
            max_delay=self.config.max_reconnect_delay,
        )
        self._state = ConnectionState.DISCONNECTED
        self._ws = None
        self._subscriptions: Dict[str, Subscription] = {}
        self._pending: Deque[SignedIntent] = deque()
        self._handlers: Dict[EventType, Dict[EventHandler, None]] = {}
        self._reader_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._stop: Optional[asyncio.Event] = None
        self._done: Optional[asyncio.Event] = None
        self._closing = False
        self._fatal_error: Optional[NetworkError] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.OPEN

    @property
    def subscriptions(self) -> Tuple[str, ...]:
        """Active channels in the order they were requested."""
        return tuple(self._subscriptions)

    @property
    def pending_operations(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Open the connection.

        Raises:
            NetworkError: If the socket cannot be opened
        """
        if self._state in (ConnectionState.OPEN, ConnectionState.CONNECTING):
            return
        if self._state == ConnectionState.RECONNECTING:
            # The backoff loop must not open a second socket
            self._state = ConnectionState.CONNECTING
            await self._cancel_reconnect()

        self._closing = False
        self._fatal_error = None
        if self._stop is None or self._stop.is_set():
            self._stop = asyncio.Event()
        if self._done is None or self._done.is_set():
            self._done = asyncio.Event()
        await self._open()

    async def _cancel_reconnect(self) -> None:
        task, self._reconnect_task = self._reconnect_task, None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def _open(self) -> None:
        self._state = ConnectionState.CONNECTING
        self.logger.debug(f"Connecting to {self.config.url}")
        try:
            ws = await asyncio.wait_for(
                self._connector(
                    self.config.url,
                    open_timeout=self.config.open_timeout,
                    ping_interval=self.config.ping_interval,
                ),
                timeout=self.config.open_timeout,
            )
        except asyncio.TimeoutError as e:
            self._state = ConnectionState.DISCONNECTED
            raise NetworkError(
                f"WebSocket connect timed out after {self.config.open_timeout} seconds"
            ) from e
        except (OSError, WebSocketException) as e:
            self._state = ConnectionState.DISCONNECTED
            raise NetworkError(f"WebSocket connection failed: {e}") from e

        self._ws = ws
        self._state = ConnectionState.OPEN
        self.reconnect_attempts = 0
        self.logger.info(f"WebSocket connected to {self.config.url}")

        try:
            await self._replay_subscriptions()
            await self._flush_pending()
        finally:
            self._reader_task = asyncio.ensure_future(self._read_loop(ws))
        await self._emit(EventType.OPEN, {})

    async def _replay_subscriptions(self) -> None:
        # Snapshot: handlers may mutate the set while frames are in flight
        for subscription in list(self._subscriptions.values()):
            if subscription.channel not in self._subscriptions:
                continue
            if not await self._send_frame(subscription.subscribe_frame):
                return
            await self._emit(EventType.SUBSCRIPTION, {'channel': subscription.channel})

    async def _flush_pending(self) -> None:
        while self._pending and self._state == ConnectionState.OPEN:
            intent = self._pending.popleft()
            try:
                frame = self._build_operation_frame(intent)
            except PacificaError as e:
                self.logger.error(f"Dropping queued {intent.operation} operation: {e.message}")
                await self._emit(EventType.ERROR, {'error': e, 'operation': intent.operation})
                continue
            if not await self._send_frame(frame):
                self._pending.appendleft(intent)
                return
            self.logger.debug(f"Sent queued {intent.operation} operation")

    async def _read_loop(self, ws) -> None:
        error: Optional[BaseException] = None
        try:
            async for raw in ws:
                await self._handle_raw(raw)
        except (WebSocketException, OSError) as e:
            error = e

        if self._closing or self._ws is not ws:
            return
        await self._connection_lost(error)

    async def _connection_lost(self, error: Optional[BaseException]) -> None:
        self._ws = None
        self._state = ConnectionState.DISCONNECTED
        if error is not None:
            self.logger.warning(f"WebSocket connection lost: {error}")
        else:
            self.logger.warning("WebSocket closed by server")
        await self._emit(EventType.CLOSE, {'error': error})

        if not self.config.reconnect or self._closing:
            self._done.set()
            return

        self._state = ConnectionState.RECONNECTING
        self._reconnect_task = asyncio.ensure_future(self._reconnect_loop())

    async def _reconnect_loop(self) -> None:
        attempt = 0
        while not self._closing:
            if attempt >= self.config.max_reconnect_attempts:
                error = NetworkError(
                    f"Max reconnect attempts reached ({self.config.max_reconnect_attempts})",
                    details={'attempts': attempt}
                )
                self._fatal_error = error
                self._state = ConnectionState.DISCONNECTED
                self.logger.error(f"WebSocket giving up: {error.message}")
                await self._emit(EventType.ERROR, {'error': error})
                self._done.set()
                return

            attempt += 1
            self.reconnect_attempts = attempt
            delay = self._policy.reconnect_delay(attempt)
            self.logger.info(
                f"WebSocket reconnecting (attempt {attempt}/{self.config.max_reconnect_attempts}) "
                f"in {delay:.2f}s"
            )
            await self._emit(EventType.RECONNECT, {'attempt': attempt, 'delay': delay})

            # disconnect() sets the stop event and cuts the sleep short
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=delay)
                return
            except asyncio.TimeoutError:
                pass
            if self._state != ConnectionState.RECONNECTING:
                return

            try:
                await self._open()
                return
            except NetworkError as e:
                self._state = ConnectionState.RECONNECTING
                self.logger.error(f"WebSocket reconnection failed: {e.message}")
                await self._emit(EventType.ERROR, {'error': e})

    async def disconnect(self) -> None:
        """
        Close the connection, stop reconnecting and forget all subscriptions
        and queued operations.
        """
        self._closing = True
        self._state = ConnectionState.CLOSING
        if self._stop is not None:
            self._stop.set()

        current = asyncio.current_task()
        tasks = [
            task for task in (self._reconnect_task, self._reader_task)
            if task is not None and not task.done() and task is not current
        ]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._reconnect_task = None
        self._reader_task = None

        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except (WebSocketException, OSError) as e:
                self.logger.debug(f"Error while closing WebSocket: {e}")

        self._subscriptions.clear()
        self._pending.clear()
        self._state = ConnectionState.DISCONNECTED
        self.logger.info("WebSocket disconnected")
        await self._emit(EventType.CLOSE, {'error': None})
        if self._done is not None:
            self._done.set()

    async def wait_closed(self) -> None:
        """
        Wait until the client stops for good.

        Raises:
            NetworkError: If reconnection was abandoned
        """
        if self._done is not None:
            await self._done.wait()
        if self._fatal_error is not None:
            raise self._fatal_error

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def subscribe(self, channel: str) -> None:
        """
        Subscribe to a channel such as ``prices``, ``ticker:BTC``,
        ``orderbook:BTC`` or ``trades:BTC``. Subscribing twice is a no-op.
        """
        if not channel or not isinstance(channel, str):
            raise ValidationError("Channel must be a non-empty string", field='channel')
        await self._add_subscription(channel_subscription(channel))

    async def unsubscribe(self, channel: str) -> None:
        subscription = self._subscriptions.pop(channel, None)
        if subscription is None:
            return
        if self._state == ConnectionState.OPEN:
            await self._send_frame(subscription.unsubscribe_frame)

    async def _add_subscription(self, subscription: Subscription) -> None:
        if subscription.channel in self._subscriptions:
            return
        self._subscriptions[subscription.channel] = subscription
        if self._state != ConnectionState.OPEN:
            self.logger.debug(f"Queued subscription {subscription.channel} until connected")
            return
        if await self._send_frame(subscription.subscribe_frame):
            await self._emit(EventType.SUBSCRIPTION, {'channel': subscription.channel})

    async def subscribe_to_ticker(self, market: str) -> None:
        await self.subscribe(f"ticker:{market}")

    async def subscribe_to_orderbook(self, market: str) -> None:
        await self.subscribe(f"orderbook:{market}")

    async def subscribe_to_trades(self, market: str) -> None:
        await self.subscribe(f"trades:{market}")

    async def subscribe_to_prices(self) -> None:
        await self.subscribe("prices")

    async def subscribe_to_twap_orders(self, account: str) -> None:
        if not account:
            raise ValidationError("Account is required", field='account')
        await self._add_subscription(
            account_source_subscription(f"twap_orders:{account}", 'account_twap_orders', account)
        )

    async def subscribe_to_twap_order_updates(self, account: str) -> None:
        if not account:
            raise ValidationError("Account is required", field='account')
        await self._add_subscription(
            account_source_subscription(
                f"twap_order_updates:{account}", 'account_twap_order_updates', account
            )
        )

    # ------------------------------------------------------------------
    # Signed operations
    # ------------------------------------------------------------------

    async def send_signed_operation(self, operation: Union[str, OperationType],
                                    payload: Optional[Dict[str, Any]] = None,
                                    agent_wallet: Optional[str] = None) -> bool:
        """
        Sign and send an operation frame.

        The frame is fire-and-forget: acknowledgements arrive on the event
        stream. While the socket is not open the operation is queued and
        signed when it is finally sent.

        Returns:
            bool: True if sent now, False if queued

        Raises:
            SigningError: If no signer is configured
            ValidationError: If the payload shadows an envelope field
            EncodingError: If the payload has no canonical encoding
        """
        if self.signer is None:
            raise SigningError("A signer is required for signed operations")

        data = dict(payload or {})
        if self.builder_code and 'builder_code' not in data:
            data['builder_code'] = self.builder_code
        intent = SignedIntent(operation_name(operation), validate_payload(data), agent_wallet)
        canonicalize(intent.payload)

        if self._state != ConnectionState.OPEN:
            self._pending.append(intent)
            self.logger.info(f"WebSocket not open, queued {intent.operation} operation")
            return False

        frame = self._build_operation_frame(intent)
        if await self._send_frame(frame):
            return True
        self._pending.append(intent)
        return False

    def _build_operation_frame(self, intent: SignedIntent) -> Dict[str, Any]:
        envelope = self.signer.sign(intent.operation, intent.payload)
        frame: Dict[str, Any] = {'type': 'operation', 'operation': intent.operation}
        frame.update(envelope.to_dict())
        wallet = intent.agent_wallet or self.agent_wallet
        if wallet:
            frame['agent_wallet'] = wallet
        return frame

    async def create_market_order(self, market: str, side: str, size: str,
                                  agent_wallet: Optional[str] = None) -> bool:
        return await self.send_signed_operation(
            OperationType.CREATE_MARKET_ORDER,
            {'market': market, 'side': side, 'size': size, 'order_type': 'market'},
            agent_wallet,
        )

    async def create_limit_order(self, market: str, side: str, size: str, price: str,
                                 agent_wallet: Optional[str] = None) -> bool:
        return await self.send_signed_operation(
            OperationType.CREATE_ORDER,
            {'market': market, 'side': side, 'size': size, 'price': price, 'order_type': 'limit'},
            agent_wallet,
        )

    async def create_stop_order(self, market: str, side: str, size: str, stop_price: str,
                                price: Optional[str] = None,
                                agent_wallet: Optional[str] = None) -> bool:
        data = {'market': market, 'side': side, 'size': size, 'stop_price': stop_price}
        if price is not None:
            data['price'] = price
        return await self.send_signed_operation(OperationType.CREATE_STOP_ORDER, data, agent_wallet)

    async def set_position_tpsl(self, market: str, take_profit: Optional[str] = None,
                                stop_loss: Optional[str] = None,
                                agent_wallet: Optional[str] = None) -> bool:
        data: Dict[str, Any] = {'market': market}
        if take_profit is not None:
            data['take_profit'] = take_profit
        if stop_loss is not None:
            data['stop_loss'] = stop_loss
        return await self.send_signed_operation(OperationType.SET_POSITION_TPSL, data, agent_wallet)

    async def cancel_order(self, order_id: Union[int, str], market: Optional[str] = None,
                           agent_wallet: Optional[str] = None) -> bool:
        data: Dict[str, Any] = {'order_id': order_id}
        if market:
            data['market'] = market
        return await self.send_signed_operation(OperationType.CANCEL_ORDER, data, agent_wallet)

    async def close_position(self, market: str, size: Optional[str] = None,
                             agent_wallet: Optional[str] = None) -> bool:
        data: Dict[str, Any] = {'market': market}
        if size:
            data['size'] = size
        return await self.send_signed_operation(OperationType.CLOSE_POSITION, data, agent_wallet)

    async def modify_position(self, market: str, leverage: Optional[int] = None,
                              margin_mode: Optional[str] = None,
                              agent_wallet: Optional[str] = None) -> bool:
        data: Dict[str, Any] = {'market': market}
        if leverage is not None:
            data['leverage'] = leverage
        if margin_mode:
            data['margin_mode'] = margin_mode
        return await self.send_signed_operation(OperationType.MODIFY_POSITION, data, agent_wallet)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event: Union[str, EventType], handler: EventHandler) -> None:
        """Register a handler; coroutine functions are awaited."""
        self._handlers.setdefault(self._event(event), {})[handler] = None

    def off(self, event: Union[str, EventType], handler: EventHandler) -> None:
        self._handlers.get(self._event(event), {}).pop(handler, None)

    @staticmethod
    def _event(event: Union[str, EventType]) -> EventType:
        try:
            return EventType(event)
        except ValueError as e:
            raise ValidationError(f"Unknown event type: {event}", field='event') from e

    async def _emit(self, event: EventType, data: Any) -> None:
        for handler in list(self._handlers.get(event, {})):
            try:
                result = handler(data)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                # One failing handler must not stop the others
                self.logger.error(f"Error in {event.value} handler: {e}")

    async def _handle_raw(self, raw: Union[str, bytes]) -> None:
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode('utf-8', errors='replace')
        try:
            message = json.loads(raw)
        except ValueError as e:
            self.logger.warning(f"Discarding malformed WebSocket frame: {e}")
            await self._emit(EventType.ERROR, {
                'error': EncodingError(f"Malformed WebSocket frame: {e}"),
                'raw': raw,
            })
            return
        await self._dispatch(message)

    async def _dispatch(self, message: Any) -> None:
        await self._emit(EventType.MESSAGE, message)
        if not isinstance(message, dict):
            return

        event = None
        for key in ('type', 'source'):
            discriminator = message.get(key)
            if isinstance(discriminator, str) and discriminator in TYPED_EVENTS:
                event = TYPED_EVENTS[discriminator]
                break
        if event is None:
            return
        await self._emit(event, message['data'] if 'data' in message else message)

    async def _send_frame(self, frame: Dict[str, Any]) -> bool:
        ws = self._ws
        if ws is None or self._state != ConnectionState.OPEN:
            return False
        try:
            await ws.send(json.dumps(frame))
        except (WebSocketException, OSError) as e:
            self.logger.warning(f"WebSocket send failed: {e}")
            return False
        return True
