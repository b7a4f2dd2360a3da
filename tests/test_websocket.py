"""
Unit tests for the WebSocket client
"""

import asyncio
import json
from decimal import Decimal

import pytest

from pacifica_sdk.config.settings import WebSocketConfig
from pacifica_sdk.exceptions import EncodingError, NetworkError, SigningError, ValidationError
from pacifica_sdk.signing import RequestSigner, verify_signed_message
from pacifica_sdk.transport.websocket import ConnectionState, EventType, WebSocketClient

from .conftest import FIXED_TIMESTAMP, RFC8032_SECRET_HEX

_CLOSED = object()


class FakeWebSocket:
    """In-memory stand-in for a websockets connection."""

    def __init__(self):
        self.sent = []
        self.incoming = asyncio.Queue()
        self.closed = False

    async def send(self, data):
        self.sent.append(json.loads(data))

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self.incoming.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def close(self):
        self.closed = True
        self.incoming.put_nowait(_CLOSED)

    def feed(self, message):
        self.incoming.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def drop(self):
        """Simulate the server closing the connection."""
        self.incoming.put_nowait(_CLOSED)


class FakeConnector:
    def __init__(self):
        self.sockets = []
        self.calls = 0
        self.failures = 0
        self.kwargs = None

    async def __call__(self, url, **kwargs):
        self.calls += 1
        self.kwargs = kwargs
        if self.failures:
            self.failures -= 1
            raise OSError("connection refused")
        ws = FakeWebSocket()
        self.sockets.append(ws)
        return ws


class FailingOnceSigner(RequestSigner):
    """Signer whose first signature fails, like an unplugged hardware wallet."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.failures = 1

    def sign_canonical(self, message):
        if self.failures:
            self.failures -= 1
            raise SigningError("hardware wallet unavailable")
        return super().sign_canonical(message)


def make_client(connector, signer=None, **config_kwargs):
    config_kwargs.setdefault('reconnect_interval', 0.01)
    config_kwargs.setdefault('max_reconnect_attempts', 3)
    return WebSocketClient(WebSocketConfig(**config_kwargs), signer=signer, connector=connector)


async def wait_for_event(client, event_type, timeout=1.0):
    received = asyncio.get_running_loop().create_future()

    def handler(data):
        if not received.done():
            received.set_result(data)

    client.on(event_type, handler)
    try:
        return await asyncio.wait_for(received, timeout)
    finally:
        client.off(event_type, handler)


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


class TestConnection:
    """Test cases for connecting and disconnecting"""

    @pytest.mark.asyncio
    async def test_connect_and_disconnect(self):
        connector = FakeConnector()
        client = make_client(connector, open_timeout=5.0)

        await client.connect()
        assert client.state == ConnectionState.OPEN
        assert client.is_connected
        assert connector.kwargs['open_timeout'] == 5.0

        await client.disconnect()
        assert client.state == ConnectionState.DISCONNECTED
        assert connector.sockets[0].closed

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self):
        connector = FakeConnector()
        client = make_client(connector)

        await client.connect()
        await client.connect()

        assert connector.calls == 1
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_initial_connect_failure(self):
        connector = FakeConnector()
        connector.failures = 1
        client = make_client(connector)

        with pytest.raises(NetworkError, match="connection refused"):
            await client.connect()
        assert client.state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_context_manager(self):
        connector = FakeConnector()
        async with make_client(connector) as client:
            assert client.is_connected
        assert client.state == ConnectionState.DISCONNECTED


class TestSubscriptions:
    """Test cases for subscription bookkeeping and replay"""

    @pytest.mark.asyncio
    async def test_subscribe_sends_once(self):
        connector = FakeConnector()
        client = make_client(connector)
        await client.connect()

        await client.subscribe_to_ticker("BTC")
        await client.subscribe("ticker:BTC")

        assert connector.sockets[0].sent == [{'type': 'subscribe', 'channel': 'ticker:BTC'}]
        assert client.subscriptions == ("ticker:BTC",)
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_subscriptions_replayed_after_reconnect(self):
        """Test {A, B} are resubscribed in order on the new connection"""
        connector = FakeConnector()
        client = make_client(connector)
        await client.connect()
        await client.subscribe("prices")
        await client.subscribe_to_orderbook("BTC")

        reopened = asyncio.ensure_future(wait_for_event(client, EventType.OPEN))
        await settle()
        connector.sockets[0].drop()
        await reopened

        assert connector.calls == 2
        assert connector.sockets[1].sent == [
            {'type': 'subscribe', 'channel': 'prices'},
            {'type': 'subscribe', 'channel': 'orderbook:BTC'},
        ]
        assert client.reconnect_attempts == 0
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_subscriptions_before_connect_are_sent_on_open(self):
        connector = FakeConnector()
        client = make_client(connector)

        await client.subscribe_to_trades("ETH")
        await client.connect()

        assert connector.sockets[0].sent == [{'type': 'subscribe', 'channel': 'trades:ETH'}]
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_unsubscribe_removes_from_replay(self):
        connector = FakeConnector()
        client = make_client(connector)
        await client.connect()
        await client.subscribe("prices")
        await client.unsubscribe("prices")

        assert connector.sockets[0].sent[-1] == {'type': 'unsubscribe', 'channel': 'prices'}
        assert client.subscriptions == ()
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_twap_subscription_frame(self):
        connector = FakeConnector()
        client = make_client(connector)
        await client.connect()

        await client.subscribe_to_twap_orders("ACCT")

        assert connector.sockets[0].sent == [
            {'method': 'subscribe', 'params': {'source': 'account_twap_orders', 'account': 'ACCT'}}
        ]
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_disconnect_clears_subscriptions(self):
        connector = FakeConnector()
        client = make_client(connector)
        await client.connect()
        await client.subscribe("prices")

        await client.disconnect()
        assert client.subscriptions == ()

    @pytest.mark.asyncio
    async def test_empty_channel_rejected(self):
        client = make_client(FakeConnector())
        with pytest.raises(ValidationError):
            await client.subscribe("")


class TestReconnect:
    """Test cases for reconnect backoff"""

    @pytest.mark.asyncio
    async def test_disconnect_cuts_backoff_short(self):
        connector = FakeConnector()
        client = make_client(connector, reconnect_interval=30.0)
        await client.connect()

        reconnecting = asyncio.ensure_future(wait_for_event(client, EventType.RECONNECT))
        await settle()
        connector.sockets[0].drop()
        event = await reconnecting
        assert event == {'attempt': 1, 'delay': 30.0}

        await asyncio.wait_for(client.disconnect(), 1.0)

        assert connector.calls == 1
        assert client.state == ConnectionState.DISCONNECTED
        await asyncio.wait_for(client.wait_closed(), 1.0)

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        connector = FakeConnector()
        client = make_client(connector, reconnect_interval=0.001, max_reconnect_attempts=2)
        errors = []
        client.on(EventType.ERROR, lambda data: errors.append(data['error']))
        await client.connect()

        connector.failures = 100
        connector.sockets[0].drop()

        with pytest.raises(NetworkError, match="Max reconnect attempts"):
            await asyncio.wait_for(client.wait_closed(), 1.0)

        assert connector.calls == 3
        assert len(errors) == 3
        assert client.state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_no_reconnect_when_disabled(self):
        connector = FakeConnector()
        client = make_client(connector, reconnect=False)
        await client.connect()

        connector.sockets[0].drop()
        await asyncio.wait_for(client.wait_closed(), 1.0)

        assert connector.calls == 1
        assert client.state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_connect_during_backoff_opens_one_socket(self):
        """Test an explicit connect() takes over from a pending reconnect"""
        connector = FakeConnector()
        client = make_client(connector, reconnect_interval=0.05)
        await client.connect()
        await client.subscribe("prices")

        reconnecting = asyncio.ensure_future(wait_for_event(client, EventType.RECONNECT))
        await settle()
        connector.sockets[0].drop()
        await reconnecting
        assert client.state == ConnectionState.RECONNECTING

        await client.connect()
        assert client.state == ConnectionState.OPEN

        # Outlive the original backoff delay
        await asyncio.sleep(0.15)

        assert connector.calls == 2
        assert connector.sockets[1].sent == [{'type': 'subscribe', 'channel': 'prices'}]
        assert client.is_connected

        await client.disconnect()
        assert connector.sockets[1].closed


class TestSignedOperations:
    """Test cases for signed operation frames"""

    @pytest.fixture
    def signer(self, fixed_clock):
        return RequestSigner(RFC8032_SECRET_HEX, timestamp_generator=fixed_clock)

    @pytest.mark.asyncio
    async def test_operation_frame(self, signer):
        connector = FakeConnector()
        client = make_client(connector, signer=signer, builder_code="B1")
        await client.connect()

        assert await client.create_limit_order("BTC", "bid", "0.1", "50000", agent_wallet="AGENT")

        frame = connector.sockets[0].sent[0]
        assert frame['type'] == 'operation'
        assert frame['operation'] == 'create_order'
        assert frame['account'] == signer.account
        assert frame['timestamp'] == FIXED_TIMESTAMP
        assert frame['builder_code'] == "B1"
        assert frame['agent_wallet'] == "AGENT"
        message = (
            '{"data":{"builder_code":"B1","market":"BTC","order_type":"limit","price":"50000",'
            '"side":"bid","size":"0.1"},"expiry_window":5000,'
            f'"timestamp":{FIXED_TIMESTAMP},"type":"create_order"}}'
        )
        assert verify_signed_message(message, frame['signature'], signer.public_key)
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_queued_while_disconnected(self, signer):
        """Test operations issued offline are sent after subscriptions on open"""
        connector = FakeConnector()
        client = make_client(connector, signer=signer)

        await client.subscribe("prices")
        assert await client.cancel_order(42, market="BTC") is False
        assert client.pending_operations == 1

        await client.connect()

        sent = connector.sockets[0].sent
        assert sent[0] == {'type': 'subscribe', 'channel': 'prices'}
        assert sent[1]['operation'] == 'cancel_order'
        assert sent[1]['order_id'] == 42
        assert client.pending_operations == 0
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_requires_signer(self):
        client = make_client(FakeConnector())
        with pytest.raises(SigningError, match="signer is required"):
            await client.send_signed_operation("create_order", {})

    @pytest.mark.asyncio
    async def test_reserved_field_rejected(self, signer):
        client = make_client(FakeConnector(), signer=signer)
        with pytest.raises(ValidationError):
            await client.send_signed_operation("create_order", {'signature': 'x'})
        assert client.pending_operations == 0

    @pytest.mark.asyncio
    async def test_unencodable_payload_rejected_before_queueing(self, signer):
        client = make_client(FakeConnector(), signer=signer)
        with pytest.raises(EncodingError, match="no canonical encoding"):
            await client.send_signed_operation("create_order", {'price': Decimal("1.5")})
        assert client.pending_operations == 0

    @pytest.mark.asyncio
    async def test_queued_signing_failure_on_connect(self, fixed_clock):
        """Test a queued operation that fails to sign is reported and the rest still flow"""
        connector = FakeConnector()
        signer = FailingOnceSigner(RFC8032_SECRET_HEX, timestamp_generator=fixed_clock)
        client = make_client(connector, signer=signer)
        errors = []
        client.on(EventType.ERROR, errors.append)

        await client.subscribe("prices")
        await client.cancel_order(1)
        await client.cancel_order(2)

        await client.connect()

        assert client.state == ConnectionState.OPEN
        assert client.pending_operations == 0
        assert len(errors) == 1
        assert isinstance(errors[0]['error'], SigningError)
        assert errors[0]['operation'] == 'cancel_order'
        sent = connector.sockets[0].sent
        assert sent[0] == {'type': 'subscribe', 'channel': 'prices'}
        assert [frame['order_id'] for frame in sent[1:]] == [2]

        ticker = asyncio.ensure_future(wait_for_event(client, EventType.TICKER))
        await settle()
        connector.sockets[0].feed({'type': 'ticker', 'data': {'symbol': 'BTC'}})
        assert await ticker == {'symbol': 'BTC'}
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_queued_signing_failure_on_reconnect(self, fixed_clock):
        """Test the reconnect loop survives a queued operation that fails to sign"""
        connector = FakeConnector()
        signer = FailingOnceSigner(RFC8032_SECRET_HEX, timestamp_generator=fixed_clock)
        client = make_client(connector, signer=signer)
        errors = []
        client.on(EventType.ERROR, errors.append)
        await client.connect()

        async def queue_while_down(data):
            await client.cancel_order(7)

        client.on(EventType.RECONNECT, queue_while_down)
        reopened = asyncio.ensure_future(wait_for_event(client, EventType.OPEN))
        await settle()
        connector.sockets[0].drop()
        await reopened

        assert client.state == ConnectionState.OPEN
        assert len(errors) == 1
        assert isinstance(errors[0]['error'], SigningError)
        assert connector.sockets[1].sent == []

        ticker = asyncio.ensure_future(wait_for_event(client, EventType.TICKER))
        await settle()
        connector.sockets[1].feed({'type': 'ticker', 'data': {'symbol': 'ETH'}})
        assert await ticker == {'symbol': 'ETH'}
        await client.disconnect()


class TestEvents:
    """Test cases for message dispatch"""

    @pytest.mark.asyncio
    async def test_typed_and_generic_events(self):
        connector = FakeConnector()
        client = make_client(connector)
        messages = []
        client.on("message", messages.append)
        await client.connect()

        ticker = asyncio.ensure_future(wait_for_event(client, EventType.TICKER))
        await settle()
        connector.sockets[0].feed({'type': 'ticker', 'data': {'symbol': 'BTC', 'price': '1'}})

        assert await ticker == {'symbol': 'BTC', 'price': '1'}
        assert messages == [{'type': 'ticker', 'data': {'symbol': 'BTC', 'price': '1'}}]
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_source_discriminator(self):
        connector = FakeConnector()
        client = make_client(connector)
        await client.connect()

        twap = asyncio.ensure_future(wait_for_event(client, EventType.TWAP_ORDER))
        await settle()
        connector.sockets[0].feed({'source': 'account_twap_orders', 'data': [{'id': 1}]})

        assert await twap == [{'id': 1}]
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_others(self):
        connector = FakeConnector()
        client = make_client(connector)
        received = []

        def broken(data):
            raise RuntimeError("handler bug")

        async def working(data):
            received.append(data)

        client.on(EventType.TRADE, broken)
        client.on(EventType.TRADE, working)
        await client.connect()

        trade = asyncio.ensure_future(wait_for_event(client, EventType.TRADE))
        await settle()
        connector.sockets[0].feed({'type': 'trade', 'data': {'id': 5}})
        await trade

        assert received == [{'id': 5}]
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_malformed_frame_reported(self):
        connector = FakeConnector()
        client = make_client(connector)
        await client.connect()

        error = asyncio.ensure_future(wait_for_event(client, EventType.ERROR))
        await settle()
        connector.sockets[0].feed("{not json")

        data = await error
        assert isinstance(data['error'], EncodingError)
        assert data['raw'] == "{not json"
        assert client.is_connected
        await client.disconnect()

    def test_unknown_event_rejected(self):
        client = make_client(FakeConnector())
        with pytest.raises(ValidationError, match="Unknown event type"):
            client.on("tick", print)
