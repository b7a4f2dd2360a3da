"""
Unit tests for the REST endpoint clients
"""

from unittest.mock import MagicMock

import pytest

from pacifica_sdk.clients import ApiClient, SignClient
from pacifica_sdk.config.settings import PacificaConfig
from pacifica_sdk.crypto.keys import generate_key_material
from pacifica_sdk.exceptions import APIError, ValidationError
from pacifica_sdk.signing import RequestSigner, verify_signed_message, canonicalize, build_signing_message
from pacifica_sdk.signing.types import SignatureHeader
from pacifica_sdk.transport.http import HttpTransport

from .conftest import FIXED_TIMESTAMP, RFC8032_SECRET_HEX


@pytest.fixture
def transport():
    mock = MagicMock(spec=HttpTransport)
    mock.config = PacificaConfig()
    mock.get.return_value = {'success': True}
    mock.post.return_value = {'success': True}
    return mock


@pytest.fixture
def signer(fixed_clock):
    return RequestSigner(RFC8032_SECRET_HEX, timestamp_generator=fixed_clock)


@pytest.fixture
def sign_client(transport, signer):
    return SignClient(config=transport.config, transport=transport, signer=signer)


def posted(transport):
    """Return (endpoint, body, headers) of the last POST."""
    args = transport.post.call_args.args
    return args[0], args[1], args[2] if len(args) > 2 else None


def assert_valid_signature(body, operation, signer):
    header = SignatureHeader(timestamp=body['timestamp'], expiry_window=body.get('expiry_window'))
    payload = {k: v for k, v in body.items() if k not in ('account', 'signature', 'timestamp', 'expiry_window')}
    message = canonicalize(build_signing_message(operation, payload, header))
    assert verify_signed_message(message, body['signature'], signer.public_key)


class TestApiClient:
    """Test cases for public queries"""

    def test_market_endpoints(self, transport):
        client = ApiClient(transport=transport)

        client.get_prices()
        transport.get.assert_called_with("/tickers", None)
        client.get_orderbook("BTC", depth=10)
        transport.get.assert_called_with("/orderbook/BTC", {'depth': 10})
        client.get_market_info("ETH")
        transport.get.assert_called_with("/markets/ETH", None)

    def test_missing_market_data_suggests_websocket(self, transport):
        transport.get.side_effect = APIError("Not Found", status=404)
        client = ApiClient(transport=transport)

        with pytest.raises(APIError, match="ticker:BTC") as exc_info:
            client.get_ticker("BTC")
        assert exc_info.value.status == 404

    def test_other_errors_propagate(self, transport):
        transport.get.side_effect = APIError("boom", status=500)
        with pytest.raises(APIError, match="boom"):
            ApiClient(transport=transport).get_prices()

    def test_open_orders_filtered(self, transport):
        transport.get.return_value = {'success': True, 'data': [
            {'order_id': 1, 'status': 'open'},
            {'order_id': 2, 'status': 'filled', 'filled_amount': '1'},
            {'order_id': 3, 'status': 'cancelled', 'filled_amount': '0'},
        ]}
        result = ApiClient(transport=transport).get_open_orders("acct")

        assert [order['order_id'] for order in result['data']] == [1, 3]
        transport.get.assert_called_with("/orders", {'account': 'acct', 'market': None})

    def test_account_required(self, transport):
        client = ApiClient(transport=transport)
        with pytest.raises(ValidationError):
            client.get_account_info("")
        with pytest.raises(ValidationError, match="Account parameter"):
            client.get_balance()

    def test_twap_history_by_id(self, transport):
        ApiClient(transport=transport).get_twap_order_history_by_id(7)
        transport.get.assert_called_with("/orders/twap/history_by_id", {'order_id': '7'})


class TestSignClientOrders:
    """Test cases for signed order operations"""

    def test_limit_order_signed_and_flattened(self, sign_client, transport, signer):
        order = {'symbol': 'BTC', 'side': 'bid', 'amount': '0.1', 'price': '50000', 'tif': 'GTC'}
        sign_client.create_limit_order(order)

        endpoint, body, headers = posted(transport)
        assert endpoint == '/orders/create'
        assert body['account'] == signer.account
        assert body['timestamp'] == FIXED_TIMESTAMP
        assert body['symbol'] == 'BTC'
        assert headers is None
        assert_valid_signature(body, 'create_order', signer)

    def test_create_order_routes_by_type(self, sign_client, transport):
        sign_client.create_order({'symbol': 'BTC', 'side': 'ask', 'amount': '1',
                                  'slippage_percent': '0.5', 'order_type': 'market'})
        endpoint, body, _ = posted(transport)
        assert endpoint == '/orders/create_market'
        assert 'order_type' not in body

    def test_unknown_order_type(self, sign_client):
        with pytest.raises(ValidationError, match="Unsupported order type"):
            sign_client.create_order({'order_type': 'iceberg'})

    @pytest.mark.parametrize("order,field", [
        ({'side': 'long', 'amount': '1', 'price': '1'}, 'side'),
        ({'side': 'bid', 'price': '1'}, 'amount'),
        ({'side': 'bid', 'amount': '1', 'price': '0'}, 'price'),
    ])
    def test_invalid_limit_orders_not_sent(self, sign_client, transport, order, field):
        with pytest.raises(ValidationError) as exc_info:
            sign_client.create_limit_order(order)
        assert exc_info.value.field == field
        transport.post.assert_not_called()

    def test_market_order_requires_slippage(self, sign_client):
        with pytest.raises(ValidationError, match="slippage_percent"):
            sign_client.create_market_order({'side': 'bid', 'amount': '1'})

    def test_cancel_requires_identifier(self, sign_client):
        with pytest.raises(ValidationError, match="order_id or client_order_id"):
            sign_client.cancel_order({'symbol': 'BTC'})

    def test_builder_code_merged(self, transport, signer):
        config = PacificaConfig(builder_code="BUILDER")
        transport.config = config
        client = SignClient(config=config, transport=transport, signer=signer)

        client.create_limit_order({'symbol': 'BTC', 'side': 'bid', 'amount': '1', 'price': '1'})
        assert posted(transport)[1]['builder_code'] == "BUILDER"

        client.create_limit_order({'symbol': 'BTC', 'side': 'bid', 'amount': '1', 'price': '1',
                                   'builder_code': 'OTHER'})
        assert posted(transport)[1]['builder_code'] == "OTHER"

    def test_batch_orders_sign_each_action(self, sign_client, transport, signer):
        sign_client.batch_orders([
            {'type': 'Create', 'data': {'symbol': 'BTC', 'side': 'bid', 'amount': '1', 'price': '1'}},
            {'type': 'Cancel', 'data': {'symbol': 'BTC', 'order_id': 9}},
        ])

        endpoint, body, _ = posted(transport)
        assert endpoint == '/orders/batch'
        create, cancel = body['actions']
        assert create['type'] == 'Create'
        assert_valid_signature(create['data'], 'create_order', signer)
        assert_valid_signature(cancel['data'], 'cancel_order', signer)

    def test_batch_rejects_unknown_action(self, sign_client):
        with pytest.raises(ValidationError, match="type must be one of"):
            sign_client.batch_orders([{'type': 'Modify', 'data': {}}])

    def test_close_position_is_reduce_only_market(self, sign_client, transport):
        sign_client.close_position('BTC', '0.5')
        endpoint, body, _ = posted(transport)
        assert endpoint == '/orders/create_market'
        assert body['reduce_only'] is True
        assert body['side'] == 'ask'


class TestSignClientAccount:
    """Test cases for account, agent wallet and query operations"""

    def test_agent_wallet_header(self, transport, fixed_clock):
        main = generate_key_material().address
        agent_signer = RequestSigner(RFC8032_SECRET_HEX, account=main, timestamp_generator=fixed_clock)
        config = PacificaConfig(agent_wallet_public_key=agent_signer.public_key)
        client = SignClient(config=config, transport=transport, signer=agent_signer)

        client.update_leverage('BTC', 10)

        endpoint, body, headers = posted(transport)
        assert endpoint == '/account/leverage'
        assert body['account'] == main
        assert body['leverage'] == 10
        assert headers == {'agent_wallet': agent_signer.public_key}
        assert_valid_signature(body, 'update_leverage', agent_signer)

    def test_margin_mode_validated(self, sign_client):
        with pytest.raises(ValidationError, match="margin_mode"):
            sign_client.update_margin_mode('BTC', 'portfolio')

    def test_tpsl_price_expanded(self, sign_client, transport):
        sign_client.set_position_tpsl('BTC', take_profit='60000', stop_loss={'stop_price': '40000',
                                                                              'limit_price': '39900'})
        _, body, _ = posted(transport)
        assert body['take_profit'] == {'stop_price': '60000'}
        assert body['stop_loss'] == {'stop_price': '40000', 'limit_price': '39900'}

    def test_withdraw_amount_validated(self, sign_client, transport):
        with pytest.raises(ValidationError):
            sign_client.withdraw({'amount': '-5'})
        sign_client.withdraw({'amount': '5'})
        assert posted(transport)[0] == '/account/withdraw'

    def test_ip_whitelist_uses_agent_key_field(self, sign_client, transport):
        sign_client.add_agent_whitelisted_ip('AGENT', '10.0.0.1')
        _, body, _ = posted(transport)
        assert body['api_agent_key'] == 'AGENT'
        assert body['ip_address'] == '10.0.0.1'

    def test_signed_queries(self, sign_client, transport, signer):
        sign_client.get_order_history(market='BTC', limit=50)
        endpoint, body, _ = posted(transport)
        assert endpoint == '/orders/history'
        assert body['limit'] == '50'
        assert_valid_signature(body, 'get_order_history', signer)

    def test_hardware_wallet_path_uses_device(self, transport, signer):
        runner = MagicMock()
        runner.return_value.returncode = 0
        runner.return_value.stdout = "HWSIG\n"
        runner.return_value.stderr = ""
        client = SignClient(config=transport.config, transport=transport, signer=signer,
                            hardware_runner=runner)

        client.cancel_all_orders(hardware_wallet_path="usb://ledger")

        assert posted(transport)[1]['signature'] == "HWSIG"
        assert runner.call_args.args[0][:4] == ["solana", "sign-offchain-message", "-k", "usb://ledger"]

    def test_requires_key_or_signer(self, transport):
        with pytest.raises(ValidationError, match="private key or signer"):
            SignClient(config=transport.config, transport=transport)

    def test_private_key_builds_signer(self, transport):
        client = SignClient(RFC8032_SECRET_HEX, config=transport.config, transport=transport)
        assert client.account == client.signer.public_key
