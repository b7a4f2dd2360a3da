"""
Authenticated REST endpoints of the Pacifica API

Every call signs its payload with the client's RequestSigner and posts the
flattened envelope. When an agent wallet is in use the payload is signed
with the agent key, ``account`` stays the main account and the agent
address travels in the ``agent_wallet`` header.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from ..config.settings import PacificaConfig
from ..crypto.keys import KeyMaterial, RawKey
from ..exceptions import ValidationError
from ..signing.hardware import HardwareWalletSigner
from ..signing.signer import BaseRequestSigner, RequestSigner
from ..signing.types import OperationType
from ..transport.http import HttpTransport
from ..validation import (
    validate_one_of,
    validate_positive_decimal_string,
    validate_required,
)

logger = logging.getLogger(__name__)

ORDER_SIDES = ('bid', 'ask', 'buy', 'sell')
MARGIN_MODES = ('isolated', 'cross')
BATCH_ACTIONS = {
    'Create': OperationType.CREATE_ORDER,
    'Cancel': OperationType.CANCEL_ORDER,
}


def _strip_none(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


class SignClient:
    """
    Signed trading and account management calls.

    Args:
        private_key: Account key, or agent key when ``agent_wallet_public_key``
            is configured
        config: SDK configuration
        transport: Shared HTTP transport
        signer: Prebuilt signer, used instead of ``private_key``
        hardware_runner: Replacement for ``subprocess.run`` in hardware signing
    """

    def __init__(self, private_key: Optional[Union[RawKey, KeyMaterial]] = None,
                 config: Optional[PacificaConfig] = None,
                 transport: Optional[HttpTransport] = None,
                 signer: Optional[BaseRequestSigner] = None,
                 hardware_runner: Optional[Callable[..., Any]] = None):
        self.config = config or (transport.config if transport else PacificaConfig())
        self.transport = transport or HttpTransport(self.config)

        if signer is None:
            if private_key is None:
                raise ValidationError("A private key or signer is required", field='private_key')
            signer = RequestSigner(
                private_key,
                account=self.config.account_public_key,
                expiry_window=self.config.expiry_window,
            )
        self.signer = signer
        self.agent_wallet = self.config.agent_wallet_public_key
        self.builder_code = self.config.builder_code
        self._hardware_runner = hardware_runner

    @property
    def account(self) -> Optional[str]:
        return self.signer.account

    def set_agent_wallet(self, agent_wallet_public_key: Optional[str]) -> None:
        self.agent_wallet = agent_wallet_public_key

    def _merge_builder_code(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        merged = dict(data)
        if self.builder_code and not merged.get('builder_code'):
            merged['builder_code'] = self.builder_code
        return merged

    def _signer_for(self, hardware_wallet_path: Optional[str]) -> BaseRequestSigner:
        if not hardware_wallet_path:
            return self.signer
        return HardwareWalletSigner(
            hardware_wallet_path,
            self.account,
            expiry_window=self.config.expiry_window,
            runner=self._hardware_runner,
        )

    def _headers(self, agent_wallet: Optional[str]) -> Optional[Dict[str, str]]:
        wallet = agent_wallet or self.agent_wallet
        return {'agent_wallet': wallet} if wallet else None

    def _signed_post(self, endpoint: str, operation: OperationType, data: Mapping[str, Any],
                     agent_wallet: Optional[str] = None,
                     hardware_wallet_path: Optional[str] = None) -> Any:
        envelope = self._signer_for(hardware_wallet_path).sign(operation, data)
        logger.debug(f"POST {endpoint} ({envelope.operation})")
        return self.transport.post(endpoint, envelope.to_dict(), self._headers(agent_wallet))

    # Orders

    def create_order(self, params: Mapping[str, Any], agent_wallet: Optional[str] = None,
                     hardware_wallet_path: Optional[str] = None) -> Any:
        """Route to limit, market or TWAP creation by ``order_type`` (default limit)."""
        order_type = params.get('order_type') or 'limit'
        if order_type == 'limit':
            return self.create_limit_order(params, agent_wallet, hardware_wallet_path)
        if order_type == 'market':
            return self.create_market_order(params, agent_wallet, hardware_wallet_path)
        if order_type == 'twap':
            return self.create_twap_order(params, agent_wallet, hardware_wallet_path)
        raise ValidationError(
            f"Unsupported order type: {order_type}. Use 'limit', 'market', or 'twap'",
            field='order_type'
        )

    def _validate_order(self, params: Mapping[str, Any]) -> None:
        validate_required(params.get('side'), 'side')
        validate_one_of(params.get('side'), 'side', ORDER_SIDES)
        if not params.get('amount') and not params.get('size'):
            raise ValidationError("Order amount or size is required", field='amount')

    def create_limit_order(self, params: Mapping[str, Any], agent_wallet: Optional[str] = None,
                           hardware_wallet_path: Optional[str] = None) -> Any:
        self._validate_order(params)
        validate_positive_decimal_string(params.get('price'), 'price')
        data = {k: v for k, v in params.items() if k != 'order_type'}
        return self._signed_post('/orders/create', OperationType.CREATE_ORDER,
                                 self._merge_builder_code(data), agent_wallet, hardware_wallet_path)

    def create_market_order(self, params: Mapping[str, Any], agent_wallet: Optional[str] = None,
                            hardware_wallet_path: Optional[str] = None) -> Any:
        self._validate_order(params)
        validate_required(params.get('slippage_percent'), 'slippage_percent')
        data = {k: v for k, v in params.items() if k != 'order_type'}
        return self._signed_post('/orders/create_market', OperationType.CREATE_MARKET_ORDER,
                                 self._merge_builder_code(data), agent_wallet, hardware_wallet_path)

    def create_stop_order(self, params: Mapping[str, Any], agent_wallet: Optional[str] = None,
                          hardware_wallet_path: Optional[str] = None) -> Any:
        return self._signed_post('/orders/stop/create', OperationType.CREATE_STOP_ORDER,
                                 self._merge_builder_code(params), agent_wallet, hardware_wallet_path)

    def cancel_order(self, params: Mapping[str, Any], agent_wallet: Optional[str] = None,
                     hardware_wallet_path: Optional[str] = None) -> Any:
        if params.get('order_id') is None and params.get('client_order_id') is None:
            raise ValidationError("order_id or client_order_id is required", field='order_id')
        return self._signed_post('/orders/cancel', OperationType.CANCEL_ORDER,
                                 params, agent_wallet, hardware_wallet_path)

    def cancel_all_orders(self, market: Optional[str] = None, agent_wallet: Optional[str] = None,
                          hardware_wallet_path: Optional[str] = None) -> Any:
        data = {'market': market} if market else {}
        return self._signed_post('/orders/cancel_all', OperationType.CANCEL_ALL_ORDERS,
                                 data, agent_wallet, hardware_wallet_path)

    def cancel_stop_order(self, params: Mapping[str, Any], agent_wallet: Optional[str] = None,
                          hardware_wallet_path: Optional[str] = None) -> Any:
        return self._signed_post('/orders/stop/cancel', OperationType.CANCEL_STOP_ORDER,
                                 params, agent_wallet, hardware_wallet_path)

    def create_twap_order(self, params: Mapping[str, Any], agent_wallet: Optional[str] = None,
                          hardware_wallet_path: Optional[str] = None) -> Any:
        validate_required(params.get('side'), 'side')
        validate_required(params.get('amount'), 'amount')
        validate_required(params.get('slippage_percent'), 'slippage_percent')
        validate_required(params.get('duration_in_seconds'), 'duration_in_seconds')
        data = {k: v for k, v in params.items() if k != 'order_type'}
        return self._signed_post('/orders/twap/create', OperationType.CREATE_TWAP_ORDER,
                                 self._merge_builder_code(data), agent_wallet, hardware_wallet_path)

    def cancel_twap_order(self, params: Mapping[str, Any], agent_wallet: Optional[str] = None,
                          hardware_wallet_path: Optional[str] = None) -> Any:
        return self._signed_post('/orders/twap/cancel', OperationType.CANCEL_TWAP_ORDER,
                                 params, agent_wallet, hardware_wallet_path)

    def batch_orders(self, actions: List[Mapping[str, Any]], agent_wallet: Optional[str] = None) -> Any:
        """
        Execute several create/cancel actions in one request.

        Args:
            actions: Items of the form ``{"type": "Create" | "Cancel", "data": {...}}``;
                each action is signed on its own
        """
        if not actions:
            raise ValidationError("At least one batch action is required", field='actions')

        signed_actions = []
        for action in actions:
            action_type = action.get('type')
            validate_one_of(action_type, 'type', BATCH_ACTIONS)
            envelope = self.signer.sign(BATCH_ACTIONS[action_type], action.get('data') or {})
            signed_actions.append({'type': action_type, 'data': envelope.to_dict()})

        return self.transport.post('/orders/batch', {'actions': signed_actions},
                                   self._headers(agent_wallet))

    # Account

    def update_leverage(self, market: str, leverage: int, agent_wallet: Optional[str] = None,
                        hardware_wallet_path: Optional[str] = None) -> Any:
        validate_required(market, 'market')
        validate_required(leverage, 'leverage')
        return self._signed_post('/account/leverage', OperationType.UPDATE_LEVERAGE,
                                 {'symbol': market, 'leverage': leverage},
                                 agent_wallet, hardware_wallet_path)

    def update_margin_mode(self, market: str, margin_mode: str, agent_wallet: Optional[str] = None,
                           hardware_wallet_path: Optional[str] = None) -> Any:
        validate_required(market, 'market')
        validate_one_of(margin_mode, 'margin_mode', MARGIN_MODES)
        return self._signed_post('/account/margin', OperationType.UPDATE_MARGIN_MODE,
                                 {'symbol': market, 'margin_mode': margin_mode},
                                 agent_wallet, hardware_wallet_path)

    def withdraw(self, params: Mapping[str, Any], agent_wallet: Optional[str] = None,
                 hardware_wallet_path: Optional[str] = None) -> Any:
        validate_positive_decimal_string(params.get('amount'), 'amount')
        return self._signed_post('/account/withdraw', OperationType.WITHDRAW,
                                 params, agent_wallet, hardware_wallet_path)

    def create_api_key(self, permissions: Optional[List[str]] = None,
                       agent_wallet: Optional[str] = None) -> Any:
        data = {'permissions': permissions} if permissions else {}
        return self._signed_post('/account/api_keys/create', OperationType.CREATE_API_KEY,
                                 data, agent_wallet)

    def revoke_api_key(self, api_key_id: str, agent_wallet: Optional[str] = None) -> Any:
        validate_required(api_key_id, 'api_key_id')
        return self._signed_post('/account/api_keys/revoke', OperationType.REVOKE_API_KEY,
                                 {'api_key_id': api_key_id}, agent_wallet)

    def list_api_keys(self, agent_wallet: Optional[str] = None) -> Any:
        return self._signed_post('/account/api_keys', OperationType.LIST_API_KEYS, {}, agent_wallet)

    # Positions

    def set_position_tpsl(self, market: str, side: Optional[str] = None,
                          take_profit: Optional[Union[str, Mapping[str, Any]]] = None,
                          stop_loss: Optional[Union[str, Mapping[str, Any]]] = None,
                          agent_wallet: Optional[str] = None,
                          hardware_wallet_path: Optional[str] = None) -> Any:
        """
        Attach take-profit and/or stop-loss to a position.

        A plain price string is expanded to ``{"stop_price": price}``.
        """
        validate_required(market, 'market')
        data: Dict[str, Any] = {'symbol': market}
        if side:
            data['side'] = side
        if take_profit:
            data['take_profit'] = {'stop_price': take_profit} if isinstance(take_profit, str) else dict(take_profit)
        if stop_loss:
            data['stop_loss'] = {'stop_price': stop_loss} if isinstance(stop_loss, str) else dict(stop_loss)
        return self._signed_post('/positions/tpsl', OperationType.SET_POSITION_TPSL,
                                 self._merge_builder_code(data), agent_wallet, hardware_wallet_path)

    def close_position(self, market: str, size: str, side: str = 'ask',
                       slippage_percent: str = '0.5', agent_wallet: Optional[str] = None,
                       hardware_wallet_path: Optional[str] = None) -> Any:
        """Close (part of) a position with a reduce-only market order."""
        params = {
            'symbol': market,
            'side': side,
            'amount': size,
            'reduce_only': True,
            'slippage_percent': slippage_percent,
        }
        return self.create_market_order(params, agent_wallet, hardware_wallet_path)

    def modify_position(self, params: Mapping[str, Any], agent_wallet: Optional[str] = None,
                        hardware_wallet_path: Optional[str] = None) -> Any:
        return self._signed_post('/positions/modify', OperationType.MODIFY_POSITION,
                                 params, agent_wallet, hardware_wallet_path)

    # Subaccounts

    def initiate_subaccount(self, agent_wallet: Optional[str] = None) -> Any:
        return self._signed_post('/account/subaccount/create', OperationType.INITIATE_SUBACCOUNT,
                                 {}, agent_wallet)

    def confirm_subaccount(self, params: Mapping[str, Any], agent_wallet: Optional[str] = None) -> Any:
        return self._signed_post('/account/subaccount/create', OperationType.CONFIRM_SUBACCOUNT,
                                 params, agent_wallet)

    def subaccount_transfer(self, params: Mapping[str, Any], agent_wallet: Optional[str] = None) -> Any:
        validate_positive_decimal_string(params.get('amount'), 'amount')
        return self._signed_post('/account/subaccount/transfer', OperationType.SUBACCOUNT_TRANSFER,
                                 params, agent_wallet)

    # Agent wallets

    def bind_agent_wallet(self, agent_wallet_public_key: str) -> Any:
        validate_required(agent_wallet_public_key, 'agent_wallet')
        return self._signed_post('/agent/bind', OperationType.BIND_AGENT_WALLET,
                                 {'agent_wallet': agent_wallet_public_key})

    def list_agent_wallets(self) -> Any:
        return self._signed_post('/agent/list', OperationType.LIST_AGENT_WALLETS, {})

    def revoke_agent_wallet(self, agent_wallet_public_key: str) -> Any:
        validate_required(agent_wallet_public_key, 'agent_wallet')
        return self._signed_post('/agent/revoke', OperationType.REVOKE_AGENT_WALLET,
                                 {'agent_wallet': agent_wallet_public_key})

    def revoke_all_agent_wallets(self) -> Any:
        return self._signed_post('/agent/revoke_all', OperationType.REVOKE_ALL_AGENT_WALLETS, {})

    def list_agent_ip_whitelist(self, agent_wallet_public_key: str) -> Any:
        return self._signed_post('/agent/ip_whitelist/list', OperationType.LIST_AGENT_IP_WHITELIST,
                                 {'api_agent_key': agent_wallet_public_key})

    def add_agent_whitelisted_ip(self, agent_wallet_public_key: str, ip_address: str) -> Any:
        validate_required(ip_address, 'ip_address')
        return self._signed_post('/agent/ip_whitelist/add', OperationType.ADD_AGENT_WHITELISTED_IP,
                                 {'api_agent_key': agent_wallet_public_key, 'ip_address': ip_address})

    def remove_agent_whitelisted_ip(self, agent_wallet_public_key: str, ip_address: str) -> Any:
        validate_required(ip_address, 'ip_address')
        return self._signed_post('/agent/ip_whitelist/remove', OperationType.REMOVE_AGENT_WHITELISTED_IP,
                                 {'api_agent_key': agent_wallet_public_key, 'ip_address': ip_address})

    def set_agent_ip_whitelist_enabled(self, agent_wallet_public_key: str, enabled: bool) -> Any:
        return self._signed_post('/agent/ip_whitelist/toggle', OperationType.SET_AGENT_IP_WHITELIST_ENABLED,
                                 {'api_agent_key': agent_wallet_public_key, 'enabled': bool(enabled)})

    # Builder codes

    def approve_builder_code(self, builder_code: str, max_fee_rate: str,
                             agent_wallet: Optional[str] = None) -> Any:
        validate_required(builder_code, 'builder_code')
        validate_required(max_fee_rate, 'max_fee_rate')
        return self._signed_post('/account/builder_codes/approve', OperationType.APPROVE_BUILDER_CODE,
                                 {'builder_code': builder_code, 'max_fee_rate': max_fee_rate}, agent_wallet)

    def revoke_builder_code(self, builder_code: str, agent_wallet: Optional[str] = None) -> Any:
        validate_required(builder_code, 'builder_code')
        return self._signed_post('/account/builder_codes/revoke', OperationType.REVOKE_BUILDER_CODE,
                                 {'builder_code': builder_code}, agent_wallet)

    # Signed queries

    def get_open_orders(self, market: Optional[str] = None) -> Any:
        return self._signed_post('/orders/open', OperationType.GET_OPEN_ORDERS,
                                 _strip_none({'market': market}))

    def get_order_history(self, market: Optional[str] = None, limit: Optional[int] = None) -> Any:
        data = _strip_none({'market': market, 'limit': str(limit) if limit else None})
        return self._signed_post('/orders/history', OperationType.GET_ORDER_HISTORY, data)

    def get_order(self, order_id: Union[int, str]) -> Any:
        validate_required(order_id, 'order_id')
        return self._signed_post(f'/orders/{order_id}', OperationType.GET_ORDER, {})

    def get_positions(self, market: Optional[str] = None) -> Any:
        return self._signed_post('/positions', OperationType.GET_POSITIONS,
                                 _strip_none({'market': market}))

    def get_position(self, market: str) -> Any:
        validate_required(market, 'market')
        return self._signed_post(f'/positions/{market}', OperationType.GET_POSITION, {})

    def get_balance(self, currency: Optional[str] = None) -> Any:
        endpoint = f'/account/balance/{currency}' if currency else '/account/balance'
        return self._signed_post(endpoint, OperationType.GET_BALANCE, _strip_none({'currency': currency}))

    def get_account_info(self) -> Any:
        return self._signed_post('/account', OperationType.GET_ACCOUNT_INFO, {})

    def close(self) -> None:
        self.transport.close()
