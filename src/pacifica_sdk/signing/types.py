"""
Type definitions for Pacifica request signing

The signed message nests the caller's payload under ``data``; the envelope
that travels over the wire flattens the same payload next to the signature
fields. SignedEnvelope keeps both views so callers can inspect exactly what
was signed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class OperationType(str, Enum):
    """Operation names accepted by the venue in the signed ``type`` field"""
    CREATE_ORDER = "create_order"
    CREATE_MARKET_ORDER = "create_market_order"
    CREATE_STOP_ORDER = "create_stop_order"
    CANCEL_ORDER = "cancel_order"
    CANCEL_ALL_ORDERS = "cancel_all_orders"
    CANCEL_STOP_ORDER = "cancel_stop_order"
    CREATE_TWAP_ORDER = "create_twap_order"
    CANCEL_TWAP_ORDER = "cancel_twap_order"
    UPDATE_LEVERAGE = "update_leverage"
    UPDATE_MARGIN_MODE = "update_margin_mode"
    WITHDRAW = "withdraw"
    CREATE_API_KEY = "create_api_key"
    REVOKE_API_KEY = "revoke_api_key"
    LIST_API_KEYS = "list_api_keys"
    SET_POSITION_TPSL = "set_position_tpsl"
    CLOSE_POSITION = "close_position"
    MODIFY_POSITION = "modify_position"
    INITIATE_SUBACCOUNT = "initiate_subaccount"
    CONFIRM_SUBACCOUNT = "confirm_subaccount"
    SUBACCOUNT_TRANSFER = "subaccount_transfer"
    BIND_AGENT_WALLET = "bind_agent_wallet"
    LIST_AGENT_WALLETS = "list_agent_wallets"
    REVOKE_AGENT_WALLET = "revoke_agent_wallet"
    REVOKE_ALL_AGENT_WALLETS = "revoke_all_agent_wallets"
    LIST_AGENT_IP_WHITELIST = "list_agent_ip_whitelist"
    ADD_AGENT_WHITELISTED_IP = "add_agent_whitelisted_ip"
    REMOVE_AGENT_WHITELISTED_IP = "remove_agent_whitelisted_ip"
    SET_AGENT_IP_WHITELIST_ENABLED = "set_agent_ip_whitelist_enabled"
    APPROVE_BUILDER_CODE = "approve_builder_code"
    REVOKE_BUILDER_CODE = "revoke_builder_code"
    GET_OPEN_ORDERS = "get_open_orders"
    GET_ORDER_HISTORY = "get_order_history"
    GET_ORDER = "get_order"
    GET_POSITIONS = "get_positions"
    GET_POSITION = "get_position"
    GET_BALANCE = "get_balance"
    GET_ACCOUNT_INFO = "get_account_info"


# Envelope fields a payload may not shadow
RESERVED_ENVELOPE_KEYS = frozenset({'account', 'signature', 'timestamp', 'expiry_window'})


@dataclass(frozen=True)
class SignatureHeader:
    """
    Timing fields covered by a signature

    Attributes:
        timestamp: Milliseconds since the Unix epoch
        expiry_window: Validity window passed to the venue, omitted when None
    """
    timestamp: int
    expiry_window: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.timestamp, bool) or not isinstance(self.timestamp, int) or self.timestamp <= 0:
            raise ValueError("Timestamp must be a positive integer")
        if self.expiry_window is not None:
            if isinstance(self.expiry_window, bool) or not isinstance(self.expiry_window, int):
                raise ValueError("Expiry window must be an integer")
            if self.expiry_window <= 0:
                raise ValueError("Expiry window must be positive")

    def to_dict(self) -> Dict[str, int]:
        header = {'timestamp': self.timestamp}
        if self.expiry_window is not None:
            header['expiry_window'] = self.expiry_window
        return header


@dataclass(frozen=True)
class SignedEnvelope:
    """
    Result of signing one operation

    Attributes:
        account: Base58 account address
        signature: Base58 Ed25519 signature over ``canonical_message``
        header: Timestamp and expiry window that were signed
        operation: Operation name that was signed as ``type``
        payload: Caller payload, flattened into the wire body
        canonical_message: Exact string that was signed
    """
    account: str
    signature: str
    header: SignatureHeader
    operation: str
    payload: Dict[str, Any]
    canonical_message: str = field(repr=False)

    @property
    def timestamp(self) -> int:
        return self.header.timestamp

    @property
    def expiry_window(self) -> Optional[int]:
        return self.header.expiry_window

    def to_dict(self) -> Dict[str, Any]:
        """Return the flattened wire body."""
        body: Dict[str, Any] = {
            'account': self.account,
            'signature': self.signature,
        }
        body.update(self.header.to_dict())
        body.update(self.payload)
        return body
