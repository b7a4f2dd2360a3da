"""
Pacifica Python SDK
Signed REST and WebSocket access to the Pacifica trading venue
"""

import logging

from .version import __version__
from .exceptions import (
    ErrorKind,
    PacificaError,
    NetworkError,
    RequestTimeoutError,
    RateLimitError,
    APIError,
    AuthenticationError,
    ValidationError,
    InvalidKeyFormatError,
    SigningError,
    EncodingError,
)
from .crypto import (
    PublicIdentity,
    KeyMaterial,
    decode_private_key,
    resolve_key_material,
    generate_key_material,
    encode_private_key,
    normalize_account_address,
)
from .signing import (
    canonicalize,
    OperationType,
    SignatureHeader,
    SignedEnvelope,
    RequestSigner,
    HardwareWalletSigner,
    sign_request,
    sign_request_with_hardware_wallet,
    verify_signed_message,
    verify_envelope,
)
from .config import PacificaConfig, WebSocketConfig, configure_logging
from .transport import (
    HttpTransport,
    RetryPolicy,
    WebSocketClient,
    ConnectionState,
    EventType,
)
from .clients import ApiClient, SignClient
from .integration import PacificaSDK, create_sdk

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    '__version__',
    # Exceptions
    'ErrorKind',
    'PacificaError',
    'NetworkError',
    'RequestTimeoutError',
    'RateLimitError',
    'APIError',
    'AuthenticationError',
    'ValidationError',
    'InvalidKeyFormatError',
    'SigningError',
    'EncodingError',
    # Keys
    'PublicIdentity',
    'KeyMaterial',
    'decode_private_key',
    'resolve_key_material',
    'generate_key_material',
    'encode_private_key',
    'normalize_account_address',
    # Signing
    'canonicalize',
    'OperationType',
    'SignatureHeader',
    'SignedEnvelope',
    'RequestSigner',
    'HardwareWalletSigner',
    'sign_request',
    'sign_request_with_hardware_wallet',
    'verify_signed_message',
    'verify_envelope',
    # Configuration
    'PacificaConfig',
    'WebSocketConfig',
    'configure_logging',
    # Transport
    'HttpTransport',
    'RetryPolicy',
    'WebSocketClient',
    'ConnectionState',
    'EventType',
    # Clients
    'ApiClient',
    'SignClient',
    'PacificaSDK',
    'create_sdk',
]
