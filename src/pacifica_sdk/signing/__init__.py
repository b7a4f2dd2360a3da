"""
Request signing for Pacifica Python SDK

This package turns an operation name and payload into a signed envelope:
canonical JSON encoding, Ed25519 signing with a local key or a hardware
wallet, and envelope flattening.
"""

from .canonical import canonicalize, sort_json_keys, format_number
from .types import (
    OperationType,
    SignatureHeader,
    SignedEnvelope,
    RESERVED_ENVELOPE_KEYS,
)
from .utils import (
    DEFAULT_EXPIRY_WINDOW,
    generate_timestamp,
    create_signature_header,
    build_signing_message,
    validate_payload,
)
from .signer import (
    BaseRequestSigner,
    RequestSigner,
    sign_request,
    verify_signed_message,
    verify_envelope,
)
from .hardware import (
    HardwareWalletSigner,
    sign_request_with_hardware_wallet,
)

__all__ = [
    'canonicalize',
    'sort_json_keys',
    'format_number',
    'OperationType',
    'SignatureHeader',
    'SignedEnvelope',
    'RESERVED_ENVELOPE_KEYS',
    'DEFAULT_EXPIRY_WINDOW',
    'generate_timestamp',
    'create_signature_header',
    'build_signing_message',
    'validate_payload',
    'BaseRequestSigner',
    'RequestSigner',
    'sign_request',
    'verify_signed_message',
    'verify_envelope',
    'HardwareWalletSigner',
    'sign_request_with_hardware_wallet',
]
