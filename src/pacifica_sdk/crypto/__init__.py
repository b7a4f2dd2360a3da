"""
Cryptographic operations for Pacifica Python SDK
"""

from .ed25519 import (
    Ed25519KeyPair,
    generate_key_pair,
    derive_public_key,
    sign_message,
    verify_signature,
    ED25519_PRIVATE_KEY_LENGTH,
    ED25519_PUBLIC_KEY_LENGTH,
    ED25519_SIGNATURE_LENGTH,
)

from .keys import (
    PublicIdentity,
    KeyMaterial,
    DECODE_STRATEGIES,
    decode_private_key,
    resolve_key_material,
    generate_key_material,
    encode_private_key,
    public_key_to_hex,
    public_key_to_base58,
    normalize_account_address,
)

__all__ = [
    'Ed25519KeyPair',
    'generate_key_pair',
    'derive_public_key',
    'sign_message',
    'verify_signature',
    'ED25519_PRIVATE_KEY_LENGTH',
    'ED25519_PUBLIC_KEY_LENGTH',
    'ED25519_SIGNATURE_LENGTH',
    'PublicIdentity',
    'KeyMaterial',
    'DECODE_STRATEGIES',
    'decode_private_key',
    'resolve_key_material',
    'generate_key_material',
    'encode_private_key',
    'public_key_to_hex',
    'public_key_to_base58',
    'normalize_account_address',
]
