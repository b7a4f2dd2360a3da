"""
Private key ingestion for Pacifica Python SDK

A Solana-style Ed25519 key reaches the SDK in many shapes: raw bytes, hex
(with or without ``0x``), a base58 string exported by a wallet, or base64.
``resolve_key_material`` turns any of them into one KeyMaterial holding the
32-byte signing key and its public identity.

Text input is decoded by an ordered list of strategies (hex, base58,
base64). The first strategy that yields an accepted length wins, so an
ambiguous string always resolves to the same key.
"""

import base64
import binascii
import re
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple, Union

import base58

from ..exceptions import InvalidKeyFormatError, ValidationError
from .ed25519 import (
    ED25519_PRIVATE_KEY_LENGTH,
    ED25519_PUBLIC_KEY_LENGTH,
    derive_public_key,
    generate_key_pair,
)

logger = logging.getLogger(__name__)

# Secret key followed by its public key, as exported by Solana wallets
KEYPAIR_LENGTH = ED25519_PRIVATE_KEY_LENGTH + ED25519_PUBLIC_KEY_LENGTH

BASE58_PATTERN = re.compile(r'^[1-9A-HJ-NP-Za-km-z]+$')
HEX_PATTERN = re.compile(r'^[0-9a-fA-F]+$')

RawKey = Union[str, bytes, bytearray]
DecodeStrategy = Callable[[str], Optional[bytes]]


@dataclass(frozen=True)
class PublicIdentity:
    """Ed25519 public key with its textual renderings."""
    raw: bytes

    def __post_init__(self):
        if not isinstance(self.raw, bytes) or len(self.raw) != ED25519_PUBLIC_KEY_LENGTH:
            raise InvalidKeyFormatError(
                f"Public key must be exactly {ED25519_PUBLIC_KEY_LENGTH} bytes"
            )

    @property
    def hex(self) -> str:
        return self.raw.hex()

    @property
    def base58(self) -> str:
        return base58.b58encode(self.raw).decode('ascii')

    @property
    def address(self) -> str:
        """Account address used by the venue (base58)."""
        return self.base58

    def __str__(self) -> str:
        return self.base58


@dataclass(frozen=True)
class KeyMaterial:
    """
    Resolved signing key and public identity.

    Attributes:
        signing_key: 32-byte Ed25519 secret, excluded from repr
        public_identity: Derived public key
    """
    signing_key: bytes = field(repr=False)
    public_identity: PublicIdentity

    @property
    def address(self) -> str:
        return self.public_identity.base58


def _decode_hex(text: str) -> Optional[bytes]:
    body = text[2:] if text[:2].lower() == '0x' else text
    if len(body) not in (2 * ED25519_PRIVATE_KEY_LENGTH, 2 * KEYPAIR_LENGTH):
        return None
    if not HEX_PATTERN.match(body):
        return None
    return bytes.fromhex(body)


def _decode_base58(text: str) -> Optional[bytes]:
    if not BASE58_PATTERN.match(text):
        return None
    try:
        decoded = base58.b58decode(text)
    except ValueError:
        return None
    if len(decoded) not in (ED25519_PRIVATE_KEY_LENGTH, KEYPAIR_LENGTH):
        return None
    return decoded


def _decode_base64(text: str) -> Optional[bytes]:
    try:
        decoded = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        return None
    if len(decoded) != ED25519_PRIVATE_KEY_LENGTH:
        return None
    return decoded


# Order is part of the contract: ambiguous strings resolve by the first match
DECODE_STRATEGIES: List[Tuple[str, DecodeStrategy]] = [
    ('hex', _decode_hex),
    ('base58', _decode_base58),
    ('base64', _decode_base64),
]


def decode_private_key(raw_key: RawKey) -> bytes:
    """
    Decode private key input into 32 or 64 raw bytes.

    Args:
        raw_key: Raw bytes, or a hex, base58 or base64 string

    Returns:
        bytes: The decoded buffer (32-byte secret or 64-byte keypair)

    Raises:
        InvalidKeyFormatError: If no supported encoding matches
    """
    if isinstance(raw_key, (bytes, bytearray)):
        decoded = bytes(raw_key)
        if len(decoded) not in (ED25519_PRIVATE_KEY_LENGTH, KEYPAIR_LENGTH):
            raise InvalidKeyFormatError(
                f"Raw private key must be {ED25519_PRIVATE_KEY_LENGTH} or {KEYPAIR_LENGTH} bytes, "
                f"got {len(decoded)}"
            )
        return decoded

    if not isinstance(raw_key, str):
        raise InvalidKeyFormatError(
            f"Private key must be str or bytes, got {type(raw_key).__name__}"
        )

    text = raw_key.strip()
    if not text:
        raise InvalidKeyFormatError("Private key is empty")

    for name, strategy in DECODE_STRATEGIES:
        decoded = strategy(text)
        if decoded is not None:
            logger.debug(f"Private key decoded as {name} ({len(decoded)} bytes)")
            return decoded

    # Never echo key text in the error
    raise InvalidKeyFormatError(
        "Unsupported private key format: expected 32-byte hex, base58 (32 or 64 bytes) or base64"
    )


def resolve_key_material(raw_key: RawKey) -> KeyMaterial:
    """
    Resolve private key input into signing key and public identity.

    For the 64-byte secret+public form, the trailing public half must match
    the key derived from the secret.

    Raises:
        InvalidKeyFormatError: If the key cannot be decoded or is inconsistent
    """
    decoded = decode_private_key(raw_key)
    signing_key = decoded[:ED25519_PRIVATE_KEY_LENGTH]
    public_key = derive_public_key(signing_key)

    if len(decoded) == KEYPAIR_LENGTH and decoded[ED25519_PRIVATE_KEY_LENGTH:] != public_key:
        raise InvalidKeyFormatError("Keypair public half does not match the secret key")

    return KeyMaterial(signing_key=signing_key, public_identity=PublicIdentity(public_key))


def generate_key_material() -> KeyMaterial:
    """Generate fresh random key material."""
    key_pair = generate_key_pair()
    return KeyMaterial(
        signing_key=key_pair.private_key,
        public_identity=PublicIdentity(key_pair.public_key),
    )


def public_key_to_hex(public_key: Union[bytes, PublicIdentity]) -> str:
    raw = public_key.raw if isinstance(public_key, PublicIdentity) else public_key
    return bytes(raw).hex()


def public_key_to_base58(public_key: Union[bytes, PublicIdentity]) -> str:
    raw = public_key.raw if isinstance(public_key, PublicIdentity) else public_key
    return base58.b58encode(bytes(raw)).decode('ascii')


def encode_private_key(key_material: KeyMaterial, format_type: str = 'base58') -> str:
    """
    Export the signing key.

    ``base58`` yields the 64-byte secret+public form wallets use; ``hex``
    and ``base64`` yield the bare 32-byte secret.
    """
    if format_type == 'base58':
        keypair = key_material.signing_key + key_material.public_identity.raw
        return base58.b58encode(keypair).decode('ascii')
    if format_type == 'hex':
        return key_material.signing_key.hex()
    if format_type == 'base64':
        return base64.b64encode(key_material.signing_key).decode('ascii')
    raise ValidationError(f"Unsupported key format: {format_type}", field='format')


def normalize_account_address(account: Union[str, bytes, PublicIdentity]) -> str:
    """
    Normalize an account identity to its base58 address.

    Accepts a PublicIdentity, 32 raw bytes, 64 hex chars (optionally
    ``0x``-prefixed) or a base58 address.

    Raises:
        ValidationError: If the account is not a 32-byte public key
    """
    if isinstance(account, PublicIdentity):
        return account.base58
    if isinstance(account, (bytes, bytearray)):
        if len(account) != ED25519_PUBLIC_KEY_LENGTH:
            raise ValidationError("Account public key must be 32 bytes", field='account')
        return public_key_to_base58(bytes(account))
    if not isinstance(account, str) or not account.strip():
        raise ValidationError("Account must be a non-empty string", field='account')

    text = account.strip()
    body = text[2:] if text[:2].lower() == '0x' else text
    if len(body) == 2 * ED25519_PUBLIC_KEY_LENGTH and HEX_PATTERN.match(body):
        return public_key_to_base58(bytes.fromhex(body))

    if not BASE58_PATTERN.match(text):
        raise ValidationError("Account is neither hex nor base58", field='account')
    if len(base58.b58decode(text)) != ED25519_PUBLIC_KEY_LENGTH:
        raise ValidationError("Account address must decode to 32 bytes", field='account')
    return text
