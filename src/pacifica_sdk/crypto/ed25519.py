"""
Ed25519 primitives for Pacifica Python SDK

Thin wrappers over the cryptography package that operate on raw 32-byte
keys and 64-byte signatures and translate failures into SDK exceptions.
"""

import secrets
from dataclasses import dataclass, field
from typing import Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.exceptions import InvalidSignature

from ..exceptions import InvalidKeyFormatError, SigningError

# Constants for Ed25519 key operations
ED25519_PRIVATE_KEY_LENGTH = 32
ED25519_PUBLIC_KEY_LENGTH = 32
ED25519_SIGNATURE_LENGTH = 64


@dataclass(frozen=True)
class Ed25519KeyPair:
    """
    Represents an Ed25519 key pair with private and public keys.

    Attributes:
        private_key: The private key as bytes (32 bytes), hidden from repr
        public_key: The public key as bytes (32 bytes)
    """
    private_key: bytes = field(repr=False)
    public_key: bytes

    def __post_init__(self):
        """Validate key pair after initialization"""
        _validate_private_key(self.private_key)
        if not isinstance(self.public_key, bytes) or len(self.public_key) != ED25519_PUBLIC_KEY_LENGTH:
            raise InvalidKeyFormatError(
                f"Public key must be exactly {ED25519_PUBLIC_KEY_LENGTH} bytes"
            )


def _validate_private_key(private_key: bytes) -> None:
    """
    Validate Ed25519 private key.

    Args:
        private_key: Private key bytes to validate

    Raises:
        InvalidKeyFormatError: If private key is invalid
    """
    if not isinstance(private_key, bytes):
        raise InvalidKeyFormatError("Private key must be bytes")

    if len(private_key) != ED25519_PRIVATE_KEY_LENGTH:
        raise InvalidKeyFormatError(
            f"Private key must be exactly {ED25519_PRIVATE_KEY_LENGTH} bytes"
        )

    if private_key == b'\x00' * ED25519_PRIVATE_KEY_LENGTH:
        raise InvalidKeyFormatError("Private key cannot be all zeros")


def derive_public_key(private_key: bytes) -> bytes:
    """
    Derive the raw Ed25519 public key for a 32-byte private key.

    Raises:
        InvalidKeyFormatError: If the private key is rejected
    """
    _validate_private_key(private_key)
    try:
        private_key_obj = Ed25519PrivateKey.from_private_bytes(private_key)
    except ValueError as e:
        raise InvalidKeyFormatError(f"Private key rejected by Ed25519: {e}") from e

    return private_key_obj.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def generate_key_pair() -> Ed25519KeyPair:
    """Generate a new random Ed25519 key pair."""
    private_key = secrets.token_bytes(ED25519_PRIVATE_KEY_LENGTH)
    return Ed25519KeyPair(private_key=private_key, public_key=derive_public_key(private_key))


def sign_message(private_key: bytes, message: Union[str, bytes]) -> bytes:
    """
    Sign a message using Ed25519 private key.

    Args:
        private_key: Ed25519 private key bytes (32 bytes)
        message: Message to sign (string is UTF-8 encoded)

    Returns:
        bytes: Ed25519 signature (64 bytes)

    Raises:
        InvalidKeyFormatError: If the private key is malformed
        SigningError: If signing fails
    """
    _validate_private_key(private_key)

    if isinstance(message, str):
        message_bytes = message.encode('utf-8')
    elif isinstance(message, (bytes, bytearray)):
        message_bytes = bytes(message)
    else:
        raise SigningError(f"Cannot sign message of type {type(message).__name__}")

    try:
        private_key_obj = Ed25519PrivateKey.from_private_bytes(private_key)
        return private_key_obj.sign(message_bytes)
    except ValueError as e:
        raise SigningError(f"Message signing failed: {e}") from e


def verify_signature(public_key: bytes, message: Union[str, bytes], signature: bytes) -> bool:
    """
    Verify an Ed25519 signature.

    Args:
        public_key: Ed25519 public key bytes (32 bytes)
        message: Original message (string is UTF-8 encoded)
        signature: Signature to verify (64 bytes)

    Returns:
        bool: True if the signature is valid, False otherwise
    """
    if len(public_key) != ED25519_PUBLIC_KEY_LENGTH or len(signature) != ED25519_SIGNATURE_LENGTH:
        return False

    message_bytes = message.encode('utf-8') if isinstance(message, str) else bytes(message)

    try:
        public_key_obj = Ed25519PublicKey.from_public_bytes(public_key)
        public_key_obj.verify(signature, message_bytes)
        return True
    except (InvalidSignature, ValueError):
        return False
