"""
Request signing for the Pacifica API

Signing an operation takes three steps:

1. build ``{type, timestamp, expiry_window?, data: payload}``
2. canonicalize it and sign the UTF-8 bytes with Ed25519
3. flatten the payload next to ``account``, ``signature``, ``timestamp``
   and ``expiry_window`` to form the wire body

Only step 2 depends on where the key lives. BaseRequestSigner implements
the shared steps; subclasses provide ``sign_canonical``.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping, Optional, Union

import base58

from ..crypto.ed25519 import sign_message, verify_signature
from ..crypto.keys import (
    KeyMaterial,
    PublicIdentity,
    RawKey,
    normalize_account_address,
    resolve_key_material,
)
from ..exceptions import EncodingError, PacificaError, ValidationError
from .canonical import canonicalize
from .types import OperationType, SignedEnvelope
from .utils import (
    DEFAULT_EXPIRY_WINDOW,
    build_signing_message,
    create_signature_header,
    decode_signature,
    encode_signature,
    generate_timestamp,
    operation_name,
    validate_payload,
)

AccountLike = Union[str, bytes, PublicIdentity]


class BaseRequestSigner(ABC):
    """
    Shared envelope construction for all signers.

    Args:
        account: Account the requests act on, hex or base58
        expiry_window: Default expiry window, None to omit it
        timestamp_generator: Millisecond clock, defaults to wall time
        logger: Logger to use instead of the module logger
    """

    def __init__(self, account: Optional[AccountLike] = None,
                 expiry_window: Optional[int] = DEFAULT_EXPIRY_WINDOW,
                 timestamp_generator: Optional[Callable[[], int]] = None,
                 logger: Optional[logging.Logger] = None):
        self.account = normalize_account_address(account) if account is not None else None
        self.expiry_window = expiry_window
        self.timestamp_generator = timestamp_generator or generate_timestamp
        self.logger = logger or logging.getLogger(__name__)

    @abstractmethod
    def sign_canonical(self, message: str) -> str:
        """Sign a canonical message and return the base58 signature."""
        pass

    def _resolve_account(self, account: Optional[AccountLike]) -> str:
        if account is not None:
            return normalize_account_address(account)
        if self.account is None:
            raise ValidationError("Account is required for this signer", field='account')
        return self.account

    def sign(self, operation: Union[str, OperationType], payload: Optional[Mapping[str, Any]] = None,
             account: Optional[AccountLike] = None,
             expiry_window: Optional[int] = None) -> SignedEnvelope:
        """
        Sign one operation.

        Args:
            operation: Operation name placed in the signed ``type`` field
            payload: Operation fields; nested under ``data`` when signing,
                flattened in the envelope
            account: Overrides the signer's account for this request
            expiry_window: Overrides the signer's default expiry window

        Returns:
            SignedEnvelope: Envelope ready for transmission

        Raises:
            ValidationError: If the payload shadows an envelope field
            EncodingError: If the payload has no canonical encoding
            SigningError: If the signature cannot be produced
        """
        name = operation_name(operation)
        data = validate_payload(payload)
        address = self._resolve_account(account)
        header = create_signature_header(
            expiry_window=expiry_window if expiry_window is not None else self.expiry_window,
            timestamp=self.timestamp_generator(),
        )

        message = canonicalize(build_signing_message(name, data, header))
        signature = self.sign_canonical(message)

        self.logger.debug(f"Signed {name} for account {address} at {header.timestamp}")

        return SignedEnvelope(
            account=address,
            signature=signature,
            header=header,
            operation=name,
            payload=data,
            canonical_message=message,
        )


class RequestSigner(BaseRequestSigner):
    """
    Signs requests with an in-process Ed25519 key.

    The key is resolved once at construction; the public identity is cached
    and shared by every request.

    Example:
        >>> signer = RequestSigner(private_key_base58)
        >>> envelope = signer.sign("cancel_order", {"symbol": "BTC", "order_id": 1})
        >>> envelope.to_dict()["account"] == signer.public_key
        True
    """

    def __init__(self, private_key: Union[RawKey, KeyMaterial], account: Optional[AccountLike] = None,
                 expiry_window: Optional[int] = DEFAULT_EXPIRY_WINDOW,
                 timestamp_generator: Optional[Callable[[], int]] = None,
                 logger: Optional[logging.Logger] = None):
        if isinstance(private_key, KeyMaterial):
            self.key_material = private_key
        else:
            self.key_material = resolve_key_material(private_key)
        super().__init__(
            account=account if account is not None else self.key_material.public_identity,
            expiry_window=expiry_window,
            timestamp_generator=timestamp_generator,
            logger=logger,
        )

    @property
    def public_key(self) -> str:
        """Base58 address of the signing key."""
        return self.key_material.address

    def sign_canonical(self, message: str) -> str:
        return encode_signature(sign_message(self.key_material.signing_key, message))

    def __repr__(self) -> str:
        return f"RequestSigner(account={self.account!r}, public_key={self.public_key!r})"


def sign_request(operation: Union[str, OperationType], payload: Optional[Mapping[str, Any]],
                 private_key: Union[RawKey, KeyMaterial], account: Optional[AccountLike] = None,
                 expiry_window: Optional[int] = DEFAULT_EXPIRY_WINDOW) -> SignedEnvelope:
    """
    Sign a single request without keeping a signer around.

    Pass ``expiry_window=None`` to leave it out of the signed message.
    """
    signer = RequestSigner(private_key, account=account, expiry_window=expiry_window)
    return signer.sign(operation, payload)


def _public_key_bytes(public_key: Union[str, bytes, PublicIdentity]) -> bytes:
    if isinstance(public_key, PublicIdentity):
        return public_key.raw
    if isinstance(public_key, (bytes, bytearray)):
        return bytes(public_key)
    return base58.b58decode(normalize_account_address(public_key))


def verify_signed_message(message: str, signature: str,
                          public_key: Union[str, bytes, PublicIdentity]) -> bool:
    """
    Verify a base58 signature over a canonical message.

    Args:
        message: The canonical message that was signed
        signature: Base58 signature
        public_key: Hex, base58, raw bytes or PublicIdentity

    Returns:
        bool: True if the signature is valid
    """
    try:
        raw_signature = decode_signature(signature)
        raw_public_key = _public_key_bytes(public_key)
    except PacificaError:
        return False
    return verify_signature(raw_public_key, message, raw_signature)


def verify_envelope(envelope: SignedEnvelope) -> bool:
    """Re-canonicalize an envelope's signed message and verify it against its account."""
    try:
        message = canonicalize(build_signing_message(envelope.operation, envelope.payload, envelope.header))
    except EncodingError:
        return False
    if message != envelope.canonical_message:
        return False
    return verify_signed_message(message, envelope.signature, envelope.account)
