"""
Utility functions for request signing
"""

import time
from typing import Any, Dict, Mapping, Optional, Union

import base58

from ..exceptions import SigningError, ValidationError
from .types import OperationType, RESERVED_ENVELOPE_KEYS, SignatureHeader

DEFAULT_EXPIRY_WINDOW = 5000


def generate_timestamp() -> int:
    """
    Generate current Unix timestamp.

    Returns:
        int: Milliseconds since epoch
    """
    return int(time.time() * 1000)


def create_signature_header(
    expiry_window: Optional[int] = DEFAULT_EXPIRY_WINDOW,
    timestamp: Optional[int] = None,
) -> SignatureHeader:
    """Create a fresh signature header for one request."""
    try:
        return SignatureHeader(
            timestamp=timestamp if timestamp is not None else generate_timestamp(),
            expiry_window=expiry_window,
        )
    except ValueError as e:
        raise ValidationError(str(e), field='expiry_window') from e


def operation_name(operation: Union[str, OperationType]) -> str:
    """Return the wire name of an operation."""
    if isinstance(operation, OperationType):
        return operation.value
    if not isinstance(operation, str) or not operation:
        raise ValidationError("Operation must be a non-empty string", field='operation')
    return operation


def validate_payload(payload: Any) -> Dict[str, Any]:
    """
    Check that a payload can be flattened into an envelope.

    Raises:
        ValidationError: If the payload is not a mapping or shadows an envelope key
    """
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValidationError("Payload must be a mapping", field='payload')

    collisions = sorted(RESERVED_ENVELOPE_KEYS.intersection(payload.keys()))
    if collisions:
        raise ValidationError(
            f"Payload fields collide with envelope fields: {', '.join(collisions)}",
            field=collisions[0],
            details={'collisions': collisions}
        )
    return dict(payload)


def build_signing_message(operation: Union[str, OperationType], payload: Mapping[str, Any],
                          header: SignatureHeader) -> Dict[str, Any]:
    """Build the structure that gets canonicalized and signed."""
    message: Dict[str, Any] = {'type': operation_name(operation)}
    message.update(header.to_dict())
    message['data'] = payload
    return message


def encode_signature(signature: bytes) -> str:
    return base58.b58encode(signature).decode('ascii')


def decode_signature(signature: str) -> bytes:
    try:
        return base58.b58decode(signature)
    except ValueError as e:
        raise SigningError(f"Signature is not valid base58: {e}") from e
