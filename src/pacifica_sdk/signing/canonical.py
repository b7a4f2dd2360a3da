"""
Canonical JSON encoding for signed Pacifica messages

The venue verifies signatures against the compact, key-sorted JSON rendering
produced by a JavaScript client (``JSON.stringify`` over recursively sorted
keys). This module reproduces that byte sequence exactly from plain Python
data: dicts, lists, tuples, str, int, float, bool, None and Enum members.
"""

import json
import math
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from ..exceptions import EncodingError


def _key_order(key: str) -> bytes:
    # JavaScript sorts strings by UTF-16 code units
    return key.encode('utf-16-be', 'surrogatepass')


def _check_key(key: Any, path: str) -> str:
    if not isinstance(key, str):
        raise EncodingError(
            f"Object keys must be strings, got {type(key).__name__} at {path or '<root>'}",
            details={'path': path}
        )
    return key


def sort_json_keys(value: Any) -> Any:
    """
    Return a copy of ``value`` with every mapping's keys in canonical order.

    Sequences keep their element order; scalars are returned unchanged.
    """
    if isinstance(value, Mapping):
        keys = sorted((_check_key(k, '') for k in value.keys()), key=_key_order)
        return {k: sort_json_keys(value[k]) for k in keys}
    if isinstance(value, (list, tuple)):
        return [sort_json_keys(item) for item in value]
    return value


def format_number(value: float) -> str:
    """
    Render a finite float the way ECMAScript ``Number.prototype.toString`` does.

    ``repr`` already yields the shortest round-trip digit string, so only the
    placement of the decimal point and exponent needs to be rearranged.
    """
    if math.isnan(value) or math.isinf(value):
        raise EncodingError(f"Non-finite number {value!r} has no JSON representation")
    if value == 0:
        return "0"

    sign, digit_tuple, exponent = Decimal(repr(value)).normalize().as_tuple()
    digits = ''.join(str(d) for d in digit_tuple)
    k = len(digits)
    n = exponent + k
    prefix = '-' if sign else ''

    if k <= n <= 21:
        return prefix + digits + '0' * (n - k)
    if 0 < n <= 21:
        return prefix + digits[:n] + '.' + digits[n:]
    if -6 < n <= 0:
        return prefix + '0.' + '0' * (-n) + digits

    e = n - 1
    exp_part = f"e{'+' if e >= 0 else '-'}{abs(e)}"
    if k == 1:
        return prefix + digits + exp_part
    return prefix + digits[0] + '.' + digits[1:] + exp_part


def _encode(value: Any, path: str) -> str:
    if value is None:
        return 'null'
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, Enum):
        return _encode(value.value, path)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        try:
            return format_number(value)
        except EncodingError as e:
            raise EncodingError(f"{e.message} at {path or '<root>'}", details={'path': path})
    if isinstance(value, Mapping):
        keys = sorted((_check_key(k, path) for k in value.keys()), key=_key_order)
        members = (
            f"{json.dumps(k, ensure_ascii=False)}:{_encode(value[k], f'{path}.{k}' if path else k)}"
            for k in keys
        )
        return '{' + ','.join(members) + '}'
    if isinstance(value, (list, tuple)):
        return '[' + ','.join(_encode(item, f"{path}[{i}]") for i, item in enumerate(value)) + ']'

    raise EncodingError(
        f"Value of type {type(value).__name__} has no canonical encoding at {path or '<root>'}",
        details={'path': path, 'type': type(value).__name__}
    )


def canonicalize(value: Any) -> str:
    """
    Encode ``value`` as canonical JSON.

    Args:
        value: Plain data built from dicts, lists, tuples, strings, numbers,
            booleans, None and Enum members

    Returns:
        str: Compact JSON with object keys in ascending order at every depth

    Raises:
        EncodingError: If the value contains non-string keys, non-finite
            floats, or a type with no canonical rendering
    """
    return _encode(value, '')
