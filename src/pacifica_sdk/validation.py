"""
Input validation helpers

Each helper raises ValidationError naming the offending field; nothing
that fails validation is signed or sent.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from .exceptions import ValidationError


def validate_required(value: Any, field_name: str) -> None:
    if value is None or value == '':
        raise ValidationError(f"{field_name} is required", field=field_name)


def validate_string(value: Any, field_name: str, min_length: Optional[int] = None) -> None:
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string", field=field_name)
    if min_length is not None and len(value) < min_length:
        raise ValidationError(
            f"{field_name} must be at least {min_length} characters", field=field_name
        )


def validate_number(value: Any, field_name: str, minimum: Optional[float] = None,
                    maximum: Optional[float] = None) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != value:
        raise ValidationError(f"{field_name} must be a number", field=field_name)
    if minimum is not None and value < minimum:
        raise ValidationError(f"{field_name} must be at least {minimum}", field=field_name)
    if maximum is not None and value > maximum:
        raise ValidationError(f"{field_name} must be at most {maximum}", field=field_name)


def validate_one_of(value: Any, field_name: str, allowed_values: Iterable[Any]) -> None:
    allowed = list(allowed_values)
    if value not in allowed:
        raise ValidationError(
            f"{field_name} must be one of: {', '.join(str(v) for v in allowed)}",
            field=field_name
        )


def validate_positive_decimal_string(value: Any, field_name: str) -> None:
    """
    Check a decimal amount such as ``"0.01"``.

    The venue takes prices and sizes as strings to avoid float rounding.
    """
    validate_required(value, field_name)
    try:
        amount = Decimal(str(value))
    except InvalidOperation as e:
        raise ValidationError(f"{field_name} must be a decimal number", field=field_name) from e
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{field_name} must be greater than 0", field=field_name)
