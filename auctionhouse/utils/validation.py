"""
Input Validation - Sanity checks for entities entering a repository.

Every validator returns (is_valid, error_message) so callers can decide
whether to raise or report.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Tuple

# =============================================================================
# Constants
# =============================================================================

MAX_NAME_LENGTH = 256
MAX_TITLE_LENGTH = 1024

# Amounts are kept in the auction's currency unit
MAX_AMOUNT = Decimal("1e15")


# =============================================================================
# Validation Functions
# =============================================================================


def to_amount(value: Any) -> Decimal:
    """
    Convert a number or numeric string to Decimal.

    Floats go through str() so 0.1 stays 0.1.

    Raises:
        InvalidOperation: value is not numeric
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidOperation(f"not an amount: {value!r}")
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def validate_amount(
    value: Any,
    name: str = "amount",
    allow_zero: bool = False,
) -> Tuple[bool, str]:
    """
    Validate a monetary amount.

    Args:
        value: Amount to validate (int, Decimal, float or numeric string)
        name: Field name for error messages
        allow_zero: Accept 0 (start prices may be zero)

    Returns:
        (is_valid, error_message)
    """
    try:
        amount = to_amount(value)
    except (InvalidOperation, TypeError, ValueError):
        return False, f"{name} must be numeric, got {value!r}"

    if not amount.is_finite():
        return False, f"{name} must be finite, got {amount}"

    if amount < 0 or (amount == 0 and not allow_zero):
        bound = ">= 0" if allow_zero else "> 0"
        return False, f"{name} must be {bound}, got {amount}"

    if amount > MAX_AMOUNT:
        return False, f"{name} must be <= {MAX_AMOUNT}, got {amount}"

    return True, ""


def validate_timestamp(value: Any, name: str = "timestamp") -> Tuple[bool, str]:
    """Validate a timezone-aware datetime."""
    if not isinstance(value, datetime):
        return False, f"{name} must be datetime, got {type(value).__name__}"

    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return False, f"{name} must include timezone information"

    return True, ""


def validate_name(
    value: Any,
    name: str = "name",
    max_length: int = MAX_NAME_LENGTH,
) -> Tuple[bool, str]:
    """Validate a non-empty display string."""
    if not isinstance(value, str):
        return False, f"{name} must be str, got {type(value).__name__}"

    if not value.strip():
        return False, f"{name} must not be empty"

    if len(value) > max_length:
        return False, f"{name} exceeds max length {max_length}, got {len(value)}"

    return True, ""


def validate_period(start: Any, end: Any) -> Tuple[bool, str]:
    """Validate an auction's start/end pair."""
    for value, name in ((start, "start"), (end, "end")):
        valid, error = validate_timestamp(value, name)
        if not valid:
            return False, error

    if end <= start:
        return False, f"end {end.isoformat()} must be after start {start.isoformat()}"

    return True, ""
