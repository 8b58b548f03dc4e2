"""ORM-level validators for prices, quantities and JSON columns.

Used from ``@validates`` hooks so bad values fail on assignment, whichever
service writes them.
"""

from decimal import Decimal


def _as_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def non_negative(key: str, value):
    """Amounts and stock counters must be >= 0."""
    if value is not None and _as_decimal(value) < 0:
        raise ValueError(f"{key} cannot be negative, got {value}")
    return value


def positive(key: str, value):
    if value is not None and _as_decimal(value) <= 0:
        raise ValueError(f"{key} must be positive, got {value}")
    return value


def validate_list(key: str, value):
    if value is not None and not isinstance(value, list):
        raise ValueError(f"{key} must be a list, got {type(value).__name__}")
    return value


def validate_dict(key: str, value):
    if value is not None and not isinstance(value, dict):
        raise ValueError(f"{key} must be a dict, got {type(value).__name__}")
    return value


def size_quantities(key: str, value):
    """A ``{size: quantity}`` map with non-empty size labels and whole, non-negative quantities."""
    validate_dict(key, value)
    for size, quantity in (value or {}).items():
        if not isinstance(size, str) or not size.strip():
            raise ValueError(f"{key} has an empty size label")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise ValueError(f"{key}[{size}] must be a non-negative integer, got {quantity!r}")
    return value
