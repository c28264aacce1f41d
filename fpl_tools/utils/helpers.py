"""
Coercions for loosely typed FPL fields.

The upstream payload mixes numbers and numeric strings (selected_by_percent
is "12.3", form is "5.0") and uses null for unknown values.
"""
from typing import Any


def safe_str(value: Any, default: str = "") -> str:
    """Text of a field, or default for null."""
    if value is None:
        return default
    return str(value)


def safe_int(value: Any, default: int = 0) -> int:
    """
    Integer value of a field.

    Args:
        value: Number or numeric string ("75", "7.0")
        default: Returned for null, bools and unparseable values

    Returns:
        Integer or default
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        pass
    try:
        return int(float(value))
    except (ValueError, TypeError, OverflowError):
        return default


def safe_float(value: Any, default: float = 0.0) -> float:
    """Float value of a field; empty strings and null give default."""
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (ValueError, TypeError):
        return default
