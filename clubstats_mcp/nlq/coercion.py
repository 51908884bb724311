# clubstats_mcp/nlq/coercion.py
"""
Numeric coercion for graph query results.

Handlers pass every scalar they read from a record through coerce_number()
so answers never carry driver-specific wrappers, None or NaN.
"""

import logging
import math
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

TWO_POW_32 = 2 ** 32


def coerce_number(value: Any) -> float:
    """
    Normalize a backend scalar into a plain Python number.

    Rules, in order:
    - None -> 0
    - bool -> 0/1
    - int/float -> itself (NaN -> 0)
    - objects exposing to_number()/toNumber() -> that value
    - {"low": l, "high": h} big-integer wrappers -> l + h * 2**32
    - strings -> parsed int, then float, else 0
    - anything else -> 0

    Examples:
        >>> coerce_number({"low": 0, "high": 1})
        4294967296
        >>> coerce_number("42")
        42
        >>> coerce_number(float("nan"))
        0
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return 0
        return value

    for accessor in ("to_number", "toNumber"):
        method = getattr(value, accessor, None)
        if callable(method):
            return coerce_number(method())

    if isinstance(value, dict) and "low" in value and "high" in value:
        return coerce_number(value["low"]) + coerce_number(value["high"]) * TWO_POW_32

    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            parsed = float(text)
        except ValueError:
            return 0
        return 0 if math.isnan(parsed) else parsed

    logger.debug(f"Cannot coerce {type(value).__name__} to a number, using 0")
    return 0


def coerce_record(record: Dict[str, Any], numeric_keys: List[str]) -> Dict[str, Any]:
    """Copy of a record with the given keys coerced to numbers."""
    coerced = dict(record)
    for key in numeric_keys:
        coerced[key] = coerce_number(record.get(key))
    return coerced


def round_value(value: float, decimals: int) -> float:
    """Round to `decimals`; whole numbers come back as int."""
    if decimals <= 0:
        return int(round(value))
    return round(float(value), decimals)
