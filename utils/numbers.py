"""Lenient numeric coercion for payloads that may encode numbers as strings."""

import math
from typing import Any


def to_number(value: Any) -> float:
    """Parse ints, floats and numeric strings; anything unparsable is zero."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def to_int(value: Any) -> int:
    return int(round(to_number(value)))
