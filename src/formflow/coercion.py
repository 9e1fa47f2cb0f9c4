"""
Loose value coercion shared by the condition and validation evaluators.

Stored answers arrive as whatever the host collected: strings from text
inputs, numbers from sliders, lists from multi-selects, booleans from
checkboxes. Rules were historically evaluated with permissive, script-style
coercion (`"5" == 5` holds), and documents in the wild depend on it.

These helpers only convert values. Neither evaluator's pass/fail polarity
lives here.
"""

import math
import re
from typing import Any

_NUMERIC_RE = re.compile(
    r"^[+-]?(?:\d+(?:\.\d*)?(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?|Infinity)$"
)


def is_empty(value: Any) -> bool:
    """None, "" and empty collections are empty; 0 and False are values."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, dict, set, frozenset)):
        return len(value) == 0
    return False


def is_number(value: Any) -> bool:
    """True for int/float values, excluding bool."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(value: Any) -> float:
    """
    Convert a value to a float the way a form runtime's Number() would.

    Returns NaN when no sensible number exists. Missing values (None) are NaN,
    blank strings are 0.
    """
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if is_number(value):
        return float(value)
    if value is None:
        return math.nan
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return 0.0
        if not _NUMERIC_RE.match(text):
            return math.nan
        return float(text.replace("Infinity", "inf"))
    if isinstance(value, (list, tuple)):
        if len(value) == 0:
            return 0.0
        if len(value) == 1:
            return to_number(value[0])
        return math.nan
    return math.nan


def to_text(value: Any) -> str:
    """
    Stringify a value for substring / prefix / suffix checks.

    None becomes the empty string; booleans are lower-case; integral floats
    drop their fractional part; sequences are comma-joined.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(item) for item in value)
    return str(value)


def loose_equals(left: Any, right: Any) -> bool:
    """
    Permissive equality.

    - None only equals None
    - numbers and numeric strings compare numerically
    - booleans compare as 1/0
    - sequences compare by their text form against scalars
    """
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, bool) or isinstance(right, bool):
        if isinstance(left, bool) and isinstance(right, bool):
            return left == right
        return loose_equals(to_number(left), right) if isinstance(left, bool) else loose_equals(left, to_number(right))
    if is_number(left) and is_number(right):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    if is_number(left) and isinstance(right, str):
        return to_number(right) == left
    if isinstance(left, str) and is_number(right):
        return to_number(left) == right
    if isinstance(left, (list, tuple)) and not isinstance(right, (list, tuple)):
        return loose_equals(to_text(left), right)
    if isinstance(right, (list, tuple)) and not isinstance(left, (list, tuple)):
        return loose_equals(left, to_text(right))
    return left == right
