"""
Lenient primitive decoding for loosely typed backend JSON.

The WordPress/BuddyPress backend sends ids as numbers or numeric strings
and booleans as true/false, 1/0 or "1"/"0". These helpers map each wire
encoding to one canonical Python value, or None when the value is unusable.
None of them raise.
"""

import re
from typing import Any, List, Optional

_INT_PATTERN = re.compile(r"^[+-]?\d+$")

_TRUE_STRINGS = {"1", "true"}
_FALSE_STRINGS = {"0", "false"}


def lenient_int(value: Any) -> Optional[int]:
    """
    Decode an int from an int, an integral float or a numeric string.

    Booleans are rejected even though bool subclasses int.

    >>> lenient_int("42"), lenient_int(42), lenient_int(" 7 "), lenient_int("4x")
    (42, 42, 7, None)
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        if _INT_PATTERN.match(text):
            return int(text)
    return None


def lenient_bool(value: Any) -> Optional[bool]:
    """
    Decode a bool from true/false, 1/0, "1"/"0" or "true"/"false".

    Any other value (including 2 or "yes") is None.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (0, 1):
            return bool(value)
        return None
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    return None


def lenient_str(value: Any) -> Optional[str]:
    """Strings pass through; anything else is None."""
    return value if isinstance(value, str) else None


def lenient_int_list(value: Any) -> List[int]:
    """
    Decode a list of ids, dropping entries that are not ints.

    PHP serializes sparse arrays as JSON objects ({"0": 5, "3": 9}), so the
    values of a dict are accepted too.
    """
    if isinstance(value, dict):
        value = list(value.values())
    if not isinstance(value, list):
        return []

    ids = []
    for item in value:
        parsed = lenient_int(item)
        if parsed is not None:
            ids.append(parsed)
    return ids
