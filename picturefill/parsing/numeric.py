"""Leading-number readers for descriptor and length text.

Descriptor tokens such as ``"1.5x"`` or ``"400w"`` carry their number as a
prefix. These helpers read that prefix and ignore whatever follows, returning
NaN when no number is present.
"""

from __future__ import annotations

import math
import re

_FLOAT_RE = re.compile(
    r"^\s*([+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?))"
)
_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def leading_float(text: str) -> float:
    """Read the decimal number at the start of ``text``.

    >>> leading_float("1.5x")
    1.5
    >>> math.isnan(leading_float("x"))
    True
    """
    match = _FLOAT_RE.match(text or "")
    if not match:
        return math.nan
    return float(match.group(1).replace("Infinity", "inf"))


def leading_int(text: str) -> float:
    """Read the base-10 integer at the start of ``text``.

    Returned as a float so callers can divide without caring about NaN.
    """
    match = _INT_RE.match(text or "")
    if not match:
        return math.nan
    return float(int(match.group(1)))


def is_positive(value: float) -> bool:
    """True for finite or infinite numbers strictly above zero, never for NaN."""
    return not math.isnan(value) and value > 0
