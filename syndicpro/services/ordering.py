import re
from typing import Tuple

_DIGITS = re.compile(r"(\d+)")


def natural_key(value) -> Tuple:
    """Sort key that orders embedded numbers numerically: "A2" < "A10"."""
    parts = _DIGITS.split(str(value or ""))
    return tuple((0, int(p), "") if p.isdigit() else (1, 0, p.lower()) for p in parts if p)


def apartment_sort_key(apartment) -> Tuple:
    """Floor first, then apartment number."""
    return (getattr(apartment, "floor", None) or 0, natural_key(getattr(apartment, "number", "")))
