"""Decimal separator normalization for numeric MLT fields.

Documents saved under a locale whose decimal point is a comma carry values
such as ``12,5`` or ``0=0,0:100,100``. When the running process uses a
different separator those values are rewritten to it.
"""
from typing import Tuple

SEPARATORS = (",", ".")


def normalize_decimal(value: str, decimal_point: str) -> Tuple[str, bool]:
    """Return ``(value, changed)`` with every separator set to ``decimal_point``.

    A value that already holds ``decimal_point`` is considered correct and is
    returned untouched, even when it also holds the other separator
    (``1.234,56`` stays as is with ``.``).
    """
    if decimal_point in value:
        return value, False
    if not any(sep in value for sep in SEPARATORS):
        return value, False
    for sep in SEPARATORS:
        value = value.replace(sep, decimal_point)
    return value, True
