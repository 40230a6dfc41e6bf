from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from smartspend.models import TxnType

CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce ints, strings, floats and Decimals into a cent-quantized Decimal.

    Floats go through ``str`` so 0.1 stays 0.1 instead of its binary expansion.
    """
    if value is None or value == "":
        return Decimal("0.00")
    if isinstance(value, Decimal):
        dec = value
    else:
        try:
            dec = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"not a monetary amount: {value!r}") from exc
    return dec.quantize(CENT, rounding=ROUND_HALF_UP)


def signed_amount(txn_type: TxnType | str, amount: Any) -> Decimal:
    """Magnitude with its sign applied: positive for income, negative for expense."""
    magnitude = abs(to_decimal(amount))
    if TxnType(txn_type) is TxnType.EXPENSE:
        return -magnitude
    return magnitude
