"""
Utils package
"""

from .dates import advance, is_earlier_month, month_start, next_month_start, previous_month_start
from .money import signed_amount, to_decimal

__all__ = [
    "advance",
    "is_earlier_month",
    "month_start",
    "next_month_start",
    "previous_month_start",
    "signed_amount",
    "to_decimal",
]
