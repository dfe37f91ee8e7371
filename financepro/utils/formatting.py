"""Money, date and form helpers for the pt-BR interface."""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Sequence, Union


Number = Union[Decimal, float, int]

MONTH_LABELS = ["jan", "fev", "mar", "abr", "mai", "jun", "jul", "ago", "set", "out", "nov", "dez"]


def format_currency(value: Number, symbol: str = "R$") -> str:
    """
    Format a value as Brazilian currency.

    >>> format_currency(Decimal("1234.5"))
    'R$ 1.234,50'
    >>> format_currency(-3)
    '-R$ 3,00'
    """
    amount = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    # Format en-US style then swap the separators
    text = f"{abs(amount):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}{symbol} {text}"


def format_day(value: date) -> str:
    """dd/mm/yyyy"""
    return value.strftime("%d/%m/%Y")


def month_label(month: int) -> str:
    return MONTH_LABELS[month - 1]


def option_index(options: Sequence[Any], value: Any) -> int:
    """Position of `value` in a widget's options, or the first option."""
    try:
        return list(options).index(value)
    except ValueError:
        return 0
