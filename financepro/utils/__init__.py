"""Small shared helpers."""

from financepro.utils.formatting import format_currency, format_day, month_label

__all__ = ["format_currency", "format_day", "month_label"]
