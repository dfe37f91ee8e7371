"""Ledger package: data-access operations behind each page."""

from financepro.ledger.service import (
    InvalidFormError,
    LedgerService,
    month_bounds,
    normalize_phone,
)

__all__ = ["InvalidFormError", "LedgerService", "month_bounds", "normalize_phone"]
