"""Validation package."""

from financepro.validation.validator import TransactionFormValidator, parse_iso_day

__all__ = ["TransactionFormValidator", "parse_iso_day"]
