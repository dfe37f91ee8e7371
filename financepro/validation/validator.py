"""
Transaction Form Validation

DESIGN DECISION: The form is checked before anything is written, and the
checks are reported instead of raised, so the page can show every problem
at once.

ERRORS block the save:
- Missing description or amount
- Amount not greater than zero
- Date not in YYYY-MM-DD form

WARNINGS are shown but the save proceeds:
- Amount above the configured sanity limit
- Date more than a year ahead

IMPORTANT: Validation NEVER silently fixes issues.
"""

import re
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from financepro.config import get_settings
from financepro.models.finance import (
    TransactionForm,
    ValidationIssue,
    ValidationResult,
)
from financepro.utils.formatting import format_currency


ISO_DAY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_iso_day(value: str) -> Optional[date]:
    """Parse a strict YYYY-MM-DD string, or return None."""
    if not value or not ISO_DAY_PATTERN.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


class TransactionFormValidator:
    """Validates the transaction form before it becomes rows."""

    def __init__(self, max_amount: Optional[Decimal] = None):
        if max_amount is None:
            max_amount = Decimal(str(get_settings().app.max_transaction_amount))
        self._max_amount = max_amount

    def validate(
        self,
        form: TransactionForm,
        today: Optional[date] = None,
    ) -> ValidationResult:
        today = today or date.today()
        issues = []

        if not form.description or form.amount is None:
            issues.append(ValidationIssue(
                field="description" if not form.description else "amount",
                issue_type="missing",
                message="Descrição e valor são obrigatórios",
                severity="error",
            ))
        elif form.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="O valor deve ser maior que zero",
                severity="error",
            ))
        elif form.amount > self._max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Valor ({format_currency(form.amount)}) parece alto demais",
                severity="warning",
            ))

        parsed_date = parse_iso_day(form.date)
        if parsed_date is None:
            issues.append(ValidationIssue(
                field="date",
                issue_type="invalid_format",
                message="Data inválida",
                severity="error",
            ))
        elif parsed_date > today + timedelta(days=365):
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Data ({parsed_date.isoformat()}) está mais de um ano à frente",
                severity="warning",
            ))

        return ValidationResult(issues=issues)
