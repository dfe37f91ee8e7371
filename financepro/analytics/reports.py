"""
Yearly Report

Builds everything the Reports page and the PDF export show for one year:
monthly income/expense rows, the expense breakdown of a selected month, and
the year's highlights.
"""

from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from financepro.models.finance import Category, Transaction, TransactionType
from financepro.queries import TransactionQueryExecutor
from financepro.utils.formatting import month_label


class MonthlyRow(BaseModel):
    month: int = Field(ge=1, le=12)
    label: str
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")

    @property
    def balance(self) -> Decimal:
        return self.income - self.expense


class CategoryShare(BaseModel):
    name: str
    value: Decimal


class YearlyReport(BaseModel):
    year: int
    selected_month: int
    months: list[MonthlyRow]
    category_breakdown: list[CategoryShare]
    total_income: Decimal
    total_expense: Decimal
    biggest_expense: Optional[Transaction] = None
    best_month: MonthlyRow

    @property
    def total_balance(self) -> Decimal:
        return self.total_income - self.total_expense


def build_yearly_report(
    transactions: Iterable[Transaction],
    year: int,
    selected_month: int,
    categories: Optional[dict[UUID, Category]] = None,
) -> YearlyReport:
    """
    Summarize one year of transactions.

    Transactions from other years are ignored. The best month is the one
    with the highest balance; on a tie the later month wins.
    """
    of_year = [t for t in transactions if t.date.year == year]

    months = [MonthlyRow(month=m, label=month_label(m)) for m in range(1, 13)]
    for transaction in of_year:
        row = months[transaction.date.month - 1]
        if transaction.type == TransactionType.INCOME:
            row.income += transaction.amount
        else:
            row.expense += transaction.amount

    breakdown = TransactionQueryExecutor().category_breakdown(
        (t for t in of_year if t.date.month == selected_month),
        categories,
        fallback="Outros",
    )

    expenses = [t for t in of_year if t.type == TransactionType.EXPENSE]

    best_month = months[0]
    for row in months[1:]:
        if not best_month.balance > row.balance:
            best_month = row

    return YearlyReport(
        year=year,
        selected_month=selected_month,
        months=months,
        category_breakdown=[CategoryShare(name=n, value=v) for n, v in breakdown.items()],
        total_income=sum((row.income for row in months), Decimal("0")),
        total_expense=sum((row.expense for row in months), Decimal("0")),
        biggest_expense=max(expenses, key=lambda t: t.amount) if expenses else None,
        best_month=best_month,
    )
