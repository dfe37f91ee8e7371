"""
Transaction Query Engine

DESIGN DECISION: Filtering, grouping and totals are DETERMINISTIC pure
functions over rows already loaded from storage. The page loads one month
once, then every filter change runs here without another round trip.
"""

from collections import OrderedDict
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from financepro.models.finance import Category, Transaction, TransactionType


class TransactionFilter(BaseModel):
    """Filters of the transactions page."""

    search: str = ""
    type: Optional[TransactionType] = None
    paid: str = Field(default="all", pattern="^(all|paid|pending)$")
    account_id: Optional[UUID] = None
    category_id: Optional[UUID] = None


class TransactionTotals(BaseModel):
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    paid: Decimal = Decimal("0")
    pending: Decimal = Decimal("0")


def category_name(
    transaction: Transaction,
    categories: Optional[dict[UUID, Category]] = None,
    fallback: str = "Geral",
) -> str:
    """Linked category name, else the free-text category, else `fallback`."""
    if categories and transaction.category_id in categories:
        return categories[transaction.category_id].name
    return transaction.category or fallback


class TransactionQueryExecutor:
    """Applies page filters and computes the page summaries."""

    def matches(self, transaction: Transaction, flt: TransactionFilter) -> bool:
        if flt.search and flt.search.lower() not in transaction.description.lower():
            return False
        if flt.type and transaction.type != flt.type:
            return False
        if flt.paid == "paid" and not transaction.is_paid:
            return False
        if flt.paid == "pending" and transaction.is_paid:
            return False
        if flt.account_id and transaction.account_id != flt.account_id:
            return False
        if flt.category_id and transaction.category_id != flt.category_id:
            return False
        return True

    def filter(
        self,
        transactions: Iterable[Transaction],
        flt: TransactionFilter,
    ) -> list[Transaction]:
        return [t for t in transactions if self.matches(t, flt)]

    def apply(
        self,
        transactions: Iterable[Transaction],
        flt: Optional[TransactionFilter] = None,
    ) -> "OrderedDict[str, list[Transaction]]":
        """
        Filter and group by day.

        Returns:
            Mapping of YYYY-MM-DD to that day's transactions, newest day
            first. Days left empty by the filter are not present.
        """
        flt = flt or TransactionFilter()
        groups: dict[str, list[Transaction]] = {}
        for transaction in self.filter(transactions, flt):
            groups.setdefault(transaction.date.isoformat(), []).append(transaction)

        return OrderedDict(
            (day, groups[day]) for day in sorted(groups, reverse=True)
        )

    def totals(self, transactions: Iterable[Transaction]) -> TransactionTotals:
        """Income, expense, balance, and how much of it is paid or pending."""
        totals = TransactionTotals()
        for transaction in transactions:
            if transaction.type == TransactionType.INCOME:
                totals.income += transaction.amount
            else:
                totals.expense += transaction.amount
            if transaction.is_paid:
                totals.paid += transaction.amount
            else:
                totals.pending += transaction.amount
        totals.balance = totals.income - totals.expense
        return totals

    def category_breakdown(
        self,
        transactions: Iterable[Transaction],
        categories: Optional[dict[UUID, Category]] = None,
        fallback: str = "Geral",
    ) -> dict[str, Decimal]:
        """Expense totals per category name, largest first."""
        breakdown: dict[str, Decimal] = {}
        for transaction in transactions:
            if transaction.type != TransactionType.EXPENSE:
                continue
            name = category_name(transaction, categories, fallback)
            breakdown[name] = breakdown.get(name, Decimal("0")) + transaction.amount
        return dict(sorted(breakdown.items(), key=lambda item: item[1], reverse=True))
