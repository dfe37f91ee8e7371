"""Budgets, debt payoff and portfolio figures."""

import math
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from pydantic import BaseModel

from financepro.models.finance import (
    INVESTMENT_TYPE_LABELS,
    Budget,
    Category,
    Debt,
    Investment,
    Transaction,
    TransactionType,
)


# Payoff months shown when the monthly payment can never clear the debt
NEVER = 999


class BudgetProgress(BaseModel):
    budget: Budget
    category_name: str
    spent: Decimal
    percent: float

    @property
    def exceeded(self) -> bool:
        return self.spent > self.budget.amount


def budget_progress(
    budgets: Iterable[Budget],
    transactions: Iterable[Transaction],
    categories: Optional[dict[UUID, Category]] = None,
) -> list[BudgetProgress]:
    """
    Spending against each budget.

    Only expenses linked to a category count. `percent` is capped at 100,
    `exceeded` tells whether the limit was actually passed.
    """
    spending: dict[UUID, Decimal] = {}
    for transaction in transactions:
        if transaction.type == TransactionType.EXPENSE and transaction.category_id:
            spending[transaction.category_id] = (
                spending.get(transaction.category_id, Decimal("0")) + transaction.amount
            )

    progress = []
    for budget in budgets:
        spent = spending.get(budget.category_id, Decimal("0"))
        category = (categories or {}).get(budget.category_id)
        progress.append(BudgetProgress(
            budget=budget,
            category_name=category.name if category else "Sem categoria",
            spent=spent,
            percent=min(float(spent / budget.amount * 100), 100.0),
        ))
    return progress


def payoff_months(total: Decimal, monthly_payment: Decimal) -> int:
    """Months to clear `total` paying `monthly_payment`, ignoring interest."""
    if monthly_payment <= 0:
        return NEVER
    return math.ceil(total / monthly_payment)


class DebtOverview(BaseModel):
    total_balance: Decimal
    total_minimum: Decimal
    extra_payment: Decimal
    payoff_months: int


def debt_overview(debts: Iterable[Debt], extra_payment: Decimal = Decimal("0")) -> DebtOverview:
    """Totals and the payoff simulator for the debts page."""
    debts = list(debts)
    total_balance = sum((d.current_balance for d in debts), Decimal("0"))
    total_minimum = sum((d.minimum_payment for d in debts), Decimal("0"))
    return DebtOverview(
        total_balance=total_balance,
        total_minimum=total_minimum,
        extra_payment=extra_payment,
        payoff_months=payoff_months(total_balance, total_minimum + extra_payment),
    )


class PortfolioSummary(BaseModel):
    total_invested: Decimal
    current_value: Decimal
    profitability: float
    allocation: dict[str, Decimal]


def portfolio_summary(investments: Iterable[Investment]) -> PortfolioSummary:
    """Invested vs current value, and the current value per asset class."""
    investments = list(investments)
    invested = sum((i.invested for i in investments), Decimal("0"))
    current = sum((i.current_value for i in investments), Decimal("0"))

    allocation: dict[str, Decimal] = {}
    for investment in investments:
        label = INVESTMENT_TYPE_LABELS[investment.type]
        allocation[label] = allocation.get(label, Decimal("0")) + investment.current_value

    return PortfolioSummary(
        total_invested=invested,
        current_value=current,
        profitability=float((current - invested) / invested * 100) if invested > 0 else 0.0,
        allocation=allocation,
    )
