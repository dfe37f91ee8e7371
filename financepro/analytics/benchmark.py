"""
Market Benchmark

Compares the share of income spent per category with commonly recommended
ceilings.
"""

from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from pydantic import BaseModel

from financepro.models.finance import Category, Transaction, TransactionType
from financepro.queries import category_name


# Recommended share of income, in percent
MARKET_BENCHMARK = {
    "Moradia": 30,
    "Alimentação": 15,
    "Transporte": 10,
    "Lazer": 10,
    "Saúde": 10,
    "Educação": 5,
    "Investimento": 20,
}

WARNING_MARGIN = 5


class BenchmarkRow(BaseModel):
    category: str
    user_percent: float
    ideal: int
    diff: float


class BenchmarkInsight(BaseModel):
    type: str  # warning | success
    title: str
    message: str


class BenchmarkResult(BaseModel):
    rows: list[BenchmarkRow]
    insight: BenchmarkInsight


def compare_to_market(
    transactions: Iterable[Transaction],
    categories: Optional[dict[UUID, Category]] = None,
) -> Optional[BenchmarkResult]:
    """
    Compare spending against the benchmark.

    Returns None when there is no income to compare against.
    """
    transactions = list(transactions)
    income = sum(
        (t.amount for t in transactions if t.type == TransactionType.INCOME),
        Decimal("0"),
    )
    if income == 0:
        return None

    spent: dict[str, Decimal] = {}
    for transaction in transactions:
        if transaction.type != TransactionType.EXPENSE:
            continue
        name = category_name(transaction, categories, fallback="Outros")
        spent[name] = spent.get(name, Decimal("0")) + transaction.amount

    rows = []
    for category, ideal in MARKET_BENCHMARK.items():
        percent = float(spent.get(category, Decimal("0")) / income * 100)
        rows.append(BenchmarkRow(
            category=category,
            user_percent=round(percent, 1),
            ideal=ideal,
            diff=percent - ideal,
        ))

    # First category wins ties
    offender = rows[0]
    for row in rows[1:]:
        if row.diff > offender.diff:
            offender = row

    if offender.diff > WARNING_MARGIN:
        insight = BenchmarkInsight(
            type="warning",
            title=f"Atenção com {offender.category}",
            message=(
                f"Você está gastando {offender.user_percent:.1f}% da sua renda em "
                f"{offender.category}, o recomendado é até {offender.ideal}%."
            ),
        )
    else:
        insight = BenchmarkInsight(
            type="success",
            title="Parabéns!",
            message="Seus gastos estão equilibrados e dentro das médias saudáveis de mercado.",
        )

    return BenchmarkResult(rows=rows, insight=insight)
