"""
Dashboard Figures

Rule-based summaries shown at the top of the dashboard. These are plain
deterministic rules, not model output.
"""

from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel

from financepro.models.finance import Transaction, TransactionType
from financepro.utils.formatting import format_currency


class DashboardSummary(BaseModel):
    income: Decimal
    expense: Decimal
    balance: Decimal
    savings_rate: float


class Sentiment(BaseModel):
    """Headline status card of the dashboard."""

    status: str  # critical | warning | success | neutral
    title: str
    message: str


def summarize(transactions: Iterable[Transaction]) -> DashboardSummary:
    """Income, expense, balance and savings rate (percent of income kept)."""
    income = Decimal("0")
    expense = Decimal("0")
    for transaction in transactions:
        if transaction.type == TransactionType.INCOME:
            income += transaction.amount
        else:
            expense += transaction.amount

    balance = income - expense
    savings_rate = float(balance / income * 100) if income > 0 else 0.0
    return DashboardSummary(
        income=income,
        expense=expense,
        balance=balance,
        savings_rate=savings_rate,
    )


def dashboard_insight(summary: DashboardSummary) -> str:
    if summary.savings_rate > 20:
        return "Ótimo trabalho! Você está economizando mais de 20% da sua renda."
    if summary.balance < 0:
        return "Atenção! Seus gastos superaram seus ganhos este mês."
    if summary.expense > summary.income * Decimal("0.9"):
        return "Cuidado, você está gastando quase tudo que ganha."
    return "Mantenha o registro constante para melhores insights."


def financial_sentiment(
    income: Decimal,
    expense: Decimal,
    day_of_month: int,
    symbol: str = "R$",
) -> Sentiment:
    """
    Judge the month so far.

    Overspending early in the month is a warning even while the balance is
    still positive; a healthy margin late in the month is praised.
    """
    balance = income - expense
    ratio = float(expense / income * 100) if income > 0 else 100.0

    if balance < 0:
        return Sentiment(
            status="critical",
            title="Alerta Vermelho",
            message=(
                f"Você gastou {format_currency(abs(balance), symbol)} a mais do que "
                "recebeu este mês. Pare gastos não essenciais imediatamente."
            ),
        )

    if day_of_month < 15 and ratio > 60:
        return Sentiment(
            status="warning",
            title="Desacelere os gastos!",
            message=(
                f"Cuidado! Ainda é dia {day_of_month} e você já consumiu "
                f"{ratio:.0f}% da sua renda."
            ),
        )

    if day_of_month > 20 and ratio < 70:
        return Sentiment(
            status="success",
            title="Excelente Gestão!",
            message=(
                f"Fim do mês chegando e você ainda tem {100 - ratio:.0f}% da renda. "
                "Ótimo momento para investir."
            ),
        )

    return Sentiment(
        status="neutral",
        title="Resumo do Mês",
        message=f"Seu saldo está positivo em {format_currency(balance, symbol)}. Mantenha o controle.",
    )


def recent_chart_points(transactions: list[Transaction], count: int = 10) -> list[dict]:
    """The last `count` transactions (by date) as chart points."""
    latest = sorted(transactions, key=lambda t: t.date)[-count:]
    return [
        {
            "name": t.date.strftime("%d/%m"),
            "amount": float(t.amount),
            "type": t.type.value,
        }
        for t in latest
    ]
