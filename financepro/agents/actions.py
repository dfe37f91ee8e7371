"""
AI Context and Actions

Both ends of the advisor round trip: the plain-text summary of the user's
finances sent with each question, and the executor for the JSON actions the
advisor answers with.

DESIGN DECISION: The executor accepts only three tools and builds each row
through the pydantic models, so a malformed action fails validation instead
of writing a half-formed record. A failed action returns None and the chat
shows the model's raw reply instead.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from financepro.audit import AuditLogger, create_correlation_id
from financepro.config import get_settings
from financepro.models.finance import (
    Debt,
    Goal,
    Transaction,
    TransactionType,
)
from financepro.services.storage import RecordStorageInterface, StorageError
from financepro.utils.formatting import format_currency


logger = structlog.get_logger("agents.actions")

AI_CATEGORY = "IA"
SUPPORTED_TOOLS = ("create_transaction", "create_goal", "create_debt")


async def build_financial_context(
    storage: RecordStorageInterface,
    user_id: str,
    limit: Optional[int] = None,
    symbol: str = "R$",
) -> str:
    """
    Summarize the user's recent finances for the advisor prompt.

    The estimated balance only covers the latest `limit` transactions.
    """
    limit = limit or get_settings().app.context_transaction_limit

    transactions = await storage.list(
        Transaction, user_id=user_id, order_by="date", descending=True, limit=limit
    )
    goals = await storage.list(Goal, user_id=user_id)
    debts = await storage.list(Debt, user_id=user_id)

    balance = sum((t.signed_amount for t in transactions), Decimal("0"))
    recent = "; ".join(
        f"{t.date.isoformat()}: {t.description} {format_currency(t.amount, symbol)} ({t.type.value})"
        for t in transactions
    )
    goal_lines = "; ".join(
        f"{g.name} ({format_currency(g.current_amount, symbol)} de "
        f"{format_currency(g.target_amount, symbol)})"
        for g in goals
    )
    debt_lines = "; ".join(
        f"{d.name} ({format_currency(d.current_balance, symbol)})" for d in debts
    )

    return "\n".join([
        f"- Saldo Estimado (baseado nas últimas {limit}): {format_currency(balance, symbol)}",
        f"- Últimas Transações: {recent or 'nenhuma'}",
        f"- Metas: {goal_lines or 'nenhuma'}",
        f"- Dívidas Ativas: {debt_lines or 'nenhuma'}",
    ])


class AIActionExecutor:
    """Runs the advisor's JSON actions against the user's tables."""

    def __init__(
        self,
        storage: RecordStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        symbol: str = "R$",
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._symbol = symbol

    def _build(self, user_id: str, action: dict[str, Any], today: date):
        tool = action.get("tool")

        if tool == "create_transaction":
            record = Transaction(
                user_id=user_id,
                description=action["description"],
                amount=Decimal(str(action["amount"])),
                type=TransactionType(action.get("type") or TransactionType.EXPENSE.value),
                category=action.get("category") or AI_CATEGORY,
                date=today,
                is_paid=True,
            )
            message = (
                f"✅ Feito! Criei a transação: {record.description} de "
                f"{format_currency(record.amount, self._symbol)}."
            )
            return record, message

        if tool == "create_goal":
            record = Goal(
                user_id=user_id,
                name=action["name"],
                target_amount=Decimal(str(action["target"])),
                current_amount=Decimal("0"),
            )
            return record, f"✅ Meta criada com sucesso: {record.name}."

        if tool == "create_debt":
            total = Decimal(str(action["total"]))
            record = Debt(
                user_id=user_id,
                name=action["name"],
                total_amount=total,
                current_balance=total,
                interest_rate=Decimal("0"),
                minimum_payment=Decimal("0"),
            )
            return record, f"✅ Dívida registrada: {record.name}."

        return None, None

    async def execute(
        self,
        user_id: str,
        action: dict[str, Any],
        today: Optional[date] = None,
    ) -> Optional[str]:
        """
        Execute one action.

        Returns:
            The confirmation text, or None when the tool is unknown or the
            action failed
        """
        tool = action.get("tool")
        correlation_id = create_correlation_id()

        try:
            record, message = self._build(user_id, action, today or date.today())
            if record is None:
                await self._reject(user_id, tool, "unsupported tool", correlation_id)
                return None
            await self._storage.insert([record])
        except (KeyError, ValueError, TypeError, InvalidOperation, ValidationError, StorageError) as e:
            logger.warning("ai_action_failed", user_id=user_id, tool=tool, error=str(e))
            await self._reject(user_id, tool, str(e), correlation_id)
            return None

        logger.info("ai_action_executed", user_id=user_id, tool=tool, record_id=str(record.id))
        if self._audit_logger:
            await self._audit_logger.log_ai_action_executed(
                user_id=user_id,
                tool=tool,
                record_id=record.id,
                correlation_id=correlation_id,
            )
        return message

    async def _reject(self, user_id: str, tool: Optional[str], reason: str, correlation_id) -> None:
        if self._audit_logger:
            await self._audit_logger.log_ai_action_rejected(
                user_id=user_id,
                tool=tool,
                reason=reason,
                correlation_id=correlation_id,
            )
