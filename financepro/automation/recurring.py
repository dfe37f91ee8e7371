"""
Recurring Materializer and Calendar Projection

Subscriptions are recurring bills. Once per month, every active
subscription becomes one pending expense transaction dated on its
payment day.

DESIGN DECISION: Idempotency comes from a duplicate signature, not from a
"last run" marker. A subscription is considered already materialized this
month when a transaction with the same description and amount exists in the
month. Running the check on every page load is therefore safe.

CONSTRAINT: A payment day past the end of the month (the 31st in April)
is clamped to the month's last day.
"""

import calendar
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel

from financepro.audit import AuditLogger, create_correlation_id
from financepro.models.finance import (
    Subscription,
    Transaction,
    TransactionType,
    quantize_money,
)
from financepro.services.storage import RecordStorageInterface


logger = structlog.get_logger("automation.recurring")

RECURRING_CATEGORY = "Recorrente"


def signature(description: str, amount: Decimal) -> str:
    """Duplicate signature; `50` and `50.0` produce the same one."""
    return f"{description}-{quantize_money(Decimal(amount))}"


def payment_date_in_month(payment_day: int, year: int, month: int) -> date:
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(payment_day, last))


class RecurringMaterializer:
    """Turns active subscriptions into this month's expense transactions."""

    def __init__(
        self,
        storage: RecordStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def check_and_generate(
        self,
        user_id: str,
        today: Optional[date] = None,
    ) -> int:
        """
        Materialize the missing subscription charges of the current month.

        Returns:
            Number of transactions inserted
        """
        today = today or date.today()

        subscriptions = await self._storage.list(Subscription, user_id=user_id, active=True)
        if not subscriptions:
            return 0

        last_day = calendar.monthrange(today.year, today.month)[1]
        existing = await self._storage.list(
            Transaction,
            user_id=user_id,
            date_from=today.replace(day=1),
            date_to=today.replace(day=last_day),
        )
        seen = {signature(t.description, t.amount) for t in existing}

        new_transactions = []
        for subscription in subscriptions:
            key = signature(subscription.name, subscription.amount)
            if key in seen:
                continue
            seen.add(key)

            new_transactions.append(Transaction(
                user_id=user_id,
                description=subscription.name,
                amount=subscription.amount,
                type=TransactionType.EXPENSE,
                category_id=subscription.category_id,
                account_id=subscription.account_id,
                date=payment_date_in_month(
                    subscription.next_payment_date.day, today.year, today.month
                ),
                is_fixed=True,
                is_paid=False,
                category=RECURRING_CATEGORY,
            ))

        if not new_transactions:
            return 0

        await self._storage.insert(new_transactions)
        logger.info(
            "recurring_transactions_generated",
            user_id=user_id,
            count=len(new_transactions),
            month=today.strftime("%Y-%m"),
        )
        if self._audit_logger:
            await self._audit_logger.log_recurring_generated(
                user_id=user_id,
                count=len(new_transactions),
                correlation_id=create_correlation_id(),
            )
        return len(new_transactions)


def monthly_cost(subscriptions: Iterable[Subscription]) -> Decimal:
    """Total monthly cost of the active subscriptions."""
    total = sum(
        (s.monthly_cost for s in subscriptions if s.active),
        Decimal("0"),
    )
    return quantize_money(total)


# =============================================================================
# CALENDAR
# =============================================================================

class CalendarEvent(BaseModel):
    """One entry on the calendar: a real transaction or a projected bill."""

    id: str
    title: str
    amount: Decimal
    type: TransactionType
    day: date
    projected: bool = False


def project_calendar(
    transactions: Iterable[Transaction],
    subscriptions: Iterable[Subscription],
    month: date,
) -> list[CalendarEvent]:
    """
    Events of one month.

    Every transaction of the month, plus each active subscription on its
    payment day. Payment days the month doesn't have (the 31st in June)
    are not projected.
    """
    last_day = calendar.monthrange(month.year, month.month)[1]
    events = [
        CalendarEvent(
            id=str(t.id),
            title=t.description,
            amount=t.amount,
            type=t.type,
            day=t.date,
        )
        for t in transactions
        if (t.date.year, t.date.month) == (month.year, month.month)
    ]

    for subscription in subscriptions:
        if not subscription.active:
            continue
        payment_day = subscription.next_payment_date.day
        if payment_day > last_day:
            continue
        events.append(CalendarEvent(
            id=f"sub-{subscription.id}",
            title=subscription.name,
            amount=subscription.amount,
            type=TransactionType.EXPENSE,
            day=month.replace(day=payment_day),
            projected=True,
        ))

    events.sort(key=lambda e: e.day)
    return events


def daily_totals(events: Iterable[CalendarEvent]) -> dict[date, dict[str, Decimal]]:
    """Income and expense per day."""
    totals: dict[date, dict[str, Decimal]] = defaultdict(
        lambda: {"income": Decimal("0"), "expense": Decimal("0")}
    )
    for event in events:
        totals[event.day][event.type.value] += event.amount
    return dict(totals)
