"""Tests for recurring subscriptions and the calendar."""

from datetime import date
from decimal import Decimal

from financepro.automation import (
    RECURRING_CATEGORY,
    RecurringMaterializer,
    daily_totals,
    monthly_cost,
    project_calendar,
    signature,
)
from financepro.models.audit import AuditEventType
from financepro.models.finance import (
    BillingCycle,
    Subscription,
    Transaction,
    TransactionType,
)

from conftest import USER, OTHER_USER, make_transaction


def subscription(name="Netflix", amount="55.90", day=10, **extra) -> Subscription:
    return Subscription(
        user_id=extra.pop("user_id", USER),
        name=name,
        amount=Decimal(amount),
        next_payment_date=date(2026, 1, day),
        **extra,
    )


class TestSignature:
    """Tests for the duplicate signature."""

    def test_equivalent_amounts_match(self):
        """Test that 50, 50.0 and 50.00 produce one signature."""
        assert signature("Academia", Decimal("50")) == signature("Academia", Decimal("50.00"))
        assert signature("Academia", Decimal("50")) == "Academia-50.00"

    def test_different_descriptions_differ(self):
        """Test that the description is part of the signature."""
        assert signature("A", Decimal("1")) != signature("B", Decimal("1"))


class TestRecurringMaterializer:
    """Tests for turning subscriptions into monthly expenses."""

    async def test_generates_pending_expenses(self, storage, audit_logger, audit_storage):
        """Test one pending fixed expense per active subscription."""
        await storage.insert([
            subscription(),
            subscription("Spotify", "21.90", day=5),
            subscription("Pausada", "10", active=False),
        ])
        materializer = RecurringMaterializer(storage, audit_logger)

        created = await materializer.check_and_generate(USER, today=date(2026, 3, 2))

        assert created == 2
        rows = await storage.list(Transaction, order_by="date")
        assert [(r.description, r.date) for r in rows] == [
            ("Spotify", date(2026, 3, 5)),
            ("Netflix", date(2026, 3, 10)),
        ]
        assert all(r.type == TransactionType.EXPENSE for r in rows)
        assert all(not r.is_paid and r.is_fixed for r in rows)
        assert {r.category for r in rows} == {RECURRING_CATEGORY}
        assert audit_storage.events[-1].event_type == AuditEventType.RECURRING_GENERATED

    async def test_is_idempotent(self, storage):
        """Test that a second run in the same month creates nothing."""
        await storage.insert([subscription()])
        materializer = RecurringMaterializer(storage)

        assert await materializer.check_and_generate(USER, today=date(2026, 3, 2)) == 1
        assert await materializer.check_and_generate(USER, today=date(2026, 3, 28)) == 0
        assert len(await storage.list(Transaction)) == 1

    async def test_existing_transaction_counts_as_materialized(self, storage):
        """Test that a manual entry with the same description and amount blocks generation."""
        await storage.insert([
            subscription(amount="50"),
            make_transaction(description="Netflix", amount="50.0", day=date(2026, 3, 1)),
        ])
        assert await RecurringMaterializer(storage).check_and_generate(USER, today=date(2026, 3, 15)) == 0

    async def test_new_month_generates_again(self, storage):
        """Test that each month gets its own charge."""
        await storage.insert([subscription()])
        materializer = RecurringMaterializer(storage)
        await materializer.check_and_generate(USER, today=date(2026, 3, 2))
        assert await materializer.check_and_generate(USER, today=date(2026, 4, 2)) == 1

    async def test_payment_day_is_clamped(self, storage):
        """Test that the 31st falls on the last day of a short month."""
        await storage.insert([subscription(day=31)])
        await RecurringMaterializer(storage).check_and_generate(USER, today=date(2026, 2, 1))
        rows = await storage.list(Transaction)
        assert rows[0].date == date(2026, 2, 28)

    async def test_duplicate_subscriptions_generate_once(self, storage):
        """Test that two identical subscriptions produce one charge."""
        await storage.insert([subscription(), subscription()])
        assert await RecurringMaterializer(storage).check_and_generate(USER, today=date(2026, 3, 2)) == 1

    async def test_other_users_are_untouched(self, storage):
        """Test that only the given user's subscriptions run."""
        await storage.insert([subscription(user_id=OTHER_USER)])
        assert await RecurringMaterializer(storage).check_and_generate(USER, today=date(2026, 3, 2)) == 0


class TestMonthlyCost:
    """Tests for the subscriptions total."""

    def test_monthly_cost_of_active_subscriptions(self):
        """Test that paused ones are left out and cycles normalized."""
        subscriptions = [
            subscription(amount="30"),
            subscription(amount="120", billing_cycle=BillingCycle.YEARLY),
            subscription(amount="10", billing_cycle=BillingCycle.WEEKLY),
            subscription(amount="99", active=False),
        ]
        assert monthly_cost(subscriptions) == Decimal("80.00")


class TestCalendar:
    """Tests for the calendar projection."""

    def test_project_calendar(self):
        """Test real transactions plus projected bills, sorted by day."""
        transactions = [
            make_transaction(description="Salário", type=TransactionType.INCOME, day=date(2026, 6, 5), amount="3000"),
            make_transaction(description="Outro mês", day=date(2026, 7, 1)),
        ]
        subscriptions = [
            subscription(day=10),
            subscription("Aluguel", "1500", day=31),
            subscription("Pausada", active=False),
        ]

        events = project_calendar(transactions, subscriptions, date(2026, 6, 1))

        assert [(e.title, e.day.day, e.projected) for e in events] == [
            ("Salário", 5, False),
            ("Netflix", 10, True),
        ]

    def test_daily_totals(self):
        """Test income and expense per day."""
        events = project_calendar(
            [
                make_transaction(amount="10", day=date(2026, 6, 5)),
                make_transaction(amount="5", day=date(2026, 6, 5)),
                make_transaction(amount="100", type=TransactionType.INCOME, day=date(2026, 6, 5)),
            ],
            [],
            date(2026, 6, 1),
        )
        totals = daily_totals(events)
        assert totals[date(2026, 6, 5)] == {
            "income": Decimal("100.00"),
            "expense": Decimal("15.00"),
        }
