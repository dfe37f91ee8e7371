"""Tests for the ledger service (CRUD behind each page)."""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from financepro.ledger import InvalidFormError, month_bounds, normalize_phone
from financepro.models.audit import AuditEventType
from financepro.models.finance import (
    InvestmentType,
    PaymentMethod,
    PlanStatus,
    Transaction,
    TransactionForm,
    TransactionType,
)
from financepro.services.storage import NotFoundError

from conftest import USER, OTHER_USER, make_transaction


def form(**fields) -> TransactionForm:
    values = dict(description="Mercado", amount=Decimal("150"), date="2026-01-31")
    values.update(fields)
    return TransactionForm(**values)


class TestHelpers:
    """Tests for the ledger helpers."""

    def test_month_bounds(self):
        """Test first and last day of a month."""
        assert month_bounds(date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_bounds(date(2026, 12, 31)) == (date(2026, 12, 1), date(2026, 12, 31))

    def test_normalize_phone(self):
        """Test that only digits survive."""
        assert normalize_phone("whatsapp:+55 (11) 99999-0000") == "5511999990000"
        assert normalize_phone("") == ""


class TestSaveTransaction:
    """Tests for creating and editing transactions from the form."""

    async def test_single_transaction(self, ledger, storage):
        """Test that one form becomes one row."""
        rows = await ledger.save_transaction(USER, form())
        assert len(rows) == 1
        assert rows[0].amount == Decimal("150.00")
        assert rows[0].date == date(2026, 1, 31)
        assert rows[0].installment_group_id is None
        assert await storage.list(Transaction) == rows

    async def test_invalid_form_is_refused(self, ledger, storage):
        """Test that blocking issues raise and write nothing."""
        with pytest.raises(InvalidFormError) as excinfo:
            await ledger.save_transaction(USER, form(description="", date="31/01/2026"))

        assert "Data inválida" in excinfo.value.result.error_messages
        assert await storage.list(Transaction) == []

    async def test_credit_drops_account(self, ledger):
        """Test that credit payments keep the card and drop the account."""
        card_id = uuid4()
        rows = await ledger.save_transaction(USER, form(
            payment_method=PaymentMethod.CREDIT,
            account_id=uuid4(),
            card_id=card_id,
        ))
        assert rows[0].account_id is None
        assert rows[0].card_id == card_id

    async def test_debit_drops_card(self, ledger):
        """Test that debit payments keep the account and drop the card."""
        account_id = uuid4()
        rows = await ledger.save_transaction(USER, form(account_id=account_id, card_id=uuid4()))
        assert rows[0].account_id == account_id
        assert rows[0].card_id is None

    async def test_installments(self, ledger):
        """Test that installments are monthly rows sharing a group."""
        rows = await ledger.save_transaction(USER, form(installments_count=3, is_paid=True))

        assert [r.date for r in rows] == [date(2026, 1, 31), date(2026, 2, 28), date(2026, 3, 31)]
        assert [r.installment_number for r in rows] == [1, 2, 3]
        assert {r.installment_total for r in rows} == {3}
        assert len({r.installment_group_id for r in rows}) == 1
        assert [r.is_paid for r in rows] == [True, False, False]
        assert all(r.amount == Decimal("150.00") for r in rows)

    async def test_creation_is_audited(self, ledger, audit_storage):
        """Test one audit event per created row, correlated."""
        await ledger.save_transaction(USER, form(installments_count=2))
        events = [e for e in audit_storage.events if e.event_type == AuditEventType.RECORD_CREATED]
        assert len(events) == 2
        assert events[0].correlation_id == events[1].correlation_id

    async def test_edit_single_row_in_place(self, ledger, storage):
        """Test that editing into one row updates it and keeps its id."""
        original = (await ledger.save_transaction(USER, form()))[0]

        edited = await ledger.save_transaction(
            USER, form(description="Feira", amount=Decimal("80")), editing_id=original.id
        )

        assert edited[0].id == original.id
        stored = await storage.list(Transaction)
        assert len(stored) == 1
        assert stored[0].description == "Feira"
        assert stored[0].amount == Decimal("80.00")

    async def test_edit_installment_row_keeps_group(self, ledger, storage):
        """Test that editing one installment keeps its place in the group."""
        rows = await ledger.save_transaction(USER, form(installments_count=3))

        await ledger.save_transaction(
            USER, form(amount=Decimal("200"), date="2026-02-27"), editing_id=rows[1].id
        )

        stored = await storage.get(Transaction, rows[1].id)
        assert stored.amount == Decimal("200.00")
        assert stored.installment_group_id == rows[1].installment_group_id
        assert stored.installment_number == 2
        assert len(await storage.list(Transaction)) == 3

    async def test_edit_single_into_installments(self, ledger, storage):
        """Test that a single row is replaced by a new group."""
        original = (await ledger.save_transaction(USER, form()))[0]

        rows = await ledger.save_transaction(USER, form(installments_count=2), editing_id=original.id)

        stored = await storage.list(Transaction)
        assert len(stored) == 2
        assert original.id not in {r.id for r in stored}
        assert {r.id for r in stored} == {r.id for r in rows}

    async def test_edit_group_replaces_whole_group(self, ledger, storage):
        """Test that re-splitting a group deletes every old installment."""
        old = await ledger.save_transaction(USER, form(installments_count=3))

        new = await ledger.save_transaction(USER, form(installments_count=2), editing_id=old[0].id)

        stored = await storage.list(Transaction)
        assert len(stored) == 2
        assert {r.installment_group_id for r in stored} == {new[0].installment_group_id}
        assert new[0].installment_group_id != old[0].installment_group_id

    async def test_edit_someone_elses_row(self, ledger, storage):
        """Test that users can't edit rows they don't own."""
        foreign = make_transaction(user_id=OTHER_USER)
        await storage.insert([foreign])
        with pytest.raises(NotFoundError):
            await ledger.save_transaction(USER, form(), editing_id=foreign.id)

    async def test_unchanged_edit_keeps_links(self, ledger, storage):
        """Test that saving a prefilled edit form changes nothing."""
        category_id, card_id = uuid4(), uuid4()
        original = (await ledger.save_transaction(USER, form(
            category_id=category_id,
            category="Mercado",
            payment_method=PaymentMethod.CREDIT,
            card_id=card_id,
            is_paid=False,
            observation="feira do mês",
        )))[0]

        await ledger.save_transaction(
            USER, TransactionForm.from_transaction(original), editing_id=original.id
        )

        stored = await storage.get(Transaction, original.id)
        assert stored == original
        assert stored.card_id == card_id
        assert stored.payment_method == PaymentMethod.CREDIT
        assert stored.category_id == category_id


class TestTransactionOperations:
    """Tests for listing, toggling and deleting transactions."""

    async def test_toggle_paid(self, ledger, audit_storage):
        """Test flipping the paid flag, audited with the changed field."""
        row = (await ledger.save_transaction(USER, form(is_paid=False)))[0]

        toggled = await ledger.toggle_paid(USER, row.id)
        assert toggled.is_paid
        assert not (await ledger.toggle_paid(USER, row.id)).is_paid

        updates = [e for e in audit_storage.events if e.event_type == AuditEventType.RECORD_UPDATED]
        assert updates[0].details["changed_fields"] == ["is_paid"]

    async def test_delete_transaction(self, ledger, storage):
        """Test deleting one row."""
        row = (await ledger.save_transaction(USER, form()))[0]
        assert await ledger.delete_transaction(USER, row.id) == 1
        assert await storage.list(Transaction) == []

    async def test_bulk_delete_only_touches_owned_rows(self, ledger, storage):
        """Test that foreign ids in the selection are ignored."""
        mine = [make_transaction(), make_transaction(description="Luz")]
        foreign = make_transaction(user_id=OTHER_USER)
        await storage.insert(mine + [foreign])

        deleted = await ledger.bulk_delete(USER, [t.id for t in mine] + [foreign.id])

        assert deleted == 2
        assert await storage.list(Transaction) == [foreign]

    async def test_bulk_delete_empty_selection(self, ledger, audit_storage):
        """Test that nothing happens for an empty selection."""
        assert await ledger.bulk_delete(USER, []) == 0
        assert audit_storage.events == []

    async def test_list_month_newest_first(self, ledger, storage):
        """Test one month of rows, newest first, paged."""
        await storage.insert([
            make_transaction(day=date(2026, 3, 1)),
            make_transaction(day=date(2026, 3, 31)),
            make_transaction(day=date(2026, 3, 15)),
            make_transaction(day=date(2026, 4, 1)),
            make_transaction(day=date(2026, 3, 20), user_id=OTHER_USER),
        ])

        rows = await ledger.list_month(USER, date(2026, 3, 9), per_page=10)
        assert [r.date.day for r in rows] == [31, 15, 1]

        second_page = await ledger.list_month(USER, date(2026, 3, 9), page=1, per_page=2)
        assert [r.date.day for r in second_page] == [1]

    async def test_list_transactions_oldest_first(self, ledger, storage):
        """Test the range listing used by reports."""
        await storage.insert([
            make_transaction(day=date(2026, 5, 1)),
            make_transaction(day=date(2026, 1, 1)),
        ])
        rows = await ledger.list_transactions(USER)
        assert [r.date.month for r in rows] == [1, 5]


class TestReferenceTables:
    """Tests for categories, accounts, cards and budgets."""

    async def test_categories(self, ledger):
        """Test create, list by name, and delete."""
        await ledger.create_category(USER, "Moradia")
        salary = await ledger.create_category(USER, "Salário", type=TransactionType.INCOME)

        names = [c.name for c in await ledger.list_categories(USER)]
        assert names == ["Moradia", "Salário"]

        assert await ledger.delete_category(USER, salary.id) == 1
        assert await ledger.delete_category(OTHER_USER, salary.id) == 0

    async def test_accounts_and_cards(self, ledger):
        """Test account and card creation."""
        account = await ledger.create_account(USER, "Nubank", balance=Decimal("1000"))
        card = await ledger.create_card(USER, "Visa", limit_amount=Decimal("5000"), closing_day=5, due_day=15)

        assert (await ledger.list_accounts(USER))[0].balance == Decimal("1000.00")
        assert (await ledger.list_cards(USER))[0].due_day == 15
        assert await ledger.delete_account(USER, account.id) == 1
        assert await ledger.delete_card(USER, card.id) == 1

    async def test_save_budget_is_an_upsert(self, ledger):
        """Test that one category has at most one budget."""
        category = await ledger.create_category(USER, "Lazer")
        first = await ledger.save_budget(USER, category.id, Decimal("300"))
        second = await ledger.save_budget(USER, category.id, Decimal("450"))

        budgets = await ledger.list_budgets(USER)
        assert len(budgets) == 1
        assert second.id == first.id
        assert budgets[0].amount == Decimal("450.00")

        assert await ledger.delete_budget(USER, first.id) == 1


class TestPlanningTables:
    """Tests for goals, debts, investments and subscriptions."""

    async def test_goal_deposit(self, ledger):
        """Test adding money to a goal."""
        goal = await ledger.create_goal(USER, "Viagem", Decimal("1000"), deadline=date(2026, 12, 1))
        updated = await ledger.deposit(USER, goal.id, Decimal("250"))
        updated = await ledger.deposit(USER, goal.id, Decimal("100"))
        assert updated.current_amount == Decimal("350.00")
        assert updated.progress_percent == 35.0

    async def test_goal_deposit_must_be_positive(self, ledger):
        """Test that zero deposits are refused."""
        goal = await ledger.create_goal(USER, "Viagem", Decimal("1000"))
        with pytest.raises(ValueError):
            await ledger.deposit(USER, goal.id, Decimal("0"))

    async def test_goal_of_another_user(self, ledger):
        """Test that deposits only reach owned goals."""
        goal = await ledger.create_goal(OTHER_USER, "Casa", Decimal("1000"))
        with pytest.raises(NotFoundError):
            await ledger.deposit(USER, goal.id, Decimal("10"))

    async def test_debts_ordered_by_interest(self, ledger):
        """Test the payoff order, highest interest first."""
        cheap = await ledger.create_debt(USER, "Financiamento", Decimal("10000"), interest_rate=Decimal("1"))
        await ledger.create_debt(USER, "Cartão", Decimal("2000"), interest_rate=Decimal("12"))

        debts = await ledger.list_debts(USER)
        assert [d.name for d in debts] == ["Cartão", "Financiamento"]
        assert cheap.current_balance == Decimal("10000.00")

    async def test_investments(self, ledger):
        """Test portfolio positions."""
        investment = await ledger.create_investment(
            USER, "HGLG11", InvestmentType.REITS, Decimal("10"), Decimal("160")
        )
        assert investment.current_price == Decimal("160.00")
        assert len(await ledger.list_investments(USER)) == 1
        assert await ledger.delete_investment(USER, investment.id) == 1

    async def test_subscriptions(self, ledger):
        """Test listing and pausing subscriptions."""
        netflix = await ledger.create_subscription(USER, "Netflix", Decimal("55.90"), date(2026, 3, 10))
        await ledger.create_subscription(USER, "Spotify", Decimal("21.90"), date(2026, 3, 5))

        assert [s.name for s in await ledger.list_subscriptions(USER)] == ["Spotify", "Netflix"]
        assert netflix.category == "Assinatura"

        paused = await ledger.toggle_active(USER, netflix.id)
        assert not paused.active
        assert [s.name for s in await ledger.list_subscriptions(USER, active_only=True)] == ["Spotify"]

        assert await ledger.delete_subscription(USER, netflix.id) == 1


class TestProfiles:
    """Tests for profiles and the trial."""

    async def test_ensure_profile_starts_trial(self, ledger):
        """Test that a new profile gets a trial ending in the future."""
        now = datetime(2026, 3, 1, 12, tzinfo=timezone.utc)
        profile = await ledger.ensure_profile(USER, email="a@b.com", now=now)

        assert profile.subscription_status == PlanStatus.TRIAL
        assert profile.trial_ends_at > now
        assert profile.trial_ends_at - now <= timedelta(days=30)

    async def test_ensure_profile_is_idempotent(self, ledger, storage):
        """Test that the profile is created once."""
        first = await ledger.ensure_profile(USER)
        second = await ledger.ensure_profile(USER)
        assert first.id == second.id
        assert await ledger.get_profile(OTHER_USER) is None

    async def test_update_profile_and_find_by_phone(self, ledger):
        """Test matching a WhatsApp sender to a saved phone."""
        await ledger.update_profile(USER, full_name="Ana", phone="+55 (11) 98888-7777")

        profile = await ledger.find_profile_by_phone("whatsapp:+5511988887777")
        assert profile is not None
        assert profile.user_id == USER
        assert profile.full_name == "Ana"

        assert await ledger.find_profile_by_phone("whatsapp:+5511000000000") is None
        assert await ledger.find_profile_by_phone("") is None
