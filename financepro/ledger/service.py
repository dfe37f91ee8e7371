"""
Ledger Service

The data-access operations behind every page of the dashboard: create,
list, update and delete for each of the user's tables.

DESIGN DECISION: Every operation takes the owning `user_id` and checks
ownership before touching a row. The storage layer is generic and knows
nothing about users beyond filtering; ownership is enforced here.

Installment purchases are expanded here too, because that is where the
form turns into rows.
"""

import calendar
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional
from uuid import UUID, uuid4

import structlog
from dateutil.relativedelta import relativedelta

from financepro.audit import AuditLogger, create_correlation_id
from financepro.config import get_settings
from financepro.models.finance import (
    Account,
    AccountType,
    BillingCycle,
    Budget,
    Category,
    CreditCard,
    Debt,
    FinanceRecord,
    Goal,
    Investment,
    InvestmentType,
    PaymentMethod,
    PlanStatus,
    Profile,
    Subscription,
    Transaction,
    TransactionForm,
    TransactionType,
    ValidationResult,
)
from financepro.services.storage import NotFoundError, RecordStorageInterface
from financepro.validation import TransactionFormValidator, parse_iso_day


logger = structlog.get_logger("ledger")


class InvalidFormError(ValueError):
    """The transaction form failed validation; `result` lists the issues."""

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__("; ".join(result.error_messages))


def month_bounds(day: date) -> tuple[date, date]:
    """First and last day of the month containing `day`."""
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def normalize_phone(phone: str) -> str:
    """Digits only, without the WhatsApp channel prefix."""
    return "".join(ch for ch in phone.replace("whatsapp:", "") if ch.isdigit())


class LedgerService:
    """
    CRUD operations over the user's tables.

    Each write is audited when an audit logger is given.
    """

    def __init__(
        self,
        storage: RecordStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[TransactionFormValidator] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._validator = validator or TransactionFormValidator()

    @property
    def storage(self) -> RecordStorageInterface:
        return self._storage

    # =========================================================================
    # Shared helpers
    # =========================================================================

    async def _get_owned(self, model: type[FinanceRecord], user_id: str, record_id: UUID):
        record = await self._storage.get(model, record_id)
        if record is None or record.user_id != user_id:
            raise NotFoundError(f"{model.table_name} record not found: {record_id}")
        return record

    async def _create(self, record: FinanceRecord, summary: str) -> FinanceRecord:
        await self._storage.insert([record])
        if self._audit_logger:
            await self._audit_logger.log_record_created(
                user_id=record.user_id,
                table=record.table_name,
                record_id=record.id,
                summary=summary,
            )
        return record

    async def _update(
        self,
        model: type[FinanceRecord],
        user_id: str,
        record_id: UUID,
        changes: dict[str, Any],
    ):
        await self._get_owned(model, user_id, record_id)
        updated = await self._storage.update(model, record_id, changes)
        if self._audit_logger:
            await self._audit_logger.log_record_updated(
                user_id=user_id,
                table=model.table_name,
                record_id=record_id,
                changed_fields=sorted(changes),
            )
        return updated

    async def _delete(
        self,
        model: type[FinanceRecord],
        user_id: str,
        record_ids: Iterable[UUID],
    ) -> int:
        wanted = set(record_ids)
        if not wanted:
            return 0

        owned = [
            record.id
            for record in await self._storage.list(model, user_id=user_id)
            if record.id in wanted
        ]
        deleted = await self._storage.delete(model, owned)
        if deleted and self._audit_logger:
            await self._audit_logger.log_record_deleted(
                user_id=user_id,
                table=model.table_name,
                record_ids=owned,
            )
        return deleted

    # =========================================================================
    # Transactions
    # =========================================================================

    def _build_transactions(
        self,
        user_id: str,
        form: TransactionForm,
        start: date,
    ) -> list[Transaction]:
        """Turn a valid form into one row, or one row per installment."""
        base = dict(
            user_id=user_id,
            description=form.description,
            amount=form.amount,
            type=form.type,
            category_id=form.category_id,
            category=form.category or None,
            # Credit goes on the card bill, debit leaves the account
            account_id=None if form.payment_method == PaymentMethod.CREDIT else form.account_id,
            card_id=form.card_id if form.payment_method == PaymentMethod.CREDIT else None,
            payment_method=form.payment_method,
            is_fixed=form.is_fixed,
            is_recurring=form.is_recurring,
            observation=form.observation or None,
        )

        count = form.installments_count
        if count <= 1:
            return [Transaction(**base, date=start, is_paid=form.is_paid)]

        group_id = uuid4()
        return [
            Transaction(
                **base,
                # relativedelta clamps Jan 31 + 1 month to the end of February
                date=start + relativedelta(months=i),
                is_paid=form.is_paid if i == 0 else False,
                installment_group_id=group_id,
                installment_number=i + 1,
                installment_total=count,
            )
            for i in range(count)
        ]

    async def save_transaction(
        self,
        user_id: str,
        form: TransactionForm,
        editing_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        """
        Create or edit a transaction from the form.

        With more than one installment, N monthly rows sharing a new group id
        are written. Only the first keeps the form's paid flag.

        Editing into installments replaces the edited row, or its whole
        installment group when it already belongs to one.

        Raises:
            InvalidFormError: If the form has blocking issues
            NotFoundError: If `editing_id` is not one of the user's rows
        """
        result = self._validator.validate(form)
        if result.has_errors:
            raise InvalidFormError(result)

        start = parse_iso_day(form.date)
        transactions = self._build_transactions(user_id, form, start)
        correlation_id = create_correlation_id()

        if editing_id is None:
            await self._storage.insert(transactions)
        else:
            existing = await self._get_owned(Transaction, user_id, editing_id)

            if len(transactions) == 1:
                changes = transactions[0].model_dump(exclude={"id", "created_at", "user_id"})
                # Keep the row's place in its installment group
                for field in ("installment_group_id", "installment_number", "installment_total"):
                    changes[field] = getattr(existing, field)
                updated = await self._update(Transaction, user_id, editing_id, changes)
                return [updated]

            if existing.installment_group_id:
                await self._storage.delete_where(
                    Transaction,
                    user_id=user_id,
                    installment_group_id=existing.installment_group_id,
                )
            else:
                await self._storage.delete(Transaction, [editing_id])
            await self._storage.insert(transactions)

        if self._audit_logger:
            for transaction in transactions:
                await self._audit_logger.log_record_created(
                    user_id=user_id,
                    table=Transaction.table_name,
                    record_id=transaction.id,
                    summary=f"{transaction.description} {transaction.amount}",
                    correlation_id=correlation_id,
                )

        logger.info(
            "transactions_saved",
            user_id=user_id,
            count=len(transactions),
            editing=editing_id is not None,
        )
        return transactions

    async def delete_transaction(self, user_id: str, transaction_id: UUID) -> int:
        return await self._delete(Transaction, user_id, [transaction_id])

    async def bulk_delete(self, user_id: str, transaction_ids: Iterable[UUID]) -> int:
        """Delete the selected transactions. An empty selection deletes nothing."""
        return await self._delete(Transaction, user_id, transaction_ids)

    async def toggle_paid(self, user_id: str, transaction_id: UUID) -> Transaction:
        transaction = await self._get_owned(Transaction, user_id, transaction_id)
        return await self._update(
            Transaction, user_id, transaction_id, {"is_paid": not transaction.is_paid}
        )

    async def list_month(
        self,
        user_id: str,
        month: date,
        page: int = 0,
        per_page: Optional[int] = None,
    ) -> list[Transaction]:
        """One calendar month of transactions, newest first, one page at a time."""
        per_page = per_page or get_settings().app.default_page_size
        first, last = month_bounds(month)
        return await self._storage.list(
            Transaction,
            user_id=user_id,
            date_from=first,
            date_to=last,
            order_by="date",
            descending=True,
            limit=per_page,
            offset=page * per_page,
        )

    async def list_transactions(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        """All transactions in a range, oldest first (reports and exports)."""
        return await self._storage.list(
            Transaction,
            user_id=user_id,
            date_from=date_from,
            date_to=date_to,
            order_by="date",
        )

    # =========================================================================
    # Categories, accounts and cards
    # =========================================================================

    async def create_category(
        self,
        user_id: str,
        name: str,
        type: TransactionType = TransactionType.EXPENSE,
        color: str = "#6366f1",
    ) -> Category:
        category = Category(user_id=user_id, name=name, type=type, color=color)
        return await self._create(category, name)

    async def list_categories(self, user_id: str) -> list[Category]:
        return await self._storage.list(Category, user_id=user_id, order_by="name")

    async def delete_category(self, user_id: str, category_id: UUID) -> int:
        return await self._delete(Category, user_id, [category_id])

    async def create_account(
        self,
        user_id: str,
        name: str,
        type: AccountType = AccountType.CHECKING,
        balance: Decimal = Decimal("0"),
    ) -> Account:
        account = Account(user_id=user_id, name=name, type=type, balance=balance)
        return await self._create(account, name)

    async def list_accounts(self, user_id: str) -> list[Account]:
        return await self._storage.list(Account, user_id=user_id, order_by="name")

    async def delete_account(self, user_id: str, account_id: UUID) -> int:
        return await self._delete(Account, user_id, [account_id])

    async def create_card(
        self,
        user_id: str,
        name: str,
        limit_amount: Decimal = Decimal("0"),
        closing_day: int = 1,
        due_day: int = 10,
    ) -> CreditCard:
        card = CreditCard(
            user_id=user_id,
            name=name,
            limit_amount=limit_amount,
            closing_day=closing_day,
            due_day=due_day,
        )
        return await self._create(card, name)

    async def list_cards(self, user_id: str) -> list[CreditCard]:
        return await self._storage.list(CreditCard, user_id=user_id, order_by="name")

    async def delete_card(self, user_id: str, card_id: UUID) -> int:
        return await self._delete(CreditCard, user_id, [card_id])

    # =========================================================================
    # Budgets
    # =========================================================================

    async def save_budget(self, user_id: str, category_id: UUID, amount: Decimal) -> Budget:
        """Set the monthly limit of a category, replacing any previous one."""
        budget = await self._storage.upsert(
            Budget(user_id=user_id, category_id=category_id, amount=amount),
            Budget.conflict_fields,
        )
        if self._audit_logger:
            await self._audit_logger.log_record_updated(
                user_id=user_id,
                table=Budget.table_name,
                record_id=budget.id,
                changed_fields=["amount"],
            )
        return budget

    async def list_budgets(self, user_id: str) -> list[Budget]:
        return await self._storage.list(Budget, user_id=user_id)

    async def delete_budget(self, user_id: str, budget_id: UUID) -> int:
        return await self._delete(Budget, user_id, [budget_id])

    # =========================================================================
    # Goals
    # =========================================================================

    async def create_goal(
        self,
        user_id: str,
        name: str,
        target_amount: Decimal,
        deadline: Optional[date] = None,
        current_amount: Decimal = Decimal("0"),
    ) -> Goal:
        goal = Goal(
            user_id=user_id,
            name=name,
            target_amount=target_amount,
            current_amount=current_amount,
            deadline=deadline,
        )
        return await self._create(goal, name)

    async def list_goals(self, user_id: str) -> list[Goal]:
        return await self._storage.list(Goal, user_id=user_id, order_by="deadline")

    async def deposit(self, user_id: str, goal_id: UUID, amount: Decimal) -> Goal:
        """Add money to a goal."""
        if amount <= 0:
            raise ValueError("Deposit must be greater than zero")
        goal = await self._get_owned(Goal, user_id, goal_id)
        return await self._update(
            Goal, user_id, goal_id, {"current_amount": goal.current_amount + amount}
        )

    async def delete_goal(self, user_id: str, goal_id: UUID) -> int:
        return await self._delete(Goal, user_id, [goal_id])

    # =========================================================================
    # Debts
    # =========================================================================

    async def create_debt(
        self,
        user_id: str,
        name: str,
        total_amount: Decimal,
        current_balance: Optional[Decimal] = None,
        interest_rate: Decimal = Decimal("0"),
        minimum_payment: Decimal = Decimal("0"),
    ) -> Debt:
        debt = Debt(
            user_id=user_id,
            name=name,
            total_amount=total_amount,
            current_balance=total_amount if current_balance is None else current_balance,
            interest_rate=interest_rate,
            minimum_payment=minimum_payment,
        )
        return await self._create(debt, name)

    async def list_debts(self, user_id: str) -> list[Debt]:
        """Debts by interest rate, highest first (the payoff order)."""
        return await self._storage.list(
            Debt, user_id=user_id, order_by="interest_rate", descending=True
        )

    async def delete_debt(self, user_id: str, debt_id: UUID) -> int:
        return await self._delete(Debt, user_id, [debt_id])

    # =========================================================================
    # Investments
    # =========================================================================

    async def create_investment(
        self,
        user_id: str,
        name: str,
        type: InvestmentType,
        quantity: Decimal,
        purchase_price: Decimal,
        current_price: Optional[Decimal] = None,
    ) -> Investment:
        investment = Investment(
            user_id=user_id,
            name=name,
            type=type,
            quantity=quantity,
            purchase_price=purchase_price,
            current_price=current_price,
        )
        return await self._create(investment, name)

    async def list_investments(self, user_id: str) -> list[Investment]:
        return await self._storage.list(Investment, user_id=user_id, order_by="name")

    async def delete_investment(self, user_id: str, investment_id: UUID) -> int:
        return await self._delete(Investment, user_id, [investment_id])

    # =========================================================================
    # Subscriptions
    # =========================================================================

    async def create_subscription(
        self,
        user_id: str,
        name: str,
        amount: Decimal,
        next_payment_date: date,
        billing_cycle: BillingCycle = BillingCycle.MONTHLY,
        category: Optional[str] = None,
        category_id: Optional[UUID] = None,
        account_id: Optional[UUID] = None,
    ) -> Subscription:
        subscription = Subscription(
            user_id=user_id,
            name=name,
            amount=amount,
            next_payment_date=next_payment_date,
            billing_cycle=billing_cycle,
            category=category or "Assinatura",
            category_id=category_id,
            account_id=account_id,
        )
        return await self._create(subscription, name)

    async def list_subscriptions(
        self,
        user_id: str,
        active_only: bool = False,
    ) -> list[Subscription]:
        filters = {"active": True} if active_only else {}
        return await self._storage.list(
            Subscription, user_id=user_id, order_by="next_payment_date", **filters
        )

    async def toggle_active(self, user_id: str, subscription_id: UUID) -> Subscription:
        """Pause or resume a subscription."""
        subscription = await self._get_owned(Subscription, user_id, subscription_id)
        return await self._update(
            Subscription, user_id, subscription_id, {"active": not subscription.active}
        )

    async def delete_subscription(self, user_id: str, subscription_id: UUID) -> int:
        return await self._delete(Subscription, user_id, [subscription_id])

    # =========================================================================
    # Profile
    # =========================================================================

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        profiles = await self._storage.list(Profile, user_id=user_id, limit=1)
        return profiles[0] if profiles else None

    async def ensure_profile(
        self,
        user_id: str,
        email: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Profile:
        """Return the user's profile, creating it with a fresh trial if needed."""
        profile = await self.get_profile(user_id)
        if profile is not None:
            return profile

        now = now or datetime.now(timezone.utc)
        profile = Profile(
            user_id=user_id,
            email=email,
            subscription_status=PlanStatus.TRIAL,
            trial_ends_at=now + timedelta(days=get_settings().app.trial_days),
        )
        return await self._create(profile, user_id)

    async def update_profile(
        self,
        user_id: str,
        full_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Profile:
        """Save name and phone, creating the profile when missing."""
        changes = {"full_name": full_name or None, "phone": phone or None}
        profile = await self.get_profile(user_id)
        if profile is None:
            profile = await self.ensure_profile(user_id)
        return await self._update(Profile, user_id, profile.id, changes)

    async def find_profile_by_phone(self, phone: str) -> Optional[Profile]:
        """Match a sender number against the phones saved in profiles."""
        wanted = normalize_phone(phone)
        if not wanted:
            return None
        for profile in await self._storage.list(Profile):
            if profile.phone and normalize_phone(profile.phone) == wanted:
                return profile
        return None
