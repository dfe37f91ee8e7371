"""
Core Data Models for FinancePro

These models define the schemas of every table the dashboard reads and writes.
They are designed to:
1. Enforce type safety at runtime
2. Keep money as Decimal rounded to cents
3. Be serializable for the hosted tables and for logging
4. Carry the invariants a row must respect before it is persisted

DESIGN DECISION: Each record declares its own table name.
The storage layer maps models to tables through `table_name`, so adding a
new table never touches the storage code.
"""

import datetime as dt
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, ClassVar, Optional
from uuid import UUID, uuid4

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


CENT = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    """Round a monetary value to cents."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


Money = Annotated[Decimal, AfterValidator(quantize_money)]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class PaymentMethod(str, Enum):
    """
    How a transaction is paid.

    DEBIT moves money from an account. CREDIT goes on a credit card bill.
    """
    DEBIT = "debit"
    CREDIT = "credit"


class AccountType(str, Enum):
    """Kinds of bank account."""
    CHECKING = "checking"
    SAVINGS = "savings"
    INVESTMENT = "investment"
    CASH = "cash"
    OTHER = "other"


class InvestmentType(str, Enum):
    """Asset classes of the portfolio."""
    STOCK = "stock"
    CRYPTO = "crypto"
    FIXED = "fixed"
    FUND = "fund"
    REITS = "reits"


INVESTMENT_TYPE_LABELS = {
    InvestmentType.STOCK: "Ações",
    InvestmentType.CRYPTO: "Cripto",
    InvestmentType.FIXED: "Renda Fixa",
    InvestmentType.FUND: "Fundos",
    InvestmentType.REITS: "FIIs",
}


class BillingCycle(str, Enum):
    """Billing cycle of a recurring subscription."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class PlanStatus(str, Enum):
    """
    Status of the user's paid plan.

    CRITICAL: Only the payment webhook moves a profile to ACTIVE or EXPIRED.
    """
    TRIAL = "trial"
    ACTIVE = "active"
    EXPIRED = "expired"


# =============================================================================
# BASE RECORD
# =============================================================================

class FinanceRecord(BaseModel):
    """
    A row of one of the user's tables.

    Every record is owned by exactly one user and has a stable UUID.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    table_name: ClassVar[str] = ""
    # Field used for date-range filters, if the table has one
    date_field: ClassVar[Optional[str]] = None

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique record ID"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owner of the record"
    )
    created_at: dt.datetime = Field(
        default_factory=utcnow,
        description="When the record was created (UTC)"
    )


# =============================================================================
# REFERENCE TABLES
# =============================================================================

class Category(FinanceRecord):
    """A user-defined category for income or expenses."""
    table_name: ClassVar[str] = "categories"

    name: str = Field(..., min_length=1, max_length=60)
    type: TransactionType = TransactionType.EXPENSE
    color: str = Field(default="#6366f1", max_length=20)


class Account(FinanceRecord):
    """A bank account or wallet."""
    table_name: ClassVar[str] = "accounts"

    name: str = Field(..., min_length=1, max_length=100)
    type: AccountType = AccountType.CHECKING
    balance: Money = Field(default=Decimal("0"))


class CreditCard(FinanceRecord):
    """A credit card with its billing days."""
    table_name: ClassVar[str] = "credit_cards"

    name: str = Field(..., min_length=1, max_length=100)
    limit_amount: Money = Field(default=Decimal("0"), ge=0)
    closing_day: int = Field(default=1, ge=1, le=31)
    due_day: int = Field(default=10, ge=1, le=31)


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(FinanceRecord):
    """
    A single income or expense entry.

    Installment purchases are stored as one row per installment, all sharing
    the same `installment_group_id`.
    """
    table_name: ClassVar[str] = "transactions"
    date_field: ClassVar[Optional[str]] = "date"

    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What the money was for"
    )
    amount: Money = Field(
        ...,
        gt=0,
        description="Always positive; `type` gives the direction"
    )
    type: TransactionType = TransactionType.EXPENSE
    date: dt.date = Field(
        ...,
        description="Date the transaction happened or is due"
    )

    category_id: Optional[UUID] = None
    # Free-text category name, used when no category row is linked
    category: Optional[str] = Field(default=None, max_length=60)
    account_id: Optional[UUID] = None
    card_id: Optional[UUID] = None
    payment_method: PaymentMethod = PaymentMethod.DEBIT

    is_paid: bool = True
    is_fixed: bool = False
    is_recurring: bool = False

    installment_group_id: Optional[UUID] = None
    installment_number: Optional[int] = Field(default=None, ge=1)
    installment_total: Optional[int] = Field(default=None, ge=1)

    observation: Optional[str] = Field(default=None, max_length=1000)

    @property
    def signed_amount(self) -> Decimal:
        """Amount with expenses negative."""
        if self.type == TransactionType.EXPENSE:
            return -self.amount
        return self.amount

    @model_validator(mode='after')
    def validate_payment_links(self) -> 'Transaction':
        """A credit payment is tied to a card, a debit payment to an account."""
        if self.payment_method == PaymentMethod.CREDIT and self.account_id:
            raise ValueError("Credit payments cannot reference an account")
        if self.payment_method == PaymentMethod.DEBIT and self.card_id:
            raise ValueError("Debit payments cannot reference a credit card")

        if (self.installment_number is None) != (self.installment_total is None):
            raise ValueError("Installment number and total must be set together")
        if self.installment_number and self.installment_number > self.installment_total:
            raise ValueError("Installment number cannot exceed the total")

        return self


class TransactionForm(BaseModel):
    """
    Raw input of the transaction form.

    Deliberately lenient: `TransactionFormValidator` reports what is missing
    instead of pydantic rejecting the whole form.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = ""
    amount: Optional[Decimal] = None
    type: TransactionType = TransactionType.EXPENSE
    date: str = ""
    category_id: Optional[UUID] = None
    category: Optional[str] = None
    account_id: Optional[UUID] = None
    card_id: Optional[UUID] = None
    payment_method: PaymentMethod = PaymentMethod.DEBIT
    is_paid: bool = True
    is_fixed: bool = False
    is_recurring: bool = False
    observation: Optional[str] = None
    installments_count: int = Field(default=1, ge=1, le=120)

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> "TransactionForm":
        """
        Prefill the form with a stored transaction.

        One installment: saving an edit keeps the row in its group.
        """
        return cls(
            description=transaction.description,
            amount=transaction.amount,
            type=transaction.type,
            date=transaction.date.isoformat(),
            category_id=transaction.category_id,
            category=transaction.category,
            account_id=transaction.account_id,
            card_id=transaction.card_id,
            payment_method=transaction.payment_method,
            is_paid=transaction.is_paid,
            is_fixed=transaction.is_fixed,
            is_recurring=transaction.is_recurring,
            observation=transaction.observation,
        )


# =============================================================================
# PLANNING TABLES
# =============================================================================

class Budget(FinanceRecord):
    """
    Spending limit for one category.

    A user has at most one budget per category; saving is an upsert.
    """
    table_name: ClassVar[str] = "budgets"
    conflict_fields: ClassVar[tuple[str, ...]] = ("user_id", "category_id")

    category_id: UUID
    amount: Money = Field(..., gt=0)
    period: str = Field(default="monthly", pattern="^(monthly)$")


class Goal(FinanceRecord):
    """A savings goal."""
    table_name: ClassVar[str] = "goals"

    name: str = Field(..., min_length=1, max_length=100)
    target_amount: Money = Field(..., gt=0)
    current_amount: Money = Field(default=Decimal("0"), ge=0)
    deadline: Optional[dt.date] = None

    @property
    def progress_percent(self) -> float:
        """Progress towards the target, capped at 100."""
        percent = float(self.current_amount / self.target_amount * 100)
        return min(percent, 100.0)


class Debt(FinanceRecord):
    """A loan or other debt being paid off."""
    table_name: ClassVar[str] = "debts"

    name: str = Field(..., min_length=1, max_length=100)
    total_amount: Money = Field(..., ge=0)
    current_balance: Money = Field(..., ge=0)
    interest_rate: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Monthly interest rate in percent"
    )
    minimum_payment: Money = Field(default=Decimal("0"), ge=0)


class Investment(FinanceRecord):
    """A position in the portfolio."""
    table_name: ClassVar[str] = "investments"

    name: str = Field(..., min_length=1, max_length=100)
    type: InvestmentType = InvestmentType.STOCK
    quantity: Decimal = Field(..., gt=0)
    purchase_price: Money = Field(..., ge=0)
    current_price: Optional[Money] = Field(
        default=None,
        ge=0,
        description="Defaults to the purchase price"
    )

    @model_validator(mode='after')
    def default_current_price(self) -> 'Investment':
        if self.current_price is None:
            self.current_price = self.purchase_price
        return self

    @property
    def invested(self) -> Decimal:
        return self.quantity * self.purchase_price

    @property
    def current_value(self) -> Decimal:
        return self.quantity * self.current_price

    @property
    def profit(self) -> Decimal:
        return self.current_value - self.invested

    @property
    def profit_percent(self) -> float:
        if self.invested == 0:
            return 0.0
        return float(self.profit / self.invested * 100)


class Subscription(FinanceRecord):
    """
    A recurring bill (streaming, rent, gym...).

    The recurring materializer turns active subscriptions into expense
    transactions once per month.
    """
    table_name: ClassVar[str] = "subscriptions"

    name: str = Field(..., min_length=1, max_length=100)
    amount: Money = Field(..., gt=0)
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    next_payment_date: dt.date
    category: str = Field(default="Assinatura", max_length=60)
    category_id: Optional[UUID] = None
    account_id: Optional[UUID] = None
    active: bool = True

    @property
    def monthly_cost(self) -> Decimal:
        """Cost normalized to one month."""
        if self.billing_cycle == BillingCycle.WEEKLY:
            return self.amount * 4
        if self.billing_cycle == BillingCycle.YEARLY:
            return self.amount / 12
        return self.amount


class Profile(FinanceRecord):
    """
    Per-user profile and paid-plan state.

    One row per user_id.
    """
    table_name: ClassVar[str] = "profiles"

    full_name: Optional[str] = Field(default=None, max_length=120)
    email: Optional[str] = Field(default=None, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=40)
    stripe_customer_id: Optional[str] = None
    subscription_status: PlanStatus = PlanStatus.TRIAL
    trial_ends_at: Optional[dt.datetime] = None


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of validating a transaction form."""

    validated_at: dt.datetime = Field(
        default_factory=utcnow
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_messages(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]


ALL_RECORD_MODELS: tuple[type[FinanceRecord], ...] = (
    Category,
    Account,
    CreditCard,
    Transaction,
    Budget,
    Goal,
    Debt,
    Investment,
    Subscription,
    Profile,
)
