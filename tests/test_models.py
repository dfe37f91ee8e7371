"""
Tests for FinancePro

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (in-memory storage, fake external services)
3. No real API calls in tests (use fakes)
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from financepro.config.settings import get_settings, validate_all_settings
from financepro.models.finance import (
    BillingCycle,
    Budget,
    Debt,
    Goal,
    Investment,
    PaymentMethod,
    PlanStatus,
    Profile,
    Subscription,
    Transaction,
    TransactionForm,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from financepro.models.audit import (
    AUDIT_SHEET_HEADER,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from financepro.utils.formatting import format_currency, format_day, month_label, option_index
from financepro.validation import TransactionFormValidator, parse_iso_day


class TestFinanceModels:
    """Tests for the table models."""

    def test_money_is_rounded_to_cents(self):
        """Test that amounts are quantized half-up to two decimals."""
        transaction = Transaction(
            user_id="u1",
            description="Café",
            amount=Decimal("10.005"),
            date=date(2026, 1, 5),
        )
        assert transaction.amount == Decimal("10.01")
        assert str(transaction.amount) == "10.01"

    def test_transaction_rejects_non_positive_amount(self):
        """Test that amounts must be greater than zero."""
        with pytest.raises(ValidationError):
            Transaction(user_id="u1", description="X", amount=Decimal("0"), date=date(2026, 1, 5))

    def test_transaction_strips_whitespace(self):
        """Test that whitespace is stripped from text fields."""
        transaction = Transaction(
            user_id="u1", description="  Padaria  ", amount=Decimal("5"), date=date(2026, 1, 5)
        )
        assert transaction.description == "Padaria"

    def test_credit_payment_cannot_reference_account(self):
        """Test that a credit payment is tied to a card only."""
        with pytest.raises(ValidationError):
            Transaction(
                user_id="u1",
                description="TV",
                amount=Decimal("1500"),
                date=date(2026, 1, 5),
                payment_method=PaymentMethod.CREDIT,
                account_id=uuid4(),
            )

    def test_debit_payment_cannot_reference_card(self):
        """Test that a debit payment is tied to an account only."""
        with pytest.raises(ValidationError):
            Transaction(
                user_id="u1",
                description="TV",
                amount=Decimal("1500"),
                date=date(2026, 1, 5),
                payment_method=PaymentMethod.DEBIT,
                card_id=uuid4(),
            )

    def test_installment_fields_must_be_set_together(self):
        """Test that number and total come in pairs."""
        with pytest.raises(ValidationError):
            Transaction(
                user_id="u1",
                description="Sofá",
                amount=Decimal("300"),
                date=date(2026, 1, 5),
                installment_number=1,
            )

    def test_installment_number_cannot_exceed_total(self):
        """Test that installment 4 of 3 is rejected."""
        with pytest.raises(ValidationError):
            Transaction(
                user_id="u1",
                description="Sofá",
                amount=Decimal("300"),
                date=date(2026, 1, 5),
                installment_group_id=uuid4(),
                installment_number=4,
                installment_total=3,
            )

    def test_signed_amount(self):
        """Test that expenses are negative and income positive."""
        expense = Transaction(user_id="u1", description="A", amount=Decimal("10"), date=date(2026, 1, 5))
        income = Transaction(
            user_id="u1",
            description="B",
            amount=Decimal("10"),
            type=TransactionType.INCOME,
            date=date(2026, 1, 5),
        )
        assert expense.signed_amount == Decimal("-10.00")
        assert income.signed_amount == Decimal("10.00")

    def test_goal_progress_is_capped(self):
        """Test that progress never passes 100%."""
        goal = Goal(
            user_id="u1",
            name="Viagem",
            target_amount=Decimal("1000"),
            current_amount=Decimal("1500"),
        )
        assert goal.progress_percent == 100.0

        halfway = goal.model_copy(update={"current_amount": Decimal("250")})
        assert halfway.progress_percent == 25.0

    def test_investment_current_price_defaults_to_purchase_price(self):
        """Test that a position without a quote is valued at cost."""
        investment = Investment(
            user_id="u1",
            name="PETR4",
            quantity=Decimal("10"),
            purchase_price=Decimal("30"),
        )
        assert investment.current_price == Decimal("30.00")
        assert investment.profit == Decimal("0")
        assert investment.profit_percent == 0.0

    def test_investment_profit(self):
        """Test profit and profitability of a position."""
        investment = Investment(
            user_id="u1",
            name="BTC",
            quantity=Decimal("2"),
            purchase_price=Decimal("100"),
            current_price=Decimal("150"),
        )
        assert investment.invested == Decimal("200.00")
        assert investment.current_value == Decimal("300.00")
        assert investment.profit_percent == 50.0

    def test_subscription_monthly_cost(self):
        """Test that weekly and yearly cycles are normalized to a month."""
        weekly = Subscription(
            user_id="u1",
            name="Feira",
            amount=Decimal("50"),
            billing_cycle=BillingCycle.WEEKLY,
            next_payment_date=date(2026, 1, 5),
        )
        yearly = weekly.model_copy(
            update={"amount": Decimal("120.00"), "billing_cycle": BillingCycle.YEARLY}
        )
        monthly = weekly.model_copy(update={"billing_cycle": BillingCycle.MONTHLY})

        assert weekly.monthly_cost == Decimal("200.00")
        assert yearly.monthly_cost == Decimal("10")
        assert monthly.monthly_cost == Decimal("50.00")

    def test_budget_requires_positive_amount(self):
        """Test that a budget limit must be positive."""
        with pytest.raises(ValidationError):
            Budget(user_id="u1", category_id=uuid4(), amount=Decimal("0"))

    def test_debt_rejects_negative_balance(self):
        """Test that balances cannot go below zero."""
        with pytest.raises(ValidationError):
            Debt(
                user_id="u1",
                name="Cartão",
                total_amount=Decimal("100"),
                current_balance=Decimal("-1"),
            )

    def test_profile_defaults_to_trial(self):
        """Test that a new profile starts on the trial plan."""
        profile = Profile(user_id="u1")
        assert profile.subscription_status == PlanStatus.TRIAL
        assert profile.trial_ends_at is None
        assert profile.created_at.tzinfo is not None

    def test_table_names(self):
        """Test that each record maps to its table."""
        assert Transaction.table_name == "transactions"
        assert Transaction.date_field == "date"
        assert Goal.date_field is None
        assert Budget.conflict_fields == ("user_id", "category_id")

    def test_form_prefilled_from_transaction(self):
        """Test that the edit form carries every stored link."""
        category_id, card_id = uuid4(), uuid4()
        transaction = Transaction(
            user_id="u1",
            description="Notebook",
            amount=Decimal("3000"),
            date=date(2026, 3, 5),
            category_id=category_id,
            payment_method=PaymentMethod.CREDIT,
            card_id=card_id,
            is_paid=False,
            installment_group_id=uuid4(),
            installment_number=2,
            installment_total=10,
        )

        form = TransactionForm.from_transaction(transaction)

        assert form.date == "2026-03-05"
        assert form.category_id == category_id
        assert form.payment_method == PaymentMethod.CREDIT
        assert form.card_id == card_id
        assert form.account_id is None
        assert form.is_paid is False
        assert form.installments_count == 1


class TestValidationModels:
    """Tests for validation-related models."""

    def test_validation_result_no_issues(self):
        """Test ValidationResult with no issues."""
        result = ValidationResult(issues=[])
        assert result.is_valid
        assert not result.has_errors

    def test_validation_result_with_warning(self):
        """Test that warnings do not block."""
        result = ValidationResult(issues=[
            ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Valor alto",
                severity="warning",
            )
        ])
        assert result.is_valid
        assert result.warnings == ["Valor alto"]

    def test_validation_result_with_error(self):
        """Test that errors block."""
        result = ValidationResult(issues=[
            ValidationIssue(
                field="date",
                issue_type="invalid_format",
                message="Data inválida",
                severity="error",
            )
        ])
        assert not result.is_valid
        assert result.error_messages == ["Data inválida"]

    def test_validation_issue_rejects_unknown_severity(self):
        """Test that severity is one of error, warning, info."""
        with pytest.raises(ValidationError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


class TestTransactionFormValidator:
    """Tests for the transaction form checks."""

    TODAY = date(2026, 3, 1)

    def validate(self, **fields):
        validator = TransactionFormValidator(max_amount=Decimal("10000"))
        return validator.validate(TransactionForm(**fields), today=self.TODAY)

    def test_valid_form(self):
        """Test a complete form."""
        result = self.validate(description="Aluguel", amount=Decimal("1200"), date="2026-03-05")
        assert result.is_valid
        assert result.issues == []

    def test_missing_description(self):
        """Test that description is required."""
        result = self.validate(description="", amount=Decimal("10"), date="2026-03-05")
        assert result.error_messages == ["Descrição e valor são obrigatórios"]

    def test_missing_amount(self):
        """Test that amount is required."""
        result = self.validate(description="Luz", date="2026-03-05")
        assert result.error_messages == ["Descrição e valor são obrigatórios"]

    def test_non_positive_amount(self):
        """Test that zero and negative amounts are errors."""
        result = self.validate(description="Luz", amount=Decimal("-5"), date="2026-03-05")
        assert result.error_messages == ["O valor deve ser maior que zero"]

    def test_high_amount_is_a_warning(self):
        """Test that an amount above the limit warns but passes."""
        result = self.validate(description="Carro", amount=Decimal("50000"), date="2026-03-05")
        assert result.is_valid
        assert result.warnings == ["Valor (R$ 50.000,00) parece alto demais"]

    @pytest.mark.parametrize("value", ["", "05/03/2026", "2026-3-5", "2026-02-30"])
    def test_invalid_date(self, value):
        """Test that only real YYYY-MM-DD dates are accepted."""
        result = self.validate(description="Luz", amount=Decimal("10"), date=value)
        assert result.error_messages == ["Data inválida"]

    def test_far_future_date_is_a_warning(self):
        """Test that a date more than a year ahead warns."""
        result = self.validate(description="Luz", amount=Decimal("10"), date="2027-06-01")
        assert result.is_valid
        assert len(result.warnings) == 1

    def test_parse_iso_day(self):
        """Test the strict date parser."""
        assert parse_iso_day("2026-01-31") == date(2026, 1, 31)
        assert parse_iso_day("2026-01-32") is None
        assert parse_iso_day("31/01/2026") is None


class TestFormatting:
    """Tests for pt-BR formatting."""

    def test_format_currency(self):
        """Test thousands and decimal separators."""
        assert format_currency(Decimal("1234.5")) == "R$ 1.234,50"
        assert format_currency(0) == "R$ 0,00"
        assert format_currency(-3) == "-R$ 3,00"
        assert format_currency(Decimal("1000000"), "US$") == "US$ 1.000.000,00"

    def test_format_day_and_month_label(self):
        """Test day and month labels."""
        assert format_day(date(2026, 2, 3)) == "03/02/2026"
        assert month_label(1) == "jan"
        assert month_label(12) == "dez"

    def test_option_index(self):
        """Test widget default positions."""
        account_id = uuid4()
        options = [None, uuid4(), account_id]
        assert option_index(options, account_id) == 2
        assert option_index(options, None) == 0
        assert option_index(options, uuid4()) == 0
        assert option_index([PaymentMethod.DEBIT, PaymentMethod.CREDIT], PaymentMethod.CREDIT) == 1


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            description="Created transactions record: Mercado",
        )
        assert event.event_type == AuditEventType.RECORD_CREATED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None
        assert event.timestamp is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to structured log fields."""
        record_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            user_id="u1",
            entity_id=record_id,
            description="Deleted",
        )
        data = event.to_log_dict()
        assert data["event_type"] == "record_deleted"
        assert data["entity_id"] == str(record_id)
        assert data["correlation_id"] is None

    def test_audit_event_to_sheets_row(self):
        """Test conversion to a sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.CHECKOUT_CREATED,
            timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc),
            description="Checkout",
            details={"customer_id": "cus_1"},
        )
        row = event.to_sheets_row()
        assert len(row) == len(AUDIT_SHEET_HEADER) == 12
        assert row[2] == "checkout_created"
        assert row[4] == ""
        assert row[9] == '{"customer_id": "cus_1"}'
        assert row[11] == "False"

    def test_audit_event_builder_record_created(self):
        """Test building a record-created event."""
        record_id = uuid4()
        event = AuditEventBuilder.record_created("u1", "goals", record_id, "Viagem")
        assert event.event_type == AuditEventType.RECORD_CREATED
        assert event.entity_type == "goals"
        assert event.entity_id == record_id
        assert event.is_user_action

    def test_audit_event_builder_record_deleted(self):
        """Test that multi-row deletes keep every id in the details."""
        ids = [uuid4(), uuid4()]
        event = AuditEventBuilder.record_deleted("u1", "transactions", ids)
        assert event.entity_id is None
        assert event.details["record_ids"] == [str(i) for i in ids]

    def test_audit_event_builder_ai_action_rejected(self):
        """Test that rejected actions are warnings."""
        event = AuditEventBuilder.ai_action_rejected("u1", None, "unsupported tool")
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "unsupported tool"
        assert "unknown" in event.description


class TestSettings:
    """Tests for the configuration report shown on the Settings page."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch, tmp_path):
        # No .env file in the working directory
        monkeypatch.chdir(tmp_path)
        for name in (
            "GEMINI_API_KEY",
            "STRIPE_SECRET_KEY",
            "GOOGLE_SHEETS_CREDENTIALS_PATH",
            "GOOGLE_SHEETS_SPREADSHEET_ID",
            "STORAGE_BACKEND",
        ):
            monkeypatch.delenv(name, raising=False)
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

    def test_reports_missing_services(self, monkeypatch):
        """Test that each service is validated on its own."""
        monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test")
        results = validate_all_settings()

        assert results["stripe"] is True
        assert results["twilio"] is True
        assert results["app"] is True
        assert results["gemini"] is False
        assert "api_key" in results["gemini_error"]
        assert results["google_sheets"] is False

    def test_app_defaults(self):
        """Test the application defaults."""
        app = get_settings().app
        assert app.currency_symbol == "R$"
        assert app.default_page_size == 100
        assert app.context_transaction_limit == 15
