"""Shared fixtures: in-memory storage and a ledger wired to it."""

from datetime import date
from decimal import Decimal

import pytest

from financepro.audit import AuditLogger
from financepro.config.settings import get_settings
from financepro.ledger import LedgerService
from financepro.models.finance import Transaction, TransactionType
from financepro.services.storage import InMemoryAuditStorage, InMemoryRecordStorage
from financepro.validation import TransactionFormValidator


USER = "user-1"
OTHER_USER = "user-2"

STRIPE_ENV = ("STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET", "STRIPE_PRICE_ID")


@pytest.fixture
def storage():
    return InMemoryRecordStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def ledger(storage, audit_logger):
    return LedgerService(
        storage,
        audit_logger,
        validator=TransactionFormValidator(max_amount=Decimal("1000000")),
    )


@pytest.fixture
def no_stripe_env(monkeypatch, tmp_path):
    """Run with Stripe unconfigured: no STRIPE_ variables and no .env file."""
    monkeypatch.chdir(tmp_path)
    for name in STRIPE_ENV:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()

def make_transaction(
    description: str = "Mercado",
    amount: str = "100.00",
    type: TransactionType = TransactionType.EXPENSE,
    day: date = date(2026, 3, 10),
    user_id: str = USER,
    **extra,
) -> Transaction:
    return Transaction(
        user_id=user_id,
        description=description,
        amount=Decimal(amount),
        type=type,
        date=day,
        **extra,
    )
