"""
Data Models Package

This package contains all Pydantic models used by FinancePro.
All data flowing through the system must conform to these schemas.
"""

from financepro.models.finance import (
    ALL_RECORD_MODELS,
    INVESTMENT_TYPE_LABELS,
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
    ValidationIssue,
    ValidationResult,
    quantize_money,
)
from financepro.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "ALL_RECORD_MODELS",
    "INVESTMENT_TYPE_LABELS",
    "Account",
    "AccountType",
    "BillingCycle",
    "Budget",
    "Category",
    "CreditCard",
    "Debt",
    "FinanceRecord",
    "Goal",
    "Investment",
    "InvestmentType",
    "PaymentMethod",
    "PlanStatus",
    "Profile",
    "Subscription",
    "Transaction",
    "TransactionForm",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    "quantize_money",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
