"""
FinancePro - Source Package

A personal-finance dashboard: transactions, accounts, budgets, goals,
debts, investments and recurring subscriptions, with derived reports.

DESIGN PRINCIPLES:
1. The hosted backend owns the data; we keep no local cache
2. Every write is auditable
3. AI replies are parsed, never trusted blindly
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "FinancePro Team"
