"""Query package."""

from financepro.queries.executor import (
    TransactionFilter,
    TransactionQueryExecutor,
    TransactionTotals,
    category_name,
)

__all__ = [
    "TransactionFilter",
    "TransactionQueryExecutor",
    "TransactionTotals",
    "category_name",
]
