"""CSV export of the transactions page."""

from datetime import date
from typing import Iterable, Optional
from uuid import UUID

import pandas as pd

from financepro.models.finance import Account, Category, CreditCard, Transaction


CSV_COLUMNS = ["id", "date", "description", "amount", "type", "category", "account", "card", "is_paid"]


def csv_filename(month: date) -> str:
    return f"transactions_{month.strftime('%Y-%m')}.csv"


def _name(lookup: Optional[dict], key: Optional[UUID]) -> str:
    if key is None or not lookup or key not in lookup:
        return ""
    return lookup[key].name


def export_transactions_csv(
    transactions: Iterable[Transaction],
    categories: Optional[dict[UUID, Category]] = None,
    accounts: Optional[dict[UUID, Account]] = None,
    cards: Optional[dict[UUID, CreditCard]] = None,
) -> str:
    """
    Render transactions as CSV text.

    Fields are quoted only when needed; embedded quotes are doubled.
    """
    frame = pd.DataFrame(
        [
            {
                "id": str(t.id),
                "date": t.date.isoformat(),
                "description": t.description,
                "amount": str(t.amount),
                "type": t.type.value,
                "category": _name(categories, t.category_id),
                "account": _name(accounts, t.account_id),
                "card": _name(cards, t.card_id),
                "is_paid": "paid" if t.is_paid else "pending",
            }
            for t in transactions
        ],
        columns=CSV_COLUMNS,
    )
    return frame.to_csv(index=False, lineterminator="\n")
