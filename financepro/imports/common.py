"""
Shared types and value parsing for statement imports.

Bank exports disagree on everything: decimal separators, date order,
negative markers. The parsers here accept the common variants and return
None for anything they can't read, so callers can count skipped rows.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from dateutil import parser as date_parser
from pydantic import BaseModel, Field


class StatementImportError(Exception):
    """The file can't be read as a bank statement."""
    pass


class StatementRow(BaseModel):
    """One line of a bank statement. Negative amounts are expenses."""

    date: date
    description: str
    amount: Decimal
    external_id: Optional[str] = None


class StatementParseResult(BaseModel):
    source: str
    rows: list[StatementRow] = Field(default_factory=list)
    skipped: int = 0


DECIMAL_COMMA = re.compile(r",\d{1,2}$")
ISO_DAY = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
COMPACT_DAY = re.compile(r"^(\d{4})(\d{2})(\d{2})$")


def parse_amount(value: Any) -> Optional[Decimal]:
    """
    Read a money value.

    Accepts `(12.50)` as negative, `1.234,56` and `1,234.56`, a bare decimal
    comma (`-50,00`), and currency symbols around the number.
    """
    if value is None:
        return None
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            return None
        return result if result.is_finite() else None

    text = str(value).strip()
    if text.lower() in ("", "nan", "none", "null", "-", "—"):
        return None

    negative = text.startswith("(") and text.endswith(")")
    text = text.strip("()").replace("\xa0", "").replace(" ", "")
    text = re.sub(r"[^0-9,.\-]", "", text)

    if "," in text and "." in text:
        # The later separator is the decimal one
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif DECIMAL_COMMA.search(text):
        text = text.replace(",", ".")
    else:
        text = text.replace(",", "")

    try:
        result = Decimal(text)
    except InvalidOperation:
        return None
    return -result if negative else result


def parse_date(value: Any) -> Optional[date]:
    """
    Read a statement date.

    ISO and compact (YYYYMMDD) forms are read as such; anything else is
    read day-first, the Brazilian order.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text or text.lower() in ("nan", "nat", "none"):
        return None

    for pattern in (ISO_DAY, COMPACT_DAY):
        match = pattern.match(text)
        if match:
            try:
                return date(*(int(part) for part in match.groups()))
            except ValueError:
                return None

    try:
        return date_parser.parse(text, dayfirst=True).date()
    except (ValueError, OverflowError):
        return None
