"""
Statement Import Flow

File → parsed rows → transactions, skipping anything already recorded.

DESIGN DECISION: A row counts as already recorded when the user has a
transaction on the same day with the same description (case-insensitive)
and the same amount and direction. Importing the same file twice is
therefore harmless.
"""

from typing import Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from financepro.audit import AuditLogger, create_correlation_id
from financepro.config import get_settings
from financepro.imports.categorize import suggest_category
from financepro.imports.common import (
    StatementImportError,
    StatementParseResult,
    StatementRow,
)
from financepro.imports.ofx import parse_ofx_statement
from financepro.imports.spreadsheet import parse_spreadsheet
from financepro.models.finance import (
    PaymentMethod,
    Transaction,
    TransactionType,
    quantize_money,
)
from financepro.services.storage import RecordStorageInterface


logger = structlog.get_logger("imports")


class ImportSummary(BaseModel):
    imported: int = 0
    duplicates: int = 0
    skipped: int = 0
    transactions: list[Transaction] = Field(default_factory=list)


def parse_statement(content: bytes, filename: str) -> StatementParseResult:
    """
    Parse an uploaded statement by its extension.

    Raises:
        StatementImportError: If the file is too large, of an unknown type,
            or unreadable
    """
    max_bytes = get_settings().app.max_import_size_bytes
    if len(content) > max_bytes:
        raise StatementImportError(
            f"Arquivo muito grande ({len(content) // 1024} KB). "
            f"Limite: {max_bytes // (1024 * 1024)} MB"
        )

    name = filename.lower()
    if name.endswith((".ofx", ".qfx")):
        try:
            text = content.decode("utf-8")
        except UnicodeDecodeError:
            text = content.decode("latin-1")
        return parse_ofx_statement(text)
    if name.endswith((".csv", ".txt", ".xlsx", ".xls")):
        return parse_spreadsheet(content, filename)

    raise StatementImportError(f"Tipo de arquivo não suportado: {filename}")


def _dedup_key(day, description: str, amount, type_: TransactionType) -> tuple:
    return (day, description.strip().lower(), quantize_money(amount), type_.value)


class ImportFlow:
    """Turns parsed statement rows into the user's transactions."""

    def __init__(
        self,
        storage: RecordStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    def _to_transaction(
        self,
        user_id: str,
        row: StatementRow,
        account_id: Optional[UUID],
    ) -> Transaction:
        return Transaction(
            user_id=user_id,
            description=row.description,
            amount=abs(row.amount),
            type=TransactionType.INCOME if row.amount > 0 else TransactionType.EXPENSE,
            date=row.date,
            category=suggest_category(row.description),
            account_id=account_id,
            payment_method=PaymentMethod.DEBIT,
            is_paid=True,
        )

    async def import_rows(
        self,
        user_id: str,
        rows: list[StatementRow],
        account_id: Optional[UUID] = None,
        source: str = "statement",
        skipped: int = 0,
    ) -> ImportSummary:
        """
        Insert the rows that aren't recorded yet.

        Args:
            skipped: Rows the parser already dropped, carried into the summary
        """
        summary = ImportSummary(skipped=skipped)
        usable = []
        for row in rows:
            if row.amount == 0:
                summary.skipped += 1
            else:
                usable.append(row)
        if not usable:
            return summary

        existing = await self._storage.list(
            Transaction,
            user_id=user_id,
            date_from=min(r.date for r in usable),
            date_to=max(r.date for r in usable),
        )
        seen = {_dedup_key(t.date, t.description, t.amount, t.type) for t in existing}

        for row in usable:
            transaction = self._to_transaction(user_id, row, account_id)
            key = _dedup_key(
                transaction.date, transaction.description, transaction.amount, transaction.type
            )
            if key in seen:
                summary.duplicates += 1
                continue
            seen.add(key)
            summary.transactions.append(transaction)

        if summary.transactions:
            await self._storage.insert(summary.transactions)
        summary.imported = len(summary.transactions)

        logger.info(
            "statement_imported",
            user_id=user_id,
            source=source,
            imported=summary.imported,
            duplicates=summary.duplicates,
            skipped=summary.skipped,
        )
        if self._audit_logger:
            await self._audit_logger.log_import_completed(
                user_id=user_id,
                source=source,
                imported=summary.imported,
                duplicates=summary.duplicates,
                skipped=summary.skipped,
                correlation_id=create_correlation_id(),
            )
        return summary

    async def import_file(
        self,
        user_id: str,
        content: bytes,
        filename: str,
        account_id: Optional[UUID] = None,
    ) -> ImportSummary:
        parsed = parse_statement(content, filename)
        return await self.import_rows(
            user_id,
            parsed.rows,
            account_id=account_id,
            source=f"{parsed.source}:{filename}",
            skipped=parsed.skipped,
        )
