"""
CSV / XLSX statement parsing with pandas.

Columns are guessed from their headers, in Portuguese or English. When the
bank exports separate debit and credit columns instead of one signed
amount, the amount is credit minus debit.
"""

import io
from decimal import Decimal
from typing import Any, BinaryIO, Optional, Sequence, Union

import pandas as pd

from financepro.imports.common import (
    StatementImportError,
    StatementParseResult,
    StatementRow,
    parse_amount,
    parse_date,
)


DATE_HINTS = ("data", "date", "dia")
DESCRIPTION_HINTS = (
    "descri", "histórico", "historico", "memo", "estabelecimento",
    "lançamento", "lancamento", "payee", "details", "name", "nome",
)
AMOUNT_HINTS = ("valor", "amount", "value", "quantia", "montante")
DEBIT_HINTS = ("débito", "debito", "debit", "saída", "saida", "withdrawal")
CREDIT_HINTS = ("crédito", "credito", "credit", "entrada", "deposit")


def find_col(columns: Sequence[Any], hints: Sequence[str], exclude: Sequence[Any] = ()) -> Optional[Any]:
    """First column whose lowercased header contains one of the hints."""
    for column in columns:
        if column in exclude:
            continue
        if any(hint in str(column).lower() for hint in hints):
            return column
    return None


def _read_frame(content: bytes, filename: str) -> pd.DataFrame:
    name = filename.lower()
    try:
        if name.endswith((".xlsx", ".xls")):
            return pd.read_excel(io.BytesIO(content))
        if name.endswith(".csv") or name.endswith(".txt"):
            try:
                text = content.decode("utf-8-sig")
            except UnicodeDecodeError:
                # Brazilian banks still export Latin-1
                text = content.decode("latin-1")
            return pd.read_csv(io.StringIO(text), sep=None, engine="python", dtype=str)
    except (ValueError, pd.errors.ParserError) as e:
        raise StatementImportError(f"Não foi possível ler a planilha: {e}") from e

    raise StatementImportError(f"Formato de planilha não suportado: {filename}")


def _cell(value: Any) -> Any:
    return None if pd.isna(value) else value


def parse_spreadsheet(file: Union[bytes, BinaryIO], filename: str) -> StatementParseResult:
    """
    Extract statement rows from a CSV or XLSX file.

    Raises:
        StatementImportError: If the file can't be read or lacks a date,
            description or amount column
    """
    content = file if isinstance(file, bytes) else file.read()
    frame = _read_frame(content, filename)
    columns = list(frame.columns)

    date_col = find_col(columns, DATE_HINTS)
    desc_col = find_col(columns, DESCRIPTION_HINTS, exclude=[date_col])
    amount_col = find_col(columns, AMOUNT_HINTS, exclude=[date_col, desc_col])
    debit_col = credit_col = None
    if amount_col is None:
        debit_col = find_col(columns, DEBIT_HINTS, exclude=[date_col, desc_col])
        credit_col = find_col(columns, CREDIT_HINTS, exclude=[date_col, desc_col, debit_col])

    if date_col is None or desc_col is None or (
        amount_col is None and debit_col is None and credit_col is None
    ):
        raise StatementImportError(
            "Colunas obrigatórias não encontradas (data, descrição e valor). "
            f"Colunas do arquivo: {', '.join(str(c) for c in columns)}"
        )

    result = StatementParseResult(source="spreadsheet")
    for record in frame.to_dict(orient="records"):
        day = parse_date(_cell(record[date_col]))

        if amount_col is not None:
            amount = parse_amount(_cell(record[amount_col]))
        else:
            debit = parse_amount(_cell(record[debit_col])) if debit_col is not None else None
            credit = parse_amount(_cell(record[credit_col])) if credit_col is not None else None
            if debit is None and credit is None:
                amount = None
            else:
                amount = (credit or Decimal("0")) - abs(debit or Decimal("0"))

        if day is None or amount is None:
            result.skipped += 1
            continue

        description = _cell(record[desc_col])
        result.rows.append(StatementRow(
            date=day,
            description=(str(description).strip() if description is not None else "")[:200]
            or "Sem descrição",
            amount=amount,
        ))

    return result
