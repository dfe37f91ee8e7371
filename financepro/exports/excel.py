"""
Excel export of a year's transactions.

One sheet, "Transações", written by pandas through openpyxl, then given
a bold header and readable column widths.
"""

import io
from typing import Iterable, Optional
from uuid import UUID

import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill

from financepro.exports.errors import ExportError
from financepro.models.finance import Category, Transaction, TransactionType
from financepro.utils.formatting import format_day


SHEET_NAME = "Transações"
COLUMNS = ["Data", "Descrição", "Tipo", "Categoria", "Valor", "Conta"]
COLUMN_WIDTHS = {"A": 12, "B": 40, "C": 10, "D": 18, "E": 14, "F": 18}


def excel_filename(year: int) -> str:
    return f"financeiro-{year}.xlsx"


def transactions_frame(
    transactions: Iterable[Transaction],
    categories: Optional[dict[UUID, Category]] = None,
) -> pd.DataFrame:
    rows = []
    for t in transactions:
        linked = (categories or {}).get(t.category_id) if t.category_id else None
        rows.append({
            "Data": format_day(t.date),
            "Descrição": t.description,
            "Tipo": "Receita" if t.type == TransactionType.INCOME else "Despesa",
            "Categoria": linked.name if linked else (t.category or ""),
            "Valor": float(t.amount),
            "Conta": "Conta Vinculada" if t.account_id else "-",
        })
    return pd.DataFrame(rows, columns=COLUMNS)


def export_transactions_excel(
    transactions: Iterable[Transaction],
    categories: Optional[dict[UUID, Category]] = None,
    year: Optional[int] = None,
) -> bytes:
    """
    Build the XLSX workbook and return its bytes.

    With `year`, only that year's transactions are written.
    """
    if year is not None:
        transactions = [t for t in transactions if t.date.year == year]
    frame = transactions_frame(transactions, categories)
    buffer = io.BytesIO()
    try:
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            frame.to_excel(writer, sheet_name=SHEET_NAME, index=False)
            sheet = writer.sheets[SHEET_NAME]

            for cell in sheet[1]:
                cell.font = Font(bold=True, color="1F2933")
                cell.fill = PatternFill(start_color="D1D5DB", end_color="D1D5DB", fill_type="solid")
                cell.alignment = Alignment(horizontal="left", vertical="center")
            for column, width in COLUMN_WIDTHS.items():
                sheet.column_dimensions[column].width = width
            for (cell,) in sheet.iter_rows(min_row=2, min_col=5, max_col=5):
                cell.number_format = '"R$" #,##0.00'
    except (ValueError, OSError) as e:
        raise ExportError(f"Falha ao gerar Excel: {e}") from e

    return buffer.getvalue()
