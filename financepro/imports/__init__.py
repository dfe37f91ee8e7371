"""Bank statement import: OFX, CSV and XLSX."""

from financepro.imports.categorize import SMART_CATEGORY_MAP, suggest_category
from financepro.imports.common import (
    StatementImportError,
    StatementParseResult,
    StatementRow,
    parse_amount,
    parse_date,
)
from financepro.imports.importer import ImportFlow, ImportSummary, parse_statement
from financepro.imports.ofx import parse_ofx_statement
from financepro.imports.spreadsheet import find_col, parse_spreadsheet

__all__ = [
    "SMART_CATEGORY_MAP",
    "suggest_category",
    "StatementImportError",
    "StatementParseResult",
    "StatementRow",
    "parse_amount",
    "parse_date",
    "ImportFlow",
    "ImportSummary",
    "parse_statement",
    "parse_ofx_statement",
    "find_col",
    "parse_spreadsheet",
]
