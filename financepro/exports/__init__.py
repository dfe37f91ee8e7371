"""File exports: Excel, CSV and the PDF report."""

from financepro.exports.csv_export import CSV_COLUMNS, csv_filename, export_transactions_csv
from financepro.exports.errors import ExportError
from financepro.exports.excel import (
    SHEET_NAME,
    excel_filename,
    export_transactions_excel,
    transactions_frame,
)
from financepro.exports.pdf import export_report_pdf, pdf_filename, render_report_html

__all__ = [
    "CSV_COLUMNS",
    "csv_filename",
    "export_transactions_csv",
    "ExportError",
    "SHEET_NAME",
    "excel_filename",
    "export_transactions_excel",
    "transactions_frame",
    "export_report_pdf",
    "pdf_filename",
    "render_report_html",
]
