"""
PDF export of the yearly report.

The report is rendered to HTML with jinja2 and printed by WeasyPrint.

DESIGN DECISION: WeasyPrint is imported inside export_report_pdf. It needs
system libraries (Pango, Cairo) that may be missing on a dev machine; the
rest of the app, including the HTML rendering, keeps working without them.
"""

from jinja2 import Environment, select_autoescape

from financepro.analytics.reports import YearlyReport
from financepro.exports.errors import ExportError
from financepro.utils.formatting import format_currency, format_day, month_label


REPORT_TEMPLATE = """<!DOCTYPE html>
<html lang="pt-BR">
<head>
  <meta charset="utf-8">
  <title>Relatório Financeiro {{ report.year }}</title>
</head>
<body>
  <h1>Relatório Financeiro {{ report.year }}</h1>

  <section class="cards">
    <div class="card"><span>Receitas</span><strong>{{ money(report.total_income) }}</strong></div>
    <div class="card"><span>Despesas</span><strong>{{ money(report.total_expense) }}</strong></div>
    <div class="card"><span>Saldo</span><strong>{{ money(report.total_balance) }}</strong></div>
  </section>

  <h2>Evolução mensal</h2>
  <table>
    <thead><tr><th>Mês</th><th>Receitas</th><th>Despesas</th><th>Saldo</th></tr></thead>
    <tbody>
    {% for row in report.months %}
      <tr>
        <td>{{ row.label }}</td>
        <td class="num">{{ money(row.income) }}</td>
        <td class="num">{{ money(row.expense) }}</td>
        <td class="num {{ 'neg' if row.balance < 0 else '' }}">{{ money(row.balance) }}</td>
      </tr>
    {% endfor %}
    </tbody>
  </table>

  <h2>Categorias de {{ selected_label }}</h2>
  {% if report.category_breakdown %}
  <table>
    <thead><tr><th>Categoria</th><th>Total</th></tr></thead>
    <tbody>
    {% for share in report.category_breakdown %}
      <tr><td>{{ share.name }}</td><td class="num">{{ money(share.value) }}</td></tr>
    {% endfor %}
    </tbody>
  </table>
  {% else %}
  <p>Sem despesas no mês.</p>
  {% endif %}

  <h2>Destaques</h2>
  <ul>
    <li>Melhor mês: {{ report.best_month.label }} ({{ money(report.best_month.balance) }})</li>
    {% if report.biggest_expense %}
    <li>Maior despesa: {{ report.biggest_expense.description }}
      ({{ money(report.biggest_expense.amount) }} em {{ day(report.biggest_expense.date) }})</li>
    {% endif %}
  </ul>
</body>
</html>
"""

REPORT_CSS = """
@page { size: A4; margin: 18mm; }
body { font-family: sans-serif; color: #1f2933; font-size: 11pt; }
h1 { color: #4f46e5; }
.cards { display: flex; gap: 12px; }
.card { border: 1px solid #d1d5db; border-radius: 6px; padding: 8px 12px; flex: 1; }
.card span { display: block; color: #6b7280; font-size: 9pt; }
table { width: 100%; border-collapse: collapse; margin-bottom: 12px; }
th, td { border-bottom: 1px solid #e5e7eb; padding: 4px 6px; text-align: left; }
td.num { text-align: right; }
td.neg { color: #dc2626; }
"""

_env = Environment(autoescape=select_autoescape(default_for_string=True))


def pdf_filename(year: int) -> str:
    return f"relatorio-financeiro-{year}.pdf"


def render_report_html(report: YearlyReport, symbol: str = "R$") -> str:
    template = _env.from_string(REPORT_TEMPLATE)
    return template.render(
        report=report,
        selected_label=month_label(report.selected_month),
        money=lambda value: format_currency(value, symbol),
        day=format_day,
    )


def export_report_pdf(report: YearlyReport, symbol: str = "R$") -> bytes:
    """
    Render the yearly report to PDF bytes.

    Raises:
        ExportError: If WeasyPrint or its system libraries are unavailable,
            or rendering fails
    """
    try:
        from weasyprint import CSS, HTML
    except (ImportError, OSError) as e:
        raise ExportError(
            "Exportação em PDF indisponível: instale o WeasyPrint e suas dependências de sistema"
        ) from e

    html = render_report_html(report, symbol)
    try:
        return HTML(string=html).write_pdf(stylesheets=[CSS(string=REPORT_CSS)])
    except Exception as e:
        raise ExportError(f"Falha ao gerar PDF: {e}") from e
