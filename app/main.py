"""
Streamlit Frontend for FinancePro

The personal finance dashboard: transactions, accounts, planning, goals,
debts, investments, subscriptions, reports and the AI assistant.

DESIGN PRINCIPLES:
1. Every page reads through LedgerService, never the storage directly
2. Every failure becomes a message on screen, never a crash
3. The paywall wraps every page except Settings

Run with: streamlit run app/main.py
"""

import asyncio
from datetime import date
from decimal import Decimal

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import streamlit as st

from financepro.agents import AIServiceError
from financepro.analytics import (
    budget_progress,
    build_yearly_report,
    compare_to_market,
    dashboard_insight,
    debt_overview,
    financial_sentiment,
    portfolio_summary,
    recent_chart_points,
    summarize,
)
from financepro.audit import configure_logging
from financepro.automation import daily_totals, monthly_cost, project_calendar
from financepro.config import get_settings, validate_all_settings
from financepro.exports import (
    ExportError,
    csv_filename,
    excel_filename,
    export_report_pdf,
    export_transactions_csv,
    export_transactions_excel,
    pdf_filename,
)
from financepro.imports import StatementImportError
from financepro.ledger import InvalidFormError, month_bounds
from financepro.models.finance import (
    INVESTMENT_TYPE_LABELS,
    AccountType,
    BillingCycle,
    InvestmentType,
    PaymentMethod,
    TransactionForm,
    TransactionType,
)
from financepro.orchestrator import AppComponents, create_app_components
from financepro.payments import PaymentError, check_access
from financepro.queries import TransactionFilter, TransactionQueryExecutor, category_name
from financepro.services.storage import StorageError
from financepro.utils.formatting import MONTH_LABELS, format_currency, format_day, option_index
from financepro.validation import TransactionFormValidator


# Page configuration
st.set_page_config(
    page_title="FinancePro",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

settings = get_settings().app
configure_logging(settings.debug_mode)
SYMBOL = settings.currency_symbol

TYPE_LABELS = {TransactionType.INCOME: "Receita", TransactionType.EXPENSE: "Despesa"}
ACCOUNT_TYPE_LABELS = {
    AccountType.CHECKING: "Conta Corrente",
    AccountType.SAVINGS: "Poupança",
    AccountType.INVESTMENT: "Investimentos",
    AccountType.CASH: "Dinheiro",
    AccountType.OTHER: "Outro",
}
CYCLE_LABELS = {
    BillingCycle.WEEKLY: "Semanal",
    BillingCycle.MONTHLY: "Mensal",
    BillingCycle.YEARLY: "Anual",
}

PAGES = [
    "📊 Dashboard",
    "💸 Transações",
    "🏦 Contas & Cartões",
    "🎯 Planejamento",
    "🏆 Metas",
    "📉 Dívidas",
    "📈 Investimentos",
    "🔁 Assinaturas",
    "📅 Calendário",
    "📑 Relatórios",
    "⚖️ Benchmark",
    "🤖 Assistente IA",
    "⚙️ Configurações",
]


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    return create_app_components()


def money(value) -> str:
    return format_currency(value, SYMBOL)


def to_decimal(value: float) -> Decimal:
    return Decimal(str(value))


def month_picker(key: str) -> date:
    """Month and year selectors; returns the first day of the month."""
    today = date.today()
    col1, col2 = st.columns(2)
    with col1:
        month = st.selectbox(
            "Mês",
            options=list(range(1, 13)),
            index=today.month - 1,
            format_func=lambda m: MONTH_LABELS[m - 1],
            key=f"{key}_month",
        )
    with col2:
        year = st.number_input(
            "Ano", min_value=2000, max_value=2100, value=today.year, step=1, key=f"{key}_year"
        )
    return date(int(year), month, 1)


def log_export(components: AppComponents, user_id: str, export_format: str, filename: str, rows: int):
    run_async(components.audit_logger.log_export_generated(
        user_id=user_id, export_format=export_format, filename=filename, row_count=rows
    ))


def category_lookup(components: AppComponents, user_id: str) -> dict:
    return {c.id: c for c in run_async(components.ledger.list_categories(user_id))}


def month_transactions(components: AppComponents, user_id: str, month: date) -> list:
    first, last = month_bounds(month)
    return run_async(components.ledger.list_transactions(user_id, first, last))


# =============================================================================
# SHELL
# =============================================================================

def main():
    """Main application entry point."""
    components = get_components()

    st.sidebar.title("💰 FinancePro")
    user_id = st.sidebar.text_input("Usuário", value=settings.default_user_id).strip()
    if not user_id:
        st.info("Informe o usuário na barra lateral.")
        return

    st.sidebar.markdown("---")
    page = st.sidebar.radio("Navegar para:", PAGES, index=0)

    # Materialize this month's subscriptions once per session and user
    checked_key = f"recurring_checked_{user_id}"
    if not st.session_state.get(checked_key):
        try:
            generated = run_async(components.materializer.check_and_generate(user_id))
            if generated:
                st.toast(f"{generated} lançamento(s) recorrente(s) gerado(s).")
        except StorageError as e:
            st.sidebar.warning(f"Não foi possível gerar os recorrentes: {e}")
        st.session_state[checked_key] = True

    try:
        profile = run_async(components.ledger.ensure_profile(user_id))
    except StorageError as e:
        st.error(f"Erro ao carregar o perfil: {e}")
        return
    access = check_access(profile)
    if access.has_access and access.days_left and profile.subscription_status.value == "trial":
        st.sidebar.info(f"Teste grátis: {access.days_left} dia(s) restante(s)")

    if page != "⚙️ Configurações" and not access.has_access:
        render_paywall(components, user_id, profile)
        return

    renderers = {
        "📊 Dashboard": render_dashboard_page,
        "💸 Transações": render_transactions_page,
        "🏦 Contas & Cartões": render_accounts_page,
        "🎯 Planejamento": render_planning_page,
        "🏆 Metas": render_goals_page,
        "📉 Dívidas": render_debts_page,
        "📈 Investimentos": render_investments_page,
        "🔁 Assinaturas": render_subscriptions_page,
        "📅 Calendário": render_calendar_page,
        "📑 Relatórios": render_reports_page,
        "⚖️ Benchmark": render_benchmark_page,
        "🤖 Assistente IA": render_assistant_page,
        "⚙️ Configurações": render_settings_page,
    }
    renderers[page](components, user_id)


def render_checkout_button(components: AppComponents, user_id: str, profile) -> None:
    if st.button("💳 Assinar agora", type="primary"):
        try:
            url = run_async(components.payments.create_checkout(
                user_id=user_id,
                email=profile.email if profile else None,
                origin=settings.public_url,
            ))
            st.link_button("Ir para o pagamento", url)
        except PaymentError as e:
            st.error(str(e))
        except StorageError as e:
            st.error(f"Erro ao carregar o perfil: {e}")


def render_paywall(components: AppComponents, user_id: str, profile) -> None:
    st.title("🔒 Seu período de teste acabou")
    st.markdown(
        "Assine o FinancePro para continuar acompanhando suas finanças. "
        "Seus dados continuam salvos."
    )
    render_checkout_button(components, user_id, profile)


# =============================================================================
# DASHBOARD
# =============================================================================

def render_dashboard_page(components: AppComponents, user_id: str):
    st.title("📊 Dashboard")
    today = date.today()
    transactions = month_transactions(components, user_id, today)
    summary = summarize(transactions)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Receitas", money(summary.income))
    col2.metric("Despesas", money(summary.expense))
    col3.metric("Saldo", money(summary.balance))
    col4.metric("Taxa de economia", f"{summary.savings_rate:.0f}%")

    sentiment = financial_sentiment(summary.income, summary.expense, today.day, SYMBOL)
    show = {
        "critical": st.error,
        "warning": st.warning,
        "success": st.success,
    }.get(sentiment.status, st.info)
    show(f"**{sentiment.title}**: {sentiment.message}")
    st.caption(dashboard_insight(summary))

    points = recent_chart_points(transactions)
    if points:
        frame = pd.DataFrame(points)
        fig = px.bar(
            frame, x="name", y="amount", color="type",
            color_discrete_map={"income": "#10b981", "expense": "#ef4444"},
            labels={"name": "Dia", "amount": "Valor", "type": "Tipo"},
            title="Últimas movimentações",
        )
        st.plotly_chart(fig, use_container_width=True)
    else:
        st.info("Nenhuma transação neste mês ainda.")


# =============================================================================
# TRANSACTIONS
# =============================================================================

def render_transactions_page(components: AppComponents, user_id: str):
    st.title("💸 Transações")
    ledger = components.ledger
    executor = TransactionQueryExecutor()

    month = month_picker("tx")
    categories = category_lookup(components, user_id)
    accounts = {a.id: a for a in run_async(ledger.list_accounts(user_id))}
    cards = {c.id: c for c in run_async(ledger.list_cards(user_id))}

    page = st.number_input("Página", min_value=1, value=1, step=1) - 1
    transactions = run_async(ledger.list_month(user_id, month, page=int(page)))

    # Filters
    col1, col2, col3, col4, col5 = st.columns(5)
    with col1:
        search = st.text_input("Buscar", placeholder="Descrição...")
    with col2:
        type_filter = st.selectbox(
            "Tipo", [None, TransactionType.INCOME, TransactionType.EXPENSE],
            format_func=lambda t: "Todos" if t is None else TYPE_LABELS[t],
        )
    with col3:
        paid_filter = st.selectbox(
            "Situação", ["all", "paid", "pending"],
            format_func=lambda p: {"all": "Todas", "paid": "Pagas", "pending": "Pendentes"}[p],
        )
    with col4:
        account_filter = st.selectbox(
            "Conta", [None] + list(accounts),
            format_func=lambda a: "Todas" if a is None else accounts[a].name,
        )
    with col5:
        category_filter = st.selectbox(
            "Categoria", [None] + list(categories),
            format_func=lambda c: "Todas" if c is None else categories[c].name,
        )

    flt = TransactionFilter(
        search=search,
        type=type_filter,
        paid=paid_filter,
        account_id=account_filter,
        category_id=category_filter,
    )
    filtered = executor.filter(transactions, flt)
    totals = executor.totals(filtered)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Receitas", money(totals.income))
    col2.metric("Despesas", money(totals.expense))
    col3.metric("Saldo", money(totals.balance))
    col4.metric("Pendente", money(totals.pending))

    render_transaction_form(components, user_id, categories, accounts, cards, transactions)

    st.markdown("---")
    selected = []
    for day, items in executor.apply(filtered).items():
        st.markdown(f"**{format_day(date.fromisoformat(day))}**")
        for t in items:
            col1, col2, col3, col4, col5, col6 = st.columns([0.5, 4, 2, 1.5, 1, 1])
            with col1:
                if st.checkbox("sel", key=f"sel_{t.id}", label_visibility="collapsed"):
                    selected.append(t.id)
            label = t.description
            if t.installment_number:
                label += f" ({t.installment_number}/{t.installment_total})"
            col2.markdown(f"{label}  \n<small>{category_name(t, categories)}</small>", unsafe_allow_html=True)
            sign = "+" if t.type == TransactionType.INCOME else "-"
            col3.markdown(f"{sign} {money(t.amount)}")
            with col4:
                status = "✅ Pago" if t.is_paid else "⏳ Pendente"
                if st.button(status, key=f"paid_{t.id}"):
                    run_async(ledger.toggle_paid(user_id, t.id))
                    st.rerun()
            with col5:
                if st.button("✏️", key=f"edit_{t.id}"):
                    st.session_state.editing_id = t.id
                    st.rerun()
            with col6:
                if st.button("🗑️", key=f"del_{t.id}"):
                    run_async(ledger.delete_transaction(user_id, t.id))
                    st.rerun()

    if selected and st.button(f"🗑️ Excluir {len(selected)} selecionada(s)"):
        deleted = run_async(ledger.bulk_delete(user_id, selected))
        st.success(f"{deleted} transação(ões) excluída(s).")
        st.rerun()

    st.markdown("---")
    col1, col2 = st.columns(2)
    with col1:
        st.download_button(
            "⬇️ Exportar CSV",
            data=export_transactions_csv(filtered, categories, accounts, cards),
            file_name=csv_filename(month),
            mime="text/csv",
            on_click=log_export,
            args=(components, user_id, "csv", csv_filename(month), len(filtered)),
        )
    with col2:
        render_import_box(components, user_id, accounts)


def render_transaction_form(components, user_id, categories, accounts, cards, transactions):
    editing_id = st.session_state.get("editing_id")
    editing = next((t for t in transactions if t.id == editing_id), None)
    defaults = TransactionForm.from_transaction(editing) if editing else TransactionForm(
        date=date.today().isoformat()
    )
    title = "✏️ Editar transação" if editing else "➕ Nova transação"

    category_options = [None] + list(categories)
    method_options = [PaymentMethod.DEBIT, PaymentMethod.CREDIT]
    account_options = [None] + list(accounts)
    card_options = [None] + list(cards)

    with st.expander(title, expanded=editing is not None):
        with st.form("transaction_form", clear_on_submit=True):
            col1, col2 = st.columns(2)
            with col1:
                description = st.text_input("Descrição *", value=defaults.description)
                amount = st.number_input(
                    f"Valor ({SYMBOL}) *", min_value=0.0, step=0.01, format="%.2f",
                    value=float(defaults.amount or 0),
                )
                tx_type = st.radio(
                    "Tipo", [TransactionType.EXPENSE, TransactionType.INCOME],
                    format_func=lambda t: TYPE_LABELS[t], horizontal=True,
                    index=1 if defaults.type == TransactionType.INCOME else 0,
                )
                tx_date = st.date_input("Data *", value=date.fromisoformat(defaults.date))
                category_id = st.selectbox(
                    "Categoria", category_options,
                    format_func=lambda c: "Sem categoria" if c is None else categories[c].name,
                    index=option_index(category_options, defaults.category_id),
                )
            with col2:
                method = st.radio(
                    "Pagamento", method_options,
                    format_func=lambda m: "Débito" if m == PaymentMethod.DEBIT else "Crédito",
                    horizontal=True,
                    index=option_index(method_options, defaults.payment_method),
                )
                account_id = st.selectbox(
                    "Conta (débito)", account_options,
                    format_func=lambda a: "Nenhuma" if a is None else accounts[a].name,
                    index=option_index(account_options, defaults.account_id),
                )
                card_id = st.selectbox(
                    "Cartão (crédito)", card_options,
                    format_func=lambda c: "Nenhum" if c is None else cards[c].name,
                    index=option_index(card_options, defaults.card_id),
                )
                installments = st.number_input("Parcelas", min_value=1, max_value=120, value=1, step=1)
                is_paid = st.checkbox("Pago", value=defaults.is_paid)
                is_fixed = st.checkbox("Fixa", value=defaults.is_fixed)
            observation = st.text_area("Observação", value=defaults.observation or "")

            submitted = st.form_submit_button("💾 Salvar", type="primary")

        if editing and st.button("Cancelar edição"):
            st.session_state.editing_id = None
            st.rerun()

    if not submitted:
        return

    form = TransactionForm(
        description=description,
        amount=to_decimal(amount) if amount else None,
        type=tx_type,
        date=tx_date.isoformat(),
        category_id=category_id,
        category=defaults.category,
        account_id=account_id,
        card_id=card_id,
        payment_method=method,
        is_paid=is_paid,
        is_fixed=is_fixed,
        is_recurring=defaults.is_recurring,
        observation=observation,
        installments_count=int(installments),
    )
    for warning in TransactionFormValidator().validate(form).warnings:
        st.warning(warning)
    try:
        saved = run_async(components.ledger.save_transaction(user_id, form, editing_id=editing_id))
        st.session_state.editing_id = None
        st.success(f"{len(saved)} transação(ões) salva(s).")
        st.rerun()
    except InvalidFormError as e:
        for message in e.result.error_messages:
            st.error(message)
    except (StorageError, ValueError) as e:
        st.error(f"Erro ao salvar: {e}")


def render_import_box(components: AppComponents, user_id: str, accounts: dict):
    with st.expander("📥 Importar extrato"):
        uploaded = st.file_uploader(
            "Arquivo OFX, CSV ou Excel",
            type=["ofx", "qfx", "csv", "txt", "xlsx", "xls"],
        )
        account_id = st.selectbox(
            "Conta do extrato", [None] + list(accounts),
            format_func=lambda a: "Nenhuma" if a is None else accounts[a].name,
            key="import_account",
        )
        if uploaded and st.button("Importar", type="primary"):
            try:
                summary = run_async(components.import_flow.import_file(
                    user_id, uploaded.getvalue(), uploaded.name, account_id=account_id
                ))
                st.success(
                    f"{summary.imported} importada(s), {summary.duplicates} duplicada(s), "
                    f"{summary.skipped} ignorada(s)."
                )
            except StatementImportError as e:
                st.error(str(e))


# =============================================================================
# ACCOUNTS, CARDS AND CATEGORIES
# =============================================================================

def render_accounts_page(components: AppComponents, user_id: str):
    st.title("🏦 Contas & Cartões")
    ledger = components.ledger
    tab_accounts, tab_cards, tab_categories = st.tabs(["Contas", "Cartões", "Categorias"])

    with tab_accounts:
        accounts = run_async(ledger.list_accounts(user_id))
        st.metric("Saldo total", money(sum((a.balance for a in accounts), Decimal("0"))))
        for account in accounts:
            col1, col2, col3 = st.columns([4, 2, 1])
            col1.markdown(f"**{account.name}** · {ACCOUNT_TYPE_LABELS[account.type]}")
            col2.markdown(money(account.balance))
            if col3.button("🗑️", key=f"acc_{account.id}"):
                run_async(ledger.delete_account(user_id, account.id))
                st.rerun()
        with st.form("account_form", clear_on_submit=True):
            name = st.text_input("Nome da conta")
            account_type = st.selectbox(
                "Tipo", list(AccountType), format_func=lambda t: ACCOUNT_TYPE_LABELS[t]
            )
            balance = st.number_input(f"Saldo inicial ({SYMBOL})", step=0.01, format="%.2f")
            if st.form_submit_button("Adicionar conta") and name:
                run_async(ledger.create_account(user_id, name, account_type, to_decimal(balance)))
                st.rerun()

    with tab_cards:
        for card in run_async(ledger.list_cards(user_id)):
            col1, col2, col3 = st.columns([4, 2, 1])
            col1.markdown(
                f"**{card.name}** · fecha dia {card.closing_day}, vence dia {card.due_day}"
            )
            col2.markdown(f"Limite {money(card.limit_amount)}")
            if col3.button("🗑️", key=f"card_{card.id}"):
                run_async(ledger.delete_card(user_id, card.id))
                st.rerun()
        with st.form("card_form", clear_on_submit=True):
            name = st.text_input("Nome do cartão")
            limit_amount = st.number_input(f"Limite ({SYMBOL})", min_value=0.0, step=100.0)
            col1, col2 = st.columns(2)
            closing_day = col1.number_input("Dia de fechamento", 1, 31, 1)
            due_day = col2.number_input("Dia de vencimento", 1, 31, 10)
            if st.form_submit_button("Adicionar cartão") and name:
                run_async(ledger.create_card(
                    user_id, name, to_decimal(limit_amount), int(closing_day), int(due_day)
                ))
                st.rerun()

    with tab_categories:
        for category in run_async(ledger.list_categories(user_id)):
            col1, col2 = st.columns([5, 1])
            col1.markdown(f"**{category.name}** · {TYPE_LABELS[category.type]}")
            if col2.button("🗑️", key=f"cat_{category.id}"):
                run_async(ledger.delete_category(user_id, category.id))
                st.rerun()
        with st.form("category_form", clear_on_submit=True):
            name = st.text_input("Nome da categoria")
            category_type = st.radio(
                "Tipo", [TransactionType.EXPENSE, TransactionType.INCOME],
                format_func=lambda t: TYPE_LABELS[t], horizontal=True,
            )
            color = st.color_picker("Cor", "#6366f1")
            if st.form_submit_button("Adicionar categoria") and name:
                run_async(ledger.create_category(user_id, name, category_type, color))
                st.rerun()


# =============================================================================
# PLANNING, GOALS, DEBTS, INVESTMENTS
# =============================================================================

def render_planning_page(components: AppComponents, user_id: str):
    st.title("🎯 Planejamento")
    ledger = components.ledger
    categories = category_lookup(components, user_id)
    budgets = run_async(ledger.list_budgets(user_id))
    transactions = month_transactions(components, user_id, date.today())

    for progress in budget_progress(budgets, transactions, categories):
        col1, col2 = st.columns([5, 1])
        with col1:
            st.markdown(
                f"**{progress.category_name}**: {money(progress.spent)} de "
                f"{money(progress.budget.amount)}"
            )
            st.progress(progress.percent / 100)
            if progress.exceeded:
                st.error("Orçamento estourado!")
        if col2.button("🗑️", key=f"budget_{progress.budget.id}"):
            run_async(ledger.delete_budget(user_id, progress.budget.id))
            st.rerun()

    expense_categories = {k: v for k, v in categories.items() if v.type == TransactionType.EXPENSE}
    if not expense_categories:
        st.info("Crie categorias de despesa para definir orçamentos.")
        return
    with st.form("budget_form", clear_on_submit=True):
        category_id = st.selectbox(
            "Categoria", list(expense_categories),
            format_func=lambda c: expense_categories[c].name,
        )
        amount = st.number_input(f"Limite mensal ({SYMBOL})", min_value=0.0, step=50.0)
        if st.form_submit_button("Salvar orçamento") and amount > 0:
            run_async(ledger.save_budget(user_id, category_id, to_decimal(amount)))
            st.rerun()


def render_goals_page(components: AppComponents, user_id: str):
    st.title("🏆 Metas")
    ledger = components.ledger

    for goal in run_async(ledger.list_goals(user_id)):
        with st.container(border=True):
            st.markdown(f"**{goal.name}**")
            st.progress(goal.progress_percent / 100)
            deadline = f" · até {format_day(goal.deadline)}" if goal.deadline else ""
            st.caption(
                f"{money(goal.current_amount)} de {money(goal.target_amount)} "
                f"({goal.progress_percent:.0f}%){deadline}"
            )
            col1, col2, col3 = st.columns([3, 1, 1])
            value = col1.number_input(
                "Depositar", min_value=0.0, step=10.0, key=f"dep_{goal.id}",
                label_visibility="collapsed",
            )
            if col2.button("Depositar", key=f"depbtn_{goal.id}"):
                try:
                    run_async(ledger.deposit(user_id, goal.id, to_decimal(value)))
                    st.rerun()
                except ValueError as e:
                    st.error(str(e))
            if col3.button("🗑️", key=f"goal_{goal.id}"):
                run_async(ledger.delete_goal(user_id, goal.id))
                st.rerun()

    with st.form("goal_form", clear_on_submit=True):
        name = st.text_input("Nome da meta")
        target = st.number_input(f"Valor alvo ({SYMBOL})", min_value=0.0, step=100.0)
        deadline = st.date_input("Prazo", value=None)
        if st.form_submit_button("Criar meta") and name and target > 0:
            run_async(ledger.create_goal(user_id, name, to_decimal(target), deadline))
            st.rerun()


def render_debts_page(components: AppComponents, user_id: str):
    st.title("📉 Dívidas")
    ledger = components.ledger
    debts = run_async(ledger.list_debts(user_id))

    extra = st.number_input(f"Pagamento extra mensal ({SYMBOL})", min_value=0.0, step=50.0)
    overview = debt_overview(debts, to_decimal(extra))
    col1, col2, col3 = st.columns(3)
    col1.metric("Saldo devedor", money(overview.total_balance))
    col2.metric("Mínimo mensal", money(overview.total_minimum))
    col3.metric(
        "Meses para quitar",
        "∞" if overview.payoff_months >= 999 else str(overview.payoff_months),
    )

    for debt in debts:
        col1, col2, col3 = st.columns([4, 3, 1])
        col1.markdown(f"**{debt.name}** · {debt.interest_rate}% a.m.")
        col2.markdown(f"{money(debt.current_balance)} (mín. {money(debt.minimum_payment)})")
        if col3.button("🗑️", key=f"debt_{debt.id}"):
            run_async(ledger.delete_debt(user_id, debt.id))
            st.rerun()

    with st.form("debt_form", clear_on_submit=True):
        name = st.text_input("Nome")
        col1, col2 = st.columns(2)
        total = col1.number_input(f"Valor total ({SYMBOL})", min_value=0.0, step=100.0)
        balance = col2.number_input(f"Saldo atual ({SYMBOL})", min_value=0.0, step=100.0)
        rate = col1.number_input("Juros (% a.m.)", min_value=0.0, step=0.1)
        minimum = col2.number_input(f"Pagamento mínimo ({SYMBOL})", min_value=0.0, step=10.0)
        if st.form_submit_button("Registrar dívida") and name:
            run_async(ledger.create_debt(
                user_id, name, to_decimal(total),
                to_decimal(balance) if balance else None,
                to_decimal(rate), to_decimal(minimum),
            ))
            st.rerun()


def render_investments_page(components: AppComponents, user_id: str):
    st.title("📈 Investimentos")
    ledger = components.ledger
    investments = run_async(ledger.list_investments(user_id))
    summary = portfolio_summary(investments)

    col1, col2, col3 = st.columns(3)
    col1.metric("Investido", money(summary.total_invested))
    col2.metric("Valor atual", money(summary.current_value))
    col3.metric("Rentabilidade", f"{summary.profitability:.2f}%")

    if summary.allocation:
        fig = px.pie(
            names=list(summary.allocation),
            values=[float(v) for v in summary.allocation.values()],
            title="Alocação",
            hole=0.4,
        )
        st.plotly_chart(fig, use_container_width=True)

    for investment in investments:
        col1, col2, col3 = st.columns([4, 3, 1])
        col1.markdown(f"**{investment.name}** · {INVESTMENT_TYPE_LABELS[investment.type]}")
        col2.markdown(
            f"{money(investment.current_value)} ({investment.profit_percent:+.2f}%)"
        )
        if col3.button("🗑️", key=f"inv_{investment.id}"):
            run_async(ledger.delete_investment(user_id, investment.id))
            st.rerun()

    with st.form("investment_form", clear_on_submit=True):
        name = st.text_input("Ativo")
        inv_type = st.selectbox(
            "Tipo", list(InvestmentType), format_func=lambda t: INVESTMENT_TYPE_LABELS[t]
        )
        col1, col2, col3 = st.columns(3)
        quantity = col1.number_input("Quantidade", min_value=0.0, step=1.0)
        purchase = col2.number_input(f"Preço de compra ({SYMBOL})", min_value=0.0, step=0.01)
        current = col3.number_input(f"Preço atual ({SYMBOL})", min_value=0.0, step=0.01)
        if st.form_submit_button("Adicionar") and name and quantity > 0:
            run_async(ledger.create_investment(
                user_id, name, inv_type, to_decimal(quantity), to_decimal(purchase),
                to_decimal(current) if current else None,
            ))
            st.rerun()


# =============================================================================
# SUBSCRIPTIONS AND CALENDAR
# =============================================================================

def render_subscriptions_page(components: AppComponents, user_id: str):
    st.title("🔁 Assinaturas")
    ledger = components.ledger
    subscriptions = run_async(ledger.list_subscriptions(user_id))

    col1, col2 = st.columns([3, 1])
    col1.metric("Custo mensal", money(monthly_cost(subscriptions)))
    if col2.button("⚙️ Gerar lançamentos do mês"):
        generated = run_async(components.materializer.check_and_generate(user_id))
        st.success(f"{generated} lançamento(s) gerado(s).")

    for sub in subscriptions:
        col1, col2, col3, col4 = st.columns([4, 2, 1, 1])
        col1.markdown(
            f"**{sub.name}** · {CYCLE_LABELS[sub.billing_cycle]} · "
            f"próximo {format_day(sub.next_payment_date)}"
        )
        col2.markdown(money(sub.amount))
        if col3.button("⏸️" if sub.active else "▶️", key=f"sub_toggle_{sub.id}"):
            run_async(ledger.toggle_active(user_id, sub.id))
            st.rerun()
        if col4.button("🗑️", key=f"sub_del_{sub.id}"):
            run_async(ledger.delete_subscription(user_id, sub.id))
            st.rerun()

    with st.form("subscription_form", clear_on_submit=True):
        name = st.text_input("Nome")
        col1, col2 = st.columns(2)
        amount = col1.number_input(f"Valor ({SYMBOL})", min_value=0.0, step=1.0)
        cycle = col2.selectbox("Ciclo", list(BillingCycle), index=1, format_func=lambda c: CYCLE_LABELS[c])
        next_date = col1.date_input("Próximo pagamento", value=date.today())
        category = col2.text_input("Categoria", value="Assinatura")
        if st.form_submit_button("Adicionar") and name and amount > 0:
            run_async(ledger.create_subscription(
                user_id, name, to_decimal(amount), next_date, cycle, category
            ))
            st.rerun()


def render_calendar_page(components: AppComponents, user_id: str):
    st.title("📅 Calendário")
    month = month_picker("cal")
    transactions = month_transactions(components, user_id, month)
    subscriptions = run_async(components.ledger.list_subscriptions(user_id, active_only=True))

    events = project_calendar(transactions, subscriptions, month)
    if not events:
        st.info("Nada previsto para este mês.")
        return

    totals = daily_totals(events)
    st.dataframe(
        pd.DataFrame([
            {
                "Dia": format_day(day),
                "Entradas": money(values["income"]),
                "Saídas": money(values["expense"]),
            }
            for day, values in sorted(totals.items())
        ]),
        use_container_width=True,
        hide_index=True,
    )
    for event in events:
        marker = "🔮" if event.projected else ("🟢" if event.type == TransactionType.INCOME else "🔴")
        st.markdown(f"{marker} {format_day(event.day)} · {event.title} · {money(event.amount)}")


# =============================================================================
# REPORTS AND BENCHMARK
# =============================================================================

def render_reports_page(components: AppComponents, user_id: str):
    st.title("📑 Relatórios")
    today = date.today()
    col1, col2 = st.columns(2)
    year = int(col1.number_input("Ano", min_value=2000, max_value=2100, value=today.year, step=1))
    selected_month = col2.selectbox(
        "Mês do detalhamento", list(range(1, 13)), index=today.month - 1,
        format_func=lambda m: MONTH_LABELS[m - 1],
    )

    categories = category_lookup(components, user_id)
    transactions = run_async(components.ledger.list_transactions(
        user_id, date(year, 1, 1), date(year, 12, 31)
    ))
    report = build_yearly_report(transactions, year, selected_month, categories)

    col1, col2, col3 = st.columns(3)
    col1.metric("Receitas no ano", money(report.total_income))
    col2.metric("Despesas no ano", money(report.total_expense))
    col3.metric("Saldo", money(report.total_balance))

    fig = go.Figure([
        go.Bar(name="Receitas", x=[r.label for r in report.months],
               y=[float(r.income) for r in report.months], marker_color="#10b981"),
        go.Bar(name="Despesas", x=[r.label for r in report.months],
               y=[float(r.expense) for r in report.months], marker_color="#ef4444"),
    ])
    fig.update_layout(barmode="group", title="Evolução mensal")
    st.plotly_chart(fig, use_container_width=True)

    if report.category_breakdown:
        pie = px.pie(
            names=[s.name for s in report.category_breakdown],
            values=[float(s.value) for s in report.category_breakdown],
            title=f"Despesas por categoria ({MONTH_LABELS[selected_month - 1]})",
        )
        st.plotly_chart(pie, use_container_width=True)

    st.markdown(f"**Melhor mês:** {report.best_month.label} ({money(report.best_month.balance)})")
    if report.biggest_expense:
        st.markdown(
            f"**Maior despesa:** {report.biggest_expense.description} "
            f"({money(report.biggest_expense.amount)})"
        )

    col1, col2 = st.columns(2)
    with col1:
        st.download_button(
            "⬇️ Excel",
            data=export_transactions_excel(transactions, categories, year=year),
            file_name=excel_filename(year),
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            on_click=log_export,
            args=(components, user_id, "xlsx", excel_filename(year), len(transactions)),
        )
    with col2:
        try:
            st.download_button(
                "⬇️ PDF",
                data=export_report_pdf(report, SYMBOL),
                file_name=pdf_filename(year),
                mime="application/pdf",
                on_click=log_export,
                args=(components, user_id, "pdf", pdf_filename(year), len(transactions)),
            )
        except ExportError as e:
            st.warning(str(e))


def render_benchmark_page(components: AppComponents, user_id: str):
    st.title("⚖️ Benchmark")
    month = month_picker("bench")
    categories = category_lookup(components, user_id)
    result = compare_to_market(month_transactions(components, user_id, month), categories)

    if result is None:
        st.info("Registre suas receitas do mês para comparar com o mercado.")
        return

    fig = go.Figure([
        go.Bar(name="Você", x=[r.category for r in result.rows],
               y=[r.user_percent for r in result.rows], marker_color="#6366f1"),
        go.Bar(name="Ideal", x=[r.category for r in result.rows],
               y=[r.ideal for r in result.rows], marker_color="#d1d5db"),
    ])
    fig.update_layout(barmode="group", yaxis_title="% da renda")
    st.plotly_chart(fig, use_container_width=True)

    show = st.warning if result.insight.type == "warning" else st.success
    show(f"**{result.insight.title}** {result.insight.message}")


# =============================================================================
# ASSISTANT AND SETTINGS
# =============================================================================

def render_assistant_page(components: AppComponents, user_id: str):
    st.title("🤖 Assistente IA")

    if "chat" not in st.session_state:
        st.session_state.chat = [{
            "role": "assistant",
            "content": (
                "Olá! Sou sua Inteligência Financeira. Posso analisar seus gastos, "
                "sugerir economias ou responder sobre seu saldo. O que deseja saber hoje?"
            ),
        }]

    for message in st.session_state.chat:
        with st.chat_message(message["role"]):
            st.markdown(message["content"])

    question = st.chat_input("Pergunte sobre seus gastos, saldo ou peça uma dica...")
    if not question:
        return

    st.session_state.chat.append({"role": "user", "content": question})
    with st.chat_message("user"):
        st.markdown(question)

    with st.chat_message("assistant"):
        with st.spinner("Pensando..."):
            try:
                answer = run_async(components.assistant.handle_message(user_id, question))
            except (AIServiceError, StorageError) as e:
                answer = f"Erro técnico: {e}"
        st.markdown(answer)
    st.session_state.chat.append({"role": "assistant", "content": answer})


def render_settings_page(components: AppComponents, user_id: str):
    st.title("⚙️ Configurações")
    ledger = components.ledger
    profile = run_async(ledger.ensure_profile(user_id))

    st.markdown("### Perfil")
    with st.form("profile_form"):
        full_name = st.text_input("Nome completo", value=profile.full_name or "")
        phone = st.text_input(
            "WhatsApp", value=profile.phone or "", placeholder="+55 11 99999-9999",
            help="Mensagens deste número serão registradas como despesas",
        )
        if st.form_submit_button("Salvar perfil"):
            run_async(ledger.update_profile(user_id, full_name=full_name, phone=phone))
            st.success("Perfil atualizado.")

    st.markdown("### Plano")
    access = check_access(profile)
    labels = {"trial": "Teste grátis", "active": "Ativo", "expired": "Expirado"}
    st.markdown(f"**Situação:** {labels[profile.subscription_status.value]}")
    if profile.subscription_status.value == "trial" and access.has_access:
        st.markdown(f"**Dias restantes:** {access.days_left}")
    if profile.subscription_status.value != "active":
        render_checkout_button(components, user_id, profile)

    st.markdown("### Status das conexões")
    status = validate_all_settings()
    services = [
        ("Google Sheets (Armazenamento)", "google_sheets"),
        ("Gemini (IA)", "gemini"),
        ("Stripe (Pagamentos)", "stripe"),
        ("Twilio (WhatsApp)", "twilio"),
    ]
    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Conectado")
        else:
            error = status.get(f"{key}_error", "Não configurado")
            st.error(f"❌ {name} - {error}")

    st.markdown(
        "Para configurar a aplicação, crie um arquivo `.env` com suas chaves. "
        "Veja `.env.example` para as variáveis necessárias."
    )

    render_activity_history(components, user_id)


def render_activity_history(components: AppComponents, user_id: str) -> None:
    st.markdown("### Atividade recente")
    try:
        events = run_async(components.audit_logger.recent_activity(user_id))
    except StorageError as e:
        st.error(f"Erro ao carregar o histórico: {e}")
        return
    if not events:
        st.info("Nenhuma atividade registrada.")
        return

    st.dataframe(
        pd.DataFrame([
            {
                "Quando": event.timestamp.strftime("%d/%m/%Y %H:%M"),
                "Evento": event.description,
                "Erro": event.error_message or "",
            }
            for event in events
        ]),
        use_container_width=True,
        hide_index=True,
    )

    grouped = [event for event in events if event.correlation_id]
    if not grouped:
        return
    selected = st.selectbox(
        "Detalhes da operação", grouped,
        format_func=lambda e: f"{e.timestamp.strftime('%d/%m %H:%M')} - {e.description}",
    )
    for event in run_async(components.audit_logger.related_events(selected.correlation_id)):
        st.markdown(f"- {event.timestamp.strftime('%H:%M:%S')} {event.description}")


if __name__ == "__main__":
    main()
