"""
Tests for the AI agents and the assistant flows.

Gemini is replaced by a fake model; no test reaches the network.
"""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from financepro.agents import (
    AI_CATEGORY,
    AdvisorAgent,
    AIActionExecutor,
    AIServiceError,
    ExtractionRejectedError,
    LocalAdvisor,
    MessageExtractionAgent,
    build_financial_context,
    extract_action,
    strip_code_fences,
)
from financepro.models.audit import AuditEventType
from financepro.models.finance import Category, Debt, Goal, Transaction, TransactionType
from financepro.orchestrator import (
    UNREADABLE_MESSAGE_REPLY,
    AssistantFlow,
    MessageIngestFlow,
)

from conftest import USER, make_transaction


class FakeModel:
    """Stands in for genai.GenerativeModel."""

    def __init__(self, reply: str = "", error: Exception = None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def generate_content_async(self, contents):
        self.calls.append(contents)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.reply)


class TestResponseParsing:
    """Tests for reading model replies."""

    def test_strip_code_fences(self):
        """Test that markdown fences are removed."""
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences("texto") == "texto"

    def test_extract_action(self):
        """Test a fenced tool call."""
        action = extract_action('```json\n{"tool": "create_goal", "name": "Viagem", "target": 5000}\n```')
        assert action == {"tool": "create_goal", "name": "Viagem", "target": 5000}

    @pytest.mark.parametrize("reply", [
        "Seu saldo é positivo.",
        '{"name": "sem ferramenta"}',
        '{"tool": "create_goal", "name": ',
        'Veja: {"tool": "create_goal"}',
    ])
    def test_non_actions(self, reply):
        """Test that plain text and broken JSON are not actions."""
        assert extract_action(reply) is None


class TestAdvisorAgent:
    """Tests for the Gemini advisor."""

    async def test_reply_includes_context(self):
        """Test the prompt and the stripped reply."""
        model = FakeModel("  Você está bem.  ")
        reply = await AdvisorAgent(model=model).reply("Como estou?", "- Saldo: R$ 10,00")

        assert reply == "Você está bem."
        prompt = model.calls[0][0]
        assert "Como estou?" in prompt
        assert "- Saldo: R$ 10,00" in prompt

    async def test_empty_reply(self):
        """Test the fallback for an empty answer."""
        assert await AdvisorAgent(model=FakeModel("")).reply("oi", "") == "Não entendi."

    async def test_failure_raises_service_error(self):
        """Test that model failures surface as AIServiceError."""
        agent = AdvisorAgent(model=FakeModel(error=RuntimeError("quota")))
        with pytest.raises(AIServiceError):
            await agent.reply("oi", "")


class TestMessageExtractionAgent:
    """Tests for WhatsApp message extraction."""

    async def test_extract_from_text(self):
        """Test a text message."""
        model = FakeModel('```json\n{"description": "Posto", "amount": 50.0, "category": "Transporte"}\n```')
        extracted = await MessageExtractionAgent(model=model).extract(text="Gastei 50 no posto")

        assert extracted.description == "Posto"
        assert extracted.amount == Decimal("50.0")
        assert extracted.category == "Transporte"
        assert "Gastei 50 no posto" in model.calls[0][0]

    async def test_media_wins_over_text(self):
        """Test that audio or images are sent inline."""
        model = FakeModel('{"description": "Cupom", "amount": 12.3}')
        extracted = await MessageExtractionAgent(model=model).extract(
            text="legenda", media=b"\x89PNG", mime_type="image/png"
        )

        assert extracted.category == "Outros"
        assert model.calls[0][1] == {"mime_type": "image/png", "data": b"\x89PNG"}

    async def test_empty_message(self):
        """Test that nothing is sent for an empty message."""
        model = FakeModel("{}")
        with pytest.raises(ExtractionRejectedError):
            await MessageExtractionAgent(model=model).extract(text="   ")
        assert model.calls == []

    @pytest.mark.parametrize("reply", [
        '{"error": "Não identificado"}',
        '{"description": "X", "amount": -5}',
    ])
    async def test_rejected(self, reply):
        """Test explicit errors and invalid values."""
        agent = MessageExtractionAgent(model=FakeModel(reply))
        with pytest.raises(ExtractionRejectedError):
            await agent.extract(text="bom dia")

    @pytest.mark.parametrize("reply", ["não é json", "[1, 2]"])
    async def test_invalid_json(self, reply):
        """Test that unreadable replies are service errors, not rejections."""
        agent = MessageExtractionAgent(model=FakeModel(reply))
        with pytest.raises(AIServiceError) as excinfo:
            await agent.extract(text="gastei 10")
        assert not isinstance(excinfo.value, ExtractionRejectedError)


class TestLocalAdvisor:
    """Tests for the offline keyword advisor."""

    @pytest.fixture
    def advisor(self):
        return LocalAdvisor()

    @pytest.fixture
    def rows(self):
        return [
            make_transaction("Salário", "3000", TransactionType.INCOME),
            make_transaction("Mercado Extra", "400"),
            make_transaction("Restaurante", "100", category="Alimentação"),
            make_transaction("Aluguel", "1500"),
        ]

    def test_balance(self, advisor, rows):
        """Test the balance answer."""
        answer = advisor.answer("Qual meu saldo?", rows)
        assert answer.startswith("Seu saldo atual é de **R$ 1.000,00**.")
        assert "Despesas: R$ 2.000,00" in answer

    def test_food_spending(self, advisor, rows):
        """Test spending on food, by category or 'mercado'."""
        answer = advisor.answer("Quanto gastei com comida?", rows)
        assert answer == "Você gastou aproximadamente **R$ 500,00** com alimentação/mercado."

    def test_food_spending_by_linked_category(self, advisor):
        """Test that linked category names count."""
        food = Category(user_id=USER, name="Alimentação")
        rows = [make_transaction("Padaria", "20", category_id=food.id)]
        answer = advisor.answer("despesa com alimentação", rows, {food.id: food})
        assert "**R$ 20,00**" in answer

    def test_total_spending(self, advisor, rows):
        """Test the total spending answer."""
        assert advisor.answer("quanto gastei?", rows).startswith(
            "No total, suas despesas somam **R$ 2.000,00**."
        )

    def test_tips(self, advisor):
        """Test the three tip levels."""
        income = make_transaction("Salário", "1000", TransactionType.INCOME)
        over = [income, make_transaction(amount="1200")]
        tight = [income, make_transaction(amount="900")]
        fine = [income, make_transaction(amount="300")]

        assert "Alerta Vermelho" in advisor.answer("me dê uma dica", over)
        assert "Atenção" in advisor.answer("como economizar?", tight)
        assert "Tudo sob controle" in advisor.answer("ajuda", fine)

    def test_greeting(self, advisor):
        """Test greetings as whole words."""
        assert advisor.answer("Oi!", []).startswith("Olá!")
        assert advisor.answer("biscoito", []).startswith("Desculpe")


class TestFinancialContext:
    """Tests for the advisor's context summary."""

    async def test_context_lines(self, storage):
        """Test the four context lines."""
        await storage.insert([
            make_transaction("Salário", "3000", TransactionType.INCOME, date(2026, 3, 1)),
            make_transaction("Luz", "200", day=date(2026, 3, 5)),
            make_transaction("Antiga", "999", day=date(2025, 1, 1)),
            Goal(user_id=USER, name="Viagem", target_amount=Decimal("5000"), current_amount=Decimal("1000")),
            Debt(user_id=USER, name="Cartão", total_amount=Decimal("800"), current_balance=Decimal("600")),
        ])

        context = await build_financial_context(storage, USER, limit=2)
        lines = context.splitlines()

        assert lines[0] == "- Saldo Estimado (baseado nas últimas 2): R$ 2.800,00"
        assert lines[1] == (
            "- Últimas Transações: 2026-03-05: Luz R$ 200,00 (expense); "
            "2026-03-01: Salário R$ 3.000,00 (income)"
        )
        assert lines[2] == "- Metas: Viagem (R$ 1.000,00 de R$ 5.000,00)"
        assert lines[3] == "- Dívidas Ativas: Cartão (R$ 600,00)"

    async def test_empty_context(self, storage):
        """Test a user without data."""
        context = await build_financial_context(storage, USER, limit=5)
        assert "- Últimas Transações: nenhuma" in context
        assert "- Metas: nenhuma" in context


class TestAIActionExecutor:
    """Tests for running the advisor's actions."""

    @pytest.fixture
    def executor(self, storage, audit_logger):
        return AIActionExecutor(storage, audit_logger)

    async def test_create_transaction(self, executor, storage, audit_storage):
        """Test a transaction created today, paid, in the AI category."""
        message = await executor.execute(
            USER,
            {"tool": "create_transaction", "description": "Pizza", "amount": 45.5},
            today=date(2026, 3, 9),
        )

        assert message == "✅ Feito! Criei a transação: Pizza de R$ 45,50."
        stored = (await storage.list(Transaction))[0]
        assert stored.date == date(2026, 3, 9)
        assert stored.type == TransactionType.EXPENSE
        assert stored.category == AI_CATEGORY
        assert stored.is_paid
        assert audit_storage.events[-1].event_type == AuditEventType.AI_ACTION_EXECUTED

    async def test_create_income(self, executor, storage):
        """Test the type and category given by the model."""
        await executor.execute(USER, {
            "tool": "create_transaction",
            "description": "Freela",
            "amount": "800",
            "type": "income",
            "category": "Trabalho",
        })
        stored = (await storage.list(Transaction))[0]
        assert stored.type == TransactionType.INCOME
        assert stored.category == "Trabalho"

    async def test_create_goal_and_debt(self, executor, storage):
        """Test the goal and debt tools."""
        assert await executor.execute(USER, {"tool": "create_goal", "name": "Carro", "target": 30000}) == (
            "✅ Meta criada com sucesso: Carro."
        )
        assert await executor.execute(USER, {"tool": "create_debt", "name": "Empréstimo", "total": 1200}) == (
            "✅ Dívida registrada: Empréstimo."
        )

        goal = (await storage.list(Goal))[0]
        debt = (await storage.list(Debt))[0]
        assert goal.current_amount == Decimal("0")
        assert debt.current_balance == debt.total_amount == Decimal("1200.00")

    @pytest.mark.parametrize("action", [
        {"tool": "delete_everything"},
        {"tool": "create_transaction", "amount": 10},
        {"tool": "create_transaction", "description": "X", "amount": "abc"},
        {"tool": "create_transaction", "description": "X", "amount": -3},
        {"tool": "create_transaction", "description": "X", "amount": 3, "type": "gift"},
        {"tool": "create_goal", "name": "Y", "target": None},
    ])
    async def test_rejected_actions(self, executor, storage, audit_storage, action):
        """Test that bad actions write nothing and are audited."""
        assert await executor.execute(USER, action) is None
        assert await storage.list(Transaction) == []
        assert await storage.list(Goal) == []
        assert audit_storage.events[-1].event_type == AuditEventType.AI_ACTION_REJECTED


class TestAssistantFlow:
    """Tests for the chat flow."""

    async def test_text_reply(self, ledger):
        """Test that a plain answer is returned as is."""
        flow = AssistantFlow(ledger, advisor=AdvisorAgent(model=FakeModel("Tudo certo.")), symbol="R$")
        assert await flow.handle_message(USER, "como estou?") == "Tudo certo."

    async def test_action_reply_is_executed(self, ledger, storage):
        """Test that a tool call becomes a record and a confirmation."""
        model = FakeModel('{"tool": "create_goal", "name": "Casa", "target": 100000}')
        flow = AssistantFlow(ledger, advisor=AdvisorAgent(model=model), symbol="R$")

        reply = await flow.handle_message(USER, "crie uma meta casa de 100 mil")

        assert reply == "✅ Meta criada com sucesso: Casa."
        assert [g.name for g in await storage.list(Goal)] == ["Casa"]

    async def test_failed_action_returns_raw_reply(self, ledger):
        """Test that an invalid action shows the model's reply."""
        raw = '{"tool": "create_goal", "name": "Casa"}'
        flow = AssistantFlow(ledger, advisor=AdvisorAgent(model=FakeModel(raw)), symbol="R$")
        assert await flow.handle_message(USER, "meta") == raw

    async def test_gemini_failure_falls_back_to_local(self, ledger, storage, audit_logger, audit_storage):
        """Test the local advisor when Gemini fails."""
        await storage.insert([make_transaction("Salário", "100", TransactionType.INCOME)])
        flow = AssistantFlow(
            ledger,
            advisor=AdvisorAgent(model=FakeModel(error=RuntimeError("down"))),
            audit_logger=audit_logger,
            symbol="R$",
        )

        reply = await flow.handle_message(USER, "qual meu saldo")

        assert reply.startswith("Seu saldo atual é de **R$ 100,00**.")
        assert audit_storage.events[-1].event_type == AuditEventType.EXTERNAL_SERVICE_ERROR


class FakeExtractionAgent:
    def __init__(self, result=None, error: Exception = None):
        self.result = result
        self.error = error

    async def extract(self, text=None, media=None, mime_type=None):
        if self.error is not None:
            raise self.error
        return self.result


class TestMessageIngestFlow:
    """Tests for the WhatsApp flow."""

    async def test_unknown_number(self, ledger):
        """Test that strangers get the registration hint and nothing is saved."""
        flow = MessageIngestFlow(ledger, extraction_agent=FakeExtractionAgent(), symbol="R$")
        reply = await flow.handle("whatsapp:+5511900000000", "gastei 10")
        assert "Não reconheci este número (whatsapp:+5511900000000)" in reply

    async def test_saves_expense(self, ledger, storage, audit_logger):
        """Test a recognized message saved as today's paid expense."""
        await ledger.update_profile(USER, phone="+55 11 98888-7777")
        model = FakeModel('{"description": "Almoço", "amount": 32.5, "category": "Alimentação"}')
        flow = MessageIngestFlow(
            ledger,
            extraction_agent=MessageExtractionAgent(model=model),
            audit_logger=audit_logger,
            symbol="R$",
        )

        reply = await flow.handle("whatsapp:+5511988887777", "almocei 32,50", today=date(2026, 3, 9))

        assert reply == "✅ Salvo! R$ 32,50 em Alimentação (Almoço)."
        stored = (await storage.list(Transaction))[0]
        assert stored.user_id == USER
        assert stored.type == TransactionType.EXPENSE
        assert stored.date == date(2026, 3, 9)
        assert stored.is_paid

    async def test_unreadable_message(self, ledger, storage):
        """Test the reply when nothing could be extracted."""
        await ledger.update_profile(USER, phone="5511988887777")
        flow = MessageIngestFlow(
            ledger,
            extraction_agent=FakeExtractionAgent(error=ExtractionRejectedError("vazio")),
            symbol="R$",
        )
        assert await flow.handle("whatsapp:+5511988887777", "???") == UNREADABLE_MESSAGE_REPLY
        assert await storage.list(Transaction) == []

    async def test_service_error(self, ledger):
        """Test the reply when Gemini fails."""
        await ledger.update_profile(USER, phone="5511988887777")
        flow = MessageIngestFlow(
            ledger,
            extraction_agent=FakeExtractionAgent(error=AIServiceError("timeout")),
            symbol="R$",
        )
        assert await flow.handle("whatsapp:+5511988887777", "gastei 5") == "Erro ao processar: timeout"
