"""
AI Agents for FinancePro

CRITICAL BOUNDARIES:

1. ADVISOR AGENT:
   - CAN: Answer short questions about the context it is given
   - CAN: Emit a single JSON action when the user asks to create something
   - CANNOT: Write anything itself. Actions go through AIActionExecutor,
     which only knows three tools

2. MESSAGE EXTRACTION AGENT (WhatsApp):
   - CAN: Read a text, audio or receipt image into description/amount/category
   - MUST: Reply {"error": ...} when nothing can be identified
   - CANNOT: Choose the owner, date or direction of the transaction

3. LOCAL ADVISOR:
   - Keyword rules over the user's transactions, no model at all
   - Used when Gemini is not configured or unavailable

The LLM is a TRANSLATOR, not an ORACLE.
It converts between human language and structured operations.
"""

import json
import re
from decimal import Decimal
from typing import Any, Iterable, Optional
from uuid import UUID

import google.generativeai as genai
import structlog
from google.api_core.exceptions import GoogleAPIError
from pydantic import BaseModel, Field, ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from financepro.config import get_settings
from financepro.models.finance import Category, Transaction, TransactionType
from financepro.queries import category_name
from financepro.utils.formatting import format_currency


logger = structlog.get_logger("agents")


class AIServiceError(Exception):
    """The model could not be reached or returned something unusable."""
    pass


class ExtractionRejectedError(AIServiceError):
    """The model could not identify a transaction in the message."""
    pass


# =============================================================================
# RESPONSE PARSING
# =============================================================================

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences the model sometimes wraps JSON in."""
    return CODE_FENCE_PATTERN.sub("", text).strip()


def extract_action(text: str) -> Optional[dict[str, Any]]:
    """
    Return the action object when a reply is a tool call, else None.

    A reply is a tool call when, without fences, it starts with `{` and
    names a "tool".
    """
    cleaned = strip_code_fences(text)
    if not cleaned.startswith("{") or '"tool":' not in cleaned:
        return None
    try:
        action = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning("ai_action_unparseable", reply=cleaned[:200])
        return None
    return action if isinstance(action, dict) else None


# =============================================================================
# GEMINI AGENTS
# =============================================================================

ADVISOR_PROMPT = """Você é o Assistente Financeiro do FinancePro.
CONTEXTO DO USUÁRIO: {context}
PERGUNTA: {message}

REGRAS:
- Se for para criar algo, retorne APENAS JSON com uma destas ferramentas:
  {{"tool": "create_transaction", "description": "...", "amount": 0.00, "type": "expense" ou "income", "category": "..."}}
  {{"tool": "create_goal", "name": "...", "target": 0.00}}
  {{"tool": "create_debt", "name": "...", "total": 0.00}}
- Se for pergunta, responda texto curto.
"""

MEDIA_EXTRACTION_PROMPT = """Analise este arquivo (áudio ou imagem). Extraia os detalhes da transação financeira.
Se for áudio, transcreva e extraia. Se for imagem (cupom/nota), leia os totais.
Retorne APENAS um JSON neste formato: {"description": "...", "amount": 0.00, "category": "..."}.
Use categorias simples como: Alimentação, Transporte, Lazer, Outros.
Se não conseguir identificar, retorne {"error": "..."}."""

TEXT_EXTRACTION_PROMPT = """Extraia os dados financeiros desta mensagem: "{message}".
Retorne APENAS um JSON neste formato: {{"description": "...", "amount": 0.00, "category": "..."}}.
Exemplo: "Gastei 50 no posto" -> {{"description": "Posto de Gasolina", "amount": 50.00, "category": "Transporte"}}
Se não conseguir identificar, retorne {{"error": "..."}}."""


class _GeminiAgent:
    """Shared model setup and the retried generate call."""

    def __init__(self, model: Any = None):
        self._model = model if model is not None else self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        settings = get_settings().gemini
        genai.configure(api_key=settings.api_key)
        return genai.GenerativeModel(
            model_name=settings.model_name,
            generation_config={
                "temperature": settings.temperature,
                "max_output_tokens": settings.max_tokens,
            }
        )

    @retry(
        retry=retry_if_exception_type((GoogleAPIError, ConnectionError, TimeoutError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _generate(self, contents: list[Any]) -> str:
        response = await self._model.generate_content_async(contents)
        return response.text.strip()

    async def _ask(self, contents: list[Any]) -> str:
        try:
            return await self._generate(contents)
        except Exception as e:
            logger.error("gemini_request_failed", error=str(e))
            raise AIServiceError(f"Falha ao consultar o Gemini: {e}") from e


class AdvisorAgent(_GeminiAgent):
    """The chat assistant behind the AI page and the /ai-advisor endpoint."""

    async def reply(self, message: str, context: str) -> str:
        """
        Ask the advisor.

        Returns the raw reply: either short text or a JSON tool call.

        Raises:
            AIServiceError: If Gemini fails after retries
        """
        text = await self._ask([ADVISOR_PROMPT.format(context=context, message=message)])
        return text or "Não entendi."


class ExtractedTransaction(BaseModel):
    """Transaction details read out of a chat message."""

    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0)
    category: str = Field(default="Outros", min_length=1, max_length=60)


class MessageExtractionAgent(_GeminiAgent):
    """Reads WhatsApp messages (text, audio or receipt photos)."""

    async def extract(
        self,
        text: Optional[str] = None,
        media: Optional[bytes] = None,
        mime_type: Optional[str] = None,
    ) -> ExtractedTransaction:
        """
        Extract a transaction from a message.

        Media wins over text when both are present.

        Raises:
            ExtractionRejectedError: If the model finds no transaction
            AIServiceError: If Gemini fails or replies with invalid JSON
        """
        if media and mime_type:
            contents = [MEDIA_EXTRACTION_PROMPT, {"mime_type": mime_type, "data": media}]
        elif text and text.strip():
            contents = [TEXT_EXTRACTION_PROMPT.format(message=text.strip())]
        else:
            raise ExtractionRejectedError("Mensagem vazia")

        reply = strip_code_fences(await self._ask(contents))
        try:
            data = json.loads(reply)
        except json.JSONDecodeError as e:
            raise AIServiceError(f"Resposta inválida do Gemini: {reply[:100]}") from e

        if not isinstance(data, dict):
            raise AIServiceError(f"Resposta inválida do Gemini: {reply[:100]}")
        if data.get("error"):
            raise ExtractionRejectedError(str(data["error"]))

        try:
            return ExtractedTransaction(**data)
        except ValidationError as e:
            raise ExtractionRejectedError(str(e)) from e


# =============================================================================
# OFFLINE ADVISOR
# =============================================================================

GREETING_PATTERN = re.compile(r"\b(oi|olá|ola)\b")


class LocalAdvisor:
    """
    Keyword-based advisor over the user's transactions.

    Deterministic; answers balance, spending and tip questions and greetings.
    """

    def __init__(self, symbol: str = "R$"):
        self._symbol = symbol

    def _money(self, value: Decimal) -> str:
        return format_currency(value, self._symbol)

    def answer(
        self,
        question: str,
        transactions: Iterable[Transaction],
        categories: Optional[dict[UUID, Category]] = None,
    ) -> str:
        q = question.lower()
        transactions = list(transactions)
        income = sum(
            (t.amount for t in transactions if t.type == TransactionType.INCOME), Decimal("0")
        )
        expense = sum(
            (t.amount for t in transactions if t.type == TransactionType.EXPENSE), Decimal("0")
        )

        if "saldo" in q or "dinheiro tenho" in q:
            return (
                f"Seu saldo atual é de **{self._money(income - expense)}**. "
                f"(Receitas: {self._money(income)} - Despesas: {self._money(expense)})"
            )

        if "gastei" in q or "despesa" in q:
            if "alimentação" in q or "comida" in q:
                food = sum(
                    (
                        t.amount for t in transactions
                        if t.type == TransactionType.EXPENSE and (
                            "alimentação" in category_name(t, categories, fallback="").lower()
                            or "mercado" in t.description.lower()
                        )
                    ),
                    Decimal("0"),
                )
                return f"Você gastou aproximadamente **{self._money(food)}** com alimentação/mercado."
            return (
                f"No total, suas despesas somam **{self._money(expense)}**. "
                "Quer saber de uma categoria específica? Tente \"quanto gastei com transporte\"."
            )

        if "dica" in q or "economizar" in q or "ajuda" in q:
            if expense > income:
                return (
                    "🚨 **Alerta Vermelho:** Você está gastando mais do que ganha. "
                    "Recomendo revisar suas assinaturas e cortar gastos supérfluos imediatamente."
                )
            if expense > income * Decimal("0.8"):
                return (
                    "⚠️ **Atenção:** Você está gastando mais de 80% da sua renda. "
                    "Tente aplicar a regra 50/30/20 (50% essenciais, 30% desejos, 20% poupança)."
                )
            return (
                "✅ **Tudo sob controle:** Suas finanças parecem saudáveis. "
                "Que tal definir uma nova meta de investimento?"
            )

        if GREETING_PATTERN.search(q):
            return "Olá! Como posso ajudar a organizar seu dinheiro hoje?"

        return (
            "Desculpe, ainda estou aprendendo. Tente perguntar 'qual meu saldo', "
            "'quanto gastei' ou 'me dê uma dica'."
        )
