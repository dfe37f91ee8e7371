"""
Main Orchestrator for FinancePro

This module ties together all the components and defines the
end-to-end flows for:
1. AI assistant (question → context → Gemini → action or text)
2. WhatsApp ingest (message → profile → extraction → expense)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The model never writes; only AIActionExecutor does, with three tools
- Messages from unknown numbers never create data
- Every step is audited

It also owns the factory that picks the storage backend, so the Streamlit
app and the HTTP API are wired the same way.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

import structlog

from financepro.agents import (
    AdvisorAgent,
    AIActionExecutor,
    AIServiceError,
    ExtractionRejectedError,
    LocalAdvisor,
    MessageExtractionAgent,
    build_financial_context,
    extract_action,
)
from financepro.audit import AuditLogger, create_correlation_id
from financepro.automation import RecurringMaterializer
from financepro.config import get_settings
from financepro.imports import ImportFlow
from financepro.ledger import LedgerService
from financepro.models.finance import Transaction, TransactionType
from financepro.payments import PaymentService
from financepro.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStorage,
    InMemoryAuditStorage,
    InMemoryRecordStorage,
    RecordStorageInterface,
)
from financepro.utils.formatting import format_currency


logger = structlog.get_logger("orchestrator")

UNKNOWN_NUMBER_REPLY = (
    "Olá! Não reconheci este número ({number}). "
    "Por favor, cadastre-o no seu perfil em Configurações > Perfil."
)
UNREADABLE_MESSAGE_REPLY = (
    "Não consegui entender os dados dessa transação. "
    "Tente enviar novamente com mais clareza."
)


class AssistantFlow:
    """
    Orchestrates the AI assistant.

    Flow:
    1. Build the plain-text context of the user's finances
    2. Ask Gemini (retried); fall back to the local advisor when unavailable
    3. If the reply is a tool call, execute it and answer with the confirmation
    4. Otherwise answer with the reply text
    """

    def __init__(
        self,
        ledger: LedgerService,
        advisor: Optional[AdvisorAgent] = None,
        executor: Optional[AIActionExecutor] = None,
        local_advisor: Optional[LocalAdvisor] = None,
        audit_logger: Optional[AuditLogger] = None,
        symbol: Optional[str] = None,
    ):
        self._ledger = ledger
        self._advisor = advisor
        self._audit_logger = audit_logger
        self._symbol = symbol or get_settings().app.currency_symbol
        self._executor = executor or AIActionExecutor(
            ledger.storage, audit_logger, symbol=self._symbol
        )
        self._local_advisor = local_advisor or LocalAdvisor(self._symbol)

    def _get_advisor(self) -> Optional[AdvisorAgent]:
        """The Gemini advisor, or None when Gemini is not configured."""
        if self._advisor is None:
            try:
                self._advisor = AdvisorAgent()
            except Exception as e:
                logger.warning("gemini_not_configured", error=str(e))
                return None
        return self._advisor

    async def _answer_locally(self, user_id: str, message: str) -> str:
        transactions = await self._ledger.list_transactions(user_id)
        categories = {c.id: c for c in await self._ledger.list_categories(user_id)}
        return self._local_advisor.answer(message, transactions, categories)

    async def handle_message(
        self,
        user_id: str,
        message: str,
        today: Optional[date] = None,
    ) -> str:
        """Answer one chat message."""
        advisor = self._get_advisor()
        if advisor is None:
            return await self._answer_locally(user_id, message)

        context = await build_financial_context(
            self._ledger.storage, user_id, symbol=self._symbol
        )
        try:
            reply = await advisor.reply(message, context)
        except AIServiceError as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="gemini", error_message=str(e)
                )
            return await self._answer_locally(user_id, message)

        action = extract_action(reply)
        if action is None:
            return reply

        confirmation = await self._executor.execute(user_id, action, today=today)
        return confirmation or reply


class MessageIngestFlow:
    """
    Orchestrates the WhatsApp bot.

    Flow:
    1. Identify the user by the sender's phone number
    2. Extract description/amount/category from text, audio or photo
    3. Save an expense dated today
    4. Reply with a confirmation
    """

    def __init__(
        self,
        ledger: LedgerService,
        extraction_agent: Optional[MessageExtractionAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
        symbol: Optional[str] = None,
    ):
        self._ledger = ledger
        self._extraction_agent = extraction_agent
        self._audit_logger = audit_logger
        self._symbol = symbol or get_settings().app.currency_symbol

    def _get_agent(self) -> MessageExtractionAgent:
        if self._extraction_agent is None:
            self._extraction_agent = MessageExtractionAgent()
        return self._extraction_agent

    async def handle(
        self,
        from_number: str,
        body: str = "",
        media: Optional[bytes] = None,
        mime_type: Optional[str] = None,
        today: Optional[date] = None,
    ) -> str:
        """
        Process one incoming message.

        Returns:
            The reply text for the sender
        """
        correlation_id = create_correlation_id()

        profile = await self._ledger.find_profile_by_phone(from_number)
        if profile is None:
            logger.info("whatsapp_unknown_number", number=from_number)
            return UNKNOWN_NUMBER_REPLY.format(number=from_number)

        try:
            extracted = await self._get_agent().extract(
                text=body, media=media, mime_type=mime_type
            )
        except ExtractionRejectedError as e:
            logger.info("whatsapp_extraction_rejected", user_id=profile.user_id, reason=str(e))
            return UNREADABLE_MESSAGE_REPLY
        except AIServiceError as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="gemini",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return f"Erro ao processar: {e}"

        transaction = Transaction(
            user_id=profile.user_id,
            description=extracted.description,
            amount=extracted.amount,
            type=TransactionType.EXPENSE,
            category=extracted.category,
            date=today or date.today(),
            is_paid=True,
        )
        await self._ledger.storage.insert([transaction])

        logger.info(
            "whatsapp_transaction_saved",
            user_id=profile.user_id,
            transaction_id=str(transaction.id),
        )
        if self._audit_logger:
            await self._audit_logger.log_record_created(
                user_id=profile.user_id,
                table=Transaction.table_name,
                record_id=transaction.id,
                summary=f"whatsapp: {transaction.description}",
                correlation_id=correlation_id,
            )

        return (
            f"✅ Salvo! {format_currency(transaction.amount, self._symbol)} "
            f"em {transaction.category} ({transaction.description})."
        )


@dataclass
class AppComponents:
    """Everything the Streamlit app and the HTTP API use."""

    storage: RecordStorageInterface
    audit_logger: AuditLogger
    ledger: LedgerService
    materializer: RecurringMaterializer
    import_flow: ImportFlow
    assistant: AssistantFlow
    ingest: MessageIngestFlow
    payments: PaymentService
    sheets_client: Optional[GoogleSheetsClient] = None


def create_app_components(use_storage: Optional[bool] = None) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use Google Sheets. Defaults to the
                    configured storage backend. When Sheets is not
                    configured the in-memory backend is used instead.
    """
    if use_storage is None:
        use_storage = get_settings().app.storage_backend == "sheets"

    sheets_client = None
    storage: RecordStorageInterface
    audit_storage: AuditStorageInterface

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            storage = GoogleSheetsRecordStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            use_storage = False

    if not use_storage:
        storage = InMemoryRecordStorage()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)
    ledger = LedgerService(storage, audit_logger)

    return AppComponents(
        storage=storage,
        audit_logger=audit_logger,
        ledger=ledger,
        materializer=RecurringMaterializer(storage, audit_logger),
        import_flow=ImportFlow(storage, audit_logger),
        assistant=AssistantFlow(ledger, audit_logger=audit_logger),
        ingest=MessageIngestFlow(ledger, audit_logger=audit_logger),
        payments=PaymentService(ledger, audit_logger),
        sheets_client=sheets_client,
    )
