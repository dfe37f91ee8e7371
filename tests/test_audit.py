"""Tests for the audit logger: writing events and reading the trail back."""

from decimal import Decimal

from financepro.audit import AuditLogger, create_correlation_id
from financepro.models.audit import AuditEventType
from financepro.models.finance import TransactionForm

from conftest import USER, OTHER_USER


class FailingAuditStorage:
    """Audit storage whose writes always fail."""

    async def append_event(self, event):
        raise RuntimeError("quota exceeded")


class TestAuditLogger:
    """Tests for AuditLogger."""

    async def test_storage_failure_does_not_raise(self):
        """Test that a broken audit sheet never breaks the caller."""
        logger = AuditLogger(FailingAuditStorage())
        assert await logger.log_error("boom", "details") is None

    async def test_recent_activity_is_per_user(self, ledger, audit_logger):
        """Test that each user only sees their own events, newest first."""
        await ledger.create_goal(USER, "Viagem", Decimal("5000"))
        await ledger.create_goal(OTHER_USER, "Carro", Decimal("30000"))
        await ledger.save_transaction(
            USER, TransactionForm(description="Mercado", amount=Decimal("80"), date="2026-03-10")
        )

        events = await audit_logger.recent_activity(USER)

        assert [e.user_id for e in events] == [USER, USER]
        assert events[0].entity_type == "transactions"
        assert events[1].entity_type == "goals"

    async def test_recent_activity_limit(self, ledger, audit_logger):
        """Test the number of events returned."""
        for name in ("A", "B", "C"):
            await ledger.create_goal(USER, name, Decimal("100"))
        assert len(await audit_logger.recent_activity(USER, limit=2)) == 2

    async def test_related_events(self, audit_logger):
        """Test reading back every event of one user action."""
        correlation_id = create_correlation_id()
        await audit_logger.log_import_completed(USER, "extrato.ofx", 2, 1, 0, correlation_id)
        await audit_logger.log_recurring_generated(USER, 3, correlation_id)
        await audit_logger.log_recurring_generated(USER, 1)

        events = await audit_logger.related_events(correlation_id)

        assert [e.event_type for e in events] == [
            AuditEventType.IMPORT_COMPLETED,
            AuditEventType.RECURRING_GENERATED,
        ]

    async def test_local_only_logger_has_no_trail(self):
        """Test that reading without audit storage returns nothing."""
        logger = AuditLogger()
        await logger.log_recurring_generated(USER, 1)
        assert await logger.recent_activity(USER) == []
        assert await logger.related_events(create_correlation_id()) == []
