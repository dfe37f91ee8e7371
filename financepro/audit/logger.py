"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability of writes to the user's tables
2. Debugging capability
3. A record of what the AI assistant and the webhooks changed

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from financepro.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from financepro.services.storage import AuditStorageInterface


# How far back recent_activity looks before filtering by user
RECENT_EVENTS_SCAN = 500


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(debug: bool = False) -> None:
    """Route stdlib logging (and so structlog) to stdout."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if debug else logging.INFO,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit worksheet (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    # =========================================================================
    # Reading the trail
    # =========================================================================

    async def recent_activity(self, user_id: str, limit: int = 20) -> list[AuditEvent]:
        """
        The user's most recent events, newest first.

        Empty when only local logging is configured.
        """
        if not self._storage:
            return []
        events = await self._storage.get_recent_events(limit=RECENT_EVENTS_SCAN)
        return [e for e in events if e.user_id == user_id][:limit]

    async def related_events(self, correlation_id: UUID) -> list[AuditEvent]:
        """Every event of one user action, in chronological order."""
        if not self._storage:
            return []
        return await self._storage.get_events_by_correlation_id(correlation_id)

    # =========================================================================
    # Writing events
    # =========================================================================

    async def log_record_created(
        self,
        user_id: str,
        table: str,
        record_id: UUID,
        summary: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.record_created(
            user_id=user_id,
            table=table,
            record_id=record_id,
            summary=summary,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_record_updated(
        self,
        user_id: str,
        table: str,
        record_id: UUID,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.record_updated(
            user_id=user_id,
            table=table,
            record_id=record_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_record_deleted(
        self,
        user_id: str,
        table: str,
        record_ids: list[UUID],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.record_deleted(
            user_id=user_id,
            table=table,
            record_ids=record_ids,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_recurring_generated(
        self,
        user_id: str,
        count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a materializer run that inserted transactions."""
        event = AuditEventBuilder.recurring_generated(
            user_id=user_id,
            count=count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_ai_action_executed(
        self,
        user_id: str,
        tool: str,
        record_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.ai_action_executed(
            user_id=user_id,
            tool=tool,
            record_id=record_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_ai_action_rejected(
        self,
        user_id: str,
        tool: Optional[str],
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.ai_action_rejected(
            user_id=user_id,
            tool=tool,
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_import_completed(
        self,
        user_id: str,
        source: str,
        imported: int,
        duplicates: int,
        skipped: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a statement import."""
        event = AuditEventBuilder.import_completed(
            user_id=user_id,
            source=source,
            imported=imported,
            duplicates=duplicates,
            skipped=skipped,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_export_generated(
        self,
        user_id: str,
        export_format: str,
        filename: str,
        row_count: int,
    ) -> None:
        event = AuditEventBuilder.export_generated(
            user_id=user_id,
            export_format=export_format,
            filename=filename,
            row_count=row_count,
        )
        await self.log(event)

    async def log_checkout_created(
        self,
        user_id: str,
        customer_id: str,
        session_id: str,
    ) -> None:
        event = AuditEventBuilder.checkout_created(
            user_id=user_id,
            customer_id=customer_id,
            session_id=session_id,
        )
        await self.log(event)

    async def log_webhook_processed(
        self,
        event_type: str,
        customer_id: Optional[str],
        new_status: Optional[str],
    ) -> None:
        event = AuditEventBuilder.webhook_processed(
            event_type=event_type,
            customer_id=customer_id,
            new_status=new_status,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a statement import).
    Pass it through all subsequent operations.
    """
    return uuid4()
