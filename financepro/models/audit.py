"""
Audit Models for FinancePro

Every significant action in the system is logged for audit purposes.
This provides:
1. Complete traceability of every write to the user's tables
2. Debugging information when things go wrong
3. A record of what the AI assistant did on the user's behalf
4. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every kind of write and every external call has its own event type.
    """
    # Table writes
    RECORD_CREATED = "record_created"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"

    # Automation
    RECURRING_GENERATED = "recurring_generated"

    # AI assistant
    AI_ACTION_EXECUTED = "ai_action_executed"
    AI_ACTION_REJECTED = "ai_action_rejected"

    # Files
    IMPORT_COMPLETED = "import_completed"
    EXPORT_GENERATED = "export_generated"

    # Payments
    CHECKOUT_CREATED = "checkout_created"
    WEBHOOK_PROCESSED = "webhook_processed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who and what
    user_id: Optional[str] = Field(
        default=None,
        description="User the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Table or entity (e.g., 'transactions', 'checkout')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one import run)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


AUDIT_SHEET_HEADER = [
    "event_id", "timestamp", "event_type", "severity", "user_id",
    "entity_type", "entity_id", "correlation_id", "description",
    "details", "error_message", "is_user_action",
]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_created(user_id, "goals", goal_id, "Viagem")
        event = AuditEventBuilder.recurring_generated(user_id, 3, correlation_id)
    """

    @staticmethod
    def record_created(
        user_id: str,
        table: str,
        record_id: UUID,
        summary: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            user_id=user_id,
            entity_type=table,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Created {table} record: {summary}"[:500],
            is_user_action=True,
        )

    @staticmethod
    def record_updated(
        user_id: str,
        table: str,
        record_id: UUID,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_UPDATED,
            user_id=user_id,
            entity_type=table,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Updated {table} record",
            details={
                "changed_fields": changed_fields,
            },
            is_user_action=True,
        )

    @staticmethod
    def record_deleted(
        user_id: str,
        table: str,
        record_ids: list[UUID],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            user_id=user_id,
            entity_type=table,
            entity_id=record_ids[0] if len(record_ids) == 1 else None,
            correlation_id=correlation_id,
            description=f"Deleted {len(record_ids)} {table} record(s)",
            details={
                "record_ids": [str(record_id) for record_id in record_ids],
            },
            is_user_action=True,
        )

    @staticmethod
    def recurring_generated(
        user_id: str,
        count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_GENERATED,
            user_id=user_id,
            entity_type="transactions",
            correlation_id=correlation_id,
            description=f"Generated {count} recurring transaction(s)",
            details={
                "count": count,
            },
        )

    @staticmethod
    def ai_action_executed(
        user_id: str,
        tool: str,
        record_id: UUID,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AI_ACTION_EXECUTED,
            user_id=user_id,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"AI assistant executed {tool}",
            details={
                "tool": tool,
            },
        )

    @staticmethod
    def ai_action_rejected(
        user_id: str,
        tool: Optional[str],
        reason: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AI_ACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"AI action rejected: {tool or 'unknown'}",
            error_message=reason,
            details={
                "tool": tool,
            },
        )

    @staticmethod
    def import_completed(
        user_id: str,
        source: str,
        imported: int,
        duplicates: int,
        skipped: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            user_id=user_id,
            entity_type="transactions",
            correlation_id=correlation_id,
            description=f"Imported {imported} transaction(s) from {source}",
            details={
                "source": source,
                "imported": imported,
                "duplicates": duplicates,
                "skipped": skipped,
            },
            is_user_action=True,
        )

    @staticmethod
    def export_generated(
        user_id: str,
        export_format: str,
        filename: str,
        row_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_GENERATED,
            user_id=user_id,
            entity_type="export",
            description=f"Generated {export_format} export: {filename}",
            details={
                "format": export_format,
                "filename": filename,
                "row_count": row_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def checkout_created(
        user_id: str,
        customer_id: str,
        session_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHECKOUT_CREATED,
            user_id=user_id,
            entity_type="checkout",
            description="Checkout session created",
            details={
                "customer_id": customer_id,
                "session_id": session_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def webhook_processed(
        event_type: str,
        customer_id: Optional[str],
        new_status: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WEBHOOK_PROCESSED,
            entity_type="webhook",
            description=f"Payment webhook processed: {event_type}",
            details={
                "stripe_event": event_type,
                "customer_id": customer_id,
                "new_status": new_status,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
