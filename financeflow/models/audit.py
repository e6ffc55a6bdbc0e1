"""
Audit Models for FamilyFinance

Session, persistence and AI events are recorded so that a failed autosave
or a rejected edit can be traced after the fact.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Session lifecycle
    SESSION_RESTORED = "session_restored"
    SIGNED_UP = "signed_up"
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"

    # Persistence
    SNAPSHOT_LOADED = "snapshot_loaded"
    SNAPSHOT_LOAD_FAILED = "snapshot_load_failed"
    SNAPSHOT_SAVED = "snapshot_saved"
    SNAPSHOT_SAVE_FAILED = "snapshot_save_failed"
    STALE_RESPONSE_DISCARDED = "stale_response_discarded"

    # Mutations
    MUTATION_REJECTED = "mutation_rejected"

    # AI services
    AI_REQUEST_FAILED = "ai_request_failed"

    # System events
    SYSTEM_ERROR = "system_error"


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

    `actor` is the signed-in user's email when one is known.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    actor: Optional[str] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'snapshot', 'family_member')"
    )
    entity_id: Optional[str] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Correlates the events of one signed-in session"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "actor": self.actor,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
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
        [event_id, timestamp, event_type, severity, actor, entity_type,
         entity_id, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.actor or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Named constructors for the events FamilyFinance records.

    Usage:
        event = AuditEventBuilder.signed_in("me@example.com", correlation_id)
        event = AuditEventBuilder.snapshot_save_failed(email, version, str(e))
    """

    @staticmethod
    def session_restored(actor: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_RESTORED,
            actor=actor,
            correlation_id=correlation_id,
            description="Stored session restored",
        )

    @staticmethod
    def signed_up(actor: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNED_UP,
            actor=actor,
            entity_type="user",
            entity_id=actor,
            description="Account created",
            is_user_action=True,
        )

    @staticmethod
    def signed_in(actor: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNED_IN,
            actor=actor,
            correlation_id=correlation_id,
            description="User signed in",
            is_user_action=True,
        )

    @staticmethod
    def signed_out(
        actor: Optional[str],
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNED_OUT,
            actor=actor,
            correlation_id=correlation_id,
            description=f"Session ended: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def snapshot_loaded(
        actor: str,
        counts: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_LOADED,
            actor=actor,
            entity_type="snapshot",
            correlation_id=correlation_id,
            description="Snapshot loaded from storage",
            details=counts,
        )

    @staticmethod
    def snapshot_load_failed(
        actor: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_LOAD_FAILED,
            severity=AuditSeverity.ERROR,
            actor=actor,
            entity_type="snapshot",
            correlation_id=correlation_id,
            description="Snapshot could not be loaded; signing out",
            error_message=error_message,
        )

    @staticmethod
    def snapshot_saved(
        actor: str,
        version: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_SAVED,
            severity=AuditSeverity.DEBUG,
            actor=actor,
            entity_type="snapshot",
            entity_id=str(version),
            correlation_id=correlation_id,
            description=f"Snapshot version {version} saved",
        )

    @staticmethod
    def snapshot_save_failed(
        actor: Optional[str],
        version: int,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_SAVE_FAILED,
            severity=AuditSeverity.WARNING,
            actor=actor,
            entity_type="snapshot",
            entity_id=str(version),
            correlation_id=correlation_id,
            description=f"Snapshot version {version} not saved; will retry on next change",
            error_message=error_message,
        )

    @staticmethod
    def stale_response_discarded(
        actor: Optional[str],
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_RESPONSE_DISCARDED,
            severity=AuditSeverity.DEBUG,
            actor=actor,
            correlation_id=correlation_id,
            description=f"Late {operation} response discarded after reset",
            details={"operation": operation},
        )

    @staticmethod
    def mutation_rejected(
        actor: Optional[str],
        command: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_REJECTED,
            severity=AuditSeverity.INFO,
            actor=actor,
            correlation_id=correlation_id,
            description=f"{command} rejected: {reason}",
            details={"command": command, "reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def ai_request_failed(
        actor: Optional[str],
        feature: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AI_REQUEST_FAILED,
            severity=AuditSeverity.ERROR,
            actor=actor,
            correlation_id=correlation_id,
            description=f"AI {feature} request failed",
            error_message=error_message,
            details={"feature": feature},
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
