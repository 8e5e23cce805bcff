"""
Audit Models for Aid Ledger

Every change to the ledger, and every refused attempt to change it, is
logged as an audit event.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from aidledger.models.ledger import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Accounts
    ACCOUNT_CREATED = "account_created"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"

    # Donations
    DONATION_RECORDED = "donation_recorded"
    PAYMENT_DECLINED = "payment_declined"
    DONATION_STATUS_CHANGED = "donation_status_changed"

    # Beneficiaries and allocations
    BENEFICIARY_REGISTERED = "beneficiary_registered"
    FUNDS_ALLOCATED = "funds_allocated"
    ALLOCATION_REJECTED = "allocation_rejected"

    # Validation
    VALIDATION_FAILED = "validation_failed"

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
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'donation', 'allocation')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    actor_id: Optional[int] = Field(
        default=None,
        description="Account that triggered the event, if any"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_row(self) -> dict:
        """
        Convert to a flat row for the audit_log table.

        details are stored as a JSON string.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp,
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details_json": json.dumps(self.details) if self.details else None,
            "error_message": self.error_message,
        }

    @classmethod
    def from_row(cls, row: dict) -> "AuditEvent":
        data = dict(row)
        details_json = data.pop("details_json", None)
        data["details"] = json.loads(details_json) if details_json else {}
        data.pop("id", None)
        return cls.model_validate(data)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.login(email, succeeded=False)
        event = AuditEventBuilder.system_error("StorageError", str(e))
    """

    @staticmethod
    def account_created(
        account_id: int,
        email: str,
        is_admin: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=str(account_id),
            actor_id=account_id,
            correlation_id=correlation_id,
            description=f"Account created: {email}",
            details={"email": email, "is_admin": is_admin},
        )

    @staticmethod
    def login(
        email: str,
        succeeded: bool,
        account_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.LOGIN_SUCCEEDED if succeeded
                else AuditEventType.LOGIN_FAILED
            ),
            severity=AuditSeverity.INFO if succeeded else AuditSeverity.WARNING,
            entity_type="account",
            entity_id=str(account_id) if account_id is not None else None,
            actor_id=account_id,
            correlation_id=correlation_id,
            description=f"Login {'succeeded' if succeeded else 'failed'} for {email}",
            details={"email": email},
        )

    @staticmethod
    def donation_recorded(
        donation_id: int,
        account_id: int,
        amount: int,
        purpose: str,
        payment_method: str,
        status: str,
        transaction_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DONATION_RECORDED,
            entity_type="donation",
            entity_id=str(donation_id),
            actor_id=account_id,
            correlation_id=correlation_id,
            description=f"Donation of {amount} for {purpose} recorded as {status}",
            details={
                "amount": amount,
                "purpose": purpose,
                "payment_method": payment_method,
                "status": status,
                "transaction_id": transaction_id,
            },
        )

    @staticmethod
    def payment_declined(
        donation_id: int,
        account_id: int,
        payment_method: str,
        message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_DECLINED,
            severity=AuditSeverity.WARNING,
            entity_type="donation",
            entity_id=str(donation_id),
            actor_id=account_id,
            correlation_id=correlation_id,
            description=f"Payment declined via {payment_method}",
            details={"payment_method": payment_method},
            error_message=message,
        )

    @staticmethod
    def donation_status_changed(
        donation_id: int,
        old_status: str,
        new_status: str,
        actor_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DONATION_STATUS_CHANGED,
            entity_type="donation",
            entity_id=str(donation_id),
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Donation status changed: {old_status} -> {new_status}",
            details={"old_status": old_status, "new_status": new_status},
        )

    @staticmethod
    def beneficiary_registered(
        beneficiary_id: int,
        support_type: str,
        actor_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BENEFICIARY_REGISTERED,
            entity_type="beneficiary",
            entity_id=str(beneficiary_id),
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Beneficiary registered for {support_type} support",
            details={"support_type": support_type},
        )

    @staticmethod
    def funds_allocated(
        allocation_id: int,
        beneficiary_id: int,
        amount: int,
        donation_id: Optional[int],
        allocated_by: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FUNDS_ALLOCATED,
            entity_type="allocation",
            entity_id=str(allocation_id),
            actor_id=allocated_by,
            correlation_id=correlation_id,
            description=f"Allocated {amount} to beneficiary {beneficiary_id}",
            details={
                "beneficiary_id": beneficiary_id,
                "amount": amount,
                "donation_id": donation_id,
            },
        )

    @staticmethod
    def allocation_rejected(
        beneficiary_id: Optional[int],
        amount: Optional[int],
        reason: str,
        allocated_by: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALLOCATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="beneficiary",
            entity_id=str(beneficiary_id) if beneficiary_id is not None else None,
            actor_id=allocated_by,
            correlation_id=correlation_id,
            description="Allocation rejected",
            details={"amount": amount},
            error_message=reason,
        )

    @staticmethod
    def validation_failed(
        subject: str,
        issues: list[dict],
        actor_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=subject,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"{subject.capitalize()} validation failed with {len(issues)} issues",
            details={"issues": issues},
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
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
