"""
Audit Logger

Every change to the ledger is logged twice:
1. Structured local log (structlog, JSON lines)
2. The audit store, when one is configured

The audit logger:
- Is async so it can be awaited from the request path
- Gracefully handles storage failures (the ledger write it describes is
  already committed, so a lost audit row is logged, not raised)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID

import structlog

from aidledger.models.audit import AuditEvent, AuditEventBuilder
from aidledger.models.ledger import Allocation, Donation
from aidledger.services.storage import AuditStorageInterface, StorageError


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


def configure_logging(log_level: str = "INFO") -> None:
    """Route stdlib logging (and so structlog) to stdout at log_level."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit store (for persistence and the admin audit view)
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
        self._logger = structlog.get_logger("aidledger.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except StorageError as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_account_created(
        self,
        account_id: int,
        email: str,
        is_admin: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.account_created(
            account_id=account_id,
            email=email,
            is_admin=is_admin,
            correlation_id=correlation_id,
        ))

    async def log_login(
        self,
        email: str,
        succeeded: bool,
        account_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.login(
            email=email,
            succeeded=succeeded,
            account_id=account_id,
            correlation_id=correlation_id,
        ))

    async def log_donation_recorded(
        self,
        donation: Donation,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a stored donation, whatever its status."""
        await self.log(AuditEventBuilder.donation_recorded(
            donation_id=donation.id,
            account_id=donation.account_id,
            amount=donation.amount,
            purpose=donation.purpose.value,
            payment_method=donation.payment_method.value,
            status=donation.status.value,
            transaction_id=donation.transaction_id,
            correlation_id=correlation_id,
        ))

    async def log_payment_declined(
        self,
        donation: Donation,
        message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.payment_declined(
            donation_id=donation.id,
            account_id=donation.account_id,
            payment_method=donation.payment_method.value,
            message=message,
            correlation_id=correlation_id,
        ))

    async def log_donation_status_changed(
        self,
        donation_id: int,
        old_status: str,
        new_status: str,
        actor_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.donation_status_changed(
            donation_id=donation_id,
            old_status=old_status,
            new_status=new_status,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_beneficiary_registered(
        self,
        beneficiary_id: int,
        support_type: str,
        actor_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.beneficiary_registered(
            beneficiary_id=beneficiary_id,
            support_type=support_type,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_funds_allocated(
        self,
        allocation: Allocation,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.funds_allocated(
            allocation_id=allocation.id,
            beneficiary_id=allocation.beneficiary_id,
            amount=allocation.amount,
            donation_id=allocation.donation_id,
            allocated_by=allocation.allocated_by,
            correlation_id=correlation_id,
        ))

    async def log_allocation_rejected(
        self,
        beneficiary_id: Optional[int],
        amount: Optional[int],
        reason: str,
        allocated_by: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.allocation_rejected(
            beneficiary_id=beneficiary_id,
            amount=amount,
            reason=reason,
            allocated_by=allocated_by,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        subject: str,
        issues: list[dict],
        actor_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            subject=subject,
            issues=issues,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))
