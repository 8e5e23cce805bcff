"""
Donation Recorder

Records an intended contribution:

1. Validate the request (no payment call, no write on failure)
2. Confirm the donor account exists
3. Hand the payment to the processor for its method
4. Store the donation with whatever status the processor reported

DESIGN DECISION: A declined payment is still stored, with status failed, so
the audit trail shows every attempt. The receipt's success flag mirrors the
payment outcome, not the write.

Status correction is the only later change a donation sees. Moving a
completed donation back to failed removes money from the ledger, so it is
checked against the fund ledger in the same unit of work.
"""

from typing import Optional, Union

import structlog
from pydantic import ValidationError as PydanticValidationError

from aidledger.audit import AuditLogger
from aidledger.config import DonationSettings, PaymentSettings, get_settings
from aidledger.ledger.errors import (
    InsufficientFundsError,
    PaymentDeclinedError,
    ValidationError,
)
from aidledger.ledger.funds import FundLedger
from aidledger.models.ledger import (
    AllocationStatus,
    Donation,
    DonationPurpose,
    DonationReceipt,
    DonationRequest,
    DonationStatus,
    PaymentMethod,
    PaymentResult,
    ValidationIssue,
)
from aidledger.services.payment import PaymentGateway, PaymentProcessorError
from aidledger.services.storage import (
    LedgerStorageInterface,
    LedgerTransaction,
    NotFoundError,
)
from aidledger.validation import DonationValidator

logger = structlog.get_logger(__name__)


# Status corrections an administrator may make
ALLOWED_TRANSITIONS: dict[DonationStatus, set[DonationStatus]] = {
    DonationStatus.PENDING: {DonationStatus.COMPLETED, DonationStatus.FAILED},
    DonationStatus.FAILED: {DonationStatus.COMPLETED},
    DonationStatus.COMPLETED: {DonationStatus.FAILED},
}


class DonationRecorder:
    """Validates, settles and records donations."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        gateway: PaymentGateway,
        settings: Optional[DonationSettings] = None,
        payment_settings: Optional[PaymentSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._gateway = gateway
        self._settings = settings or get_settings().donations
        self._payment_settings = payment_settings or get_settings().payments
        self._validator = DonationValidator(self._settings)
        self._audit = audit_logger or AuditLogger()

    # =========================================================================
    # RECORDING
    # =========================================================================

    async def _settle(
        self,
        request: DonationRequest,
        description: str,
    ) -> PaymentResult:
        method = PaymentMethod(request.payment_method)
        try:
            processor = self._gateway.processor_for(method)
            return await processor.process(
                request.amount,
                request.payment_details,
                description,
            )
        except PaymentProcessorError as e:
            logger.error(
                "payment_processor_failed",
                payment_method=method.value,
                error=str(e),
            )
            await self._audit.log_external_service_error(
                service=f"payment:{method.value}",
                error_message=str(e),
            )
            return PaymentResult(
                success=False,
                transaction_id=None,
                status=DonationStatus.FAILED,
                message="Payment could not be processed. Please try again.",
            )

    async def record(
        self,
        request: DonationRequest,
        raise_on_decline: bool = False,
    ) -> DonationReceipt:
        """
        Record a donation from a parsed request.

        Args:
            request: The donation request
            raise_on_decline: Raise PaymentDeclinedError (after storing the
                failed donation) instead of returning an unsuccessful receipt

        Raises:
            ValidationError: The request is incomplete or malformed
            NotFoundError: The donor account does not exist
            PaymentDeclinedError: Only with raise_on_decline
            StorageError: The store failed
        """
        result = self._validator.validate(request)
        if result.has_errors:
            error = ValidationError.from_result(result)
            await self._audit.log_validation_failed(
                subject="donation",
                issues=error.issues_as_dicts(),
                actor_id=request.account_id,
            )
            raise error

        account = await self._storage.transaction(
            lambda tx: tx.get_account(request.account_id)
        )
        if account is None:
            raise NotFoundError("User not found")

        purpose = DonationPurpose(request.purpose)
        description = (
            f"{self._payment_settings.organization_name} - "
            f"{purpose.value} donation by {account.name}"
        )
        payment = await self._settle(request, description)

        donation = await self._storage.transaction(
            lambda tx: tx.insert_donation(Donation(
                account_id=account.id,
                amount=request.amount,
                purpose=purpose,
                payment_method=PaymentMethod(request.payment_method),
                status=payment.status,
                transaction_id=payment.transaction_id,
            ))
        )

        logger.info(
            "donation_recorded",
            donation_id=donation.id,
            account_id=donation.account_id,
            amount=donation.amount,
            status=donation.status.value,
        )
        await self._audit.log_donation_recorded(donation)

        receipt = DonationReceipt(donation=donation, payment=payment)
        if not payment.success:
            await self._audit.log_payment_declined(donation, payment.message)
            if raise_on_decline:
                raise PaymentDeclinedError(donation, payment)
        return receipt

    async def record_donation(
        self,
        account_id: Optional[int],
        amount: Optional[int],
        purpose: Optional[str],
        payment_method: Optional[str],
        payment_details: Optional[dict] = None,
        raise_on_decline: bool = False,
    ) -> DonationReceipt:
        """
        Record a donation from plain values. See record().

        Values that cannot be parsed at all (an amount of "abc") raise
        ValidationError before anything else happens.
        """
        try:
            request = DonationRequest(
                account_id=account_id,
                amount=amount,
                purpose=purpose,
                payment_method=payment_method,
                payment_details=payment_details or {},
            )
        except PydanticValidationError as e:
            issues = [
                ValidationIssue(
                    field=".".join(str(part) for part in err["loc"]) or "donation",
                    issue_type="invalid_format",
                    message=err["msg"],
                )
                for err in e.errors()
            ]
            error = ValidationError("Invalid donation request", issues=issues)
            await self._audit.log_validation_failed(
                subject="donation",
                issues=error.issues_as_dicts(),
                actor_id=account_id if isinstance(account_id, int) else None,
            )
            raise error from None
        return await self.record(request, raise_on_decline=raise_on_decline)

    # =========================================================================
    # STATUS CORRECTION
    # =========================================================================

    @staticmethod
    def _parse_status(status: Union[DonationStatus, str]) -> DonationStatus:
        try:
            return DonationStatus(status)
        except ValueError:
            raise ValidationError(
                "Invalid donation status",
                issues=[ValidationIssue(
                    field="status",
                    issue_type="invalid_value",
                    message=f"Unknown status: {status}",
                )],
            ) from None

    @staticmethod
    def _ensure_can_fail(tx: LedgerTransaction, donation: Donation, currency: str) -> None:
        linked = [
            a for a in tx.list_allocations(donation_id=donation.id)
            if a.status == AllocationStatus.ALLOCATED
        ]
        if linked:
            raise ValidationError(
                "Donation has allocations and cannot be marked failed",
                issues=[ValidationIssue(
                    field="status",
                    issue_type="invalid_state",
                    message=f"{len(linked)} allocation(s) reference donation {donation.id}",
                )],
            )
        available = FundLedger.balance_in(tx)
        if donation.amount > available:
            raise InsufficientFundsError(
                available=available,
                requested=donation.amount,
                currency=currency,
            )

    async def update_status(
        self,
        donation_id: int,
        status: Union[DonationStatus, str],
        actor_id: Optional[int] = None,
    ) -> Donation:
        """
        Correct a donation's status.

        Raises:
            ValidationError: Unknown status or a transition that is not allowed
            NotFoundError: The donation does not exist
            InsufficientFundsError: Failing a completed donation would leave
                more allocated than donated
        """
        new_status = self._parse_status(status)
        currency = self._settings.currency

        def work(tx: LedgerTransaction) -> tuple[DonationStatus, Donation]:
            donation = tx.get_donation(donation_id)
            if donation is None:
                raise NotFoundError("Donation not found")
            old_status = donation.status
            if new_status not in ALLOWED_TRANSITIONS[old_status]:
                raise ValidationError(
                    f"Cannot change donation status from {old_status.value} to {new_status.value}",
                    issues=[ValidationIssue(
                        field="status",
                        issue_type="invalid_transition",
                        message=f"{old_status.value} -> {new_status.value}",
                    )],
                )
            if old_status == DonationStatus.COMPLETED:
                self._ensure_can_fail(tx, donation, currency)
            return old_status, tx.update_donation_status(donation_id, new_status)

        old_status, donation = await self._storage.transaction(work)

        logger.info(
            "donation_status_changed",
            donation_id=donation_id,
            old_status=old_status.value,
            new_status=new_status.value,
        )
        await self._audit.log_donation_status_changed(
            donation_id=donation_id,
            old_status=old_status.value,
            new_status=new_status.value,
            actor_id=actor_id,
        )
        return donation
