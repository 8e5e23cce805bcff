"""
Allocation Engine

Commits ledger funds to a beneficiary. The whole sequence runs as one unit
of work against the ledger store:

1. Allocating account exists
2. Beneficiary exists
3. Linked donation (if any) is completed and has enough unallocated remainder
4. Ledger-wide available balance covers the amount
5. Insert the allocation (status allocated)
6. Raise the beneficiary's support_received

Any failure in 1-6 rolls back the whole unit, so an allocation row never
exists without the matching beneficiary update and the balance cannot change
between step 4 and step 5.
"""

from typing import Optional, Union

import structlog

from aidledger.audit import AuditLogger
from aidledger.ledger.errors import InsufficientFundsError, ValidationError
from aidledger.ledger.funds import FundLedger
from aidledger.models.ledger import (
    Allocation,
    AllocationStatus,
    DonationStatus,
    SupportType,
    ValidationIssue,
)
from aidledger.services.storage import (
    LedgerStorageInterface,
    LedgerTransaction,
    NotFoundError,
)

logger = structlog.get_logger(__name__)


class AllocationEngine:
    """Creates allocations against the fund ledger's balance."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        funds: FundLedger,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._funds = funds
        self._audit = audit_logger or AuditLogger()

    @staticmethod
    def _check_request(
        beneficiary_id,
        amount,
        support_type,
    ) -> SupportType:
        issues = []
        if beneficiary_id is None or amount is None or not support_type:
            issues.append(ValidationIssue(
                field="allocation",
                issue_type="missing",
                message="Beneficiary, amount, and support type are required",
            ))
        elif not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Allocation amount must be a positive whole number",
            ))
        elif support_type not in {s.value for s in SupportType}:
            issues.append(ValidationIssue(
                field="support_type",
                issue_type="invalid_value",
                message="Invalid support type",
            ))

        if issues:
            raise ValidationError(issues[0].message, issues=issues)
        return SupportType(support_type)

    def _check_linked_donation(
        self,
        tx: LedgerTransaction,
        donation_id: int,
        amount: int,
    ) -> None:
        donation = tx.get_donation(donation_id)
        if donation is None:
            raise NotFoundError(f"Donation {donation_id} not found")
        if donation.status != DonationStatus.COMPLETED:
            raise ValidationError(
                "Only completed donations can fund an allocation",
                issues=[ValidationIssue(
                    field="donation_id",
                    issue_type="invalid_state",
                    message=f"Donation {donation_id} is {donation.status.value}",
                )],
            )
        remainder = donation.amount - tx.sum_allocations(
            status=AllocationStatus.ALLOCATED,
            donation_id=donation_id,
        )
        if amount > remainder:
            raise InsufficientFundsError(
                available=max(0, remainder),
                requested=amount,
                currency=self._funds.currency,
            )

    async def allocate(
        self,
        beneficiary_id: Optional[int],
        amount: Optional[int],
        support_type: Union[SupportType, str, None],
        allocating_account_id: int,
        donation_id: Optional[int] = None,
    ) -> Allocation:
        """
        Allocate amount to a beneficiary.

        Args:
            beneficiary_id: Target beneficiary
            amount: Amount in the smallest currency unit
            support_type: health, education or skills
            allocating_account_id: Administrator performing the allocation
            donation_id: Optional donation the funds are drawn from; None
                draws from the general pool

        Returns:
            The stored allocation

        Raises:
            ValidationError: Missing or malformed request
            NotFoundError: Unknown account, beneficiary or donation
            InsufficientFundsError: Amount exceeds the available balance
            StorageError: The store failed; nothing was written
        """
        if isinstance(support_type, SupportType):
            support_type = support_type.value

        try:
            support = self._check_request(beneficiary_id, amount, support_type)
        except ValidationError as e:
            await self._audit.log_validation_failed(
                subject="allocation",
                issues=e.issues_as_dicts(),
                actor_id=allocating_account_id,
            )
            raise

        def work(tx: LedgerTransaction) -> Allocation:
            if tx.get_account(allocating_account_id) is None:
                raise NotFoundError(f"Account {allocating_account_id} not found")
            if tx.get_beneficiary(beneficiary_id) is None:
                raise NotFoundError("Beneficiary not found")
            if donation_id is not None:
                self._check_linked_donation(tx, donation_id, amount)

            self._funds.ensure_covers(tx, amount)

            allocation = tx.insert_allocation(Allocation(
                donation_id=donation_id,
                beneficiary_id=beneficiary_id,
                amount=amount,
                support_type=support,
                allocated_by=allocating_account_id,
            ))
            tx.add_support_received(beneficiary_id, amount)
            return allocation

        try:
            allocation = await self._storage.transaction(work)
        except (InsufficientFundsError, NotFoundError, ValidationError) as e:
            logger.warning(
                "allocation_rejected",
                beneficiary_id=beneficiary_id,
                amount=amount,
                reason=str(e),
            )
            await self._audit.log_allocation_rejected(
                beneficiary_id=beneficiary_id,
                amount=amount,
                reason=str(e),
                allocated_by=allocating_account_id,
            )
            raise

        logger.info(
            "funds_allocated",
            allocation_id=allocation.id,
            beneficiary_id=beneficiary_id,
            amount=amount,
            donation_id=donation_id,
        )
        await self._audit.log_funds_allocated(allocation)
        return allocation
