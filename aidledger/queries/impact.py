"""
Impact Aggregator

Per-donor statistics, read-only.

DESIGN DECISION: beneficiaries_helped counts only allocations whose
donation_id points at one of the donor's own donations. Allocations drawn
from the general pool (donation_id is None) are not attributed to any donor.

Joining every allocation against every donation the donor made, without
matching the allocation's donation_id, counts each pool allocation once per
donation and credits the donor with beneficiaries their money never reached.
That join is deliberately not used here.
"""

from aidledger.models.ledger import DonationStatus, ImpactSummary
from aidledger.services.storage import (
    LedgerStorageInterface,
    LedgerTransaction,
    NotFoundError,
)


class ImpactAggregator:
    """Derives what a single donor's money has done."""

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage

    async def impact_for(self, account_id: int) -> ImpactSummary:
        """
        Totals for one donor.

        total_donated and donation_count cover completed donations only.

        Raises:
            NotFoundError: The account does not exist
        """

        def work(tx: LedgerTransaction) -> ImpactSummary:
            if tx.get_account(account_id) is None:
                raise NotFoundError("User not found")
            total, count = tx.sum_donations(
                status=DonationStatus.COMPLETED,
                account_id=account_id,
            )
            return ImpactSummary(
                account_id=account_id,
                total_donated=total,
                donation_count=count,
                beneficiaries_helped=tx.count_beneficiaries_reached(account_id),
            )

        return await self._storage.transaction(work)
