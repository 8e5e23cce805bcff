"""
Fund Ledger

The available balance is never stored. It is derived on every read:

    total_donated   = sum of completed donations
    total_allocated = sum of allocated allocations
    available       = max(0, total_donated - total_allocated)

DESIGN DECISION: The derivation is exposed twice. The static helpers take a
LedgerTransaction so the allocation engine can check the balance inside the
same unit of work that writes the allocation. The async methods open their
own unit of work for plain reads.
"""

from aidledger.ledger.errors import InsufficientFundsError
from aidledger.models.ledger import AllocationStatus, DonationStatus, FundSummary
from aidledger.services.storage import LedgerStorageInterface, LedgerTransaction


class FundLedger:
    """Derives the ledger-wide balance from donation and allocation rows."""

    def __init__(self, storage: LedgerStorageInterface, currency: str = "RWF"):
        self._storage = storage
        self._currency = currency

    @property
    def currency(self) -> str:
        return self._currency

    @staticmethod
    def summarize(tx: LedgerTransaction) -> FundSummary:
        total_donated, _ = tx.sum_donations(status=DonationStatus.COMPLETED)
        total_allocated = tx.sum_allocations(status=AllocationStatus.ALLOCATED)
        return FundSummary.from_totals(total_donated, total_allocated)

    @staticmethod
    def balance_in(tx: LedgerTransaction) -> int:
        return FundLedger.summarize(tx).available

    def ensure_covers(self, tx: LedgerTransaction, amount: int) -> int:
        """
        Check that the balance visible in tx covers amount.

        Returns:
            The available balance before the allocation

        Raises:
            InsufficientFundsError: If amount exceeds the available balance
        """
        available = self.balance_in(tx)
        if amount > available:
            raise InsufficientFundsError(
                available=available,
                requested=amount,
                currency=self._currency,
            )
        return available

    async def available_balance(self) -> int:
        """
        Current available balance, never negative.

        Raises:
            StorageError: If the aggregate queries fail
        """
        return await self._storage.transaction(self.balance_in)

    async def summary(self) -> FundSummary:
        return await self._storage.transaction(self.summarize)
