"""Donation history views."""

from typing import Optional

from aidledger.models.ledger import Donation
from aidledger.services.storage import LedgerStorageInterface, LedgerTransaction

RECENT_LIMIT = 100


def donation_to_dict(donation: Donation, donor_name: Optional[str] = None) -> dict:
    """Donation as returned over HTTP."""
    data = {
        "id": donation.id,
        "userId": donation.account_id,
        "amount": donation.amount,
        "purpose": donation.purpose.value,
        "paymentMethod": donation.payment_method.value,
        "status": donation.status.value,
        "transactionId": donation.transaction_id,
        "createdAt": donation.created_at.isoformat(),
        "updatedAt": donation.updated_at.isoformat(),
    }
    if donor_name is not None:
        data["donorName"] = donor_name
    return data


class DonationHistory:
    """Read-only donation listings."""

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage

    async def for_account(self, account_id: int) -> list[dict]:
        """Every donation the account made, any status, newest first, with the donor's name."""

        def work(tx: LedgerTransaction) -> list[dict]:
            account = tx.get_account(account_id)
            donor_name = account.name if account else ""
            return [
                donation_to_dict(donation, donor_name)
                for donation in tx.list_donations(account_id=account_id, limit=None)
            ]

        return await self._storage.transaction(work)

    async def recent(self, limit: int = RECENT_LIMIT) -> list[dict]:
        """The most recent donations across all donors, with donor names."""

        def work(tx: LedgerTransaction) -> list[dict]:
            names: dict[int, str] = {}
            rows = []
            for donation in tx.list_donations(limit=limit):
                if donation.account_id not in names:
                    account = tx.get_account(donation.account_id)
                    names[donation.account_id] = account.name if account else ""
                rows.append(donation_to_dict(donation, names[donation.account_id]))
            return rows

        return await self._storage.transaction(work)
