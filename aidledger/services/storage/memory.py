"""
In-Memory Storage Implementation

Deterministic ledger store for tests and local demos. Holds every record in
plain dicts behind one lock.

A unit of work takes the lock, snapshots the state and restores the
snapshot if the work raises, so a failed unit of work leaves nothing behind.
"""

import asyncio
import copy
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from aidledger.models.audit import AuditEvent
from aidledger.models.ledger import (
    Account,
    Allocation,
    AllocationStatus,
    Beneficiary,
    Donation,
    DonationStatus,
    utcnow,
)
from aidledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    LedgerTransaction,
    NotFoundError,
)

T = TypeVar("T")


@dataclass
class _LedgerState:
    accounts: dict[int, Account] = field(default_factory=dict)
    donations: dict[int, Donation] = field(default_factory=dict)
    beneficiaries: dict[int, Beneficiary] = field(default_factory=dict)
    allocations: dict[int, Allocation] = field(default_factory=dict)
    next_ids: dict[str, int] = field(default_factory=dict)

    def next_id(self, kind: str) -> int:
        value = self.next_ids.get(kind, 0) + 1
        self.next_ids[kind] = value
        return value


def _newest_first(rows) -> list:
    return [row.model_copy() for row in sorted(rows, key=lambda r: r.id, reverse=True)]


class MemoryLedgerTransaction(LedgerTransaction):
    """LedgerTransaction over a _LedgerState the caller already holds the lock for."""

    def __init__(self, state: _LedgerState):
        self._state = state

    # Accounts

    def insert_account(self, account: Account) -> Account:
        if self.get_account_by_email(account.email) is not None:
            raise DuplicateError(f"An account with email {account.email} already exists")
        stored = account.model_copy(update={"id": self._state.next_id("account")})
        self._state.accounts[stored.id] = stored
        return stored.model_copy()

    def get_account(self, account_id: int) -> Optional[Account]:
        account = self._state.accounts.get(account_id)
        return account.model_copy() if account else None

    def get_account_by_email(self, email: str) -> Optional[Account]:
        for account in self._state.accounts.values():
            if account.email.lower() == email.lower():
                return account.model_copy()
        return None

    # Donations

    def insert_donation(self, donation: Donation) -> Donation:
        if donation.account_id not in self._state.accounts:
            raise NotFoundError(f"Account {donation.account_id} not found")
        stored = donation.model_copy(update={"id": self._state.next_id("donation")})
        self._state.donations[stored.id] = stored
        return stored.model_copy()

    def get_donation(self, donation_id: int) -> Optional[Donation]:
        donation = self._state.donations.get(donation_id)
        return donation.model_copy() if donation else None

    def update_donation_status(
        self,
        donation_id: int,
        status: DonationStatus,
    ) -> Donation:
        donation = self._state.donations.get(donation_id)
        if donation is None:
            raise NotFoundError(f"Donation {donation_id} not found")
        updated = donation.model_copy(update={"status": status, "updated_at": utcnow()})
        self._state.donations[donation_id] = updated
        return updated.model_copy()

    def list_donations(
        self,
        account_id: Optional[int] = None,
        limit: Optional[int] = 100,
    ) -> list[Donation]:
        rows = [
            d for d in self._state.donations.values()
            if account_id is None or d.account_id == account_id
        ]
        return _newest_first(rows)[:limit]

    # Beneficiaries

    def insert_beneficiary(self, beneficiary: Beneficiary) -> Beneficiary:
        stored = beneficiary.model_copy(update={"id": self._state.next_id("beneficiary")})
        self._state.beneficiaries[stored.id] = stored
        return stored.model_copy()

    def get_beneficiary(self, beneficiary_id: int) -> Optional[Beneficiary]:
        beneficiary = self._state.beneficiaries.get(beneficiary_id)
        return beneficiary.model_copy() if beneficiary else None

    def list_beneficiaries(self) -> list[Beneficiary]:
        return _newest_first(self._state.beneficiaries.values())

    def add_support_received(self, beneficiary_id: int, amount: int) -> Beneficiary:
        beneficiary = self._state.beneficiaries.get(beneficiary_id)
        if beneficiary is None:
            raise NotFoundError(f"Beneficiary {beneficiary_id} not found")
        updated = beneficiary.model_copy(update={
            "support_received": beneficiary.support_received + amount,
            "updated_at": utcnow(),
        })
        self._state.beneficiaries[beneficiary_id] = updated
        return updated.model_copy()

    # Allocations

    def insert_allocation(self, allocation: Allocation) -> Allocation:
        if allocation.beneficiary_id not in self._state.beneficiaries:
            raise NotFoundError(f"Beneficiary {allocation.beneficiary_id} not found")
        if allocation.allocated_by not in self._state.accounts:
            raise NotFoundError(f"Account {allocation.allocated_by} not found")
        if (
            allocation.donation_id is not None
            and allocation.donation_id not in self._state.donations
        ):
            raise NotFoundError(f"Donation {allocation.donation_id} not found")
        stored = allocation.model_copy(update={"id": self._state.next_id("allocation")})
        self._state.allocations[stored.id] = stored
        return stored.model_copy()

    def list_allocations(
        self,
        beneficiary_id: Optional[int] = None,
        donation_id: Optional[int] = None,
    ) -> list[Allocation]:
        rows = [
            a for a in self._state.allocations.values()
            if (beneficiary_id is None or a.beneficiary_id == beneficiary_id)
            and (donation_id is None or a.donation_id == donation_id)
        ]
        return _newest_first(rows)

    # Aggregates

    def sum_donations(
        self,
        status: DonationStatus = DonationStatus.COMPLETED,
        account_id: Optional[int] = None,
    ) -> tuple[int, int]:
        amounts = [
            d.amount for d in self._state.donations.values()
            if d.status == status
            and (account_id is None or d.account_id == account_id)
        ]
        return sum(amounts), len(amounts)

    def sum_allocations(
        self,
        status: AllocationStatus = AllocationStatus.ALLOCATED,
        donation_id: Optional[int] = None,
    ) -> int:
        return sum(
            a.amount for a in self._state.allocations.values()
            if a.status == status
            and (donation_id is None or a.donation_id == donation_id)
        )

    def count_beneficiaries_reached(self, account_id: int) -> int:
        own_donations = {
            d.id for d in self._state.donations.values()
            if d.account_id == account_id
        }
        return len({
            a.beneficiary_id for a in self._state.allocations.values()
            if a.status == AllocationStatus.ALLOCATED
            and a.donation_id is not None
            and a.donation_id in own_donations
        })


class MemoryLedgerStorage(LedgerStorageInterface):
    """In-memory ledger store. Units of work run one at a time."""

    def __init__(self):
        self._state = _LedgerState()
        self._lock = threading.Lock()

    async def initialize(self) -> None:
        return None

    def _run(self, work: Callable[[LedgerTransaction], T]) -> T:
        with self._lock:
            snapshot = copy.deepcopy(self._state)
            try:
                return work(MemoryLedgerTransaction(self._state))
            except BaseException:
                self._state = snapshot
                raise

    async def transaction(self, work: Callable[[LedgerTransaction], T]) -> T:
        return await asyncio.to_thread(self._run, work)


class MemoryAuditStorage(AuditStorageInterface):
    """Audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []
        self._lock = threading.Lock()

    async def append_event(self, event: AuditEvent) -> bool:
        with self._lock:
            self._events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        with self._lock:
            return [
                e for e in self._events
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        with self._lock:
            return list(reversed(self._events))[:limit]
