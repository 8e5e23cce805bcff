"""
Abstract Storage Interface

The ledger store is reached only through a unit of work: callers hand
LedgerStorageInterface.transaction() a plain function, the backend runs it
against a LedgerTransaction and either commits everything it wrote or
nothing.

DESIGN DECISION: The work function is synchronous and runs off the event
loop. A balance check and the writes that depend on it are ordinary
sequential statements inside one function, with one rollback path.

Implementations:
1. SqlLedgerStorage - any SQLAlchemy engine (SQLite by default)
2. MemoryLedgerStorage - in-process, for tests
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional, TypeVar

from aidledger.models.audit import AuditEvent
from aidledger.models.ledger import (
    Account,
    Allocation,
    AllocationStatus,
    Beneficiary,
    Donation,
    DonationStatus,
)

T = TypeVar("T")


class LedgerTransaction(ABC):
    """
    Operations available inside one unit of work.

    Every method runs against the same transaction; nothing is visible to
    other units of work until the enclosing transaction() call returns.
    """

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    @abstractmethod
    def insert_account(self, account: Account) -> Account:
        """
        Insert an account and return it with its assigned id.

        Raises:
            DuplicateError: If the email is already registered
        """

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        pass

    @abstractmethod
    def get_account_by_email(self, email: str) -> Optional[Account]:
        pass

    # -------------------------------------------------------------------------
    # Donations
    # -------------------------------------------------------------------------

    @abstractmethod
    def insert_donation(self, donation: Donation) -> Donation:
        """
        Insert a donation and return it with its assigned id.

        Raises:
            NotFoundError: If the owning account does not exist
        """

    @abstractmethod
    def get_donation(self, donation_id: int) -> Optional[Donation]:
        pass

    @abstractmethod
    def update_donation_status(
        self,
        donation_id: int,
        status: DonationStatus,
    ) -> Donation:
        """
        Set a donation's status and bump updated_at.

        Raises:
            NotFoundError: If the donation does not exist
        """

    @abstractmethod
    def list_donations(
        self,
        account_id: Optional[int] = None,
        limit: Optional[int] = 100,
    ) -> list[Donation]:
        """
        List donations, newest first.

        Args:
            account_id: Only this account's donations
            limit: Maximum number of results; None for all
        """

    # -------------------------------------------------------------------------
    # Beneficiaries
    # -------------------------------------------------------------------------

    @abstractmethod
    def insert_beneficiary(self, beneficiary: Beneficiary) -> Beneficiary:
        pass

    @abstractmethod
    def get_beneficiary(self, beneficiary_id: int) -> Optional[Beneficiary]:
        pass

    @abstractmethod
    def list_beneficiaries(self) -> list[Beneficiary]:
        """List beneficiaries, newest first."""

    @abstractmethod
    def add_support_received(self, beneficiary_id: int, amount: int) -> Beneficiary:
        """
        Increase a beneficiary's support_received by amount.

        Raises:
            NotFoundError: If the beneficiary does not exist
        """

    # -------------------------------------------------------------------------
    # Allocations
    # -------------------------------------------------------------------------

    @abstractmethod
    def insert_allocation(self, allocation: Allocation) -> Allocation:
        """
        Insert an allocation and return it with its assigned id.

        Raises:
            NotFoundError: If a referenced row does not exist
        """

    @abstractmethod
    def list_allocations(
        self,
        beneficiary_id: Optional[int] = None,
        donation_id: Optional[int] = None,
    ) -> list[Allocation]:
        """List allocations, newest first, optionally filtered."""

    # -------------------------------------------------------------------------
    # Aggregates
    # -------------------------------------------------------------------------

    @abstractmethod
    def sum_donations(
        self,
        status: DonationStatus = DonationStatus.COMPLETED,
        account_id: Optional[int] = None,
    ) -> tuple[int, int]:
        """
        Total and count of donations with the given status.

        Returns:
            (total_amount, donation_count); (0, 0) when there are none
        """

    @abstractmethod
    def sum_allocations(
        self,
        status: AllocationStatus = AllocationStatus.ALLOCATED,
        donation_id: Optional[int] = None,
    ) -> int:
        """Total amount of allocations with the given status; 0 when none."""

    @abstractmethod
    def count_beneficiaries_reached(self, account_id: int) -> int:
        """
        Distinct beneficiaries reached by ALLOCATED allocations whose
        donation_id references a donation owned by account_id.

        Allocations with no donation_id are never counted.
        """


class LedgerStorageInterface(ABC):
    """
    Abstract interface for the ledger store.

    Any storage implementation must run units of work atomically and must
    serialize them against each other: two units of work that both read the
    balance and then allocate cannot interleave.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create the schema if needed. Safe to call more than once."""

    @abstractmethod
    async def transaction(self, work: Callable[[LedgerTransaction], T]) -> T:
        """
        Run work(tx) as one atomic unit of work.

        Commits when work returns. Rolls back and re-raises when it raises.

        Raises:
            StorageError: If the backend fails
        """

    async def close(self) -> None:
        """Release backend resources."""


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity, in chronological order."""

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
