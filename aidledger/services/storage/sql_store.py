"""
SQL Storage Implementation

Relational ledger store on SQLAlchemy Core. SQLite is the default backend;
any engine SQLAlchemy supports works.

Isolation:
- SQLite: every unit of work opens with BEGIN IMMEDIATE, which takes the
  database write lock before the first read. A second writer waits (up to
  busy_timeout_seconds) instead of reading a balance that is about to change.
- Other engines: transactions run at SERIALIZABLE. A serialization failure
  surfaces as StorageError; the caller decides whether to retry.
"""

import asyncio
import contextlib
import threading
from enum import Enum
from typing import Any, Callable, Optional, TypeVar

import structlog
from pydantic import BaseModel
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    distinct,
    event,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.pool import StaticPool
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from aidledger.config import DatabaseSettings, get_settings
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
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    LedgerTransaction,
    NotFoundError,
    StorageError,
)

T = TypeVar("T")

logger = structlog.get_logger(__name__)


# =============================================================================
# SCHEMA
# =============================================================================

metadata = MetaData()

accounts = Table(
    "accounts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False),
    Column("email", Text, nullable=False, unique=True),
    Column("phone", Text),
    Column("password_hash", String(255), nullable=False),
    Column("is_admin", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

donations = Table(
    "donations",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("account_id", Integer, ForeignKey("accounts.id"), nullable=False, index=True),
    Column("amount", Integer, nullable=False),
    Column("purpose", String(20), nullable=False),
    Column("payment_method", String(20), nullable=False),
    Column("status", String(20), nullable=False, default="pending", index=True),
    Column("transaction_id", String(64)),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    CheckConstraint("amount > 0", name="ck_donations_amount_positive"),
)

beneficiaries = Table(
    "beneficiaries",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False),
    Column("age", Integer),
    Column("gender", Text),
    Column("phone", Text),
    Column("location", Text),
    Column("support_type", String(20), nullable=False),
    Column("status", String(20), nullable=False, default="pending"),
    Column("support_received", Integer, nullable=False, default=0),
    Column("notes", Text),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    CheckConstraint("support_received >= 0", name="ck_beneficiaries_support_nonneg"),
)

allocations = Table(
    "allocations",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("donation_id", Integer, ForeignKey("donations.id"), nullable=True, index=True),
    Column("beneficiary_id", Integer, ForeignKey("beneficiaries.id"), nullable=False, index=True),
    Column("amount", Integer, nullable=False),
    Column("support_type", String(20), nullable=False),
    Column("allocated_by", Integer, ForeignKey("accounts.id"), nullable=False),
    Column("status", String(20), nullable=False, default="allocated", index=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    CheckConstraint("amount > 0", name="ck_allocations_amount_positive"),
)

audit_log = Table(
    "audit_log",
    metadata,
    Column("event_id", String(36), primary_key=True),
    Column("timestamp", DateTime(timezone=True), nullable=False, index=True),
    Column("event_type", String(50), nullable=False),
    Column("severity", String(20), nullable=False),
    Column("entity_type", String(50)),
    Column("entity_id", String(64)),
    Column("actor_id", Integer),
    Column("correlation_id", String(36)),
    Column("description", String(500), nullable=False),
    Column("details_json", Text),
    Column("error_message", Text),
)


def _row_values(model: BaseModel, exclude: set[str]) -> dict[str, Any]:
    """Dump a model for insertion, storing enums by value."""
    values = model.model_dump(exclude=exclude)
    return {
        key: value.value if isinstance(value, Enum) else value
        for key, value in values.items()
    }


def _is_memory_url(url) -> bool:
    return url.database in (None, "", ":memory:")


def create_ledger_engine(settings: DatabaseSettings) -> Engine:
    """
    Build the engine with the isolation rules described in the module
    docstring.
    """
    url = make_url(settings.url)

    if url.get_backend_name() != "sqlite":
        return create_engine(
            url,
            echo=settings.echo,
            isolation_level="SERIALIZABLE",
            pool_pre_ping=True,
        )

    engine_kwargs: dict[str, Any] = {
        "echo": settings.echo,
        "connect_args": {
            "check_same_thread": False,
            "timeout": settings.busy_timeout_seconds,
        },
    }
    if _is_memory_url(url):
        # One shared connection, otherwise each thread sees its own database
        engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(url, **engine_kwargs)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy's begin event issue BEGIN instead of pysqlite
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


# =============================================================================
# UNIT OF WORK
# =============================================================================

class SqlLedgerTransaction(LedgerTransaction):
    """LedgerTransaction bound to one open SQLAlchemy connection."""

    def __init__(self, conn: Connection):
        self._conn = conn

    def _insert(self, table: Table, values: dict[str, Any]) -> int:
        result = self._conn.execute(insert(table).values(**values))
        return result.inserted_primary_key[0]

    def _fetch_one(self, table: Table, row_id: int) -> Optional[dict]:
        row = self._conn.execute(
            select(table).where(table.c.id == row_id)
        ).first()
        return dict(row._mapping) if row else None

    # Accounts

    def insert_account(self, account: Account) -> Account:
        try:
            new_id = self._insert(accounts, _row_values(account, {"id"}))
        except IntegrityError as e:
            raise DuplicateError(f"An account with email {account.email} already exists") from e
        return account.model_copy(update={"id": new_id})

    def get_account(self, account_id: int) -> Optional[Account]:
        row = self._fetch_one(accounts, account_id)
        return Account.model_validate(row) if row else None

    def get_account_by_email(self, email: str) -> Optional[Account]:
        row = self._conn.execute(
            select(accounts).where(func.lower(accounts.c.email) == email.lower())
        ).first()
        return Account.model_validate(dict(row._mapping)) if row else None

    # Donations

    def insert_donation(self, donation: Donation) -> Donation:
        try:
            new_id = self._insert(donations, _row_values(donation, {"id"}))
        except IntegrityError as e:
            raise NotFoundError(f"Account {donation.account_id} not found") from e
        return donation.model_copy(update={"id": new_id})

    def get_donation(self, donation_id: int) -> Optional[Donation]:
        row = self._fetch_one(donations, donation_id)
        return Donation.model_validate(row) if row else None

    def update_donation_status(
        self,
        donation_id: int,
        status: DonationStatus,
    ) -> Donation:
        result = self._conn.execute(
            update(donations)
            .where(donations.c.id == donation_id)
            .values(status=status.value, updated_at=utcnow())
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Donation {donation_id} not found")
        return self.get_donation(donation_id)

    def list_donations(
        self,
        account_id: Optional[int] = None,
        limit: Optional[int] = 100,
    ) -> list[Donation]:
        query = select(donations).order_by(donations.c.id.desc())
        if limit is not None:
            query = query.limit(limit)
        if account_id is not None:
            query = query.where(donations.c.account_id == account_id)
        return [
            Donation.model_validate(dict(row._mapping))
            for row in self._conn.execute(query)
        ]

    # Beneficiaries

    def insert_beneficiary(self, beneficiary: Beneficiary) -> Beneficiary:
        new_id = self._insert(beneficiaries, _row_values(beneficiary, {"id"}))
        return beneficiary.model_copy(update={"id": new_id})

    def get_beneficiary(self, beneficiary_id: int) -> Optional[Beneficiary]:
        row = self._fetch_one(beneficiaries, beneficiary_id)
        return Beneficiary.model_validate(row) if row else None

    def list_beneficiaries(self) -> list[Beneficiary]:
        query = select(beneficiaries).order_by(beneficiaries.c.id.desc())
        return [
            Beneficiary.model_validate(dict(row._mapping))
            for row in self._conn.execute(query)
        ]

    def add_support_received(self, beneficiary_id: int, amount: int) -> Beneficiary:
        result = self._conn.execute(
            update(beneficiaries)
            .where(beneficiaries.c.id == beneficiary_id)
            .values(
                support_received=beneficiaries.c.support_received + amount,
                updated_at=utcnow(),
            )
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Beneficiary {beneficiary_id} not found")
        return self.get_beneficiary(beneficiary_id)

    # Allocations

    def insert_allocation(self, allocation: Allocation) -> Allocation:
        try:
            new_id = self._insert(allocations, _row_values(allocation, {"id"}))
        except IntegrityError as e:
            raise NotFoundError("Allocation references a missing row") from e
        return allocation.model_copy(update={"id": new_id})

    def list_allocations(
        self,
        beneficiary_id: Optional[int] = None,
        donation_id: Optional[int] = None,
    ) -> list[Allocation]:
        query = select(allocations).order_by(allocations.c.id.desc())
        if beneficiary_id is not None:
            query = query.where(allocations.c.beneficiary_id == beneficiary_id)
        if donation_id is not None:
            query = query.where(allocations.c.donation_id == donation_id)
        return [
            Allocation.model_validate(dict(row._mapping))
            for row in self._conn.execute(query)
        ]

    # Aggregates

    def sum_donations(
        self,
        status: DonationStatus = DonationStatus.COMPLETED,
        account_id: Optional[int] = None,
    ) -> tuple[int, int]:
        query = select(
            func.coalesce(func.sum(donations.c.amount), 0),
            func.count(donations.c.id),
        ).where(donations.c.status == status.value)
        if account_id is not None:
            query = query.where(donations.c.account_id == account_id)
        total, count = self._conn.execute(query).one()
        return int(total), int(count)

    def sum_allocations(
        self,
        status: AllocationStatus = AllocationStatus.ALLOCATED,
        donation_id: Optional[int] = None,
    ) -> int:
        query = select(
            func.coalesce(func.sum(allocations.c.amount), 0)
        ).where(allocations.c.status == status.value)
        if donation_id is not None:
            query = query.where(allocations.c.donation_id == donation_id)
        return int(self._conn.execute(query).scalar_one())

    def count_beneficiaries_reached(self, account_id: int) -> int:
        query = (
            select(func.count(distinct(allocations.c.beneficiary_id)))
            .select_from(
                allocations.join(donations, allocations.c.donation_id == donations.c.id)
            )
            .where(
                donations.c.account_id == account_id,
                allocations.c.status == AllocationStatus.ALLOCATED.value,
            )
        )
        return int(self._conn.execute(query).scalar_one())


# =============================================================================
# STORAGE
# =============================================================================

class SqlLedgerStorage(LedgerStorageInterface):
    """
    SQLAlchemy implementation of the ledger store.

    Units of work run on worker threads via asyncio.to_thread, one
    connection each.
    """

    def __init__(
        self,
        settings: Optional[DatabaseSettings] = None,
        engine: Optional[Engine] = None,
    ):
        self._settings = settings or get_settings().database
        self._engine = engine or create_ledger_engine(self._settings)
        # A shared in-memory connection cannot hold two transactions at once
        self._shared_conn_lock: Optional[threading.Lock] = None
        if self._engine.dialect.name == "sqlite" and _is_memory_url(self._engine.url):
            self._shared_conn_lock = threading.Lock()

    @property
    def engine(self) -> Engine:
        return self._engine

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception_type(OperationalError),
        reraise=True,
    )
    def _create_schema(self) -> None:
        metadata.create_all(self._engine)

    async def initialize(self) -> None:
        try:
            await asyncio.to_thread(self._create_schema)
        except OperationalError as e:
            raise ConnectionError(f"Could not initialize ledger store: {e}") from e
        logger.info("ledger_store_initialized", backend=self._engine.dialect.name)

    def _run(self, work: Callable[[LedgerTransaction], T]) -> T:
        try:
            with self._engine.begin() as conn:
                return work(SqlLedgerTransaction(conn))
        except SQLAlchemyError as e:
            logger.error("ledger_transaction_failed", error=str(e))
            raise StorageError(f"Ledger store unavailable: {e}") from e

    def serialized(self):
        """Context manager held around any use of a shared connection."""
        return self._shared_conn_lock or contextlib.nullcontext()

    def _run_serialized(self, work: Callable[[LedgerTransaction], T]) -> T:
        with self.serialized():
            return self._run(work)

    async def transaction(self, work: Callable[[LedgerTransaction], T]) -> T:
        return await asyncio.to_thread(self._run_serialized, work)

    async def close(self) -> None:
        await asyncio.to_thread(self._engine.dispose)


class SqlAuditStorage(AuditStorageInterface):
    """Audit log in the audit_log table of the ledger database."""

    def __init__(self, storage: SqlLedgerStorage):
        self._storage = storage
        self._engine = storage.engine

    def _append(self, event: AuditEvent) -> None:
        with self._storage.serialized(), self._engine.begin() as conn:
            conn.execute(insert(audit_log).values(**event.to_row()))

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            await asyncio.to_thread(self._append, event)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to append audit event: {e}") from e
        return True

    def _select(self, query) -> list[AuditEvent]:
        with self._storage.serialized(), self._engine.connect() as conn:
            return [
                AuditEvent.from_row(dict(row._mapping))
                for row in conn.execute(query)
            ]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        query = (
            select(audit_log)
            .where(
                audit_log.c.entity_type == entity_type,
                audit_log.c.entity_id == entity_id,
            )
            .order_by(audit_log.c.timestamp.asc())
        )
        return await asyncio.to_thread(self._select, query)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        query = select(audit_log).order_by(audit_log.c.timestamp.desc()).limit(limit)
        return await asyncio.to_thread(self._select, query)
