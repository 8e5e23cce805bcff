"""
Main Orchestrator for Aid Ledger

Builds the components once and hands the same ledger store to every one
of them:

    DonationRecorder -> ledger store <- AllocationEngine
                             ^
                  FundLedger, ImpactAggregator

DESIGN DECISION: The ledger store is an explicit handle passed into each
component, never a module-level global. Tests build the same bundle over
MemoryLedgerStorage and a scripted payment gateway.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from aidledger.accounts import AccountService
from aidledger.audit import AuditLogger
from aidledger.config import Settings, get_settings
from aidledger.ledger import (
    AllocationEngine,
    BeneficiaryRegistry,
    DonationRecorder,
    FundLedger,
)
from aidledger.queries import DonationHistory, ImpactAggregator
from aidledger.services.payment import PaymentGateway
from aidledger.services.storage import (
    AuditStorageInterface,
    LedgerStorageInterface,
    SqlAuditStorage,
    SqlLedgerStorage,
)

logger = structlog.get_logger(__name__)


@dataclass
class LedgerComponents:
    """Everything the HTTP layer needs, sharing one ledger store."""

    storage: LedgerStorageInterface
    audit_logger: AuditLogger
    accounts: AccountService
    funds: FundLedger
    donations: DonationRecorder
    allocations: AllocationEngine
    beneficiaries: BeneficiaryRegistry
    impact: ImpactAggregator
    history: DonationHistory

    async def startup(self) -> None:
        """Create the schema and seed the default administrator."""
        await self.storage.initialize()
        admin = await self.accounts.ensure_default_admin()
        logger.info("ledger_started", admin_id=admin.id)

    async def shutdown(self) -> None:
        await self.storage.close()


def create_app_components(
    settings: Optional[Settings] = None,
    storage: Optional[LedgerStorageInterface] = None,
    gateway: Optional[PaymentGateway] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    hash_iterations: Optional[int] = None,
) -> LedgerComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to build from (default: get_settings())
        storage: Ledger store (default: SqlLedgerStorage from settings)
        gateway: Payment gateway (default: simulated processors from settings)
        audit_storage: Audit persistence. Defaults to the SQL audit table
            when the ledger store is SQL, otherwise local logging only.
        hash_iterations: PBKDF2 rounds for new credentials

    Returns:
        LedgerComponents (call startup() before serving)
    """
    settings = settings or get_settings()
    donation_settings = settings.donations

    if storage is None:
        storage = SqlLedgerStorage(settings.database)
    if audit_storage is None and isinstance(storage, SqlLedgerStorage):
        audit_storage = SqlAuditStorage(storage)
    if gateway is None:
        gateway = PaymentGateway.simulated(
            settings.payments,
            currency=donation_settings.currency,
        )

    audit_logger = AuditLogger(audit_storage)
    funds = FundLedger(storage, currency=donation_settings.currency)

    account_kwargs = {}
    if hash_iterations is not None:
        account_kwargs["hash_iterations"] = hash_iterations

    return LedgerComponents(
        storage=storage,
        audit_logger=audit_logger,
        accounts=AccountService(
            storage,
            app_settings=settings.app,
            admin_settings=settings.admin,
            audit_logger=audit_logger,
            **account_kwargs,
        ),
        funds=funds,
        donations=DonationRecorder(
            storage,
            gateway,
            settings=donation_settings,
            payment_settings=settings.payments,
            audit_logger=audit_logger,
        ),
        allocations=AllocationEngine(storage, funds, audit_logger=audit_logger),
        beneficiaries=BeneficiaryRegistry(storage, audit_logger=audit_logger),
        impact=ImpactAggregator(storage),
        history=DonationHistory(storage),
    )
