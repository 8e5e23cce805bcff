"""
Beneficiary Registry

Administrators register beneficiaries here. A new beneficiary is active
and has received nothing; only the allocation engine raises
support_received afterwards.
"""

from typing import Optional

import structlog

from aidledger.audit import AuditLogger
from aidledger.ledger.errors import ValidationError
from aidledger.models.ledger import (
    Beneficiary,
    BeneficiaryRequest,
    BeneficiaryStatus,
    SupportType,
)
from aidledger.services.storage import LedgerStorageInterface
from aidledger.validation import BeneficiaryValidator

logger = structlog.get_logger(__name__)


class BeneficiaryRegistry:
    """Registers and lists beneficiaries."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._validator = BeneficiaryValidator()
        self._audit = audit_logger or AuditLogger()

    async def register(
        self,
        request: BeneficiaryRequest,
        actor_id: Optional[int] = None,
    ) -> Beneficiary:
        """
        Register a beneficiary.

        Raises:
            ValidationError: Missing or malformed fields
            StorageError: The store failed
        """
        result = self._validator.validate(request)
        if result.has_errors:
            error = ValidationError.from_result(result)
            await self._audit.log_validation_failed(
                subject="beneficiary",
                issues=error.issues_as_dicts(),
                actor_id=actor_id,
            )
            raise error

        beneficiary = Beneficiary(
            name=request.name,
            age=request.age,
            gender=request.gender,
            phone=request.phone,
            location=request.location,
            support_type=SupportType(request.support_type),
            status=BeneficiaryStatus.ACTIVE,
            notes=request.notes,
        )
        stored = await self._storage.transaction(
            lambda tx: tx.insert_beneficiary(beneficiary)
        )

        logger.info(
            "beneficiary_registered",
            beneficiary_id=stored.id,
            support_type=stored.support_type.value,
        )
        await self._audit.log_beneficiary_registered(
            beneficiary_id=stored.id,
            support_type=stored.support_type.value,
            actor_id=actor_id,
        )
        return stored

    async def list_all(self) -> list[Beneficiary]:
        """All beneficiaries, newest first."""
        return await self._storage.transaction(lambda tx: tx.list_beneficiaries())
