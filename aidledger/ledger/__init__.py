"""
Fund-accounting core.

Money enters through the DonationRecorder, is measured by the FundLedger
and leaves through the AllocationEngine.
"""

from aidledger.ledger.allocation import AllocationEngine
from aidledger.ledger.beneficiaries import BeneficiaryRegistry
from aidledger.ledger.donations import ALLOWED_TRANSITIONS, DonationRecorder
from aidledger.ledger.errors import (
    AuthenticationError,
    InsufficientFundsError,
    LedgerError,
    PaymentDeclinedError,
    PermissionDeniedError,
    ValidationError,
)
from aidledger.ledger.funds import FundLedger

__all__ = [
    "ALLOWED_TRANSITIONS",
    "AllocationEngine",
    "AuthenticationError",
    "BeneficiaryRegistry",
    "DonationRecorder",
    "FundLedger",
    "InsufficientFundsError",
    "LedgerError",
    "PaymentDeclinedError",
    "PermissionDeniedError",
    "ValidationError",
]
