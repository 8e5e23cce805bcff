"""
Data Models Package

This package contains all Pydantic models used in the Aid Ledger system.
All data flowing through the system must conform to these schemas.
"""

from aidledger.models.ledger import (
    Account,
    Allocation,
    AllocationStatus,
    Beneficiary,
    BeneficiaryRequest,
    BeneficiaryStatus,
    Donation,
    DonationPurpose,
    DonationReceipt,
    DonationRequest,
    DonationStatus,
    FundSummary,
    ImpactSummary,
    PaymentDetails,
    PaymentMethod,
    PaymentResult,
    SignupRequest,
    SupportType,
    ValidationIssue,
    ValidationResult,
    utcnow,
)
from aidledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Account",
    "Allocation",
    "AllocationStatus",
    "Beneficiary",
    "BeneficiaryRequest",
    "BeneficiaryStatus",
    "Donation",
    "DonationPurpose",
    "DonationReceipt",
    "DonationRequest",
    "DonationStatus",
    "FundSummary",
    "ImpactSummary",
    "PaymentDetails",
    "PaymentMethod",
    "PaymentResult",
    "SignupRequest",
    "SupportType",
    "ValidationIssue",
    "ValidationResult",
    "utcnow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
