"""
Core Data Models for Aid Ledger

These models define the records held by the ledger store and the values
passed between the donation, allocation and impact components.

DESIGN DECISION: Every monetary field is an int in the smallest currency
unit. There is no Decimal or float money anywhere in the ledger.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
)


def utcnow() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class DonationPurpose(str, Enum):
    """What a donor asks their contribution to be used for."""
    HEALTH = "health"
    EDUCATION = "education"
    SKILLS = "skills"
    GENERAL = "general"


class SupportType(str, Enum):
    """
    Category of aid a beneficiary receives.

    Same as DonationPurpose minus GENERAL: a beneficiary always needs
    something specific.
    """
    HEALTH = "health"
    EDUCATION = "education"
    SKILLS = "skills"


class PaymentMethod(str, Enum):
    """Supported payment channels."""
    MOBILE_MONEY = "mobile_money"
    CREDIT_CARD = "credit_card"
    BANK_TRANSFER = "bank_transfer"


class DonationStatus(str, Enum):
    """
    Donation lifecycle.

    pending -> completed | failed. Bank transfers start (and may stay)
    pending until an administrator confirms them.
    """
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class BeneficiaryStatus(str, Enum):
    """Beneficiary lifecycle."""
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"


class AllocationStatus(str, Enum):
    """
    Allocation lifecycle.

    Only ALLOCATED rows count against the available balance.
    """
    ALLOCATED = "allocated"
    REVERSED = "reversed"


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class Account(BaseModel):
    """
    A donor or administrator.

    id is None until the ledger store assigns one.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[int] = None
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    phone: Optional[str] = None
    password_hash: str = Field(..., min_length=1, repr=False)
    is_admin: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def to_public_dict(self) -> dict:
        """Profile as returned over HTTP (never includes the credential hash)."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "isAdmin": self.is_admin,
        }


class Donation(BaseModel):
    """
    A recorded contribution attempt.

    Failed payments are stored too, for audit.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[int] = None
    account_id: int
    amount: int = Field(..., gt=0, description="Amount in the smallest currency unit")
    purpose: DonationPurpose
    payment_method: PaymentMethod
    status: DonationStatus = DonationStatus.PENDING
    transaction_id: Optional[str] = Field(default=None, max_length=64)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_completed(self) -> bool:
        return self.status == DonationStatus.COMPLETED


class Beneficiary(BaseModel):
    """
    A person receiving support.

    support_received starts at 0 and only the allocation engine raises it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[int] = None
    name: str = Field(..., min_length=1)
    age: Optional[int] = Field(default=None, ge=0, le=150)
    gender: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    support_type: SupportType
    status: BeneficiaryStatus = BeneficiaryStatus.PENDING
    support_received: int = Field(default=0, ge=0)
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Allocation(BaseModel):
    """
    Funds committed to a beneficiary.

    donation_id is None for allocations drawn from the general pool.
    """

    id: Optional[int] = None
    donation_id: Optional[int] = None
    beneficiary_id: int
    amount: int = Field(..., gt=0)
    support_type: SupportType
    allocated_by: int
    status: AllocationStatus = AllocationStatus.ALLOCATED
    created_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# PAYMENT MODELS
# =============================================================================

class PaymentDetails(BaseModel):
    """
    Method-specific payment details as sent by the client.

    Mobile money needs phone_number; cards need the four card fields.
    Bank transfers need nothing.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        extra="ignore",
    )

    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    card_number: Optional[str] = Field(default=None, alias="cardNumber", repr=False)
    exp_month: Optional[str] = Field(default=None, alias="expMonth")
    exp_year: Optional[str] = Field(default=None, alias="expYear")
    cvc: Optional[str] = Field(default=None, repr=False)

    @property
    def card_last4(self) -> Optional[str]:
        if not self.card_number:
            return None
        return self.card_number.replace(" ", "")[-4:]


class PaymentResult(BaseModel):
    """Outcome reported by a payment processor."""

    success: bool
    transaction_id: Optional[str] = None
    status: DonationStatus
    message: str


class DonationRequest(BaseModel):
    """
    An intended contribution, before validation.

    Every field is optional here so that the validator, not the parser,
    decides what is missing.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    account_id: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("account_id", "accountId", "userId"),
    )
    amount: Optional[int] = None
    purpose: Optional[str] = None
    payment_method: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("payment_method", "paymentMethod"),
    )
    payment_details: PaymentDetails = Field(
        default_factory=PaymentDetails,
        validation_alias=AliasChoices("payment_details", "paymentDetails"),
    )


class BeneficiaryRequest(BaseModel):
    """A beneficiary registration, before validation."""
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    name: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    support_type: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("support_type", "supportType"),
    )
    notes: Optional[str] = None


class SignupRequest(BaseModel):
    """An account signup, before validation."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)


class DonationReceipt(BaseModel):
    """
    What the donation recorder returns: the stored row plus the payment
    outcome. success mirrors the payment, not the write.
    """

    donation: Donation
    payment: PaymentResult

    @property
    def success(self) -> bool:
        return self.payment.success

    @property
    def message(self) -> str:
        return self.payment.message


# =============================================================================
# DERIVED VIEWS
# =============================================================================

class FundSummary(BaseModel):
    """
    Ledger-wide totals.

    available is floored at zero.
    """

    total_donated: int = Field(..., ge=0)
    total_allocated: int = Field(..., ge=0)

    @computed_field
    @property
    def available(self) -> int:
        return max(0, self.total_donated - self.total_allocated)

    @classmethod
    def from_totals(cls, total_donated: int, total_allocated: int) -> "FundSummary":
        return cls(
            total_donated=total_donated or 0,
            total_allocated=total_allocated or 0,
        )


class ImpactSummary(BaseModel):
    """Per-donor statistics."""

    account_id: int
    total_donated: int = Field(default=0, ge=0)
    donation_count: int = Field(default=0, ge=0)
    beneficiaries_helped: int = Field(default=0, ge=0)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'below_minimum')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of validating one request."""

    subject: str = Field(
        ...,
        description="What was validated (e.g., 'donation', 'beneficiary')"
    )
    validated_at: datetime = Field(default_factory=utcnow)
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def first_error(self) -> Optional[ValidationIssue]:
        for issue in self.issues:
            if issue.severity == "error":
                return issue
        return None
