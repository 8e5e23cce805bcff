"""Request validation package."""

from aidledger.validation.validator import (
    AccountValidator,
    BeneficiaryValidator,
    DonationValidator,
    is_valid_email,
    is_valid_phone,
)

__all__ = [
    "AccountValidator",
    "BeneficiaryValidator",
    "DonationValidator",
    "is_valid_email",
    "is_valid_phone",
]
