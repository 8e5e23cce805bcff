"""
Ledger Errors

Domain failures raised by the ledger components. Storage failures
(StorageError, NotFoundError, DuplicateError) live with the storage
interface and pass through the ledger unchanged.

Nothing here is retried by the ledger; retry policy belongs to the caller.
"""

from typing import Optional

from aidledger.models.ledger import (
    Donation,
    PaymentResult,
    ValidationIssue,
    ValidationResult,
)


class LedgerError(Exception):
    """Base exception for ledger operations."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(LedgerError):
    """Missing or malformed input. Raised before any side effect."""

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        self.issues = issues or []
        super().__init__(message)

    @classmethod
    def from_result(cls, result: ValidationResult) -> "ValidationError":
        first = result.first_error
        message = first.message if first else f"Invalid {result.subject}"
        return cls(message, issues=result.issues)

    def issues_as_dicts(self) -> list[dict]:
        return [
            {"field": i.field, "type": i.issue_type, "message": i.message}
            for i in self.issues
        ]


class InsufficientFundsError(LedgerError):
    """
    An allocation asked for more than the ledger holds.

    available is what could have been allocated instead.
    """

    def __init__(self, available: int, requested: int, currency: str = "RWF"):
        self.available = available
        self.requested = requested
        self.currency = currency
        super().__init__(f"Insufficient funds. Available: {available:,} {currency}")


class PaymentDeclinedError(LedgerError):
    """
    The payment collaborator reported failure.

    The donation has already been recorded with status failed.
    """

    def __init__(self, donation: Donation, payment: PaymentResult):
        self.donation = donation
        self.payment = payment
        super().__init__(payment.message)


class AuthenticationError(LedgerError):
    """Unknown identity or wrong credentials."""
    pass


class PermissionDeniedError(LedgerError):
    """Identity is known but not allowed to perform the operation."""
    pass
