"""
Request Validation

Every request that could create a ledger record is validated before any
side effect: no payment call, no write. Validators collect issues into a
ValidationResult; callers raise ValidationError from the first error.

Checks run in a fixed order and the first error decides the message shown to
the user, so order matters:
1. Required fields
2. Ranges and enumerations
3. Method-specific details
"""

import re
from typing import Optional

from aidledger.config import AppSettings, DonationSettings, get_settings
from aidledger.models.ledger import (
    BeneficiaryRequest,
    DonationPurpose,
    DonationRequest,
    PaymentMethod,
    SignupRequest,
    SupportType,
    ValidationIssue,
    ValidationResult,
)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# Rwandan mobile numbers: optional +250 or 0 prefix, then 7 and eight digits
PHONE_PATTERN = re.compile(r"^(\+250|0)?7[0-9]{8}$")
CARD_NUMBER_PATTERN = re.compile(r"^[0-9]{12,19}$")
CVC_PATTERN = re.compile(r"^[0-9]{3,4}$")
EXP_MONTH_PATTERN = re.compile(r"^(0?[1-9]|1[0-2])$")
EXP_YEAR_PATTERN = re.compile(r"^([0-9]{2}|[0-9]{4})$")


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_PATTERN.match(re.sub(r"\s", "", phone)))


def _error(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="error",
    )


class DonationValidator:
    """Validates donation requests against the configured limits."""

    def __init__(self, settings: Optional[DonationSettings] = None):
        self._settings = settings or get_settings().donations

    def _validate_required(self, request: DonationRequest) -> list[ValidationIssue]:
        missing = [
            name for name, value in (
                ("account_id", request.account_id),
                ("amount", request.amount),
                ("purpose", request.purpose),
                ("payment_method", request.payment_method),
            )
            if value is None or value == ""
        ]
        return [_error(name, "missing", "All fields are required") for name in missing]

    def _validate_amount(self, amount: int) -> list[ValidationIssue]:
        currency = self._settings.currency
        if amount < self._settings.min_amount:
            return [_error(
                "amount",
                "below_minimum",
                f"Minimum donation amount is {self._settings.min_amount:,} {currency}",
            )]
        if amount > self._settings.max_amount:
            return [_error(
                "amount",
                "above_maximum",
                f"Maximum donation amount is {self._settings.max_amount:,} {currency}",
            )]
        return []

    def _validate_payment_details(self, request: DonationRequest) -> list[ValidationIssue]:
        method = PaymentMethod(request.payment_method)
        details = request.payment_details

        if method == PaymentMethod.MOBILE_MONEY:
            if not details.phone_number:
                return [_error(
                    "payment_details.phone_number",
                    "missing",
                    "Phone number is required for mobile money",
                )]
            if not is_valid_phone(details.phone_number):
                return [_error(
                    "payment_details.phone_number",
                    "invalid_format",
                    "Please provide a valid mobile money phone number",
                )]

        elif method == PaymentMethod.CREDIT_CARD:
            if not all([details.card_number, details.exp_month, details.exp_year, details.cvc]):
                return [_error(
                    "payment_details",
                    "missing",
                    "Complete card details are required",
                )]
            issues = []
            if not CARD_NUMBER_PATTERN.match(details.card_number.replace(" ", "")):
                issues.append(_error("payment_details.card_number", "invalid_format", "Invalid card number"))
            if not EXP_MONTH_PATTERN.match(details.exp_month):
                issues.append(_error("payment_details.exp_month", "invalid_value", "Invalid card expiry month"))
            if not EXP_YEAR_PATTERN.match(details.exp_year):
                issues.append(_error("payment_details.exp_year", "invalid_value", "Invalid card expiry year"))
            if not CVC_PATTERN.match(details.cvc):
                issues.append(_error("payment_details.cvc", "invalid_format", "Invalid card security code"))
            return issues

        # Bank transfers need no details
        return []

    def validate(self, request: DonationRequest) -> ValidationResult:
        """
        Validate a donation request.

        Later stages only run when earlier ones pass, so the first error is
        always the most basic thing wrong with the request.
        """
        issues = self._validate_required(request)

        if not issues:
            issues = self._validate_amount(request.amount)

        if not issues and request.purpose not in {p.value for p in DonationPurpose}:
            issues = [_error("purpose", "invalid_value", "Invalid donation purpose")]

        if not issues and request.payment_method not in {m.value for m in PaymentMethod}:
            issues = [_error("payment_method", "invalid_value", "Invalid payment method")]

        if not issues:
            issues = self._validate_payment_details(request)

        return ValidationResult(subject="donation", issues=issues)


class BeneficiaryValidator:
    """Validates beneficiary registrations."""

    def validate(self, request: BeneficiaryRequest) -> ValidationResult:
        issues = []

        if not request.name or request.age is None or not request.gender or not request.support_type:
            issues.append(_error(
                "beneficiary",
                "missing",
                "Name, age, gender, and support type are required",
            ))
            return ValidationResult(subject="beneficiary", issues=issues)

        if request.phone and not is_valid_phone(request.phone):
            issues.append(_error("phone", "invalid_format", "Please provide a valid phone number"))

        if request.support_type not in {s.value for s in SupportType}:
            issues.append(_error("support_type", "invalid_value", "Invalid support type"))

        if not 0 <= request.age <= 150:
            issues.append(_error("age", "invalid_value", "Age must be between 0 and 150"))

        return ValidationResult(subject="beneficiary", issues=issues)


class AccountValidator:
    """Validates signup requests."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def validate_signup(self, request: SignupRequest) -> ValidationResult:
        issues = []

        if not request.name or not request.email or not request.password:
            issues.append(_error(
                "account",
                "missing",
                "Name, email, and password are required",
            ))
            return ValidationResult(subject="account", issues=issues)

        if not is_valid_email(request.email):
            issues.append(_error("email", "invalid_format", "Please provide a valid email address"))

        if request.phone and not is_valid_phone(request.phone):
            issues.append(_error("phone", "invalid_format", "Please provide a valid Rwandan phone number"))

        min_length = self._settings.min_password_length
        if len(request.password) < min_length:
            issues.append(_error(
                "password",
                "too_short",
                f"Password must be at least {min_length} characters long",
            ))

        return ValidationResult(subject="account", issues=issues)
