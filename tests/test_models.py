"""
Tests for Aid Ledger models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Component tests over the in-memory ledger store
3. No real payment calls in tests (scripted processors)
"""

import pytest
from uuid import uuid4

from aidledger.models.ledger import (
    Account,
    Allocation,
    Beneficiary,
    DonationPurpose,
    DonationReceipt,
    DonationRequest,
    DonationStatus,
    Donation,
    FundSummary,
    PaymentDetails,
    PaymentMethod,
    PaymentResult,
    SupportType,
    ValidationIssue,
    ValidationResult,
)
from aidledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestLedgerModels:
    """Tests for ledger record models."""

    def test_account_strips_whitespace(self):
        """Test that whitespace is stripped from names."""
        account = Account(name="  Alice  ", email="alice@example.org", password_hash="x")
        assert account.name == "Alice"
        assert account.is_admin is False

    def test_account_public_dict_hides_credentials(self):
        """Test that the credential hash never leaves the model."""
        account = Account(id=3, name="Alice", email="alice@example.org", password_hash="secret")
        public = account.to_public_dict()
        assert public == {
            "id": 3,
            "name": "Alice",
            "email": "alice@example.org",
            "phone": None,
            "isAdmin": False,
        }
        assert "secret" not in repr(account)

    def test_donation_rejects_non_positive_amount(self):
        """Test that donations must carry money."""
        with pytest.raises(ValueError):
            Donation(
                account_id=1,
                amount=0,
                purpose=DonationPurpose.HEALTH,
                payment_method=PaymentMethod.BANK_TRANSFER,
            )

    def test_donation_defaults_to_pending(self):
        donation = Donation(
            account_id=1,
            amount=1000,
            purpose=DonationPurpose.GENERAL,
            payment_method=PaymentMethod.BANK_TRANSFER,
        )
        assert donation.status == DonationStatus.PENDING
        assert donation.is_completed is False

    def test_beneficiary_starts_with_no_support(self):
        beneficiary = Beneficiary(name="Jean", support_type=SupportType.SKILLS)
        assert beneficiary.support_received == 0

    def test_beneficiary_rejects_negative_support(self):
        with pytest.raises(ValueError):
            Beneficiary(name="Jean", support_type=SupportType.SKILLS, support_received=-1)

    def test_allocation_may_be_unlinked(self):
        """Test that general-pool allocations carry no donation."""
        allocation = Allocation(
            beneficiary_id=1,
            amount=500,
            support_type=SupportType.HEALTH,
            allocated_by=1,
        )
        assert allocation.donation_id is None


class TestPaymentModels:
    """Tests for payment request and result models."""

    def test_payment_details_accept_client_field_names(self):
        details = PaymentDetails.model_validate({
            "cardNumber": "4242 4242 4242 1234",
            "expMonth": "01",
            "expYear": "29",
            "cvc": "999",
        })
        assert details.exp_month == "01"
        assert details.card_last4 == "1234"
        assert "4242" not in repr(details)

    def test_donation_request_accepts_user_id(self):
        """Test that the original client field names are understood."""
        request = DonationRequest.model_validate({
            "userId": 7,
            "amount": 2500,
            "purpose": "skills",
            "paymentMethod": "mobile_money",
            "paymentDetails": {"phoneNumber": "0781234567"},
        })
        assert request.account_id == 7
        assert request.payment_method == "mobile_money"
        assert request.payment_details.phone_number == "0781234567"

    def test_donation_request_fields_are_optional(self):
        request = DonationRequest.model_validate({})
        assert request.amount is None
        assert request.payment_details.phone_number is None

    def test_receipt_mirrors_payment(self):
        donation = Donation(
            id=1,
            account_id=1,
            amount=1000,
            purpose=DonationPurpose.HEALTH,
            payment_method=PaymentMethod.MOBILE_MONEY,
            status=DonationStatus.FAILED,
        )
        receipt = DonationReceipt(
            donation=donation,
            payment=PaymentResult(
                success=False,
                status=DonationStatus.FAILED,
                message="Payment failed. Please try again.",
            ),
        )
        assert receipt.success is False
        assert receipt.message == "Payment failed. Please try again."


class TestFundSummary:
    """Tests for the derived balance."""

    def test_available_is_difference(self):
        summary = FundSummary.from_totals(5000, 3000)
        assert summary.available == 2000

    def test_available_is_never_negative(self):
        summary = FundSummary.from_totals(1000, 4000)
        assert summary.available == 0

    def test_from_totals_treats_none_as_zero(self):
        summary = FundSummary.from_totals(None, None)
        assert summary.total_donated == 0
        assert summary.available == 0

    def test_available_is_serialized(self):
        assert FundSummary.from_totals(10, 4).model_dump()["available"] == 6


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.DONATION_RECORDED,
            description="Donation recorded",
        )
        assert event.event_type == AuditEventType.DONATION_RECORDED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.FUNDS_ALLOCATED,
            description="Allocated",
            details={"amount": 2000, "beneficiary_id": 4},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "funds_allocated"
        assert log_dict["details"]["amount"] == 2000

    def test_audit_event_row_round_trip(self):
        """Test conversion to and from an audit_log row."""
        correlation_id = uuid4()
        event = AuditEventBuilder.donation_status_changed(
            donation_id=12,
            old_status="pending",
            new_status="completed",
            actor_id=1,
            correlation_id=correlation_id,
        )
        row = event.to_row()
        assert row["entity_id"] == "12"
        assert isinstance(row["details_json"], str)

        restored = AuditEvent.from_row(row)
        assert restored.event_id == event.event_id
        assert restored.details == {"old_status": "pending", "new_status": "completed"}
        assert restored.correlation_id == correlation_id

    def test_audit_event_builder_login_failed(self):
        """Test AuditEventBuilder.login for a failed attempt."""
        event = AuditEventBuilder.login(email="x@example.org", succeeded=False)
        assert event.event_type == AuditEventType.LOGIN_FAILED
        assert event.severity == AuditSeverity.WARNING
        assert event.entity_id is None

    def test_audit_event_builder_allocation_rejected(self):
        event = AuditEventBuilder.allocation_rejected(
            beneficiary_id=3,
            amount=3000,
            reason="Insufficient funds. Available: 2,000 RWF",
            allocated_by=1,
        )
        assert event.event_type == AuditEventType.ALLOCATION_REJECTED
        assert event.entity_id == "3"
        assert "2,000" in event.error_message


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            subject="donation",
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="below_minimum",
                    message="Minimum donation amount is 1,000 RWF",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1
        assert result.first_error.field == "amount"

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            subject="beneficiary",
            issues=[
                ValidationIssue(
                    field="phone",
                    issue_type="unusual",
                    message="Unusual phone number",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.is_valid is True
        assert result.first_error is None


class TestEnums:
    """Tests for the fixed enumerations."""

    def test_purposes(self):
        assert [p.value for p in DonationPurpose] == ["health", "education", "skills", "general"]

    def test_support_types_exclude_general(self):
        assert "general" not in {s.value for s in SupportType}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
