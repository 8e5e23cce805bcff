"""
Shared fixtures.

Payments are scripted, never random: every processor returns the outcome it
was told to return, so every scenario is reproducible.
"""

from typing import Optional, Union

import pytest
import pytest_asyncio

from aidledger.models import (
    BeneficiaryRequest,
    DonationStatus,
    PaymentDetails,
    PaymentMethod,
    PaymentResult,
    SignupRequest,
)
from aidledger.orchestrator import create_app_components
from aidledger.services.payment import (
    BankTransferProcessor,
    PaymentGateway,
    PaymentProcessor,
)
from aidledger.services.storage import MemoryAuditStorage, MemoryLedgerStorage

MOMO_DETAILS = {"phoneNumber": "0781234567"}
CARD_DETAILS = {
    "cardNumber": "4242 4242 4242 4242",
    "expMonth": "12",
    "expYear": "2030",
    "cvc": "123",
}


class ScriptedPaymentProcessor(PaymentProcessor):
    """Returns queued outcomes in order, then the default."""

    def __init__(
        self,
        method: PaymentMethod,
        default: DonationStatus = DonationStatus.COMPLETED,
    ):
        self.method = method
        self._default = default
        self._queue: list[Union[DonationStatus, Exception]] = []
        self.calls: list[tuple[int, PaymentDetails, str]] = []

    def script(self, *outcomes: Union[DonationStatus, Exception]) -> None:
        self._queue.extend(outcomes)

    async def process(self, amount, details, description) -> PaymentResult:
        self.calls.append((amount, details, description))
        outcome = self._queue.pop(0) if self._queue else self._default
        if isinstance(outcome, Exception):
            raise outcome
        succeeded = outcome != DonationStatus.FAILED
        return PaymentResult(
            success=succeeded,
            transaction_id=f"TXN-TEST-{len(self.calls)}",
            status=outcome,
            message="Payment processed successfully" if succeeded else "Payment failed. Please try again.",
        )


@pytest.fixture
def momo() -> ScriptedPaymentProcessor:
    return ScriptedPaymentProcessor(PaymentMethod.MOBILE_MONEY)


@pytest.fixture
def card() -> ScriptedPaymentProcessor:
    return ScriptedPaymentProcessor(PaymentMethod.CREDIT_CARD)


@pytest.fixture
def gateway(momo, card) -> PaymentGateway:
    return PaymentGateway([momo, card, BankTransferProcessor()])


@pytest.fixture
def storage() -> MemoryLedgerStorage:
    return MemoryLedgerStorage()


@pytest.fixture
def audit_storage() -> MemoryAuditStorage:
    return MemoryAuditStorage()


@pytest_asyncio.fixture
async def components(storage, gateway, audit_storage):
    components = create_app_components(
        storage=storage,
        gateway=gateway,
        audit_storage=audit_storage,
        hash_iterations=1_000,
    )
    await components.startup()
    yield components
    await components.shutdown()


@pytest_asyncio.fixture
async def admin(components):
    return await components.accounts.ensure_default_admin()


@pytest_asyncio.fixture
async def donor(components):
    return await components.accounts.signup(SignupRequest(
        name="Alice Uwase",
        email="alice@example.org",
        phone="0781234567",
        password="secret1",
    ))


@pytest_asyncio.fixture
async def beneficiary(components, admin):
    return await components.beneficiaries.register(
        BeneficiaryRequest(
            name="Jean Habimana",
            age=14,
            gender="male",
            location="Kibuye",
            support_type="education",
        ),
        actor_id=admin.id,
    )


async def give(
    components,
    account_id: int,
    amount: int,
    purpose: str = "health",
    method: str = "mobile_money",
    details: Optional[dict] = None,
):
    """Record a donation; mobile money completes unless scripted otherwise."""
    if details is None:
        details = MOMO_DETAILS if method == "mobile_money" else CARD_DETAILS if method == "credit_card" else {}
    return await components.donations.record_donation(
        account_id=account_id,
        amount=amount,
        purpose=purpose,
        payment_method=method,
        payment_details=details,
    )
