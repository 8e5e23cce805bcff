"""
Payment Processors

Every processor honours the same contract:

    process(amount, details, description) -> PaymentResult

where PaymentResult.status is completed, failed or pending. The donation
recorder stores whatever status comes back.

The simulated processors stand in for the mobile money and card gateways.
Their outcome is drawn from a seedable random.Random, so a seeded gateway is
reproducible. Bank transfers are never verified here: they are accepted
immediately as pending.
"""

import asyncio
import random
import string
import time
from abc import ABC, abstractmethod
from typing import Optional

import structlog

from aidledger.config import PaymentSettings, get_settings
from aidledger.models.ledger import (
    DonationStatus,
    PaymentDetails,
    PaymentMethod,
    PaymentResult,
)

logger = structlog.get_logger(__name__)

_TXN_ALPHABET = string.ascii_lowercase + string.digits


class PaymentProcessorError(Exception):
    """The processor could not reach or talk to its gateway."""
    pass


def generate_transaction_id(rng: Optional[random.Random] = None) -> str:
    """TXN + epoch milliseconds + 9 random base-36 characters."""
    rng = rng or random
    suffix = "".join(rng.choice(_TXN_ALPHABET) for _ in range(9))
    return f"TXN{int(time.time() * 1000)}{suffix}"


class PaymentProcessor(ABC):
    """Settles a payment through one payment method."""

    method: PaymentMethod

    @abstractmethod
    async def process(
        self,
        amount: int,
        details: PaymentDetails,
        description: str,
    ) -> PaymentResult:
        """
        Attempt to settle a payment.

        Args:
            amount: Amount in the smallest currency unit
            details: Method-specific details (already validated)
            description: Text shown to the payer

        Raises:
            PaymentProcessorError: If the gateway could not be reached
        """


class SimulatedMobileMoneyProcessor(PaymentProcessor):
    """Mobile money request-to-pay, simulated."""

    method = PaymentMethod.MOBILE_MONEY

    def __init__(
        self,
        success_rate: float = 0.9,
        delay_seconds: float = 0.0,
        currency: str = "RWF",
        rng: Optional[random.Random] = None,
    ):
        self._success_rate = success_rate
        self._delay = delay_seconds
        self._currency = currency
        self._rng = rng or random.Random()

    @staticmethod
    def _party_id(phone_number: str) -> str:
        """MSISDN without the leading plus."""
        return phone_number.replace(" ", "").replace("+250", "250")

    async def process(
        self,
        amount: int,
        details: PaymentDetails,
        description: str,
    ) -> PaymentResult:
        external_id = generate_transaction_id(self._rng)
        logger.info(
            "mobile_money_request",
            amount=amount,
            currency=self._currency,
            external_id=external_id,
            party_id=self._party_id(details.phone_number or ""),
            payer_message=description,
        )

        if self._delay:
            await asyncio.sleep(self._delay)

        if self._rng.random() < self._success_rate:
            return PaymentResult(
                success=True,
                transaction_id=external_id,
                status=DonationStatus.COMPLETED,
                message="Payment processed successfully",
            )
        return PaymentResult(
            success=False,
            transaction_id=external_id,
            status=DonationStatus.FAILED,
            message="Payment failed. Please try again.",
        )


class SimulatedCardProcessor(PaymentProcessor):
    """Card charge, simulated. Only the last four digits are ever logged."""

    method = PaymentMethod.CREDIT_CARD

    def __init__(
        self,
        success_rate: float = 0.95,
        delay_seconds: float = 0.0,
        currency: str = "RWF",
        rng: Optional[random.Random] = None,
    ):
        self._success_rate = success_rate
        self._delay = delay_seconds
        self._currency = currency
        self._rng = rng or random.Random()

    async def process(
        self,
        amount: int,
        details: PaymentDetails,
        description: str,
    ) -> PaymentResult:
        reference = generate_transaction_id(self._rng)
        logger.info(
            "card_charge_request",
            amount=amount,
            currency=self._currency,
            reference=reference,
            card_last4=details.card_last4,
        )

        if self._delay:
            await asyncio.sleep(self._delay)

        if self._rng.random() < self._success_rate:
            return PaymentResult(
                success=True,
                transaction_id=reference,
                status=DonationStatus.COMPLETED,
                message="Card payment processed successfully",
            )
        return PaymentResult(
            success=False,
            transaction_id=reference,
            status=DonationStatus.FAILED,
            message="Card payment failed. Please check your details.",
        )


class BankTransferProcessor(PaymentProcessor):
    """Accepts immediately as pending; an administrator confirms later."""

    method = PaymentMethod.BANK_TRANSFER

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng

    async def process(
        self,
        amount: int,
        details: PaymentDetails,
        description: str,
    ) -> PaymentResult:
        return PaymentResult(
            success=True,
            transaction_id=generate_transaction_id(self._rng),
            status=DonationStatus.PENDING,
            message="Bank transfer initiated - pending confirmation",
        )


class PaymentGateway:
    """
    Routes a payment to the processor registered for its method.

    Usage:
        gateway = PaymentGateway.simulated(seed=42)
        result = await gateway.processor_for(PaymentMethod.CREDIT_CARD).process(...)
    """

    def __init__(self, processors: list[PaymentProcessor]):
        self._processors = {p.method: p for p in processors}

    def processor_for(self, method: PaymentMethod) -> PaymentProcessor:
        try:
            return self._processors[method]
        except KeyError:
            raise PaymentProcessorError(
                f"No payment processor configured for {method.value}"
            ) from None

    @property
    def methods(self) -> list[PaymentMethod]:
        return list(self._processors)

    @classmethod
    def simulated(
        cls,
        settings: Optional[PaymentSettings] = None,
        currency: str = "RWF",
        seed: Optional[int] = None,
    ) -> "PaymentGateway":
        """Gateway made of the simulated processors, configured from settings."""
        settings = settings or get_settings().payments
        rng = random.Random(seed)
        return cls([
            SimulatedMobileMoneyProcessor(
                success_rate=settings.mobile_money_success_rate,
                delay_seconds=settings.mobile_money_delay_seconds,
                currency=currency,
                rng=rng,
            ),
            SimulatedCardProcessor(
                success_rate=settings.card_success_rate,
                delay_seconds=settings.card_delay_seconds,
                currency=currency,
                rng=rng,
            ),
            BankTransferProcessor(rng=rng),
        ])
