"""Payment services package."""

from aidledger.services.payment.processors import (
    BankTransferProcessor,
    PaymentGateway,
    PaymentProcessor,
    PaymentProcessorError,
    SimulatedCardProcessor,
    SimulatedMobileMoneyProcessor,
    generate_transaction_id,
)

__all__ = [
    "BankTransferProcessor",
    "PaymentGateway",
    "PaymentProcessor",
    "PaymentProcessorError",
    "SimulatedCardProcessor",
    "SimulatedMobileMoneyProcessor",
    "generate_transaction_id",
]
