"""Read-only queries over the ledger."""

from aidledger.queries.history import DonationHistory, donation_to_dict
from aidledger.queries.impact import ImpactAggregator

__all__ = ["DonationHistory", "ImpactAggregator", "donation_to_dict"]
