"""Donor and administrator accounts."""

from aidledger.accounts.service import AccountService, hash_password, verify_password

__all__ = ["AccountService", "hash_password", "verify_password"]
