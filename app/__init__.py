"""HTTP entry point for Aid Ledger."""
