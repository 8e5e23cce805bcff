"""
Aid Ledger - Source Package

Fund accounting for an aid organisation: donations come in, allocations go
out to beneficiaries, and the ledger never commits more than it holds.

DESIGN PRINCIPLES:
1. Money is an integer in the smallest currency unit
2. Allocated funds never exceed completed donations
3. Check-then-write happens inside one unit of work
4. Failed payments are recorded, not discarded
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Aid Ledger Team"
