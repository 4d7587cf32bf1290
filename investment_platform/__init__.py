"""
Investment Platform Backend

REST backend for user accounts, tradable assets, loans, deposits, withdrawals,
bonuses and transactions. Every balance change is recorded as an append-only
ledger entry keyed by the status transition that caused it.
"""

__version__ = "1.0.0"
