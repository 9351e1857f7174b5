"""
Split Ledger - Source Package

Group expense ledger and debt-settlement engine: records shared expenses,
computes who owes what, and proposes the fewest payments that settle
the group.

DESIGN PRINCIPLES:
1. Money is integer minor units, never floats
2. Balances are recomputed from history, never stored
3. Fail early, fail visibly: typed errors, no silent corrections
4. Every write is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Split Ledger Team"
