"""
Together Budget - Source Package

A shared household expense ledger for two people, with every amount
recorded in two currencies and a read-only view of the partner's ledger.

DESIGN PRINCIPLES:
1. Each person owns and edits only their own ledger
2. Fail early, fail visibly
3. No silent corrections
4. Every change must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Together Budget Team"
