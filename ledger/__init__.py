"""
Ledger Bank - Source Package

A small consumer bank kept in flat JSON files: users, their checking
and savings accounts, and the deposits and withdrawals that move money.

DESIGN PRINCIPLES:
1. A balance only changes together with its transaction record
2. Fail early, fail visibly
3. No silent corrections
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Ledger Bank Team"
