"""
Stock Kernel

A multi-tenant store stock ledger with:
- Per-batch store allocation ledgers kept consistent with batch totals
- Hierarchy-constrained transfers between MAIN, REGIONAL and SUB_REGIONAL stores
- A transfer request workflow safe under concurrent use
- Mandatory tenant scoping of every ORM read and write
"""

__version__ = "0.1.0"
