"""
Procurement Kernel

The ledger underneath the purchasing workflow:
- Monotonic, lock-guarded serial allocation per scope key
- Append-only audit trail of every state change
- Row-oriented table stores (in-memory, xlsx workbook, SQL)
- Read-only dashboard rollups
"""

__version__ = "0.1.0"
