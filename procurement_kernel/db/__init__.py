"""Storage layer - table-store contract, backends, and canonical schema."""

from procurement_kernel.db.schema import TABLE_HEADERS, ensure_tables
from procurement_kernel.db.store import InMemoryTableStore, Row, TableStore

__all__ = [
    "InMemoryTableStore",
    "Row",
    "TABLE_HEADERS",
    "TableStore",
    "ensure_tables",
]
