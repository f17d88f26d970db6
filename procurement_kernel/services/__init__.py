"""Services for the procurement kernel (write side)."""

from procurement_kernel.services.audit_trail import AuditRecord, AuditTrail
from procurement_kernel.services.counter_ledger import CounterLedger

__all__ = [
    "AuditRecord",
    "AuditTrail",
    "CounterLedger",
]
