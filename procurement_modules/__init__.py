"""
Procurement Modules.

Thin orchestration layers over the Procurement Kernel.  Each module contains:
- Domain models (the nouns)
- Workflows (state machines)
- A service (the writes)
- Selectors (the reads)

Modules:
- Purchasing: Requisitions, purchase orders, payment tranches, vendors
"""
