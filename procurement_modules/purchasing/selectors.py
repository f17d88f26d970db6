"""
Module: procurement_modules.purchasing.selectors
Responsibility: Read-only lookups behind the purchasing forms and approval
    queues: approved requisitions for the PO form, pending requisition and
    PO queues, entity details with their lines, active vendors, payments.
Architecture position: Modules > Purchasing.  Reads the ``TableStore``
    directly; never writes.

Invariants enforced:
    - Read-only: no mutation of any table.
    - DTO convention: public methods return the frozen row views from
      ``models``, never raw rows.
    - Results follow insertion order.  Id lookups take the first match.

Failure modes:
    - Queue and list queries return ``[]`` when their table is absent.
    - ``requisition`` raises EntityNotFoundError for an unknown id and
      MissingTableError when ``PR_Master`` is absent.
    - Other single-entity lookups return None on absence.
"""

from __future__ import annotations

from dataclasses import dataclass

from procurement_kernel.db.schema import (
    PAYMENTS,
    PO_ITEMS,
    PO_MASTER,
    PR_ITEMS,
    PR_MASTER,
    VENDOR_MASTER,
)
from procurement_kernel.db.store import Row, TableStore
from procurement_kernel.exceptions import EntityNotFoundError
from procurement_kernel.logging_config import get_logger
from procurement_modules.purchasing.models import (
    ENTITY_REQUISITION,
    Payment,
    PaymentStatus,
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseOrderStatus,
    Requisition,
    RequisitionLine,
    RequisitionStatus,
    Vendor,
)

logger = get_logger("modules.purchasing.selectors")


@dataclass(frozen=True)
class RequisitionForPurchaseOrder:
    """What the PO form needs about a requisition: header, lines, vendor."""

    requisition: Requisition
    vendor: Vendor | None


class PurchasingSelector:
    """
    Selector for purchasing queries.

    Contract:
        Every method reads the current store contents at call time; there is
        no caching between calls.

    Non-goals:
        - No aggregation; see ``DashboardSelector``.
    """

    def __init__(self, store: TableStore):
        self._store = store

    def _rows(self, table: str) -> list[Row]:
        if not self._store.has_table(table):
            return []
        return self._store.get_rows(table)

    # -- requisitions -------------------------------------------------------

    def _requisition_lines(self, pr_id: str) -> tuple[RequisitionLine, ...]:
        return tuple(
            RequisitionLine.from_row(row)
            for row in self._rows(PR_ITEMS)
            if row.get("PR_ID") == pr_id
        )

    def requisitions(self) -> list[Requisition]:
        """All requisition headers (without lines)."""
        return [Requisition.from_row(row) for row in self._rows(PR_MASTER)]

    def approved_requisition_ids(self) -> list[str]:
        """Ids of requisitions a PO can be raised against."""
        return [
            str(row.get("PR_ID"))
            for row in self._rows(PR_MASTER)
            if row.get("Status_Code") == RequisitionStatus.APPROVED.value
        ]

    def pending_requisitions(self) -> list[Requisition]:
        """The requisition approval queue (``PR_SUBMITTED``)."""
        return [
            Requisition.from_row(row)
            for row in self._rows(PR_MASTER)
            if row.get("Status_Code") == RequisitionStatus.SUBMITTED.value
        ]

    def requisition(self, pr_id: str) -> Requisition:
        """Requisition header with its lines; raises if unknown."""
        self._store.require_tables(PR_MASTER)
        found = self._store.find_first(PR_MASTER, "PR_ID", pr_id) if pr_id else None
        if found is None:
            logger.warning(
                "entity_not_found",
                extra={"entity": ENTITY_REQUISITION, "entity_id": pr_id},
            )
            raise EntityNotFoundError(ENTITY_REQUISITION, pr_id)
        return Requisition.from_row(found[1], self._requisition_lines(pr_id))

    def requisition_for_purchase_order(self, pr_id: str) -> RequisitionForPurchaseOrder | None:
        """Requisition plus its vendor record, or None when unavailable."""
        if not pr_id:
            return None
        if not (self._store.has_table(PR_MASTER) and self._store.has_table(PR_ITEMS)):
            return None
        found = self._store.find_first(PR_MASTER, "PR_ID", pr_id)
        if found is None:
            return None
        requisition = Requisition.from_row(found[1], self._requisition_lines(pr_id))
        return RequisitionForPurchaseOrder(
            requisition=requisition,
            vendor=self.vendor(requisition.vendor_id),
        )

    # -- purchase orders ----------------------------------------------------

    def pending_purchase_orders(self) -> list[PurchaseOrder]:
        """The PO approval queue (``PO_POSTED``)."""
        return [
            PurchaseOrder.from_row(row)
            for row in self._rows(PO_MASTER)
            if row.get("Status_Code") == PurchaseOrderStatus.POSTED.value
        ]

    def purchase_order(self, po_id: str) -> PurchaseOrder | None:
        for row in self._rows(PO_MASTER):
            if row.get("PO_ID") == po_id:
                lines = tuple(
                    PurchaseOrderLine.from_row(item)
                    for item in self._rows(PO_ITEMS)
                    if item.get("PO_ID") == po_id
                )
                return PurchaseOrder.from_row(row, lines)
        return None

    # -- payments -----------------------------------------------------------

    def payment(self, pay_id: str) -> Payment | None:
        for row in self._rows(PAYMENTS):
            if row.get("PAY_ID") == pay_id:
                return Payment.from_row(row)
        return None

    def payments_for_purchase_order(self, po_id: str) -> list[Payment]:
        return [
            Payment.from_row(row)
            for row in self._rows(PAYMENTS)
            if row.get("PO_ID") == po_id
        ]

    def payments_awaiting_director(self) -> list[Payment]:
        return [
            Payment.from_row(row)
            for row in self._rows(PAYMENTS)
            if row.get("Status_Code") == PaymentStatus.VOUCHER_UPLOADED.value
        ]

    # -- vendors ------------------------------------------------------------

    def vendor(self, vendor_id: str) -> Vendor | None:
        if not vendor_id:
            return None
        for row in self._rows(VENDOR_MASTER):
            if row.get("Vendor_ID") == vendor_id:
                return Vendor.from_row(row)
        return None

    def active_vendors(self) -> list[Vendor]:
        vendors = (Vendor.from_row(row) for row in self._rows(VENDOR_MASTER))
        return [vendor for vendor in vendors if vendor.active]
