"""
Module: procurement_modules.purchasing.dashboard
Responsibility: Read-side rollups for the home dashboard -- entity counts by
    status, value totals, and the most recent requisitions.
Architecture position: Modules > Purchasing.  Pure reads over the
    ``TableStore``; takes no locks.

Two variants are offered:

``summary()``
    Keyed on status *codes* across requisitions, purchase orders and
    payments.
``requisition_kpis()``
    Requisitions only, keyed on status *labels* configured in settings
    (the labels the home page was built around).  Totals that are not
    numeric are skipped.

Invariants enforced:
    - Idempotent: two calls with no intervening writes return equal results.
    - Missing tables contribute zeroed counts and empty slices.
    - Recent slices are the last ``recent_limit`` rows, newest first.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from procurement_kernel.db.schema import PAYMENTS, PO_MASTER, PR_MASTER
from procurement_kernel.db.store import Row, TableStore
from procurement_kernel.exceptions import InvalidPayloadError
from procurement_kernel.logging_config import get_logger
from procurement_modules.purchasing.models import (
    PaymentStatus,
    PurchaseOrderStatus,
    RequisitionStatus,
    to_decimal,
)

if TYPE_CHECKING:
    from procurement_config.schema import ProcurementSettings

logger = get_logger("modules.purchasing.dashboard")

DEFAULT_RECENT_LIMIT = 5

# Labels this ledger writes, plus the older "Pending Approval" and "PO Created"
# wording still found in imported sheets.
DEFAULT_PENDING_LABELS = (RequisitionStatus.SUBMITTED.label, "Pending Approval")
DEFAULT_APPROVED_LABELS = (RequisitionStatus.APPROVED.label,)
DEFAULT_PENDING_GRN_LABELS = (
    RequisitionStatus.PO_POSTED.label,
    RequisitionStatus.PO_APPROVED.label,
    "PO Created",
)


def _numeric(value: Any) -> Decimal | None:
    try:
        return to_decimal(value, "Total_Incl_GST")
    except InvalidPayloadError:
        return None


def _sum(rows: Sequence[Row], column: str) -> Decimal:
    total = Decimal("0")
    for row in rows:
        value = _numeric(row.get(column))
        if value is not None:
            total += value
    return total


@dataclass(frozen=True)
class RecentRequisition:
    pr_id: str
    site: str
    total: Decimal | None
    status_label: str
    date: Any


@dataclass(frozen=True)
class DashboardSummary:
    """Status-code counts and totals across all three entities."""

    total_pr: int = 0
    pending_pr: int = 0
    approved_pr: int = 0
    total_po: int = 0
    posted_po: int = 0
    approved_po: int = 0
    total_payments: int = 0
    payments_pending_director: int = 0
    payments_paid: int = 0
    pr_value: Decimal = Decimal("0")
    po_value: Decimal = Decimal("0")
    paid_value: Decimal = Decimal("0")
    recent_requisitions: tuple[RecentRequisition, ...] = ()


@dataclass(frozen=True)
class RequisitionKpis:
    """Label-keyed requisition KPIs."""

    total_requisitions: int = 0
    pending_approval: int = 0
    approved: int = 0
    pending_grn: int = 0
    total_value: Decimal = Decimal("0")
    recent_requisitions: tuple[RecentRequisition, ...] = ()


class DashboardSelector:
    """
    Dashboard aggregator.

    Contract:
        Every call re-reads the store.  Nothing is cached and nothing is
        written.
    """

    def __init__(
        self,
        store: TableStore,
        recent_limit: int = DEFAULT_RECENT_LIMIT,
        pending_labels: Sequence[str] = DEFAULT_PENDING_LABELS,
        approved_labels: Sequence[str] = DEFAULT_APPROVED_LABELS,
        pending_grn_labels: Sequence[str] = DEFAULT_PENDING_GRN_LABELS,
    ):
        self._store = store
        self._recent_limit = recent_limit
        self._pending_labels = frozenset(pending_labels)
        self._approved_labels = frozenset(approved_labels)
        self._pending_grn_labels = frozenset(pending_grn_labels)

    @classmethod
    def from_settings(cls, store: TableStore, settings: ProcurementSettings) -> DashboardSelector:
        return cls(
            store,
            recent_limit=settings.recent_limit,
            pending_labels=settings.kpi_pending_labels,
            approved_labels=settings.kpi_approved_labels,
            pending_grn_labels=settings.kpi_pending_grn_labels,
        )

    def _rows(self, table: str) -> list[Row]:
        if not self._store.has_table(table):
            logger.debug("dashboard_table_missing", extra={"table": table})
            return []
        return self._store.get_rows(table)

    def _recent(self, pr_rows: list[Row]) -> tuple[RecentRequisition, ...]:
        if self._recent_limit <= 0:
            return ()
        return tuple(
            RecentRequisition(
                pr_id=str(row.get("PR_ID", "")),
                site=str(row.get("Site", "")),
                total=_numeric(row.get("Total_Incl_GST")),
                status_label=str(row.get("Status_Label", "")),
                date=row.get("Date_of_Requisition", ""),
            )
            for row in reversed(pr_rows[-self._recent_limit:])
        )

    def counts_by_status(self, table: str) -> dict[str, int]:
        """``Status_Code -> row count`` for one table ({} if absent)."""
        return dict(Counter(str(row.get("Status_Code", "")) for row in self._rows(table)))

    def summary(self) -> DashboardSummary:
        pr_rows = self._rows(PR_MASTER)
        po_rows = self._rows(PO_MASTER)
        pay_rows = self._rows(PAYMENTS)

        pr_counts = Counter(row.get("Status_Code") for row in pr_rows)
        po_counts = Counter(row.get("Status_Code") for row in po_rows)
        pay_counts = Counter(row.get("Status_Code") for row in pay_rows)
        paid_rows = [
            row for row in pay_rows
            if row.get("Status_Code") == PaymentStatus.POSTED.value
        ]

        return DashboardSummary(
            total_pr=len(pr_rows),
            pending_pr=pr_counts[RequisitionStatus.SUBMITTED.value],
            approved_pr=pr_counts[RequisitionStatus.APPROVED.value],
            total_po=len(po_rows),
            posted_po=po_counts[PurchaseOrderStatus.POSTED.value],
            approved_po=po_counts[PurchaseOrderStatus.APPROVED.value],
            total_payments=len(pay_rows),
            payments_pending_director=pay_counts[PaymentStatus.VOUCHER_UPLOADED.value],
            payments_paid=pay_counts[PaymentStatus.POSTED.value],
            pr_value=_sum(pr_rows, "Total_Incl_GST"),
            po_value=_sum(po_rows, "Total_Incl_GST"),
            paid_value=_sum(paid_rows, "Amount"),
            recent_requisitions=self._recent(pr_rows),
        )

    def requisition_kpis(self) -> RequisitionKpis:
        """
        Requisition counts keyed on ``Status_Label``.

        A PR whose purchase order is posted or approved counts as awaiting
        goods receipt.  Labels outside all three sets only add to the total.
        """
        pr_rows = self._rows(PR_MASTER)
        pending = approved = pending_grn = 0
        for row in pr_rows:
            label = row.get("Status_Label")
            if label in self._pending_labels:
                pending += 1
            elif label in self._approved_labels:
                approved += 1
            elif label in self._pending_grn_labels:
                pending_grn += 1

        return RequisitionKpis(
            total_requisitions=len(pr_rows),
            pending_approval=pending,
            approved=approved,
            pending_grn=pending_grn,
            total_value=_sum(pr_rows, "Total_Incl_GST"),
            recent_requisitions=self._recent(pr_rows),
        )
