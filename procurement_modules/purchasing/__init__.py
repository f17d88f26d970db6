"""
Purchasing Module.

Requisition -> purchase order -> payment lifecycle, vendor registration,
and the read side behind forms, approval queues and the dashboard.
"""

from procurement_modules.purchasing.dashboard import (
    DashboardSelector,
    DashboardSummary,
    RecentRequisition,
    RequisitionKpis,
)
from procurement_modules.purchasing.models import (
    Decision,
    Payment,
    PaymentStatus,
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseOrderStatus,
    Requisition,
    RequisitionLine,
    RequisitionStatus,
    TransitionResult,
    Vendor,
)
from procurement_modules.purchasing.selectors import (
    PurchasingSelector,
    RequisitionForPurchaseOrder,
)
from procurement_modules.purchasing.service import PurchasingService
from procurement_modules.purchasing.workflows import (
    PAYMENT_WORKFLOW,
    PURCHASE_ORDER_WORKFLOW,
    REQUISITION_WORKFLOW,
)

__all__ = [
    "DashboardSelector",
    "DashboardSummary",
    "Decision",
    "PAYMENT_WORKFLOW",
    "PURCHASE_ORDER_WORKFLOW",
    "Payment",
    "PaymentStatus",
    "PurchaseOrder",
    "PurchaseOrderLine",
    "PurchaseOrderStatus",
    "PurchasingSelector",
    "PurchasingService",
    "REQUISITION_WORKFLOW",
    "RecentRequisition",
    "Requisition",
    "RequisitionForPurchaseOrder",
    "RequisitionKpis",
    "RequisitionLine",
    "RequisitionStatus",
    "TransitionResult",
    "Vendor",
]
