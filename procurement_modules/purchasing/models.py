"""
Purchasing Domain Models.

The nouns of purchasing: requisitions, purchase orders, payment tranches,
vendors.  Status values are the codes persisted in ``Status_Code`` columns;
each status also carries the human label written to ``Status_Label``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from procurement_kernel.db.store import Row
from procurement_kernel.exceptions import InvalidPayloadError
from procurement_kernel.logging_config import get_logger

logger = get_logger("modules.purchasing.models")

# Entity names as written to Audit_Log.Entity
ENTITY_REQUISITION = "PR"
ENTITY_PURCHASE_ORDER = "PO"
ENTITY_PAYMENT = "PAYMENT"
ENTITY_VENDOR = "VENDOR"


class RequisitionStatus(Enum):
    """Requisition lifecycle states."""
    SUBMITTED = "PR_SUBMITTED"
    APPROVED = "PR_APPROVED"
    REJECTED = "PR_REJECTED"
    PO_POSTED = "PO_POSTED"
    PO_APPROVED = "PO_APPROVED"  # only via PO approval

    @property
    def label(self) -> str:
        return _REQUISITION_LABELS[self]


class PurchaseOrderStatus(Enum):
    """Purchase order lifecycle states."""
    POSTED = "PO_POSTED"
    APPROVED = "PO_APPROVED"
    REJECTED = "PO_REJECTED"

    @property
    def label(self) -> str:
        return _PURCHASE_ORDER_LABELS[self]


class PaymentStatus(Enum):
    """Payment tranche lifecycle states."""
    VOUCHER_UPLOADED = "VOUCHER_UPLOADED"
    DIRECTOR_OK = "DIRECTOR_OK"
    POSTED = "PAY_POSTED"
    REJECTED = "PAY_REJECTED"

    @property
    def label(self) -> str:
        return _PAYMENT_LABELS[self]


class Decision(Enum):
    """Approver verdict accepted by the decide_* operations."""
    APPROVED = "Approved"
    REJECTED = "Rejected"

    @classmethod
    def parse(cls, value: Decision | str) -> Decision:
        if isinstance(value, Decision):
            return value
        try:
            return cls(str(value).strip())
        except ValueError:
            raise InvalidPayloadError(
                "action", value, "expected 'Approved' or 'Rejected'"
            ) from None


_REQUISITION_LABELS = {
    RequisitionStatus.SUBMITTED: "Submitted",
    RequisitionStatus.APPROVED: "Approved",
    RequisitionStatus.REJECTED: "Rejected",
    RequisitionStatus.PO_POSTED: "PO Posted",
    RequisitionStatus.PO_APPROVED: "PO Approved",
}

_PURCHASE_ORDER_LABELS = {
    PurchaseOrderStatus.POSTED: "Posted",
    PurchaseOrderStatus.APPROVED: "Approved",
    PurchaseOrderStatus.REJECTED: "Rejected",
}

_PAYMENT_LABELS = {
    PaymentStatus.VOUCHER_UPLOADED: "Voucher Uploaded",
    PaymentStatus.DIRECTOR_OK: "Director Approved",
    PaymentStatus.POSTED: "Paid",
    PaymentStatus.REJECTED: "Rejected",
}


# -----------------------------------------------------------------------------
# Numeric helpers
# -----------------------------------------------------------------------------

_HUNDRED = Decimal("100")


def to_decimal(value: Any, field_name: str, default: Decimal | None = None) -> Decimal:
    """Coerce a form or cell value to Decimal.

    Empty values return ``default`` when one is given; otherwise they are
    rejected like any other non-numeric input.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is not None:
            return default
        raise InvalidPayloadError(field_name, value, "value is required")
    if isinstance(value, bool):
        raise InvalidPayloadError(field_name, value, "not a number")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidPayloadError(field_name, value, "not a number") from None
    if not result.is_finite():
        raise InvalidPayloadError(field_name, value, "not a finite number")
    return result


def compute_line_total(qty: Decimal, rate: Decimal, gst_pct: Decimal) -> Decimal:
    """``qty * rate * (1 + gst_pct / 100)``."""
    return qty * rate * (1 + gst_pct / _HUNDRED)


def _cell_decimal(value: Any) -> Decimal:
    """Lenient read-side coercion; blank or garbage cells read as zero."""
    try:
        return to_decimal(value, "cell", default=Decimal("0"))
    except InvalidPayloadError:
        return Decimal("0")


def _cell_str(value: Any) -> str:
    return "" if value is None else str(value)


# -----------------------------------------------------------------------------
# Row views
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class RequisitionLine:
    """A line item on a purchase requisition."""
    pr_id: str
    line_no: int
    item_code: str = ""
    item_name: str = ""
    purpose: str = ""
    qty: Decimal = Decimal("0")
    uom: str = ""
    rate: Decimal = Decimal("0")
    gst_pct: Decimal = Decimal("0")
    warranty_amc: str = ""
    line_total: Decimal = Decimal("0")

    @classmethod
    def from_row(cls, row: Row) -> RequisitionLine:
        return cls(
            pr_id=_cell_str(row.get("PR_ID")),
            line_no=int(_cell_decimal(row.get("Line_No"))),
            item_code=_cell_str(row.get("Item_Code")),
            item_name=_cell_str(row.get("Item_Name")),
            purpose=_cell_str(row.get("Purpose")),
            qty=_cell_decimal(row.get("Qty")),
            uom=_cell_str(row.get("UOM")),
            rate=_cell_decimal(row.get("Rate")),
            gst_pct=_cell_decimal(row.get("GST_%")),
            warranty_amc=_cell_str(row.get("Warranty_AMC")),
            line_total=_cell_decimal(row.get("Line_Total")),
        )


@dataclass(frozen=True)
class Requisition:
    """A purchase requisition header with its lines."""
    pr_id: str
    site: str
    requested_by: str
    status_code: str
    status_label: str
    total_incl_gst: Decimal = Decimal("0")
    vendor_id: str = ""
    date_of_requisition: Any = ""
    purchase_category: str = ""
    payment_terms: str = ""
    delivery_terms: str = ""
    delivery_location: str = ""
    expected_delivery_date: Any = ""
    last_action_by: str = ""
    last_action_at: datetime | str = ""
    approver_remarks: str = ""
    lines: tuple[RequisitionLine, ...] = field(default_factory=tuple)

    @property
    def status(self) -> RequisitionStatus | None:
        """Typed status, or None for a code this system never writes."""
        try:
            return RequisitionStatus(self.status_code)
        except ValueError:
            return None

    @classmethod
    def from_row(cls, row: Row, lines: tuple[RequisitionLine, ...] = ()) -> Requisition:
        return cls(
            pr_id=_cell_str(row.get("PR_ID")),
            site=_cell_str(row.get("Site")),
            requested_by=_cell_str(row.get("Requested_By")),
            status_code=_cell_str(row.get("Status_Code")),
            status_label=_cell_str(row.get("Status_Label")),
            total_incl_gst=_cell_decimal(row.get("Total_Incl_GST")),
            vendor_id=_cell_str(row.get("Vendor_ID")),
            date_of_requisition=row.get("Date_of_Requisition", ""),
            purchase_category=_cell_str(row.get("Purchase_Category")),
            payment_terms=_cell_str(row.get("Payment_Terms")),
            delivery_terms=_cell_str(row.get("Delivery_Terms")),
            delivery_location=_cell_str(row.get("Delivery_Location")),
            expected_delivery_date=row.get("Expected_Delivery_Date", ""),
            last_action_by=_cell_str(row.get("Last_Action_By")),
            last_action_at=row.get("Last_Action_At", ""),
            approver_remarks=_cell_str(row.get("Approver_Remarks")),
            lines=tuple(lines),
        )


@dataclass(frozen=True)
class PurchaseOrderLine:
    """A line item copied onto a purchase order."""
    po_id: str
    line_no: int
    item_code: str = ""
    item_name: str = ""
    qty: Decimal = Decimal("0")
    uom: str = ""
    rate: Decimal = Decimal("0")
    gst_pct: Decimal = Decimal("0")
    line_total: Decimal = Decimal("0")

    @classmethod
    def from_row(cls, row: Row) -> PurchaseOrderLine:
        return cls(
            po_id=_cell_str(row.get("PO_ID")),
            line_no=int(_cell_decimal(row.get("Line_No"))),
            item_code=_cell_str(row.get("Item_Code")),
            item_name=_cell_str(row.get("Item_Name")),
            qty=_cell_decimal(row.get("Qty")),
            uom=_cell_str(row.get("UOM")),
            rate=_cell_decimal(row.get("Rate")),
            gst_pct=_cell_decimal(row.get("GST_%")),
            line_total=_cell_decimal(row.get("Line_Total")),
        )


@dataclass(frozen=True)
class PurchaseOrder:
    """A purchase order raised from an approved requisition."""
    po_id: str
    pr_id: str
    site: str
    status_code: str
    status_label: str
    vendor_id: str = ""
    po_no_tally: str = ""
    po_date: Any = ""
    po_file_id: str = ""
    po_file_url: str = ""
    total_incl_gst: Decimal = Decimal("0")
    last_action_by: str = ""
    last_action_at: datetime | str = ""
    remarks: str = ""
    lines: tuple[PurchaseOrderLine, ...] = field(default_factory=tuple)

    @property
    def status(self) -> PurchaseOrderStatus | None:
        try:
            return PurchaseOrderStatus(self.status_code)
        except ValueError:
            return None

    @classmethod
    def from_row(cls, row: Row, lines: tuple[PurchaseOrderLine, ...] = ()) -> PurchaseOrder:
        return cls(
            po_id=_cell_str(row.get("PO_ID")),
            pr_id=_cell_str(row.get("PR_ID")),
            site=_cell_str(row.get("Site")),
            status_code=_cell_str(row.get("Status_Code")),
            status_label=_cell_str(row.get("Status_Label")),
            vendor_id=_cell_str(row.get("Vendor_ID")),
            po_no_tally=_cell_str(row.get("PO_No_Tally")),
            po_date=row.get("PO_Date", ""),
            po_file_id=_cell_str(row.get("PO_FileId")),
            po_file_url=_cell_str(row.get("PO_File_URL")),
            total_incl_gst=_cell_decimal(row.get("Total_Incl_GST")),
            last_action_by=_cell_str(row.get("Last_Action_By")),
            last_action_at=row.get("Last_Action_At", ""),
            remarks=_cell_str(row.get("PO_Remarks")),
            lines=tuple(lines),
        )


@dataclass(frozen=True)
class Payment:
    """One payment tranche against a purchase order."""
    pay_id: str
    po_id: str
    tranche_no: int
    amount: Decimal
    status_code: str
    status_label: str
    voucher_file_id: str = ""
    voucher_url: str = ""
    mode: str = ""
    utr: str = ""
    posted_date: Any = ""
    remarks: str = ""
    last_action_by: str = ""
    last_action_at: datetime | str = ""

    @property
    def status(self) -> PaymentStatus | None:
        try:
            return PaymentStatus(self.status_code)
        except ValueError:
            return None

    @classmethod
    def from_row(cls, row: Row) -> Payment:
        return cls(
            pay_id=_cell_str(row.get("PAY_ID")),
            po_id=_cell_str(row.get("PO_ID")),
            tranche_no=int(_cell_decimal(row.get("Tranche_No"))),
            amount=_cell_decimal(row.get("Amount")),
            status_code=_cell_str(row.get("Status_Code")),
            status_label=_cell_str(row.get("Status_Label")),
            voucher_file_id=_cell_str(row.get("Payment_Voucher_FileId")),
            voucher_url=_cell_str(row.get("Payment_Voucher_URL")),
            mode=_cell_str(row.get("Mode")),
            utr=_cell_str(row.get("UTR")),
            posted_date=row.get("Posted_Date", ""),
            remarks=_cell_str(row.get("Remarks")),
            last_action_by=_cell_str(row.get("Last_Action_By")),
            last_action_at=row.get("Last_Action_At", ""),
        )


@dataclass(frozen=True)
class Vendor:
    """A vendor master record."""
    vendor_id: str
    company_name: str
    active: bool = True
    contact_person: str = ""
    contact_number: str = ""
    email: str = ""
    gst_number: str = ""
    providing_sites: str = ""
    created_by: str = ""
    created_at: datetime | str = ""

    @classmethod
    def from_row(cls, row: Row) -> Vendor:
        return cls(
            vendor_id=_cell_str(row.get("Vendor_ID")),
            company_name=_cell_str(row.get("Company_Name")),
            active=_cell_str(row.get("Active")).strip().lower() == "yes",
            contact_person=_cell_str(row.get("Contact_Person")),
            contact_number=_cell_str(row.get("Contact_Number")),
            email=_cell_str(row.get("Email_ID")),
            gst_number=_cell_str(row.get("GST_Number")),
            providing_sites=_cell_str(row.get("Providing_Sites")),
            created_by=_cell_str(row.get("Created_By")),
            created_at=row.get("Created_At", ""),
        )


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a status-changing call."""
    entity: str
    entity_id: str
    action: str
    from_state: str
    to_state: str
