"""
Canonical table names and header rows.

Every backend stores the same eight tables.  Column names are the sheet
headers of the purchasing workbook and are shared by the service layer,
the selectors and the tests.
"""

from procurement_kernel.db.store import TableStore
from procurement_kernel.logging_config import get_logger

logger = get_logger("db.schema")

PR_MASTER = "PR_Master"
PR_ITEMS = "PR_Items"
PO_MASTER = "PO_Master"
PO_ITEMS = "PO_Items"
PAYMENTS = "Payments"
VENDOR_MASTER = "Vendor_Master"
COUNTERS = "COUNTERS"
AUDIT_LOG = "Audit_Log"

TABLE_HEADERS: dict[str, tuple[str, ...]] = {
    PR_MASTER: (
        "PR_ID", "Timestamp", "Date_of_Requisition", "Site", "Requested_By",
        "Vendor_ID", "Purchase_Category", "Payment_Terms", "Delivery_Terms",
        "Delivery_Location", "Is_Vendor_Registered", "Is_Customer_Reimbursable",
        "Total_Incl_GST", "Status_Code", "Status_Label", "Last_Action_By",
        "Last_Action_At", "Approver_Remarks", "Approved_PR_Link", "PR_PDF_Link",
        "Approval_Link", "Expected_Delivery_Date",
    ),
    PR_ITEMS: (
        "PR_ID", "Line_No", "Item_Code", "Item_Name", "Purpose", "Qty", "UOM",
        "Rate", "GST_%", "Warranty_AMC", "Line_Total",
    ),
    PO_MASTER: (
        "PO_ID", "PR_ID", "Site", "Vendor_ID", "PO_No_Tally", "PO_Date",
        "PO_FileId", "PO_File_URL", "Total_Incl_GST", "Status_Code",
        "Status_Label", "Last_Action_By", "Last_Action_At", "PO_Remarks",
    ),
    PO_ITEMS: (
        "PO_ID", "Line_No", "Item_Code", "Item_Name", "Qty", "UOM", "Rate",
        "GST_%", "Line_Total",
    ),
    PAYMENTS: (
        "PAY_ID", "PO_ID", "Tranche_No", "Amount", "Payment_Voucher_FileId",
        "Payment_Voucher_URL", "Status_Code", "Status_Label", "Mode", "UTR",
        "Posted_Date", "Remarks", "Last_Action_By", "Last_Action_At",
    ),
    VENDOR_MASTER: (
        "Vendor_ID", "Company_Name", "Contact_Person", "Contact_Number",
        "Email_ID", "Bank_Name", "Acc_Holder_Name", "Acc_Number", "Branch_Name",
        "IFSC_CODE", "GST_Number", "Providing_Sites", "Vendor_PAN",
        "Vendor_Address", "GST_Certificate_FileId", "PanCard_FileId",
        "Cancelled_Cheque_FileId", "Active", "Created_At", "Created_By",
    ),
    COUNTERS: ("Key", "LastSerial", "UpdatedAt"),
    AUDIT_LOG: (
        "Timestamp", "Entity", "Entity_ID", "Action", "From_State", "To_State",
        "By", "Remarks", "Payload_JSON",
    ),
}


def ensure_tables(store: TableStore, tables: tuple[str, ...] | None = None) -> list[str]:
    """Create any absent table with its canonical header; return those created."""
    created = []
    for name in tables or tuple(TABLE_HEADERS):
        if not store.has_table(name):
            store.create_table(name, TABLE_HEADERS[name])
            created.append(name)
    if created:
        logger.info("tables_created", extra={"tables": created})
    return created
