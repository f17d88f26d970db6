"""
Purchasing Module Service (``procurement_modules.purchasing.service``).

Responsibility
--------------
Drives every purchasing entity through its lifecycle: requisition (PR)
creation and approval, purchase order (PO) creation from an approved PR and
PO approval, payment tranche request / director approval / posting, and
vendor registration.  Ids come from the ``CounterLedger``; every
state-changing call appends exactly one ``AuditTrail`` record.

Architecture position
---------------------
**Modules layer** -- thin orchestration over the kernel.
``PurchasingService`` is the sole public entry point for purchasing writes.
It composes the ``TableStore``, ``CounterLedger``, ``AuditTrail``, an
``IdentityProvider`` and a ``Clock``.

Invariants enforced
-------------------
* Preconditions are checked against the *stored* status, read at call time,
  and before any serial is allocated.  A call rejected with
  ``InvalidStateError`` consumes no serial and writes nothing.
* Status code and status label are always written together.
* One audit record per state-changing call; ``from_state`` / ``to_state``
  are the codes observed before and written after.

Failure modes
-------------
* ``IdentityUnavailableError`` -- no acting user.
* ``MissingTableError`` -- a required table is absent.
* ``EntityNotFoundError`` -- no row carries the given id.
* ``InvalidStateError`` -- illegal ``(state, action)`` pair.
* ``InvalidPayloadError`` -- non-numeric quantity / rate / amount or an
  unknown decision.
* ``LockTimeoutError`` / ``StoreUnavailableError`` -- from the ledger or store.

Multi-row operations have no transaction boundary: rows appended before a
failure stay in the store.  Status updates are not locked: two approvers
racing on one entity can both pass the status check and the last write
wins.

Audit relevance
---------------
Structured log events at operation start and on success or rejection for
every public method, carrying entity ids and status codes.

Usage::

    service = PurchasingService(store, identity, clock=clock)
    pr_id = service.create_requisition({
        "site": "SiteA",
        "items": [{"item_name": "Cement", "qty": 2, "rate": 100, "gst_pct": 18}],
    })
    service.approve_requisition(pr_id, remarks="ok")
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from procurement_kernel.db.schema import (
    AUDIT_LOG,
    PAYMENTS,
    PO_ITEMS,
    PO_MASTER,
    PR_ITEMS,
    PR_MASTER,
    VENDOR_MASTER,
)
from procurement_kernel.db.store import Row, TableStore
from procurement_kernel.domain.clock import Clock, SystemClock, period_of
from procurement_kernel.domain.identity import Actor, IdentityProvider
from procurement_kernel.domain.ids import format_id, scope_key
from procurement_kernel.domain.workflow import Transition, Workflow
from procurement_kernel.exceptions import (
    EntityNotFoundError,
    IdentityUnavailableError,
    InvalidStateError,
    MissingTableError,
)
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.services.audit_trail import AuditTrail
from procurement_kernel.services.counter_ledger import DEFAULT_LOCK_TIMEOUT, CounterLedger
from procurement_modules.purchasing.models import (
    ENTITY_PAYMENT,
    ENTITY_PURCHASE_ORDER,
    ENTITY_REQUISITION,
    ENTITY_VENDOR,
    Decision,
    PaymentStatus,
    PurchaseOrderStatus,
    RequisitionStatus,
    TransitionResult,
    compute_line_total,
    to_decimal,
)
from procurement_modules.purchasing.workflows import (
    APPROVE,
    DECISION_ACTIONS,
    PAYABLE_PO_STATES,
    PAYMENT_WORKFLOW,
    PO_APPROVED,
    POST,
    POST_PO,
    PURCHASE_ORDER_WORKFLOW,
    REJECT,
    REQUISITION_WORKFLOW,
)

if TYPE_CHECKING:
    from procurement_config.schema import ProcurementSettings

logger = get_logger("modules.purchasing.service")

_ZERO = Decimal("0")

VENDOR_REGISTERED_REMARK = "New vendor registered via form."
VENDOR_STATE_ACTIVE = "ACTIVE"
VENDOR_STATE_REGISTERED = "REGISTERED"

# create_vendor form key -> Vendor_Master column
VENDOR_FORM_COLUMNS = {
    "vendor_name": "Company_Name",
    "contact_person": "Contact_Person",
    "phone_number": "Contact_Number",
    "email": "Email_ID",
    "bank_name": "Bank_Name",
    "account_holder_name": "Acc_Holder_Name",
    "account_no": "Acc_Number",
    "branch_name": "Branch_Name",
    "ifsc_code": "IFSC_CODE",
    "gst_no": "GST_Number",
    "providing_sites": "Providing_Sites",
    "pan_no": "Vendor_PAN",
    "address": "Vendor_Address",
    "gst_certificate_file_id": "GST_Certificate_FileId",
    "pan_card_file_id": "PanCard_FileId",
    "cancelled_cheque_file_id": "Cancelled_Cheque_FileId",
}


def _pick(source: Mapping[str, Any], *keys: str, default: Any = "") -> Any:
    """First present, non-empty value among ``keys``."""
    for key in keys:
        value = source.get(key)
        if value not in (None, ""):
            return value
    return default


def _yes_no(value: Any) -> str:
    if isinstance(value, str):
        return "Yes" if value.strip().lower() in ("yes", "y", "true", "1") else "No"
    return "Yes" if value else "No"


def _status_code(row: Row) -> str:
    value = row.get("Status_Code")
    return "" if value is None else str(value)


class PurchasingService:
    """
    Lifecycle manager for requisitions, purchase orders, payments and vendors.

    Contract:
        Create methods return the new entity id.  Status-changing methods
        return a ``TransitionResult``.  Every call needs an acting user from
        the injected ``IdentityProvider``.

    Non-goals:
        - No rollback of partially applied multi-row operations.
        - No locking of status updates.
        - No automatic retry.
    """

    def __init__(
        self,
        store: TableStore,
        identity: IdentityProvider,
        clock: Clock | None = None,
        ledger: CounterLedger | None = None,
        audit_trail: AuditTrail | None = None,
        *,
        timezone: str = "UTC",
        default_site: str = "SITE",
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ):
        self._store = store
        self._identity = identity
        self._clock = clock or SystemClock()
        self._ledger = ledger or CounterLedger(
            store, clock=self._clock, lock_timeout=lock_timeout,
        )
        self._audit = audit_trail or AuditTrail(store, clock=self._clock)
        self._timezone = timezone
        self._default_site = default_site

    @classmethod
    def from_settings(
        cls,
        settings: ProcurementSettings,
        store: TableStore,
        identity: IdentityProvider,
        clock: Clock | None = None,
    ) -> PurchasingService:
        return cls(
            store,
            identity,
            clock=clock,
            timezone=settings.timezone,
            default_site=settings.default_site,
            lock_timeout=settings.lock_timeout_seconds,
        )

    @property
    def ledger(self) -> CounterLedger:
        return self._ledger

    @property
    def audit_trail(self) -> AuditTrail:
        return self._audit

    # =========================================================================
    # Shared steps
    # =========================================================================

    def _actor(self, operation: str) -> Actor:
        actor = self._identity.current_user()
        if actor is None or not actor.email:
            logger.warning("identity_unavailable", extra={"operation": operation})
            raise IdentityUnavailableError(operation)
        return actor

    def _require(self, operation: str, *tables: str) -> None:
        try:
            self._store.require_tables(*tables)
        except MissingTableError as exc:
            logger.error(
                "required_table_missing",
                extra={"operation": operation, "table": exc.table},
            )
            raise

    def _period(self) -> str:
        return period_of(self._clock.now(), self._timezone)

    def _locate(
        self, table: str, id_column: str, entity: str, entity_id: str,
    ) -> tuple[int, Row]:
        """First row whose ``id_column`` equals ``entity_id``."""
        found = self._store.find_first(table, id_column, entity_id) if entity_id else None
        if found is None:
            logger.warning(
                "entity_not_found",
                extra={"entity": entity, "entity_id": entity_id},
            )
            raise EntityNotFoundError(entity, entity_id)
        return found

    def _transition(
        self,
        workflow: Workflow,
        entity: str,
        entity_id: str,
        current: str,
        action: str,
    ) -> Transition:
        transition = workflow.transition_for(current, action)
        if transition is None:
            logger.warning(
                "invalid_state_transition",
                extra={
                    "entity": entity,
                    "entity_id": entity_id,
                    "current_state": current,
                    "action": action,
                    "workflow": workflow.name,
                },
            )
            raise InvalidStateError(
                entity, entity_id, current, action,
                expected=workflow.sources_for(action),
            )
        return transition

    # =========================================================================
    # Requisitions
    # =========================================================================

    def _requisition_lines(self, items: Sequence[Mapping[str, Any]]) -> list[Row]:
        """Validate items and compute line totals before anything is written."""
        lines: list[Row] = []
        for line_no, item in enumerate(items, start=1):
            qty = to_decimal(_pick(item, "qty", "Qty"), f"items[{line_no}].qty", _ZERO)
            rate = to_decimal(_pick(item, "rate", "Rate"), f"items[{line_no}].rate", _ZERO)
            gst = to_decimal(
                _pick(item, "gst_pct", "gst", "GST_%"), f"items[{line_no}].gst_pct", _ZERO,
            )
            lines.append({
                "Line_No": line_no,
                "Item_Code": _pick(item, "item_code", "Item_Code"),
                "Item_Name": _pick(item, "item_name", "Item_Name"),
                "Purpose": _pick(item, "purpose", "Purpose"),
                "Qty": qty,
                "UOM": _pick(item, "uom", "UOM"),
                "Rate": rate,
                "GST_%": gst,
                "Warranty_AMC": _pick(item, "warranty_amc", "Warranty_AMC"),
                "Line_Total": compute_line_total(qty, rate, gst),
            })
        return lines

    def create_requisition(self, payload: Mapping[str, Any]) -> str:
        """
        Create a requisition in ``PR_SUBMITTED`` and return its id.

        Payload keys: ``site``, ``requested_by``, ``vendor_id``,
        ``vendor_registered`` ("Yes"/"No"), ``vendor_details`` (Vendor_Master
        columns), ``purchase_category``, ``payment_terms``, ``delivery_terms``,
        ``delivery_location``, ``expected_delivery_date``,
        ``is_customer_reimbursable``, ``items`` (each with ``item_code``,
        ``item_name``, ``purpose``, ``qty``, ``uom``, ``rate``, ``gst_pct``,
        ``warranty_amc``).
        """
        operation = "create_requisition"
        actor = self._actor(operation)
        self._require(operation, PR_MASTER, PR_ITEMS, AUDIT_LOG)

        site = str(payload.get("site") or self._default_site)
        lines = self._requisition_lines(payload.get("items") or ())
        total = sum((line["Line_Total"] for line in lines), _ZERO)

        with LogContext.bind(actor_id=actor.email, operation=operation, site=site):
            logger.info(
                "requisition_create_started",
                extra={"item_count": len(lines), "total_incl_gst": str(total)},
            )

            vendor_id = str(payload.get("vendor_id") or "")
            vendor_details = payload.get("vendor_details")
            if payload.get("vendor_registered") == "No" and vendor_details:
                vendor_id = self.register_vendor(vendor_details)

            period = self._period()
            serial = self._ledger.allocate(scope_key("PR", site, period))
            pr_id = format_id("PR", site, period, serial=serial)
            now = self._clock.now()
            status = RequisitionStatus.SUBMITTED

            for line in lines:
                self._store.append_row(PR_ITEMS, {"PR_ID": pr_id, **line})

            self._store.append_row(PR_MASTER, {
                "PR_ID": pr_id,
                "Timestamp": now,
                "Date_of_Requisition": now,
                "Site": site,
                "Requested_By": payload.get("requested_by") or actor.email,
                "Vendor_ID": vendor_id,
                "Purchase_Category": payload.get("purchase_category", ""),
                "Payment_Terms": payload.get("payment_terms", ""),
                "Delivery_Terms": payload.get("delivery_terms", ""),
                "Delivery_Location": payload.get("delivery_location", ""),
                "Is_Vendor_Registered": payload.get("vendor_registered", ""),
                "Is_Customer_Reimbursable": _yes_no(payload.get("is_customer_reimbursable")),
                "Total_Incl_GST": total,
                "Status_Code": status.value,
                "Status_Label": status.label,
                "Last_Action_By": actor.email,
                "Last_Action_At": now,
                "Expected_Delivery_Date": payload.get("expected_delivery_date", ""),
            })

            self._audit.record(
                ENTITY_REQUISITION, pr_id, "CREATE", "", status.value, actor.email,
                payload=dict(payload),
            )
            logger.info(
                "requisition_created",
                extra={"pr_id": pr_id, "vendor_id": vendor_id, "total_incl_gst": str(total)},
            )
        return pr_id

    def approve_requisition(self, pr_id: str, remarks: str = "") -> TransitionResult:
        """``PR_SUBMITTED -> PR_APPROVED``."""
        return self._move_requisition(pr_id, APPROVE, "APPROVE", remarks)

    def reject_requisition(self, pr_id: str, remarks: str = "") -> TransitionResult:
        """``PR_SUBMITTED -> PR_REJECTED``."""
        return self._move_requisition(pr_id, REJECT, "REJECT", remarks)

    def decide_requisition(
        self, pr_id: str, action: Decision | str, remarks: str = "",
    ) -> TransitionResult:
        """Approve or reject from an approver's ``Approved`` / ``Rejected`` verdict."""
        if Decision.parse(action) is Decision.APPROVED:
            return self.approve_requisition(pr_id, remarks)
        return self.reject_requisition(pr_id, remarks)

    def _move_requisition(
        self, pr_id: str, action: str, audit_action: str, remarks: str,
    ) -> TransitionResult:
        operation = f"{action}_requisition"
        actor = self._actor(operation)
        self._require(operation, PR_MASTER, AUDIT_LOG)

        with LogContext.bind(actor_id=actor.email, entity_id=pr_id, operation=operation):
            logger.info("requisition_decision_started", extra={"pr_id": pr_id, "action": action})
            row_index, row = self._locate(PR_MASTER, "PR_ID", ENTITY_REQUISITION, pr_id)
            current = _status_code(row)
            transition = self._transition(
                REQUISITION_WORKFLOW, ENTITY_REQUISITION, pr_id, current, action,
            )
            target = RequisitionStatus(transition.to_state)

            self._store.update_row(PR_MASTER, row_index, {
                "Status_Code": target.value,
                "Status_Label": target.label,
                "Last_Action_By": actor.email,
                "Last_Action_At": self._clock.now(),
                "Approver_Remarks": remarks or "",
            })
            self._audit.record(
                ENTITY_REQUISITION, pr_id, audit_action, current, target.value,
                actor.email, remarks=remarks or "",
                payload={"pr_id": pr_id, "action": action, "remarks": remarks or ""},
            )
            logger.info(
                "requisition_status_changed",
                extra={"pr_id": pr_id, "from_state": current, "to_state": target.value},
            )
        return TransitionResult(ENTITY_REQUISITION, pr_id, audit_action, current, target.value)

    # =========================================================================
    # Purchase orders
    # =========================================================================

    def create_purchase_order_from_requisition(self, payload: Mapping[str, Any]) -> str:
        """
        Raise a PO against an approved requisition and return the PO id.

        Payload keys: ``pr_id`` (required), ``po_no_tally``, ``po_date``,
        ``attach_file_id``, ``attach_file_url``, ``remarks``.

        The PR's total is copied and its line items are snapshotted onto
        ``PO_Items`` renumbered 1..n.  The PR moves to ``PO_POSTED``.
        """
        operation = "create_purchase_order"
        actor = self._actor(operation)
        self._require(operation, PR_MASTER, PR_ITEMS, PO_MASTER, PO_ITEMS, AUDIT_LOG)
        pr_id = str(payload.get("pr_id") or "")

        with LogContext.bind(actor_id=actor.email, entity_id=pr_id, operation=operation):
            logger.info("purchase_order_create_started", extra={"pr_id": pr_id})
            pr_index, pr_row = self._locate(PR_MASTER, "PR_ID", ENTITY_REQUISITION, pr_id)
            pr_current = _status_code(pr_row)
            pr_transition = self._transition(
                REQUISITION_WORKFLOW, ENTITY_REQUISITION, pr_id, pr_current, POST_PO,
            )

            site = str(pr_row.get("Site") or self._default_site)
            period = self._period()
            serial = self._ledger.allocate(scope_key("PO", site, period))
            po_id = format_id("PO", site, period, serial=serial)
            now = self._clock.now()
            status = PurchaseOrderStatus.POSTED
            remarks = str(_pick(payload, "remarks", "remark"))

            self._store.append_row(PO_MASTER, {
                "PO_ID": po_id,
                "PR_ID": pr_id,
                "Site": site,
                "Vendor_ID": pr_row.get("Vendor_ID", ""),
                "PO_No_Tally": payload.get("po_no_tally", ""),
                "PO_Date": payload.get("po_date") or now,
                "PO_FileId": payload.get("attach_file_id", ""),
                "PO_File_URL": payload.get("attach_file_url", ""),
                "Total_Incl_GST": pr_row.get("Total_Incl_GST") or _ZERO,
                "Status_Code": status.value,
                "Status_Label": status.label,
                "Last_Action_By": actor.email,
                "Last_Action_At": now,
                "PO_Remarks": remarks,
            })

            pr_items = self._store.filter_rows(PR_ITEMS, "PR_ID", pr_id)
            for line_no, item in enumerate(pr_items, start=1):
                self._store.append_row(PO_ITEMS, {
                    "PO_ID": po_id,
                    "Line_No": line_no,
                    "Item_Code": item.get("Item_Code", ""),
                    "Item_Name": item.get("Item_Name", ""),
                    "Qty": item.get("Qty", ""),
                    "UOM": item.get("UOM", ""),
                    "Rate": item.get("Rate", ""),
                    "GST_%": item.get("GST_%", ""),
                    "Line_Total": item.get("Line_Total", ""),
                })

            pr_target = RequisitionStatus(pr_transition.to_state)
            self._store.update_row(PR_MASTER, pr_index, {
                "Status_Code": pr_target.value,
                "Status_Label": pr_target.label,
                "Last_Action_By": actor.email,
                "Last_Action_At": now,
            })

            self._audit.record(
                ENTITY_PURCHASE_ORDER, po_id, "CREATE_FROM_PR", pr_current, status.value,
                actor.email, remarks=remarks, payload=dict(payload),
            )
            logger.info(
                "purchase_order_created",
                extra={"po_id": po_id, "pr_id": pr_id, "line_count": len(pr_items)},
            )
        return po_id

    def decide_purchase_order(
        self, po_id: str, action: Decision | str, remarks: str = "",
    ) -> TransitionResult:
        """
        Approve or reject a posted PO.

        On approval the parent requisition is updated too: a PR in
        ``PO_POSTED`` moves to ``PO_APPROVED``; a PR in any other state
        only has its label set to ``PO Approved``, leaving its code and label
        out of step.  Rejection leaves the PR untouched.
        """
        decision = Decision.parse(action)
        wf_action = DECISION_ACTIONS[decision]
        operation = "decide_purchase_order"
        actor = self._actor(operation)
        self._require(operation, PO_MASTER, PR_MASTER, AUDIT_LOG)

        with LogContext.bind(actor_id=actor.email, entity_id=po_id, operation=operation):
            logger.info(
                "purchase_order_decision_started",
                extra={"po_id": po_id, "decision": decision.value},
            )
            row_index, row = self._locate(PO_MASTER, "PO_ID", ENTITY_PURCHASE_ORDER, po_id)
            current = _status_code(row)
            transition = self._transition(
                PURCHASE_ORDER_WORKFLOW, ENTITY_PURCHASE_ORDER, po_id, current, wf_action,
            )
            target = PurchaseOrderStatus(transition.to_state)
            now = self._clock.now()

            self._store.update_row(PO_MASTER, row_index, {
                "Status_Code": target.value,
                "Status_Label": target.label,
                "Last_Action_By": actor.email,
                "Last_Action_At": now,
                "PO_Remarks": remarks or "",
            })
            self._audit.record(
                ENTITY_PURCHASE_ORDER, po_id, "APPROVAL", current, target.value,
                actor.email, remarks=remarks or "",
                payload={"po_id": po_id, "action": decision.value, "remarks": remarks or ""},
            )
            if decision is Decision.APPROVED:
                self._propagate_po_approval(po_id, str(row.get("PR_ID") or ""))
            logger.info(
                "purchase_order_status_changed",
                extra={"po_id": po_id, "from_state": current, "to_state": target.value},
            )
        return TransitionResult(ENTITY_PURCHASE_ORDER, po_id, "APPROVAL", current, target.value)

    def _propagate_po_approval(self, po_id: str, pr_id: str) -> None:
        found = self._store.find_first(PR_MASTER, "PR_ID", pr_id) if pr_id else None
        if found is None:
            logger.warning("parent_requisition_missing", extra={"po_id": po_id, "pr_id": pr_id})
            return
        pr_index, pr_row = found
        current = _status_code(pr_row)
        approved = RequisitionStatus.PO_APPROVED
        if REQUISITION_WORKFLOW.transition_for(current, PO_APPROVED) is not None:
            self._store.update_row(PR_MASTER, pr_index, {
                "Status_Code": approved.value,
                "Status_Label": approved.label,
            })
        else:
            self._store.update_cell(PR_MASTER, pr_index, "Status_Label", approved.label)
            logger.warning(
                "requisition_label_diverged",
                extra={"pr_id": pr_id, "status_code": current, "status_label": approved.label},
            )

    # =========================================================================
    # Payments
    # =========================================================================

    def request_payment(self, payload: Mapping[str, Any]) -> str:
        """
        Open a payment tranche in ``VOUCHER_UPLOADED`` against a PO.

        Payload keys: ``po_id`` (required), ``tranche_no`` (default 1),
        ``amount``, ``mode``, ``utr``, ``voucher_file_id``,
        ``voucher_file_url``, ``remarks``.
        """
        operation = "request_payment"
        actor = self._actor(operation)
        self._require(operation, PO_MASTER, PAYMENTS, AUDIT_LOG)
        po_id = str(payload.get("po_id") or "")
        amount = to_decimal(payload.get("amount"), "amount", _ZERO)

        with LogContext.bind(actor_id=actor.email, entity_id=po_id, operation=operation):
            logger.info(
                "payment_request_started",
                extra={"po_id": po_id, "amount": str(amount)},
            )
            _, po_row = self._locate(PO_MASTER, "PO_ID", ENTITY_PURCHASE_ORDER, po_id)
            po_status = _status_code(po_row)
            if po_status not in PAYABLE_PO_STATES:
                logger.warning(
                    "invalid_state_transition",
                    extra={
                        "entity": ENTITY_PURCHASE_ORDER,
                        "entity_id": po_id,
                        "current_state": po_status,
                        "action": "request_payment",
                    },
                )
                raise InvalidStateError(
                    ENTITY_PURCHASE_ORDER, po_id, po_status, "request_payment",
                    expected=PAYABLE_PO_STATES,
                )

            period = self._period()
            serial = self._ledger.allocate(scope_key("PAY", period))
            pay_id = format_id("PAY", period, serial=serial)
            status = PaymentStatus.VOUCHER_UPLOADED

            self._store.append_row(PAYMENTS, {
                "PAY_ID": pay_id,
                "PO_ID": po_id,
                "Tranche_No": payload.get("tranche_no") or 1,
                "Amount": amount,
                "Payment_Voucher_FileId": payload.get("voucher_file_id", ""),
                "Payment_Voucher_URL": payload.get("voucher_file_url", ""),
                "Status_Code": status.value,
                "Status_Label": status.label,
                "Mode": payload.get("mode", ""),
                "UTR": payload.get("utr", ""),
                "Posted_Date": "",
                "Remarks": payload.get("remarks", ""),
                "Last_Action_By": actor.email,
                "Last_Action_At": self._clock.now(),
            })
            self._audit.record(
                ENTITY_PAYMENT, pay_id, "REQUESTED", "", status.value, actor.email,
                payload=dict(payload),
            )
            logger.info("payment_requested", extra={"pay_id": pay_id, "po_id": po_id})
        return pay_id

    def decide_payment(
        self, pay_id: str, action: Decision | str, remarks: str = "",
    ) -> TransitionResult:
        """Director verdict: ``Approved`` -> ``DIRECTOR_OK``, ``Rejected`` -> ``PAY_REJECTED``."""
        decision = Decision.parse(action)
        wf_action = DECISION_ACTIONS[decision]
        operation = "decide_payment"
        actor = self._actor(operation)
        self._require(operation, PAYMENTS, AUDIT_LOG)

        with LogContext.bind(actor_id=actor.email, entity_id=pay_id, operation=operation):
            logger.info(
                "payment_decision_started",
                extra={"pay_id": pay_id, "decision": decision.value},
            )
            row_index, row = self._locate(PAYMENTS, "PAY_ID", ENTITY_PAYMENT, pay_id)
            current = _status_code(row)
            transition = self._transition(
                PAYMENT_WORKFLOW, ENTITY_PAYMENT, pay_id, current, wf_action,
            )
            target = PaymentStatus(transition.to_state)

            values: dict[str, Any] = {
                "Status_Code": target.value,
                "Status_Label": target.label,
                "Last_Action_By": actor.email,
                "Last_Action_At": self._clock.now(),
            }
            if remarks:
                values["Remarks"] = remarks
            self._store.update_row(PAYMENTS, row_index, values)
            self._audit.record(
                ENTITY_PAYMENT, pay_id, "DIRECTOR_APPROVAL", current, target.value,
                actor.email, remarks=remarks or "",
                payload={"pay_id": pay_id, "action": decision.value, "remarks": remarks or ""},
            )
            logger.info(
                "payment_status_changed",
                extra={"pay_id": pay_id, "from_state": current, "to_state": target.value},
            )
        return TransitionResult(ENTITY_PAYMENT, pay_id, "DIRECTOR_APPROVAL", current, target.value)

    def post_payment(
        self,
        pay_id: str,
        posted_date: Any = None,
        utr: str = "",
        remarks: str = "",
    ) -> TransitionResult:
        """``DIRECTOR_OK -> PAY_POSTED``; stamps posted date (default now) and UTR."""
        operation = "post_payment"
        actor = self._actor(operation)
        self._require(operation, PAYMENTS, AUDIT_LOG)

        with LogContext.bind(actor_id=actor.email, entity_id=pay_id, operation=operation):
            logger.info("payment_post_started", extra={"pay_id": pay_id, "utr": utr})
            row_index, row = self._locate(PAYMENTS, "PAY_ID", ENTITY_PAYMENT, pay_id)
            current = _status_code(row)
            transition = self._transition(
                PAYMENT_WORKFLOW, ENTITY_PAYMENT, pay_id, current, POST,
            )
            target = PaymentStatus(transition.to_state)
            now = self._clock.now()

            values: dict[str, Any] = {
                "Status_Code": target.value,
                "Status_Label": target.label,
                "Posted_Date": posted_date or now,
                "Last_Action_By": actor.email,
                "Last_Action_At": now,
            }
            if utr:
                values["UTR"] = utr
            if remarks:
                values["Remarks"] = remarks
            self._store.update_row(PAYMENTS, row_index, values)
            self._audit.record(
                ENTITY_PAYMENT, pay_id, "POSTED", current, target.value,
                actor.email, remarks=remarks or "",
                payload={
                    "pay_id": pay_id,
                    "posted_date": posted_date,
                    "utr": utr,
                    "remarks": remarks or "",
                },
            )
            logger.info(
                "payment_posted",
                extra={"pay_id": pay_id, "from_state": current, "utr": utr},
            )
        return TransitionResult(ENTITY_PAYMENT, pay_id, "POSTED", current, target.value)

    # =========================================================================
    # Vendors
    # =========================================================================

    def register_vendor(self, details: Mapping[str, Any]) -> str:
        """
        Register a vendor from details keyed by Vendor_Master column name.

        Id ``V-{yyyymm}-{serial}`` under key ``VENDOR:{yyyymm}``.
        """
        return self._append_vendor(
            "register_vendor",
            dict(details),
            key_prefix="VENDOR",
            id_prefix="V",
            to_state=VENDOR_STATE_ACTIVE,
            remarks=VENDOR_REGISTERED_REMARK,
        )

    def create_vendor(self, form: Mapping[str, Any]) -> str:
        """
        Register a vendor from the standalone vendor form.

        Form keys are mapped onto columns via ``VENDOR_FORM_COLUMNS``.
        Id ``VND-{yyyymm}-{serial}`` under key ``VND:{yyyymm}``.
        """
        columns = {
            column: form.get(key, "")
            for key, column in VENDOR_FORM_COLUMNS.items()
        }
        return self._append_vendor(
            "create_vendor",
            columns,
            key_prefix="VND",
            id_prefix="VND",
            to_state=VENDOR_STATE_REGISTERED,
            remarks="",
            snapshot=dict(form),
        )

    def _append_vendor(
        self,
        operation: str,
        columns: dict[str, Any],
        *,
        key_prefix: str,
        id_prefix: str,
        to_state: str,
        remarks: str,
        snapshot: dict[str, Any] | None = None,
    ) -> str:
        actor = self._actor(operation)
        self._require(operation, VENDOR_MASTER, AUDIT_LOG)

        with LogContext.bind(actor_id=actor.email, operation=operation):
            logger.info(
                "vendor_registration_started",
                extra={"company_name": columns.get("Company_Name", "")},
            )
            period = self._period()
            serial = self._ledger.allocate(scope_key(key_prefix, period))
            vendor_id = format_id(id_prefix, period, serial=serial)
            row = {
                **columns,
                "Vendor_ID": vendor_id,
                "Active": "Yes",
                "Created_At": self._clock.now(),
                "Created_By": actor.email,
            }
            self._store.append_row(VENDOR_MASTER, row)
            self._audit.record(
                ENTITY_VENDOR, vendor_id, "CREATE", "", to_state, actor.email,
                remarks=remarks, payload=snapshot if snapshot is not None else row,
            )
            logger.info("vendor_registered", extra={"vendor_id": vendor_id})
        return vendor_id
