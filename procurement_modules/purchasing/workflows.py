"""
Purchasing Workflows.

State machines for requisitions, purchase orders and payment tranches.
States are the persisted status codes; a ``(state, action)`` pair missing
from a table is an illegal transition.
"""

from procurement_kernel.domain.workflow import Transition, Workflow
from procurement_kernel.logging_config import get_logger
from procurement_modules.purchasing.models import (
    Decision,
    PaymentStatus,
    PurchaseOrderStatus,
    RequisitionStatus,
)

logger = get_logger("modules.purchasing.workflows")

# Action names
APPROVE = "approve"
REJECT = "reject"
POST_PO = "post_po"
PO_APPROVED = "po_approved"
POST = "post"

DECISION_ACTIONS = {
    Decision.APPROVED: APPROVE,
    Decision.REJECTED: REJECT,
}

_PR = RequisitionStatus
_PO = PurchaseOrderStatus
_PAY = PaymentStatus


# -----------------------------------------------------------------------------
# Requisition Workflow
# -----------------------------------------------------------------------------

REQUISITION_WORKFLOW = Workflow(
    name="requisition",
    description="Purchase requisition lifecycle",
    initial_state=_PR.SUBMITTED.value,
    states=tuple(s.value for s in _PR),
    transitions=(
        Transition(_PR.SUBMITTED.value, _PR.APPROVED.value, action=APPROVE),
        Transition(_PR.SUBMITTED.value, _PR.REJECTED.value, action=REJECT),
        Transition(_PR.APPROVED.value, _PR.PO_POSTED.value, action=POST_PO),
        # Driven by the PO's approval, never by a requisition approver
        Transition(_PR.PO_POSTED.value, _PR.PO_APPROVED.value, action=PO_APPROVED),
    ),
    terminal_states=(_PR.REJECTED.value, _PR.PO_APPROVED.value),
)


# -----------------------------------------------------------------------------
# Purchase Order Workflow
# -----------------------------------------------------------------------------

PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Purchase order approval",
    initial_state=_PO.POSTED.value,
    states=tuple(s.value for s in _PO),
    transitions=(
        Transition(_PO.POSTED.value, _PO.APPROVED.value, action=APPROVE),
        Transition(_PO.POSTED.value, _PO.REJECTED.value, action=REJECT),
    ),
    terminal_states=(_PO.APPROVED.value, _PO.REJECTED.value),
)

# A tranche may only be requested against these PO states
PAYABLE_PO_STATES = (_PO.POSTED.value, _PO.APPROVED.value)


# -----------------------------------------------------------------------------
# Payment Workflow
# -----------------------------------------------------------------------------

PAYMENT_WORKFLOW = Workflow(
    name="payment",
    description="Payment tranche: voucher, director approval, posting",
    initial_state=_PAY.VOUCHER_UPLOADED.value,
    states=tuple(s.value for s in _PAY),
    transitions=(
        Transition(_PAY.VOUCHER_UPLOADED.value, _PAY.DIRECTOR_OK.value, action=APPROVE),
        Transition(_PAY.VOUCHER_UPLOADED.value, _PAY.REJECTED.value, action=REJECT),
        Transition(_PAY.DIRECTOR_OK.value, _PAY.REJECTED.value, action=REJECT),
        Transition(_PAY.DIRECTOR_OK.value, _PAY.POSTED.value, action=POST),
    ),
    terminal_states=(_PAY.POSTED.value, _PAY.REJECTED.value),
)


for _workflow in (REQUISITION_WORKFLOW, PURCHASE_ORDER_WORKFLOW, PAYMENT_WORKFLOW):
    logger.info(
        "purchasing_workflow_registered",
        extra={
            "workflow_name": _workflow.name,
            "state_count": len(_workflow.states),
            "transition_count": len(_workflow.transitions),
            "initial_state": _workflow.initial_state,
        },
    )
