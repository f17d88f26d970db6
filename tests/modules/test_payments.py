"""Payment tranches: request, director verdict, posting."""

from datetime import datetime
from decimal import Decimal

import pytest

from procurement_kernel.db.schema import PAYMENTS
from procurement_kernel.exceptions import (
    EntityNotFoundError,
    InvalidPayloadError,
    InvalidStateError,
    MissingTableError,
)


@pytest.fixture
def payment(service, posted_purchase_order):
    return service.request_payment({
        "po_id": posted_purchase_order,
        "amount": "118",
        "mode": "NEFT",
        "voucher_file_id": "voucher-1",
    })


class TestRequestPayment:

    def test_first_tranche(self, service, store, payment, posted_purchase_order, clock):
        assert payment == "PAY-202404-0001"
        [row] = store.get_rows(PAYMENTS)
        assert row["PO_ID"] == posted_purchase_order
        assert row["Tranche_No"] == 1
        assert row["Amount"] == Decimal("118")
        assert row["Status_Code"] == "VOUCHER_UPLOADED"
        assert row["Status_Label"] == "Voucher Uploaded"
        assert row["Mode"] == "NEFT"
        assert row["Payment_Voucher_FileId"] == "voucher-1"
        assert row["Posted_Date"] == ""
        assert row["Last_Action_At"] == clock.now()

    def test_tranches_share_a_monthly_sequence(self, service, payment, posted_purchase_order):
        second = service.request_payment(
            {"po_id": posted_purchase_order, "tranche_no": 2, "amount": 118},
        )
        assert second == "PAY-202404-0002"

    def test_allowed_against_approved_po(self, service, posted_purchase_order):
        service.decide_purchase_order(posted_purchase_order, "Approved")
        assert service.request_payment({"po_id": posted_purchase_order, "amount": 1})

    def test_refused_against_rejected_po(self, service, ledger, posted_purchase_order):
        service.decide_purchase_order(posted_purchase_order, "Rejected")
        with pytest.raises(InvalidStateError) as exc_info:
            service.request_payment({"po_id": posted_purchase_order, "amount": 1})
        assert exc_info.value.action == "request_payment"
        assert ledger.current_value("PAY:202404") is None

    def test_unknown_po(self, service):
        with pytest.raises(EntityNotFoundError):
            service.request_payment({"po_id": "PO-X-202404-0009", "amount": 1})

    def test_bad_amount(self, service, posted_purchase_order):
        with pytest.raises(InvalidPayloadError) as exc_info:
            service.request_payment({"po_id": posted_purchase_order, "amount": "lots"})
        assert exc_info.value.field == "amount"

    def test_audit(self, service, audit_trail, payment):
        record = audit_trail.records(entity="PAYMENT")[0]
        assert (record.entity_id, record.action, record.from_state, record.to_state) == (
            payment, "REQUESTED", "", "VOUCHER_UPLOADED",
        )
        assert record.payload["amount"] == "118"


class TestDirectorDecision:

    def test_approve(self, service, store, payment):
        result = service.decide_payment(payment, "Approved")
        assert (result.from_state, result.to_state) == ("VOUCHER_UPLOADED", "DIRECTOR_OK")
        row = store.get_rows(PAYMENTS)[0]
        assert row["Status_Label"] == "Director Approved"
        assert row["Remarks"] == ""

    def test_reject_with_remarks(self, service, store, audit_trail, payment):
        service.decide_payment(payment, "Rejected", "voucher unreadable")
        row = store.get_rows(PAYMENTS)[0]
        assert (row["Status_Code"], row["Remarks"]) == ("PAY_REJECTED", "voucher unreadable")
        assert audit_trail.records()[-1].action == "DIRECTOR_APPROVAL"

    def test_director_ok_can_still_be_rejected(self, service, payment):
        service.decide_payment(payment, "Approved")
        assert service.decide_payment(payment, "Rejected").to_state == "PAY_REJECTED"

    def test_rejected_is_terminal(self, service, payment):
        service.decide_payment(payment, "Rejected")
        with pytest.raises(InvalidStateError):
            service.decide_payment(payment, "Approved")


class TestPostPayment:

    def test_post(self, service, store, payment, clock):
        service.decide_payment(payment, "Approved")
        result = service.post_payment(payment, utr="UTR123", remarks="paid")

        assert (result.from_state, result.to_state) == ("DIRECTOR_OK", "PAY_POSTED")
        row = store.get_rows(PAYMENTS)[0]
        assert row["Status_Label"] == "Paid"
        assert row["UTR"] == "UTR123"
        assert row["Remarks"] == "paid"
        assert row["Posted_Date"] == clock.now()

    def test_explicit_posted_date(self, service, store, payment):
        service.decide_payment(payment, "Approved")
        posted = datetime(2024, 4, 20)
        service.post_payment(payment, posted_date=posted)
        assert store.get_rows(PAYMENTS)[0]["Posted_Date"] == posted

    def test_cannot_post_before_director_approval(self, service, store, audit_trail, payment):
        before = audit_trail.count()
        with pytest.raises(InvalidStateError) as exc_info:
            service.post_payment(payment, utr="UTR123")
        assert exc_info.value.current_state == "VOUCHER_UPLOADED"
        assert store.get_rows(PAYMENTS)[0]["UTR"] == ""
        assert audit_trail.count() == before

    def test_cannot_post_twice(self, service, payment):
        service.decide_payment(payment, "Approved")
        service.post_payment(payment)
        with pytest.raises(InvalidStateError):
            service.post_payment(payment)

    def test_missing_payments_table(self, service, store, payment):
        store.drop_table(PAYMENTS)
        with pytest.raises(MissingTableError) as exc_info:
            service.post_payment(payment)
        assert exc_info.value.table == PAYMENTS
