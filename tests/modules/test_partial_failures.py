"""
Behavior under store failures, rejected cell values and racing approvers.

Multi-row operations have no rollback and status updates take no lock;
these tests pin down what is left behind.
"""

import pytest

from procurement_kernel.db.schema import (
    AUDIT_LOG,
    PO_ITEMS,
    PO_MASTER,
    PR_MASTER,
    VENDOR_MASTER,
    ensure_tables,
)
from procurement_kernel.db.workbook_store import WorkbookTableStore
from procurement_kernel.exceptions import InvalidPayloadError, StoreUnavailableError
from procurement_kernel.services.counter_ledger import CounterLedger
from procurement_modules.purchasing.service import PurchasingService


class TestNoRollback:

    def test_failed_po_items_leave_header_and_consumed_serial(
        self, service, store, ledger, audit_trail, approved_requisition, monkeypatch,
    ):
        real_append = store.append_row

        def failing_append(table, mapping):
            if table == PO_ITEMS:
                raise StoreUnavailableError("quota exceeded")
            return real_append(table, mapping)

        monkeypatch.setattr(store, "append_row", failing_append)
        audits_before = audit_trail.count()

        with pytest.raises(StoreUnavailableError):
            service.create_purchase_order_from_requisition({"pr_id": approved_requisition})

        [orphan] = store.get_rows(PO_MASTER)
        assert orphan["PO_ID"] == "PO-SiteA-202404-0001"
        assert store.get_rows(PO_ITEMS) == []
        assert ledger.current_value("PO:SiteA:202404") == 1
        pr = store.find_first(PR_MASTER, "PR_ID", approved_requisition)[1]
        assert pr["Status_Code"] == "PR_APPROVED"
        assert audit_trail.count() == audits_before

        monkeypatch.setattr(store, "append_row", real_append)
        retry = service.create_purchase_order_from_requisition({"pr_id": approved_requisition})
        assert retry == "PO-SiteA-202404-0002"
        assert len(store.filter_rows(PO_MASTER, "PR_ID", approved_requisition)) == 2

    def test_failed_audit_append_leaves_status_change(
        self, service, store, audit_trail, make_requisition, monkeypatch,
    ):
        pr_id = make_requisition()
        real_append = store.append_row

        def failing_append(table, mapping):
            if table == AUDIT_LOG:
                raise StoreUnavailableError("quota exceeded")
            return real_append(table, mapping)

        monkeypatch.setattr(store, "append_row", failing_append)
        with pytest.raises(StoreUnavailableError):
            service.approve_requisition(pr_id)

        assert store.get_rows(PR_MASTER)[0]["Status_Code"] == "PR_APPROVED"
        assert [r.action for r in audit_trail.records()] == ["CREATE"]


class TestRacingApprovers:

    def test_last_write_wins_and_both_decisions_are_audited(
        self, service, store, audit_trail, make_requisition, monkeypatch,
    ):
        pr_id = make_requisition()
        real_update = store.update_cell
        raced = []

        def racing_update(table, row_index, column, value):
            # The rejecting approver commits between the approver's read and write.
            if table == PR_MASTER and not raced:
                raced.append(True)
                service.reject_requisition(pr_id, remarks="too expensive")
            return real_update(table, row_index, column, value)

        monkeypatch.setattr(store, "update_cell", racing_update)
        service.approve_requisition(pr_id, remarks="fine")

        header = store.get_rows(PR_MASTER)[0]
        assert (header["Status_Code"], header["Status_Label"]) == ("PR_APPROVED", "Approved")
        assert header["Approver_Remarks"] == "fine"

        decisions = audit_trail.records(entity="PR")[1:]
        assert [(r.action, r.from_state, r.to_state) for r in decisions] == [
            ("REJECT", "PR_SUBMITTED", "PR_REJECTED"),
            ("APPROVE", "PR_SUBMITTED", "PR_APPROVED"),
        ]


class TestWorkbookBackedService:

    @pytest.fixture
    def workbook_service(self, tmp_path, identity, clock, ledger_lock):
        store = WorkbookTableStore(tmp_path / "purchasing.xlsx")
        ensure_tables(store)
        ledger = CounterLedger(store, clock=clock, lock=ledger_lock, lock_timeout=2.0)
        return PurchasingService(store, identity, clock=clock, ledger=ledger)

    def test_bad_remarks_leave_requisition_and_audit_untouched(
        self, workbook_service, tmp_path, requisition_payload,
    ):
        pr_id = workbook_service.create_requisition(requisition_payload())

        with pytest.raises(InvalidPayloadError):
            workbook_service.approve_requisition(pr_id, remarks="ok\x01")

        reopened = WorkbookTableStore(tmp_path / "purchasing.xlsx")
        assert reopened.get_rows(PR_MASTER)[0]["Status_Code"] == "PR_SUBMITTED"
        assert [row["Action"] for row in reopened.get_rows(AUDIT_LOG)] == ["CREATE"]

    def test_vendor_form_with_site_list(self, workbook_service, tmp_path):
        vendor_id = workbook_service.create_vendor(
            {"vendor_name": "Acme", "providing_sites": ["SiteA", "SiteB"]},
        )

        reopened = WorkbookTableStore(tmp_path / "purchasing.xlsx")
        [row] = reopened.get_rows(VENDOR_MASTER)
        assert row["Vendor_ID"] == vendor_id == "VND-202404-0001"
        assert row["Providing_Sites"] == "SiteA, SiteB"
