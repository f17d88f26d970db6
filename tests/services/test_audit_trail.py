"""Audit trail tests: append-only, insertion order, canonical payload JSON."""

import json
from decimal import Decimal

import pytest

from procurement_kernel.db.schema import AUDIT_LOG
from procurement_kernel.db.store import InMemoryTableStore
from procurement_kernel.exceptions import MissingTableError
from procurement_kernel.services.audit_trail import AuditRecord, AuditTrail


def test_record_writes_one_row(audit_trail, store, clock):
    record = audit_trail.record(
        "PR", "PR-A-202404-0001", "CREATE", "", "PR_SUBMITTED", "a@example.com",
        payload={"site": "A", "total": Decimal("236.00")},
    )
    rows = store.get_rows(AUDIT_LOG)
    assert len(rows) == 1
    assert rows[0]["Timestamp"] == clock.now()
    assert rows[0]["From_State"] == ""
    assert rows[0]["To_State"] == "PR_SUBMITTED"
    assert json.loads(rows[0]["Payload_JSON"]) == {"site": "A", "total": "236"}
    assert record.timestamp == clock.now()


def test_payload_json_is_canonical(audit_trail, store):
    audit_trail.record("PO", "X", "APPROVAL", "PO_POSTED", "PO_APPROVED", "b",
                       payload={"b": 1, "a": [1, 2]})
    assert store.get_rows(AUDIT_LOG)[0]["Payload_JSON"] == '{"a":[1,2],"b":1}'


def test_records_in_insertion_order_with_filters(audit_trail, clock):
    audit_trail.record("PR", "P1", "CREATE", "", "PR_SUBMITTED", "u")
    clock.set_time(clock.now().replace(year=2020))  # timestamps may run backwards
    audit_trail.record("PO", "O1", "CREATE_FROM_PR", "PR_APPROVED", "PO_POSTED", "u")
    audit_trail.record("PR", "P1", "APPROVE", "PR_SUBMITTED", "PR_APPROVED", "u")

    assert [r.action for r in audit_trail.records()] == ["CREATE", "CREATE_FROM_PR", "APPROVE"]
    assert [r.action for r in audit_trail.records(entity="PR")] == ["CREATE", "APPROVE"]
    assert [r.entity_id for r in audit_trail.records(entity_id="O1")] == ["O1"]
    assert audit_trail.count() == 3


def test_round_trip_through_row(audit_trail):
    audit_trail.record("PAYMENT", "PAY-202404-0001", "POSTED", "DIRECTOR_OK", "PAY_POSTED",
                       "d@example.com", remarks="UTR stamped", payload={"utr": "U1"})
    [record] = audit_trail.records()
    assert isinstance(record, AuditRecord)
    assert record.remarks == "UTR stamped"
    assert record.payload == {"utr": "U1"}


def test_missing_log_table_raises(clock):
    trail = AuditTrail(InMemoryTableStore(), clock=clock)
    with pytest.raises(MissingTableError) as exc_info:
        trail.record("PR", "P1", "CREATE", "", "PR_SUBMITTED", "u")
    assert exc_info.value.table == AUDIT_LOG


def test_no_mutation_api():
    assert not hasattr(AuditTrail, "update")
    assert not hasattr(AuditTrail, "delete")
