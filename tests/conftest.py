"""
Pytest fixtures for the procurement ledger test suite.

Provides:
- Deterministic clock and a signed-in static identity
- An in-memory table store with every canonical table created
- Wired counter ledger, audit trail, purchasing service and selectors
- Captured structured logs
"""

import json
import logging
import threading
from datetime import UTC, datetime
from io import StringIO

import pytest

from procurement_kernel.db.schema import ensure_tables
from procurement_kernel.db.store import InMemoryTableStore
from procurement_kernel.domain.clock import DeterministicClock
from procurement_kernel.domain.identity import Actor, StaticIdentityProvider
from procurement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from procurement_kernel.services.audit_trail import AuditTrail
from procurement_kernel.services.counter_ledger import CounterLedger
from procurement_modules.purchasing.dashboard import DashboardSelector
from procurement_modules.purchasing.selectors import PurchasingSelector
from procurement_modules.purchasing.service import PurchasingService

FIXED_NOW = datetime(2024, 4, 15, 9, 30, tzinfo=UTC)
REQUESTER = "requester@example.com"
APPROVER = "approver@example.com"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture procurement_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.create_requisition(...)
            logs = captured_logs()
            assert any(r["message"] == "requisition_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("procurement_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Kernel fixtures
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(FIXED_NOW)


@pytest.fixture
def identity():
    return StaticIdentityProvider(Actor.from_email(REQUESTER))


@pytest.fixture
def store():
    table_store = InMemoryTableStore()
    ensure_tables(table_store)
    return table_store


@pytest.fixture
def ledger_lock():
    """A private lock so ledgers in different tests never contend."""
    return threading.Lock()


@pytest.fixture
def ledger(store, clock, ledger_lock):
    return CounterLedger(store, clock=clock, lock=ledger_lock, lock_timeout=2.0)


@pytest.fixture
def audit_trail(store, clock):
    return AuditTrail(store, clock=clock)


# =============================================================================
# Purchasing fixtures
# =============================================================================


@pytest.fixture
def service(store, identity, clock, ledger, audit_trail):
    return PurchasingService(
        store, identity, clock=clock, ledger=ledger, audit_trail=audit_trail,
    )


@pytest.fixture
def selector(store):
    return PurchasingSelector(store)


@pytest.fixture
def dashboard(store):
    return DashboardSelector(store)


def _requisition_payload(site="SiteA", items=None, **overrides):
    """A minimal valid create_requisition payload."""
    payload = {
        "site": site,
        "vendor_id": "V-202404-0001",
        "vendor_registered": "Yes",
        "purchase_category": "Civil",
        "payment_terms": "30 days",
        "delivery_terms": "Door delivery",
        "delivery_location": "Site store",
        "items": items if items is not None else [
            {"item_code": "CEM-01", "item_name": "Cement", "qty": 2, "uom": "Bag",
             "rate": 100, "gst_pct": 18},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def requisition_payload():
    """Factory for create_requisition payloads."""
    return _requisition_payload


@pytest.fixture
def make_requisition(service):
    """Factory: create a requisition and return its id."""

    def _make(**kwargs):
        return service.create_requisition(_requisition_payload(**kwargs))

    return _make


@pytest.fixture
def approved_requisition(service, make_requisition, identity):
    """An approved requisition id; the approver identity is restored after."""
    pr_id = make_requisition()
    identity.act_as(Actor.from_email(APPROVER))
    service.approve_requisition(pr_id, remarks="ok")
    identity.act_as(Actor.from_email(REQUESTER))
    return pr_id


@pytest.fixture
def posted_purchase_order(service, approved_requisition):
    return service.create_purchase_order_from_requisition(
        {"pr_id": approved_requisition, "po_no_tally": "T-100"},
    )
