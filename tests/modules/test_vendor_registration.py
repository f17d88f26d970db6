"""Vendor registration via the requisition form and the vendor form."""

import pytest

from procurement_kernel.db.schema import VENDOR_MASTER
from procurement_kernel.exceptions import IdentityUnavailableError


def test_register_vendor(service, store, audit_trail, clock):
    vendor_id = service.register_vendor({"Company_Name": "Acme", "GST_Number": "29ABC"})

    assert vendor_id == "V-202404-0001"
    [row] = store.get_rows(VENDOR_MASTER)
    assert row["Company_Name"] == "Acme"
    assert row["Active"] == "Yes"
    assert row["Created_By"] == "requester@example.com"
    assert row["Created_At"] == clock.now()
    [record] = audit_trail.records()
    assert (record.entity, record.action, record.to_state) == ("VENDOR", "CREATE", "ACTIVE")
    assert record.remarks == "New vendor registered via form."
    assert record.payload["Vendor_ID"] == vendor_id


def test_create_vendor_maps_form_fields(service, store, audit_trail):
    vendor_id = service.create_vendor({
        "vendor_name": "Bolt Hardware",
        "phone_number": "9800000000",
        "email": "sales@bolt.example.com",
        "ifsc_code": "HDFC0001",
        "gst_no": "27XYZ",
        "pan_no": "ABCDE1234F",
    })

    assert vendor_id == "VND-202404-0001"
    [row] = store.get_rows(VENDOR_MASTER)
    assert row["Company_Name"] == "Bolt Hardware"
    assert row["Contact_Number"] == "9800000000"
    assert row["Email_ID"] == "sales@bolt.example.com"
    assert row["IFSC_CODE"] == "HDFC0001"
    assert row["Vendor_PAN"] == "ABCDE1234F"
    [record] = audit_trail.records()
    assert record.to_state == "REGISTERED"
    assert record.payload == {
        "vendor_name": "Bolt Hardware",
        "phone_number": "9800000000",
        "email": "sales@bolt.example.com",
        "ifsc_code": "HDFC0001",
        "gst_no": "27XYZ",
        "pan_no": "ABCDE1234F",
    }


def test_the_two_paths_keep_separate_sequences(service):
    assert service.register_vendor({"Company_Name": "A"}) == "V-202404-0001"
    assert service.create_vendor({"vendor_name": "B"}) == "VND-202404-0001"
    assert service.register_vendor({"Company_Name": "C"}) == "V-202404-0002"


def test_requires_identity(service, identity, store):
    identity.act_as(None)
    with pytest.raises(IdentityUnavailableError):
        service.create_vendor({"vendor_name": "Nobody"})
    assert store.get_rows(VENDOR_MASTER) == []
