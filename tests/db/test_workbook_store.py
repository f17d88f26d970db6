"""Workbook-specific behaviour: persistence to disk and cell conversion."""

from datetime import UTC, datetime

import openpyxl
import pytest

from procurement_kernel.db.schema import AUDIT_LOG, TABLE_HEADERS, ensure_tables
from procurement_kernel.db.workbook_store import WorkbookTableStore
from procurement_kernel.exceptions import InvalidPayloadError, StoreUnavailableError


def test_rows_survive_reopen(tmp_path):
    path = tmp_path / "purchasing.xlsx"
    store = WorkbookTableStore(path)
    ensure_tables(store)
    store.append_row(AUDIT_LOG, {"Entity": "PR", "Entity_ID": "PR-A-202404-0001"})

    reopened = WorkbookTableStore(path)
    assert reopened.headers(AUDIT_LOG) == TABLE_HEADERS[AUDIT_LOG]
    assert reopened.get_rows(AUDIT_LOG)[0]["Entity_ID"] == "PR-A-202404-0001"


def test_one_sheet_per_table_with_header_row(tmp_path):
    path = tmp_path / "purchasing.xlsx"
    ensure_tables(WorkbookTableStore(path))

    workbook = openpyxl.load_workbook(path)
    assert set(workbook.sheetnames) == set(TABLE_HEADERS)
    header = [cell.value for cell in workbook["COUNTERS"][1]]
    assert header == ["Key", "LastSerial", "UpdatedAt"]


def test_aware_datetimes_stored_as_utc(tmp_path):
    store = WorkbookTableStore(tmp_path / "t.xlsx")
    store.create_table("T", ("At",))
    store.append_row("T", {"At": datetime(2024, 4, 15, 15, 0, tzinfo=UTC)})
    store.reload()
    assert store.get_rows("T")[0]["At"] == datetime(2024, 4, 15, 15, 0)


def test_blank_cells_read_as_empty_string(tmp_path):
    store = WorkbookTableStore(tmp_path / "t.xlsx")
    store.create_table("T", ("A", "B"))
    store.append_row("T", {"A": "x"})
    store.reload()
    assert store.get_rows("T") == [{"A": "x", "B": ""}]


def test_corrupt_file_is_store_unavailable(tmp_path):
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"not a workbook")
    with pytest.raises(StoreUnavailableError):
        WorkbookTableStore(path)


def test_lists_stored_as_joined_text(tmp_path):
    store = WorkbookTableStore(tmp_path / "t.xlsx")
    store.create_table("T", ("Sites",))
    store.append_row("T", {"Sites": ["SiteA", "SiteB"]})
    store.update_cell("T", 0, "Sites", ("SiteA", "SiteC"))
    store.reload()
    assert store.get_rows("T") == [{"Sites": "SiteA, SiteC"}]


def test_control_characters_rejected_before_append(tmp_path):
    store = WorkbookTableStore(tmp_path / "t.xlsx")
    store.create_table("T", ("A", "B"))
    with pytest.raises(InvalidPayloadError) as exc_info:
        store.append_row("T", {"A": "fine", "B": "bell\x07"})
    assert exc_info.value.field == "T.B"
    store.reload()
    assert store.get_rows("T") == []


def test_unsupported_type_rejected(tmp_path):
    store = WorkbookTableStore(tmp_path / "t.xlsx")
    store.create_table("T", ("A",))
    with pytest.raises(InvalidPayloadError):
        store.append_row("T", {"A": {"nested": 1}})


def test_update_row_writes_nothing_when_one_value_is_bad(tmp_path):
    path = tmp_path / "t.xlsx"
    store = WorkbookTableStore(path)
    store.create_table("T", ("Status", "Remarks"))
    store.append_row("T", {"Status": "OPEN"})

    with pytest.raises(InvalidPayloadError):
        store.update_row("T", 0, {"Status": "CLOSED", "Remarks": "ok\x01"})

    assert WorkbookTableStore(path).get_rows("T") == [{"Status": "OPEN", "Remarks": ""}]
