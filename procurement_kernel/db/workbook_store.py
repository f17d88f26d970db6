"""
Module: procurement_kernel.db.workbook_store
Responsibility: ``TableStore`` over an ``.xlsx`` workbook -- the spreadsheet
    acting as the database.  One worksheet per table; row 1 holds the header,
    data rows start at row 2.
Architecture position: Kernel > DB.

Invariants enforced:
    - Every mutation is saved to disk before the call returns.
    - Timezone-aware datetimes are written as naive UTC (Excel has no zones).
    - Empty cells read back as "".
    - List and tuple values are stored as one comma-separated string.
    - A multi-cell update validates every value before writing any cell.

Failure modes:
    - StoreUnavailableError when the workbook cannot be loaded or saved
      (missing directory, corrupt file, permission denied).
    - InvalidPayloadError for text with control characters or a value of a
      type no worksheet cell can hold; nothing is written.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from zipfile import BadZipFile

import openpyxl
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE, KNOWN_TYPES
from openpyxl.utils.exceptions import InvalidFileException

from procurement_kernel.db.store import EMPTY_CELL, Row, TableStore, project_row
from procurement_kernel.exceptions import (
    InvalidPayloadError,
    MissingTableError,
    RowIndexError,
    StoreUnavailableError,
    UnknownColumnError,
)
from procurement_kernel.logging_config import get_logger

logger = get_logger("db.workbook_store")

_HEADER_ROW = 1
_FIRST_DATA_ROW = 2


def _to_cell(table: str, column: str, value: Any) -> Any:
    """
    Convert a Python value into something openpyxl can persist.

    Lists and tuples are stored as one comma-separated string.  Text with
    control characters and values of any other type raise
    InvalidPayloadError, before anything is written.
    """
    if value is None or (isinstance(value, str) and value == EMPTY_CELL):
        return None
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(item) for item in value)
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    if isinstance(value, str) and ILLEGAL_CHARACTERS_RE.search(value):
        raise InvalidPayloadError(
            f"{table}.{column}", value, "contains control characters a workbook cannot store",
        )
    if not isinstance(value, KNOWN_TYPES):
        raise InvalidPayloadError(
            f"{table}.{column}", value, f"{type(value).__name__} cannot be stored in a workbook cell",
        )
    return value


def _from_cell(value: Any) -> Any:
    if value is None:
        return EMPTY_CELL
    return value


class WorkbookTableStore(TableStore):
    """
    Workbook-backed table store.

    Contract:
        Opens ``path`` if it exists, otherwise starts an empty workbook that
        is written on the first mutation.  The workbook is held in memory;
        ``reload()`` discards it and re-reads the file.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._lock = threading.RLock()
        self._workbook = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> openpyxl.Workbook:
        if not self._path.exists():
            wb = openpyxl.Workbook()
            wb.remove(wb.active)
            logger.info("workbook_created", extra={"path": str(self._path)})
            return wb
        try:
            wb = openpyxl.load_workbook(self._path)
        except (OSError, InvalidFileException, BadZipFile, KeyError) as exc:
            logger.error(
                "workbook_load_failed",
                extra={"path": str(self._path), "error": str(exc)},
            )
            raise StoreUnavailableError(f"cannot load {self._path}: {exc}") from exc
        logger.debug(
            "workbook_loaded",
            extra={"path": str(self._path), "sheets": wb.sheetnames},
        )
        return wb

    def _save(self) -> None:
        try:
            self._workbook.save(self._path)
        except OSError as exc:
            logger.error(
                "workbook_save_failed",
                extra={"path": str(self._path), "error": str(exc)},
            )
            raise StoreUnavailableError(f"cannot save {self._path}: {exc}") from exc

    def reload(self) -> None:
        with self._lock:
            self._workbook = self._load()

    def _sheet(self, table: str):
        if table not in self._workbook.sheetnames:
            raise MissingTableError(table)
        return self._workbook[table]

    def _header_of(self, sheet) -> tuple[str, ...]:
        header = next(
            sheet.iter_rows(min_row=_HEADER_ROW, max_row=_HEADER_ROW, values_only=True),
            (),
        )
        return tuple(str(h) for h in header if h not in (None, ""))

    # -- primitives ---------------------------------------------------------

    def has_table(self, table: str) -> bool:
        with self._lock:
            return table in self._workbook.sheetnames

    def create_table(self, table: str, headers: Sequence[str]) -> None:
        with self._lock:
            if table in self._workbook.sheetnames:
                return
            sheet = self._workbook.create_sheet(title=table)
            sheet.append(list(headers))
            self._save()

    def headers(self, table: str) -> tuple[str, ...]:
        with self._lock:
            return self._header_of(self._sheet(table))

    def get_rows(self, table: str) -> list[Row]:
        with self._lock:
            sheet = self._sheet(table)
            headers = self._header_of(sheet)
            rows: list[Row] = []
            for values in sheet.iter_rows(
                min_row=_FIRST_DATA_ROW,
                max_row=sheet.max_row,
                max_col=len(headers),
                values_only=True,
            ):
                rows.append({h: _from_cell(v) for h, v in zip(headers, values)})
            return rows

    def append_row(self, table: str, mapping: Mapping[str, Any]) -> int:
        with self._lock:
            sheet = self._sheet(table)
            headers = self._header_of(sheet)
            row = project_row(headers, mapping)
            cells = [_to_cell(table, h, row[h]) for h in headers]
            sheet.append(cells)
            self._save()
            return sheet.max_row - _FIRST_DATA_ROW

    def update_cell(self, table: str, row_index: int, column: str, value: Any) -> None:
        self.update_row(table, row_index, {column: value})

    def update_row(self, table: str, row_index: int, values: Mapping[str, Any]) -> None:
        """Validate every value first, then write the cells and save once."""
        with self._lock:
            sheet = self._sheet(table)
            headers = self._header_of(sheet)
            for column in values:
                if column not in headers:
                    raise UnknownColumnError(table, column)
            row_count = sheet.max_row - _HEADER_ROW
            if not 0 <= row_index < row_count:
                raise RowIndexError(table, row_index, row_count)
            cells = {column: _to_cell(table, column, value) for column, value in values.items()}
            for column, cell in cells.items():
                sheet.cell(
                    row=row_index + _FIRST_DATA_ROW,
                    column=headers.index(column) + 1,
                    value=cell,
                )
            self._save()
