"""
Module: procurement_kernel.db.store
Responsibility: The table store contract consumed by the kernel, plus the
    in-memory implementation used by tests and single-process deployments.
Architecture position: Kernel > DB.  MUST NOT import from services/,
    selectors/ or outer layers.

A table is an ordered sequence of rows keyed by a header row.  Every row is
a mapping from column name to cell value; row order is insertion order and
row indexes are 0-based positions in ``get_rows``.

Invariants enforced:
    - Table absence is always ``MissingTableError``, never an empty result.
    - ``append_row`` writes exactly the header columns: keys outside the
      header are ignored and missing keys become empty cells ("").
    - Each primitive (append, single-cell update) is atomic on its own;
      nothing spans more than one primitive.

Failure modes:
    - MissingTableError, UnknownColumnError, RowIndexError.
    - StoreUnavailableError from backends that perform I/O.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from procurement_kernel.exceptions import (
    MissingTableError,
    RowIndexError,
    UnknownColumnError,
)

Row = dict[str, Any]

EMPTY_CELL = ""


def project_row(headers: Sequence[str], mapping: Mapping[str, Any]) -> Row:
    """Lay ``mapping`` out over ``headers`` the way a sheet append does."""
    return {h: (mapping[h] if h in mapping and mapping[h] is not None else EMPTY_CELL)
            for h in headers}


class TableStore(ABC):
    """
    Generic row-oriented storage keyed by a header row.

    Contract:
        Subclasses implement the six primitives; the lookup helpers below are
        built on ``get_rows`` and need no backend support.

    Non-goals:
        - No multi-row transactions.  A caller that appends several rows and
          fails partway leaves the earlier rows in place.
        - No row deletion.
    """

    # -- primitives ---------------------------------------------------------

    @abstractmethod
    def has_table(self, table: str) -> bool:
        ...

    @abstractmethod
    def create_table(self, table: str, headers: Sequence[str]) -> None:
        """Create ``table`` with ``headers``; no-op if it already exists."""
        ...

    @abstractmethod
    def headers(self, table: str) -> tuple[str, ...]:
        ...

    @abstractmethod
    def get_rows(self, table: str) -> list[Row]:
        """Return copies of all data rows in insertion order."""
        ...

    @abstractmethod
    def append_row(self, table: str, mapping: Mapping[str, Any]) -> int:
        """Append one row and return its 0-based row index."""
        ...

    @abstractmethod
    def update_cell(self, table: str, row_index: int, column: str, value: Any) -> None:
        ...

    # -- helpers ------------------------------------------------------------

    def require_tables(self, *tables: str) -> None:
        """Raise MissingTableError for the first absent table."""
        for table in tables:
            if not self.has_table(table):
                raise MissingTableError(table)

    def update_row(self, table: str, row_index: int, values: Mapping[str, Any]) -> None:
        """Apply several single-cell updates to one row, in mapping order."""
        for column, value in values.items():
            self.update_cell(table, row_index, column, value)

    def find_first(self, table: str, column: str, value: Any) -> tuple[int, Row] | None:
        """First row whose ``column`` equals ``value``, with its index."""
        for index, row in enumerate(self.get_rows(table)):
            if row.get(column) == value:
                return index, row
        return None

    def filter_rows(self, table: str, column: str, value: Any) -> list[Row]:
        return [row for row in self.get_rows(table) if row.get(column) == value]

    def index_by(self, table: str, column: str) -> dict[Any, tuple[int, Row]]:
        """Primary-key index over ``column``; the first of duplicate keys wins."""
        index: dict[Any, tuple[int, Row]] = {}
        for position, row in enumerate(self.get_rows(table)):
            index.setdefault(row.get(column), (position, row))
        return index


class InMemoryTableStore(TableStore):
    """
    Dict-of-lists store guarded by a re-entrant lock.

    Guarantees:
        - Rows returned by ``get_rows`` are copies; mutating them never
          changes stored state.
        - Each primitive holds the internal lock for its own duration only.
    """

    def __init__(self, tables: Mapping[str, Iterable[str]] | None = None):
        self._headers: dict[str, tuple[str, ...]] = {}
        self._rows: dict[str, list[Row]] = {}
        self._lock = threading.RLock()
        for name, headers in (tables or {}).items():
            self.create_table(name, tuple(headers))

    def has_table(self, table: str) -> bool:
        with self._lock:
            return table in self._headers

    def create_table(self, table: str, headers: Sequence[str]) -> None:
        with self._lock:
            if table in self._headers:
                return
            self._headers[table] = tuple(headers)
            self._rows[table] = []

    def headers(self, table: str) -> tuple[str, ...]:
        with self._lock:
            self._check(table)
            return self._headers[table]

    def get_rows(self, table: str) -> list[Row]:
        with self._lock:
            self._check(table)
            return [dict(row) for row in self._rows[table]]

    def append_row(self, table: str, mapping: Mapping[str, Any]) -> int:
        with self._lock:
            self._check(table)
            self._rows[table].append(project_row(self._headers[table], mapping))
            return len(self._rows[table]) - 1

    def update_cell(self, table: str, row_index: int, column: str, value: Any) -> None:
        with self._lock:
            self._check(table)
            if column not in self._headers[table]:
                raise UnknownColumnError(table, column)
            rows = self._rows[table]
            if not 0 <= row_index < len(rows):
                raise RowIndexError(table, row_index, len(rows))
            rows[row_index][column] = EMPTY_CELL if value is None else value

    def drop_table(self, table: str) -> None:
        """Remove a table entirely. FOR TESTING ONLY."""
        with self._lock:
            self._headers.pop(table, None)
            self._rows.pop(table, None)

    def _check(self, table: str) -> None:
        if table not in self._headers:
            raise MissingTableError(table)
