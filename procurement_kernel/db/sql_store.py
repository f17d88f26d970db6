"""
Module: procurement_kernel.db.sql_store
Responsibility: ``TableStore`` persisted in a relational database through
    SQLAlchemy.  Header rows live in ``store_tables``; each data row is one
    ``store_rows`` record holding its cells as tagged JSON so Decimal and
    datetime values survive the round trip.
Architecture position: Kernel > DB.

Invariants enforced:
    - ``(table_name, row_index)`` is unique; row_index is the 0-based
      insertion position.
    - Each primitive runs in its own transaction (``session_scope``).

Failure modes:
    - StoreUnavailableError wraps ``OperationalError`` (connection lost,
      database locked, ...).
    - StoreUnavailableError also wraps ``IntegrityError``: another writer
      took the same row position, and the append is rolled back.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Generator, Mapping, Sequence
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import Integer, String, Text, UniqueConstraint, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Mapped, Session, mapped_column, sessionmaker

from procurement_kernel.db.base import Base
from procurement_kernel.db.engine import session_scope
from procurement_kernel.db.store import Row, TableStore, project_row
from procurement_kernel.exceptions import (
    MissingTableError,
    RowIndexError,
    StoreUnavailableError,
    UnknownColumnError,
)
from procurement_kernel.logging_config import get_logger

logger = get_logger("db.sql_store")


class StoreTableModel(Base):
    """One row per logical table: its name and ordered header."""

    __tablename__ = "store_tables"

    name: Mapped[str] = mapped_column(String(100), primary_key=True)
    headers_json: Mapped[str] = mapped_column(Text, nullable=False)


class StoreRowModel(Base):
    """One data row of a logical table."""

    __tablename__ = "store_rows"
    __table_args__ = (
        UniqueConstraint("table_name", "row_index", name="uq_store_rows_position"),
    )

    # Integer (not BigInteger) so SQLite treats it as the rowid alias
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    table_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    row_index: Mapped[int] = mapped_column(Integer, nullable=False)
    cells_json: Mapped[str] = mapped_column(Text, nullable=False)


# ---------------------------------------------------------------------------
# Cell codec
# ---------------------------------------------------------------------------


def _encode_value(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return {"$decimal": str(obj)}
    if isinstance(obj, datetime):
        return {"$datetime": obj.isoformat()}
    if isinstance(obj, date):
        return {"$date": obj.isoformat()}
    raise TypeError(f"Cannot store cell of type {type(obj).__name__}")


def _decode_object(obj: dict[str, Any]) -> Any:
    if len(obj) == 1:
        if "$decimal" in obj:
            return Decimal(obj["$decimal"])
        if "$datetime" in obj:
            return datetime.fromisoformat(obj["$datetime"])
        if "$date" in obj:
            return date.fromisoformat(obj["$date"])
    return obj


def encode_cells(row: Mapping[str, Any]) -> str:
    return json.dumps(dict(row), default=_encode_value)


def decode_cells(text: str) -> Row:
    return json.loads(text, object_hook=_decode_object)


class SqlTableStore(TableStore):
    """
    SQLAlchemy-backed table store.

    Contract:
        Receives an ``Engine``; creates its backing tables on construction.
        Appends from one process are serialized by an internal lock so row
        indexes stay dense.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._factory = sessionmaker(bind=engine, expire_on_commit=False)
        self._lock = threading.RLock()
        with self._guard("create_schema"):
            Base.metadata.create_all(engine)

    @contextmanager
    def _guard(self, operation: str) -> Generator[None, None, None]:
        try:
            yield
        except OperationalError as exc:
            logger.error(
                "sql_store_unavailable",
                extra={"operation": operation, "error": str(exc.orig)},
            )
            raise StoreUnavailableError(f"{operation}: {exc.orig}") from exc
        except IntegrityError as exc:
            logger.error(
                "sql_store_conflict",
                extra={"operation": operation, "error": str(exc.orig)},
            )
            raise StoreUnavailableError(f"{operation}: conflicting write: {exc.orig}") from exc

    def _headers_in(self, session: Session, table: str) -> tuple[str, ...]:
        model = session.get(StoreTableModel, table)
        if model is None:
            raise MissingTableError(table)
        return tuple(json.loads(model.headers_json))

    # -- primitives ---------------------------------------------------------

    def has_table(self, table: str) -> bool:
        with self._guard("has_table"), session_scope(self._factory) as session:
            return session.get(StoreTableModel, table) is not None

    def create_table(self, table: str, headers: Sequence[str]) -> None:
        with self._lock, self._guard("create_table"), session_scope(self._factory) as session:
            if session.get(StoreTableModel, table) is not None:
                return
            session.add(StoreTableModel(name=table, headers_json=json.dumps(list(headers))))

    def headers(self, table: str) -> tuple[str, ...]:
        with self._guard("headers"), session_scope(self._factory) as session:
            return self._headers_in(session, table)

    def get_rows(self, table: str) -> list[Row]:
        with self._guard("get_rows"), session_scope(self._factory) as session:
            headers = self._headers_in(session, table)
            records = session.execute(
                select(StoreRowModel.cells_json)
                .where(StoreRowModel.table_name == table)
                .order_by(StoreRowModel.row_index)
            ).scalars().all()
            return [project_row(headers, decode_cells(text)) for text in records]

    def append_row(self, table: str, mapping: Mapping[str, Any]) -> int:
        with self._lock, self._guard("append_row"), session_scope(self._factory) as session:
            headers = self._headers_in(session, table)
            row_index = session.execute(
                select(func.count(StoreRowModel.id))
                .where(StoreRowModel.table_name == table)
            ).scalar_one()
            session.add(StoreRowModel(
                table_name=table,
                row_index=row_index,
                cells_json=encode_cells(project_row(headers, mapping)),
            ))
            return row_index

    def update_cell(self, table: str, row_index: int, column: str, value: Any) -> None:
        with self._lock, self._guard("update_cell"), session_scope(self._factory) as session:
            headers = self._headers_in(session, table)
            if column not in headers:
                raise UnknownColumnError(table, column)
            record = session.execute(
                select(StoreRowModel)
                .where(StoreRowModel.table_name == table)
                .where(StoreRowModel.row_index == row_index)
            ).scalar_one_or_none()
            if record is None:
                row_count = session.execute(
                    select(func.count(StoreRowModel.id))
                    .where(StoreRowModel.table_name == table)
                ).scalar_one()
                raise RowIndexError(table, row_index, row_count)
            cells = decode_cells(record.cells_json)
            cells[column] = "" if value is None else value
            record.cells_json = encode_cells(cells)
