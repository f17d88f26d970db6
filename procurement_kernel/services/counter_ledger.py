"""
CounterLedger -- monotonic serial allocation per scope key.

Responsibility:
    Hands out serial numbers for entity ids.  Each key (e.g.
    ``PR:SiteA:202404``) owns one row in the ``COUNTERS`` table holding its
    last issued serial; ``allocate`` reads, increments and persists that row
    as one atomic step.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Called by the
    purchasing service whenever an entity is created.  Sole writer of
    ``COUNTERS`` rows.

Invariants enforced:
    - A never-seen key starts at 1; thereafter each allocation returns the
      previous value + 1.  ``LastSerial`` only increases.
    - At most one allocation per value per key: the whole read-modify-write
      runs under ONE ledger-wide mutual-exclusion lock (not per key),
      acquired with a bounded wait and released on every exit path.
    - The new value and its ``UpdatedAt`` stamp are persisted before the
      call returns.

Failure modes:
    - LockTimeoutError: lock not acquired within ``lock_timeout``.  No
      mutation, no serial consumed.
    - StoreUnavailableError: ``COUNTERS`` table absent or store I/O failure.
      No serial is returned.

Audit relevance:
    Allocation is logged at DEBUG with key and value.  Serials are the
    visible part of every PR / PO / payment / vendor id.
"""

from __future__ import annotations

import threading
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any, Protocol

from procurement_kernel.db.schema import COUNTERS
from procurement_kernel.db.store import TableStore
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.exceptions import (
    LockTimeoutError,
    MissingTableError,
    StoreUnavailableError,
)
from procurement_kernel.logging_config import get_logger

logger = get_logger("services.counter_ledger")

DEFAULT_LOCK_TIMEOUT = 30.0


class LockLike(Protocol):
    def acquire(self, blocking: bool = ..., timeout: float = ...) -> bool: ...
    def release(self) -> None: ...


# One lock per process unless a caller injects its own.
_PROCESS_LOCK = threading.Lock()


def _as_serial(value: Any) -> int:
    """Cells may come back as int, float, Decimal, str or ""."""
    if value in (None, ""):
        return 0
    return int(value)


class CounterLedger:
    """
    Lock-guarded key -> serial table.

    Contract:
        ``allocate(key)`` returns the next serial for ``key``.  Keys are
        opaque flat strings; the ledger attaches no meaning to their parts.

    Guarantees:
        - Serials for one key are exactly 1..N in call order.
        - Distinct keys never influence each other's sequence.
        - The lock is released on success, validation failure and
          unexpected error alike.

    Non-goals:
        - No rollback: a serial handed out to a caller that later fails is
          consumed.
        - No retry on timeout; callers re-invoke.

    Usage:
        ledger = CounterLedger(store, clock=clock)
        serial = ledger.allocate("PR:SiteA:202404")
    """

    def __init__(
        self,
        store: TableStore,
        clock: Clock | None = None,
        lock: LockLike | None = None,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._lock = lock if lock is not None else _PROCESS_LOCK
        self._lock_timeout = lock_timeout

    @property
    def lock_timeout(self) -> float:
        return self._lock_timeout

    @contextmanager
    def _locked(self, key: str) -> Generator[None, None, None]:
        """Hold the ledger lock for the duration of the block."""
        if not self._lock.acquire(timeout=self._lock_timeout):
            logger.warning(
                "counter_lock_timeout",
                extra={"key": key, "timeout_seconds": self._lock_timeout},
            )
            raise LockTimeoutError(key, self._lock_timeout)
        try:
            yield
        finally:
            self._lock.release()

    def _require_counter_table(self) -> None:
        if not self._store.has_table(COUNTERS):
            logger.error("counter_table_missing", extra={"table": COUNTERS})
            raise StoreUnavailableError(f"{COUNTERS} table missing")

    def allocate(self, key: str) -> int:
        """
        Allocate the next serial for ``key``.

        Preconditions:
            - ``key`` is a non-empty string.

        Postconditions:
            - Returns an integer >= 1, exactly one greater than the value
              previously persisted for ``key`` (or 1 for a new key).
            - The ``COUNTERS`` row for ``key`` holds the returned value.

        Raises:
            LockTimeoutError: lock not acquired in time (no mutation).
            StoreUnavailableError: counter table missing or store failure.
        """
        if not key:
            raise ValueError("Counter key must be a non-empty string")
        self._require_counter_table()

        with self._locked(key):
            try:
                found = self._store.find_first(COUNTERS, "Key", key)
                now = self._clock.now()
                if found is None:
                    self._store.append_row(
                        COUNTERS, {"Key": key, "LastSerial": 1, "UpdatedAt": now}
                    )
                    serial = 1
                else:
                    row_index, row = found
                    serial = _as_serial(row.get("LastSerial")) + 1
                    self._store.update_row(
                        COUNTERS, row_index, {"LastSerial": serial, "UpdatedAt": now}
                    )
            except MissingTableError as exc:
                # Table vanished between the check and the lock
                raise StoreUnavailableError(f"{COUNTERS} table missing") from exc

        assert serial > 0, "serial must be strictly positive"
        logger.debug("serial_allocated", extra={"key": key, "value": serial})
        return serial

    def current_value(self, key: str) -> int | None:
        """Last serial issued for ``key``, or None if never allocated."""
        self._require_counter_table()
        found = self._store.find_first(COUNTERS, "Key", key)
        if found is None:
            return None
        return _as_serial(found[1].get("LastSerial"))
