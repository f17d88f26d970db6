"""
AuditTrail -- append-only record of every state change.

Responsibility:
    Writes one ``Audit_Log`` row per state-changing call: which entity,
    which action, the status before and after, who acted, remarks, and the
    full input payload as canonical JSON for forensic replay.  Also reads
    the trail back in insertion order.

Architecture position:
    Kernel > Services.  Called by the purchasing service after each
    mutation.  Exposes no update or delete.

Invariants enforced:
    - Append-only: records are never modified or removed.
    - Ordering is insertion order.  Timestamps are wall-clock and may repeat
      or run backwards across concurrent callers; nothing sorts by them.

Failure modes:
    - MissingTableError if ``Audit_Log`` is absent.  Never fails silently.
    - StoreUnavailableError propagates from the store.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from procurement_kernel.db.schema import AUDIT_LOG
from procurement_kernel.db.store import Row, TableStore
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.logging_config import get_logger
from procurement_kernel.utils.serialization import canonicalize_json

logger = get_logger("services.audit_trail")


@dataclass(frozen=True)
class AuditRecord:
    """A single immutable audit entry."""

    timestamp: datetime
    entity: str
    entity_id: str
    action: str
    from_state: str
    to_state: str
    by: str
    remarks: str = ""
    payload: dict[str, Any] = field(default_factory=dict)

    def to_row(self) -> Row:
        return {
            "Timestamp": self.timestamp,
            "Entity": self.entity,
            "Entity_ID": self.entity_id,
            "Action": self.action,
            "From_State": self.from_state or "",
            "To_State": self.to_state or "",
            "By": self.by,
            "Remarks": self.remarks or "",
            "Payload_JSON": canonicalize_json(self.payload or {}),
        }

    @classmethod
    def from_row(cls, row: Row) -> AuditRecord:
        raw = row.get("Payload_JSON") or "{}"
        return cls(
            timestamp=row.get("Timestamp"),
            entity=str(row.get("Entity", "")),
            entity_id=str(row.get("Entity_ID", "")),
            action=str(row.get("Action", "")),
            from_state=str(row.get("From_State", "")),
            to_state=str(row.get("To_State", "")),
            by=str(row.get("By", "")),
            remarks=str(row.get("Remarks", "")),
            payload=json.loads(raw),
        )


class AuditTrail:
    """
    Append-only audit log over the ``Audit_Log`` table.

    Contract:
        ``append(record)`` persists exactly one row.  ``record(...)`` stamps
        the timestamp from the injected clock and delegates to ``append``.

    Non-goals:
        - No hash chaining or tamper detection.
        - No update or delete API.
    """

    def __init__(self, store: TableStore, clock: Clock | None = None):
        self._store = store
        self._clock = clock or SystemClock()

    def append(self, record: AuditRecord) -> None:
        """Append ``record``; raises MissingTableError if the log is absent."""
        self._store.require_tables(AUDIT_LOG)
        self._store.append_row(AUDIT_LOG, record.to_row())
        logger.info(
            "audit_record_appended",
            extra={
                "entity": record.entity,
                "entity_id": record.entity_id,
                "action": record.action,
                "from_state": record.from_state,
                "to_state": record.to_state,
            },
        )

    def record(
        self,
        entity: str,
        entity_id: str,
        action: str,
        from_state: str,
        to_state: str,
        by: str,
        remarks: str = "",
        payload: dict[str, Any] | None = None,
    ) -> AuditRecord:
        """Build, append and return an audit record stamped with ``now``."""
        audit_record = AuditRecord(
            timestamp=self._clock.now(),
            entity=entity,
            entity_id=entity_id,
            action=action,
            from_state=from_state,
            to_state=to_state,
            by=by,
            remarks=remarks,
            payload=dict(payload or {}),
        )
        self.append(audit_record)
        return audit_record

    def records(
        self,
        entity: str | None = None,
        entity_id: str | None = None,
    ) -> list[AuditRecord]:
        """All records in insertion order, optionally filtered."""
        rows = self._store.get_rows(AUDIT_LOG)
        result = []
        for row in rows:
            if entity is not None and row.get("Entity") != entity:
                continue
            if entity_id is not None and row.get("Entity_ID") != entity_id:
                continue
            result.append(AuditRecord.from_row(row))
        return result

    def count(self) -> int:
        return len(self._store.get_rows(AUDIT_LOG))
