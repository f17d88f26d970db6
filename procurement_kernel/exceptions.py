"""
Typed Exception Hierarchy for the Procurement Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers decide what to do with a failure by its TYPE, never by parsing the
message.  Every exception carries:
  1. A ``code`` class attribute (machine-readable, API-safe)
  2. Structured attributes (table name, entity id, current state, ...)

Example - RIGHT way:
    try:
        service.post_payment(pay_id, posted_date, utr)
    except InvalidStateError as e:
        respond(code=e.code, state=e.current_state)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ProcurementKernelError (base)
    |
    +-- StoreError
    |   +-- MissingTableError
    |   +-- StoreUnavailableError
    |   +-- UnknownColumnError
    |   +-- RowIndexError
    |
    +-- EntityNotFoundError
    +-- InvalidStateError
    +-- InvalidPayloadError
    |
    +-- ConcurrencyError
    |   +-- LockTimeoutError
    |
    +-- IdentityUnavailableError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                    | When Raised
------------------------|------------------------------------------------------
MISSING_TABLE           | A required table (sheet) does not exist
STORE_UNAVAILABLE       | Backend I/O failure, or the COUNTERS table is absent
UNKNOWN_COLUMN          | Cell update names a column outside the header row
ROW_INDEX_OUT_OF_RANGE  | Cell update names a row that does not exist
NOT_FOUND               | No row matches the given entity id
INVALID_STATE           | Current status does not permit the requested action
INVALID_PAYLOAD         | Malformed numeric input or unknown decision action
LOCK_TIMEOUT            | Counter ledger lock not acquired within its bound
IDENTITY_UNAVAILABLE    | No acting user for a mutating call

===============================================================================
PROPAGATION
===============================================================================

Nothing in the kernel retries.  A multi-step operation that fails partway
leaves its already-appended rows in place; callers re-invoke the whole
operation.  ``StoreUnavailableError`` is the only error that is safe to retry
blindly.
"""


class ProcurementKernelError(Exception):
    """
    Base exception for all procurement kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PROCUREMENT_KERNEL_ERROR"


# Store-related exceptions


class StoreError(ProcurementKernelError):
    """Base exception for table store errors."""

    code: str = "STORE_ERROR"


class MissingTableError(StoreError):
    """A required table does not exist in the store."""

    code: str = "MISSING_TABLE"

    def __init__(self, table: str):
        self.table = table
        super().__init__(f"Table missing: {table}")


class StoreUnavailableError(StoreError):
    """The backing store could not be read or written."""

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Store unavailable: {reason}")


class UnknownColumnError(StoreError):
    """Column is not part of the table's header row."""

    code: str = "UNKNOWN_COLUMN"

    def __init__(self, table: str, column: str):
        self.table = table
        self.column = column
        super().__init__(f"Unknown column {column!r} in table {table}")


class RowIndexError(StoreError):
    """Row index does not address an existing data row."""

    code: str = "ROW_INDEX_OUT_OF_RANGE"

    def __init__(self, table: str, row_index: int, row_count: int):
        self.table = table
        self.row_index = row_index
        self.row_count = row_count
        super().__init__(
            f"Row {row_index} out of range for table {table} ({row_count} rows)"
        )


# Entity-related exceptions


class EntityNotFoundError(ProcurementKernelError):
    """No row matches the given entity id."""

    code: str = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class InvalidStateError(ProcurementKernelError):
    """The entity's current status does not permit the requested action."""

    code: str = "INVALID_STATE"

    def __init__(
        self,
        entity: str,
        entity_id: str,
        current_state: str,
        action: str,
        expected: tuple[str, ...] = (),
    ):
        self.entity = entity
        self.entity_id = entity_id
        self.current_state = current_state
        self.action = action
        self.expected = expected
        message = (
            f"{entity} {entity_id} cannot '{action}' from state "
            f"'{current_state}'"
        )
        if expected:
            message += f" (requires one of: {', '.join(expected)})"
        super().__init__(message)


class InvalidPayloadError(ProcurementKernelError):
    """Input payload is malformed."""

    code: str = "INVALID_PAYLOAD"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}={value!r}: {reason}")


# Concurrency exceptions


class ConcurrencyError(ProcurementKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class LockTimeoutError(ConcurrencyError):
    """The counter ledger lock could not be acquired in time."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, key: str, timeout_seconds: float):
        self.key = key
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Could not acquire counter lock for {key!r} "
            f"within {timeout_seconds}s"
        )


# Identity exceptions


class IdentityUnavailableError(ProcurementKernelError):
    """No acting user is available for a mutating call."""

    code: str = "IDENTITY_UNAVAILABLE"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"No acting user available for {operation}")
