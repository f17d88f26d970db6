"""
ProcurementSettings schema.

Typed, frozen settings for the purchasing ledger.  YAML documents are parsed
into these types by the loader; every field has a default so an empty or
absent file yields a working in-memory configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field

STORE_BACKENDS = ("memory", "workbook", "sql")


@dataclass(frozen=True)
class StoreSettings:
    """Which table-store backend to open, and where."""

    backend: str = "memory"
    path: str | None = None  # workbook file
    url: str | None = None  # SQLAlchemy URL
    echo: bool = False

    def __post_init__(self) -> None:
        if self.backend not in STORE_BACKENDS:
            raise ValueError(
                f"Unknown store backend {self.backend!r}; "
                f"expected one of {', '.join(STORE_BACKENDS)}"
            )
        if self.backend == "workbook" and not self.path:
            raise ValueError("store.path is required for the workbook backend")
        if self.backend == "sql" and not self.url:
            raise ValueError("store.url is required for the sql backend")


@dataclass(frozen=True)
class ProcurementSettings:
    """Runtime settings for the purchasing ledger."""

    lock_timeout_seconds: float = 30.0
    timezone: str = "UTC"
    default_site: str = "SITE"
    recent_limit: int = 5
    kpi_pending_labels: tuple[str, ...] = ("Submitted", "Pending Approval")
    kpi_approved_labels: tuple[str, ...] = ("Approved",)
    kpi_pending_grn_labels: tuple[str, ...] = ("PO Posted", "PO Approved", "PO Created")
    store: StoreSettings = field(default_factory=StoreSettings)

    def __post_init__(self) -> None:
        if self.lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be positive")
        if self.recent_limit < 0:
            raise ValueError("recent_limit must not be negative")
        if not self.default_site:
            raise ValueError("default_site must be non-empty")
