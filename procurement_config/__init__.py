"""
procurement_config -- single public entrypoint for runtime settings.

Responsibility:
    ``get_active_settings()`` resolves and parses the YAML settings document;
    ``build_store()`` opens the table-store backend it names and ensures the
    canonical tables exist.

Architecture position:
    Configuration.  Sits above ``procurement_kernel`` and below
    ``procurement_modules``.  The kernel MUST NEVER import from
    ``procurement_config``.

Resolution order:
    1. The ``path`` argument.
    2. The file named by the ``PROCUREMENT_CONFIG`` environment variable.
    3. Built-in defaults (in-memory store).

Failure modes:
    - ``FileNotFoundError`` -- an explicitly named file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every ``get_active_settings()`` call emits a
    ``procurement_settings_loaded`` log entry carrying the source and the
    checksum of the document, tying behaviour back to the exact settings.
"""

from __future__ import annotations

import os
from pathlib import Path

from procurement_config.loader import compute_checksum, load_yaml_file, parse_settings
from procurement_config.schema import ProcurementSettings, StoreSettings
from procurement_kernel.db.engine import create_store_engine
from procurement_kernel.db.schema import ensure_tables
from procurement_kernel.db.sql_store import SqlTableStore
from procurement_kernel.db.store import InMemoryTableStore, TableStore
from procurement_kernel.db.workbook_store import WorkbookTableStore
from procurement_kernel.logging_config import get_logger

logger = get_logger("config")

CONFIG_ENV_VAR = "PROCUREMENT_CONFIG"


def get_active_settings(path: Path | str | None = None) -> ProcurementSettings:
    """
    Resolve, load and parse the active settings.

    Args:
        path: Settings file.  Falls back to ``$PROCUREMENT_CONFIG``, then to
            the defaults.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        ValueError: If the document fails validation.
    """
    source = path or os.environ.get(CONFIG_ENV_VAR)
    if source:
        data = load_yaml_file(Path(source))
        origin = str(source)
    else:
        data = {}
        origin = "defaults"

    settings = parse_settings(data)
    logger.info(
        "procurement_settings_loaded",
        extra={
            "source": origin,
            "checksum": compute_checksum(data),
            "store_backend": settings.store.backend,
            "timezone": settings.timezone,
        },
    )
    return settings


def build_store(settings: ProcurementSettings) -> TableStore:
    """Open the configured backend and create any absent canonical table."""
    store_settings = settings.store
    if store_settings.backend == "workbook":
        store: TableStore = WorkbookTableStore(Path(store_settings.path))
    elif store_settings.backend == "sql":
        engine = create_store_engine(store_settings.url, echo=store_settings.echo)
        store = SqlTableStore(engine)
    else:
        store = InMemoryTableStore()
    ensure_tables(store)
    logger.info("table_store_opened", extra={"backend": store_settings.backend})
    return store


__all__ = [
    "CONFIG_ENV_VAR",
    "ProcurementSettings",
    "StoreSettings",
    "build_store",
    "get_active_settings",
]
