"""
Configuration Loader (``procurement_config.loader``).

Responsibility
--------------
Reads a YAML settings document and parses it into the frozen
``procurement_config.schema`` dataclasses.  Callers normally go through
``procurement_config.get_active_settings()``.

Invariants enforced
-------------------
* Unknown keys raise ``ValueError``; a typo never silently falls back to a
  default.
* Every parsed object is a frozen dataclass from ``schema.py``.
* The timezone must be a valid IANA name.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys, wrong shapes, invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from procurement_config.schema import ProcurementSettings, StoreSettings

_LABEL_FIELDS = ("kpi_pending_labels", "kpi_approved_labels", "kpi_pending_grn_labels")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: settings document must be a mapping")
    return data


def _check_keys(section: str, data: dict[str, Any], allowed: set[str]) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValueError(f"Unknown {section} key(s): {', '.join(unknown)}")


def _labels(name: str, value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"{name} must be a string or a list of strings")
    return tuple(str(item) for item in value)


def parse_store(data: dict[str, Any] | None) -> StoreSettings:
    """Parse the ``store:`` section."""
    data = data or {}
    if not isinstance(data, dict):
        raise ValueError("store must be a mapping")
    _check_keys("store", data, {f.name for f in fields(StoreSettings)})
    return StoreSettings(
        backend=str(data.get("backend", "memory")),
        path=data.get("path"),
        url=data.get("url"),
        echo=bool(data.get("echo", False)),
    )


def parse_settings(data: dict[str, Any]) -> ProcurementSettings:
    """
    Parse a ``ProcurementSettings`` from a dict.

    Absent keys take the dataclass defaults.

    Raises:
        ValueError: on unknown keys or invalid values.
    """
    _check_keys("settings", data, {f.name for f in fields(ProcurementSettings)})
    defaults = ProcurementSettings()

    timezone = str(data.get("timezone", defaults.timezone))
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone {timezone!r}") from None

    labels = {
        name: _labels(name, data[name]) if name in data else getattr(defaults, name)
        for name in _LABEL_FIELDS
    }

    return ProcurementSettings(
        lock_timeout_seconds=float(data.get("lock_timeout_seconds", defaults.lock_timeout_seconds)),
        timezone=timezone,
        default_site=str(data.get("default_site", defaults.default_site)),
        recent_limit=int(data.get("recent_limit", defaults.recent_limit)),
        store=parse_store(data.get("store")),
        **labels,
    )


def load_settings(path: Path) -> ProcurementSettings:
    """Load and parse a settings file."""
    return parse_settings(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of a settings document."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
