"""Utility modules for the procurement kernel."""

from procurement_kernel.utils.serialization import canonicalize_json

__all__ = [
    "canonicalize_json",
]
