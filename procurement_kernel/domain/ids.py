"""
Scope keys and entity identifiers.

Serials are allocated per *scope key* (``{entityType}:{scope}:{period}``) and
rendered into entity ids with the serial zero-padded to four digits.  The
counter ledger treats keys as flat opaque strings; the structure lives here.
"""

SERIAL_WIDTH = 4


def scope_key(*parts: str) -> str:
    """``scope_key("PR", "SiteA", "202404") == "PR:SiteA:202404"``."""
    return ":".join(str(p) for p in parts)


def format_id(prefix: str, *scope: str, serial: int) -> str:
    """Render an entity id.

    ``format_id("PR", "SiteA", "202404", serial=7) == "PR-SiteA-202404-0007"``
    """
    return "-".join([prefix, *(str(s) for s in scope), str(serial).zfill(SERIAL_WIDTH)])
