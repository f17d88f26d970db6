"""
Module: procurement_kernel.db.base
Responsibility: Declarative base for the SQL-backed table store's ORM models.
Architecture position: Kernel > DB.  Lowest-level import target of the SQL
    backend; MUST NOT import from services/, selectors/ or outer layers.
"""

from datetime import datetime
from typing import ClassVar

from sqlalchemy import BigInteger, DateTime
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        int: BigInteger,
    }
