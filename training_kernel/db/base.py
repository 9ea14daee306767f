"""
Module: training_kernel.db.base
Responsibility: Declarative base for all SQLAlchemy ORM models and the
    column types shared across the schema.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  MUST NOT import from models/, services/ or domain/.

Invariants enforced:
    - Decimal precision: ``Decimal`` maps to Numeric(18, 2); never float.
    - Version-token fidelity: ``UTCDateTime`` stores naive UTC and returns
      timezone-aware UTC, so a ``last_updated`` value read back compares
      equal to the value that was written on every backend (SQLite drops
      tzinfo otherwise).
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import DateTime, Numeric
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC datetime stored as a naive UTC timestamp.

    Guarantees:
        - process_bind_param: aware -> naive UTC; naive values are taken
          to already be UTC.
        - process_result_value: naive -> aware UTC.
        - cache_ok=True enables SQLAlchemy statement caching.
    """

    impl = DateTime(timezone=False)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - Decimal maps to Numeric(18, 2) -- currency amounts.
        - datetime maps to UTCDateTime -- always timezone-aware on load.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 2),
        datetime: UTCDateTime(),
    }
