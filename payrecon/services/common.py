"""Common helpers for the service layer.

- Monetary rounding
- Date/time normalization
- Single-column lookups
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from sqlalchemy.sql import Select


def round_money(value: Decimal | int | float | str) -> Decimal:
    """Round monetary value to 2 decimal places, half up."""
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_datetime(value: date | datetime | None) -> datetime | None:
    """Promote a provider calendar date to a UTC midnight timestamp."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def get_column_value(db: Session, stmt: Select) -> Any:
    """Return the first column of the first row of ``stmt``, or None."""
    return db.execute(stmt.limit(1)).scalar()
