"""
Platform settings and coin-rate history.

``Setting`` is a key/value table holding values such as ``current_rate``
(price of one coin) and ``total_coin_limit`` (coin supply cap).  ``RateHistory``
records every rate an administrator has entered together with the date it
takes effect; the newest effective entry becomes ``current_rate``.
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index
from sqlmodel import Field, SQLModel

CURRENT_RATE_KEY = "current_rate"
TOTAL_COIN_LIMIT_KEY = "total_coin_limit"


class Setting(SQLModel, table=True):
    """A single named platform setting (values are stored as text)."""

    __tablename__ = "settings"  # type: ignore[assignment]

    key: str = Field(primary_key=True, max_length=100)
    value: str = Field(max_length=255)
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    def __repr__(self) -> str:
        return f"<Setting {self.key}={self.value!r}>"


class RateHistory(SQLModel, table=True):
    """One coin-rate entry entered by an administrator."""

    __tablename__ = "rate_history"  # type: ignore[assignment]

    __table_args__ = (
        Index("ix_rate_history_effective", "effective_date", "created_at"),
        CheckConstraint("rate_value > 0", name="ck_rate_history_rate_positive"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    rate_value: Decimal = Field(max_digits=24, decimal_places=10)
    effective_date: date
    notes: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    def __repr__(self) -> str:
        return f"<RateHistory id={self.id} rate={self.rate_value} from={self.effective_date}>"
