"""
Investment request domain model.

An investor's request to buy coins at the rate in force when the request was
submitted.  The coin arithmetic is frozen at creation: ``current_rate``,
``discounted_rate`` and ``expected_coins`` are written once and only
``status`` / ``updated_at`` change afterwards.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, Index
from sqlmodel import Field, Relationship, SQLModel

from investor_portal.core.coins import MINIMUM_INVESTMENT

if TYPE_CHECKING:
    from investor_portal.models.investor import Investor


class RequestStatus(str, Enum):
    """Lifecycle states of an investment request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.PENDING


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InvestmentRequest(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for investment requests.

    Design notes:
    - ``ix_investment_requests_status_created`` serves the admin polling
      query (``WHERE status = 'pending' ORDER BY created_at``).
    - Rates use NUMERIC(24,10): coin prices can be far below one cent.
    - ``expected_coins`` is BIGINT; tiny rates produce coin counts in the
      tens of millions.
    """

    __tablename__ = "investment_requests"  # type: ignore[assignment]

    __table_args__ = (
        Index("ix_investment_requests_status_created", "status", "created_at"),
        CheckConstraint(
            f"investment_amount >= {MINIMUM_INVESTMENT}",
            name="ck_investment_requests_amount_minimum",
        ),
        CheckConstraint("current_rate > 0", name="ck_investment_requests_rate_positive"),
        CheckConstraint(
            "discounted_rate > 0", name="ck_investment_requests_discounted_rate_positive"
        ),
        CheckConstraint(
            "expected_coins >= 0", name="ck_investment_requests_coins_non_negative"
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    investor_id: uuid.UUID = Field(
        foreign_key="investors.id",
        index=True,
        ondelete="RESTRICT",
    )
    investment_amount: Decimal = Field(max_digits=20, decimal_places=2)
    current_rate: Decimal = Field(max_digits=24, decimal_places=10)
    discounted_rate: Decimal = Field(max_digits=24, decimal_places=10)
    expected_coins: int = Field(sa_column=Column(BigInteger, nullable=False))
    status: RequestStatus = Field(default=RequestStatus.PENDING)
    created_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    investor: Optional["Investor"] = Relationship(back_populates="investment_requests")

    def __repr__(self) -> str:
        return (
            f"<InvestmentRequest id={self.id} investor={self.investor_id} "
            f"amount=${self.investment_amount} coins={self.expected_coins} "
            f"status={self.status.value}>"
        )
