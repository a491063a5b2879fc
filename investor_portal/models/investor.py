"""
Investor domain model.

The account an investment request belongs to.  Authentication and profile
management live in external services; this table only carries what the
request workflow needs to reference and display.
"""

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List

from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from investor_portal.models.investment_request import InvestmentRequest


class Investor(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for investors.

    ``email`` has a unique index — duplicate registrations are rejected at
    DB level.
    """

    __tablename__ = "investors"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("length(full_name) > 0", name="ck_investors_name_not_empty"),
        CheckConstraint("length(email) > 0", name="ck_investors_email_not_empty"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    full_name: str = Field(index=True, max_length=255)
    email: str = Field(unique=True, index=True, max_length=320)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )

    investment_requests: List["InvestmentRequest"] = Relationship(back_populates="investor")

    def __repr__(self) -> str:
        return f"<Investor id={self.id} name='{self.full_name}'>"
