"""
Pydantic schemas for investment request serialisation.

The same ``InvestmentRequestResponse`` model is used by the service to
render records and by the portal client to parse them.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from investor_portal.models.investment_request import RequestStatus


class InvestmentRequestCreate(BaseModel):
    """
    Body of ``POST /api/investment-requests``.

    ``discounted_rate`` and ``expected_coins`` are what the portal showed the
    investor; when present the service checks them against its own
    recomputation.  The minimum amount is enforced by the service so the
    error message is identical on both sides of the wire.
    """

    investor_id: UUID = Field(..., description="UUID of the submitting investor")
    investment_amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount to invest in USD (minimum 100)",
        examples=[1000.00],
    )
    current_rate: Decimal = Field(
        ...,
        gt=0,
        description="Coin price read by the portal at submission time",
        examples=[0.5],
    )
    discounted_rate: Optional[Decimal] = Field(
        default=None, gt=0, description="current_rate × 0.8 as shown to the investor"
    )
    expected_coins: Optional[int] = Field(
        default=None, ge=0, description="round(amount / rate × 1.2) as shown to the investor"
    )
    status: Literal["pending"] = Field(
        default="pending", description="New requests always start pending"
    )


class InvestmentRequestStatusUpdate(BaseModel):
    """Body of ``PATCH``/``PUT /api/investment-requests/{id}``."""

    status: RequestStatus = Field(..., description="Target status: approved or rejected")


class InvestmentRequestResponse(BaseModel):
    """Investment request as returned by every request endpoint."""

    id: UUID
    investor_id: UUID
    investment_amount: Decimal
    current_rate: Decimal
    discounted_rate: Decimal
    expected_coins: int
    status: RequestStatus
    created_at: datetime
    updated_at: datetime

    @field_serializer("investment_amount", "current_rate", "discounted_rate")
    def serialize_decimal_as_number(self, v: Decimal) -> float:
        """Emit JSON numbers; Pydantic v2 would otherwise emit strings."""
        return float(v)

    model_config = ConfigDict(from_attributes=True)
