"""
Pydantic schemas for settings and coin-rate history.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class SettingValue(BaseModel):
    """One entry of the ``GET /api/settings`` map."""

    value: str
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SettingUpdate(BaseModel):
    """Body of ``PUT /api/settings/{key}``."""

    value: str = Field(..., min_length=1, max_length=255, examples=["0.5"])

    @field_validator("value")
    @classmethod
    def strip_value(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("value must not be blank")
        return v.strip()


class RateCreate(BaseModel):
    """Body of ``POST /api/settings/rate``."""

    rate_value: Decimal = Field(..., gt=0, description="Price of one coin", examples=[0.5])
    effective_date: date = Field(..., description="Date from which the rate applies")
    notes: Optional[str] = Field(default=None, max_length=500)


class RateHistoryResponse(BaseModel):
    id: UUID
    rate_value: Decimal
    effective_date: date
    notes: Optional[str] = None
    created_at: datetime

    @field_serializer("rate_value")
    def serialize_decimal_as_number(self, v: Decimal) -> float:
        return float(v)

    model_config = ConfigDict(from_attributes=True)


class CurrentRateResponse(BaseModel):
    """Body of ``GET /api/settings/rate/current``."""

    rate: Decimal

    @field_serializer("rate")
    def serialize_decimal_as_number(self, v: Decimal) -> float:
        return float(v)
