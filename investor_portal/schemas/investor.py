"""
Pydantic schemas for investor serialisation.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class InvestorBase(BaseModel):
    full_name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Investor's full name",
        examples=["Ada Lovelace"],
    )
    email: EmailStr = Field(
        ...,
        description="Contact email address (unique across investors)",
        examples=["ada@example.com"],
    )

    @field_validator("full_name")
    @classmethod
    def validate_name_not_blank(cls, v: str) -> str:
        """Reject whitespace-only names."""
        if not v.strip():
            raise ValueError("full_name must not be blank")
        return v.strip()


class InvestorCreate(InvestorBase):
    """Body of ``POST /api/investors``."""

    pass


class InvestorResponse(InvestorBase):
    id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
