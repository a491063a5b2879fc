"""
Shared response envelopes.

Every endpoint answers ``{"success": true, "data": ...}``; every error
answers ``{"success": false, "error": "..."}``.  Declaring both shapes here
lets OpenAPI document the error contract, not just the happy path.
"""

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    """Success envelope wrapping an endpoint's payload."""

    success: bool = Field(default=True, description="Always ``true`` for successful calls")
    data: Optional[DataT] = None


class ErrorResponse(BaseModel):
    """Error envelope returned by all non-validation error handlers."""

    success: bool = Field(default=False, description="Always ``false`` for errors")
    error: str = Field(
        ...,
        description="Human-readable error description",
        examples=["Investment request is already approved"],
    )


class ValidationErrorDetail(BaseModel):
    """Single field-level validation failure."""

    field: str = Field(..., examples=["body -> investment_amount"])
    message: str = Field(..., examples=["Minimum investment amount is $100"])


class ValidationErrorResponse(BaseModel):
    """Response body for 422 Unprocessable Entity."""

    success: bool = Field(default=False, description="Always ``false`` for errors")
    error: str = Field(default="Validation failed")
    details: List[ValidationErrorDetail] = Field(default_factory=list)


def ok(data=None) -> dict:
    """Wrap ``data`` in the success envelope."""
    return {"success": True, "data": data}
