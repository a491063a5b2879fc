"""
Investor endpoints.

- GET   /investors        — List investors
- POST  /investors        — Register an investor
- GET   /investors/{id}   — Retrieve one investor
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from investor_portal.db.session import get_db
from investor_portal.models.investor import Investor
from investor_portal.repositories.investor_repo import InvestorRepository
from investor_portal.schemas.common import (
    ApiResponse,
    ErrorResponse,
    ValidationErrorResponse,
    ok,
)
from investor_portal.schemas.investor import InvestorCreate, InvestorResponse
from investor_portal.services.investor_service import InvestorService

router = APIRouter()


def _get_investor_service(db: AsyncSession = Depends(get_db)) -> InvestorService:
    """Build an InvestorService wired to the current request's DB session."""
    return InvestorService(InvestorRepository(Investor, db))


@router.get(
    "",
    response_model=ApiResponse[List[InvestorResponse]],
    summary="List investors",
)
async def list_investors(
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Max records to return"),
    service: InvestorService = Depends(_get_investor_service),
):
    return ok(await service.get_all_investors(skip=skip, limit=limit))


@router.post(
    "",
    response_model=ApiResponse[InvestorResponse],
    status_code=201,
    summary="Register an investor",
    responses={
        409: {"model": ErrorResponse, "description": "Duplicate email address"},
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def create_investor(
    investor: InvestorCreate,
    service: InvestorService = Depends(_get_investor_service),
):
    return ok(await service.create_investor(investor))


@router.get(
    "/{investor_id}",
    response_model=ApiResponse[InvestorResponse],
    summary="Get an investor",
    responses={404: {"model": ErrorResponse, "description": "Investor not found"}},
)
async def get_investor(
    investor_id: UUID,
    service: InvestorService = Depends(_get_investor_service),
):
    return ok(await service.get_investor(investor_id))
