"""
Investment request endpoints.

- GET          /investment-requests               — List (filter by status / investor)
- POST         /investment-requests               — Submit a new request (pending)
- GET          /investment-requests/availability  — Remaining coin supply
- GET          /investment-requests/{id}          — Retrieve one request
- PATCH | PUT  /investment-requests/{id}          — Approve or reject a pending request
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from investor_portal.core.coins import CoinAvailability
from investor_portal.db.session import get_db
from investor_portal.models.investment_request import InvestmentRequest, RequestStatus
from investor_portal.models.investor import Investor
from investor_portal.models.setting import Setting
from investor_portal.repositories.investment_request_repo import InvestmentRequestRepository
from investor_portal.repositories.investor_repo import InvestorRepository
from investor_portal.repositories.setting_repo import SettingRepository
from investor_portal.schemas.common import (
    ApiResponse,
    ErrorResponse,
    ValidationErrorResponse,
    ok,
)
from investor_portal.schemas.investment_request import (
    InvestmentRequestCreate,
    InvestmentRequestResponse,
    InvestmentRequestStatusUpdate,
)
from investor_portal.services.investment_request_service import InvestmentRequestService

router = APIRouter()


# ── Dependency injection ──


def _get_request_service(db: AsyncSession = Depends(get_db)) -> InvestmentRequestService:
    """Build an InvestmentRequestService wired to the current request's DB session."""
    return InvestmentRequestService(
        request_repo=InvestmentRequestRepository(InvestmentRequest, db),
        investor_repo=InvestorRepository(Investor, db),
        setting_repo=SettingRepository(Setting, db),
    )


# ── Endpoints ──


@router.get(
    "",
    response_model=ApiResponse[List[InvestmentRequestResponse]],
    summary="List investment requests",
    description=(
        "Returns investment requests, optionally filtered by ``status`` and "
        "``investor_id``.  ``status=pending`` is the administrators' review "
        "queue, ordered oldest first."
    ),
)
async def list_investment_requests(
    status: Optional[RequestStatus] = Query(None, description="Filter by status"),
    investor_id: Optional[UUID] = Query(None, description="Filter by investor"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Max records to return"),
    service: InvestmentRequestService = Depends(_get_request_service),
):
    requests = await service.list_requests(
        status=status, investor_id=investor_id, skip=skip, limit=limit
    )
    return ok(requests)


@router.post(
    "",
    response_model=ApiResponse[InvestmentRequestResponse],
    status_code=201,
    summary="Submit an investment request",
    description=(
        "Creates a pending request.  The minimum investment is $100 in whole "
        "cents; coin figures are recomputed server-side, must match any values "
        "the portal displayed and must fit the remaining coin supply."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Investor not found"},
        422: {"model": ValidationErrorResponse, "description": "Invalid amount or rate, or not enough coins left"},
    },
)
async def submit_investment_request(
    request_in: InvestmentRequestCreate,
    service: InvestmentRequestService = Depends(_get_request_service),
):
    return ok(await service.submit_request(request_in))


@router.get(
    "/availability",
    response_model=ApiResponse[CoinAvailability],
    summary="Coin availability",
    description=(
        "Coins still open to new requests: ``total_coin_limit`` minus the coins "
        "of pending and approved requests.  Without a configured limit the "
        "supply is uncapped and ``available_coins`` is null."
    ),
)
async def get_coin_availability(
    service: InvestmentRequestService = Depends(_get_request_service),
):
    return ok(await service.get_coin_availability())


@router.get(
    "/{request_id}",
    response_model=ApiResponse[InvestmentRequestResponse],
    summary="Get an investment request",
    responses={404: {"model": ErrorResponse, "description": "Request not found"}},
)
async def get_investment_request(
    request_id: UUID,
    service: InvestmentRequestService = Depends(_get_request_service),
):
    return ok(await service.get_request(request_id))


@router.api_route(
    "/{request_id}",
    methods=["PATCH", "PUT"],
    response_model=ApiResponse[InvestmentRequestResponse],
    summary="Approve or reject an investment request",
    description=(
        "Transitions a pending request to ``approved`` or ``rejected`` and "
        "returns the stored record.  Resolved requests cannot change again: "
        "a second attempt returns 409."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Request not found"},
        409: {"model": ErrorResponse, "description": "Request is no longer pending"},
        422: {"model": ValidationErrorResponse, "description": "Invalid target status"},
    },
)
async def resolve_investment_request(
    request_id: UUID,
    update: InvestmentRequestStatusUpdate,
    service: InvestmentRequestService = Depends(_get_request_service),
):
    return ok(await service.resolve_request(request_id, update.status))
