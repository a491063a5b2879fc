"""
Settings endpoints (the Rate Provider).

- GET     /settings                — All settings as ``{key: {value, updated_at}}``
- PUT     /settings/{key}          — Create or overwrite a setting
- POST    /settings/rate           — Record a coin-rate entry
- GET     /settings/rate/current   — The coin rate in force
- GET     /settings/rate/history   — Recent coin-rate entries
- DELETE  /settings/rate/{id}      — Remove a coin-rate entry

The ``/rate`` routes are declared before ``/{key}`` so that ``rate`` is never
captured as a setting key.
"""

from typing import Dict, List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from investor_portal.db.session import get_db
from investor_portal.models.setting import RateHistory, Setting
from investor_portal.repositories.setting_repo import RateHistoryRepository, SettingRepository
from investor_portal.schemas.common import (
    ApiResponse,
    ErrorResponse,
    ValidationErrorResponse,
    ok,
)
from investor_portal.schemas.setting import (
    CurrentRateResponse,
    RateCreate,
    RateHistoryResponse,
    SettingUpdate,
    SettingValue,
)
from investor_portal.services.setting_service import SettingService

router = APIRouter()


def _get_setting_service(db: AsyncSession = Depends(get_db)) -> SettingService:
    """Build a SettingService wired to the current request's DB session."""
    return SettingService(SettingRepository(Setting, db), RateHistoryRepository(RateHistory, db))


@router.get(
    "",
    response_model=ApiResponse[Dict[str, SettingValue]],
    summary="Read all settings",
    description="Includes ``current_rate`` — the price of one coin right now.",
)
async def read_settings(service: SettingService = Depends(_get_setting_service)):
    return ok(await service.get_all_settings())


@router.get(
    "/rate/current",
    response_model=ApiResponse[CurrentRateResponse],
    summary="Current coin rate",
    responses={
        404: {"model": ErrorResponse, "description": "No rate configured"},
        422: {"model": ErrorResponse, "description": "Stored rate is unusable"},
    },
)
async def current_rate(service: SettingService = Depends(_get_setting_service)):
    return ok(CurrentRateResponse(rate=await service.get_current_rate()))


@router.get(
    "/rate/history",
    response_model=ApiResponse[List[RateHistoryResponse]],
    summary="Coin-rate history",
)
async def rate_history(
    limit: int = Query(50, ge=1, le=500, description="Max entries to return"),
    service: SettingService = Depends(_get_setting_service),
):
    return ok(await service.get_rate_history(limit=limit))


@router.post(
    "/rate",
    response_model=ApiResponse[RateHistoryResponse],
    status_code=201,
    summary="Record a coin rate",
    description=(
        "Adds a rate entry.  ``current_rate`` becomes the newest entry whose "
        "effective date is not in the future."
    ),
    responses={422: {"model": ValidationErrorResponse, "description": "Validation error"}},
)
async def add_rate(
    rate_in: RateCreate,
    service: SettingService = Depends(_get_setting_service),
):
    return ok(await service.add_rate(rate_in))


@router.delete(
    "/rate/{rate_id}",
    response_model=ApiResponse[None],
    summary="Delete a coin-rate entry",
    responses={404: {"model": ErrorResponse, "description": "Rate entry not found"}},
)
async def delete_rate(
    rate_id: UUID,
    service: SettingService = Depends(_get_setting_service),
):
    await service.delete_rate(rate_id)
    return ok()


@router.put(
    "/{key}",
    response_model=ApiResponse[SettingValue],
    summary="Update a setting",
    responses={422: {"model": ErrorResponse, "description": "Invalid value"}},
)
async def update_setting(
    key: str,
    update: SettingUpdate,
    service: SettingService = Depends(_get_setting_service),
):
    return ok(await service.update_setting(key, update.value))
