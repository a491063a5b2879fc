"""
API router aggregation.

All resource routers are mounted here; ``main.py`` mounts the result at
``settings.API_PREFIX`` (``/api``).
"""

from fastapi import APIRouter

from investor_portal.api.endpoints import investment_requests, investors, settings

api_router = APIRouter()

api_router.include_router(
    investment_requests.router, prefix="/investment-requests", tags=["Investment Requests"]
)
api_router.include_router(investors.router, prefix="/investors", tags=["Investors"])
api_router.include_router(settings.router, prefix="/settings", tags=["Settings"])
