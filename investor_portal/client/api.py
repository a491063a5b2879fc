"""
HTTP client for the investor portal REST API.

Wraps ``httpx.AsyncClient`` and translates the service's
``{"success": ..., "data": ...}`` envelope into typed results or the errors
in :mod:`investor_portal.client.errors`.

Reads (request lists, settings) are retried on transport failures with
exponential backoff.  Submissions and review actions are sent exactly once.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional
from uuid import UUID

import httpx
from pydantic import ValidationError as PydanticValidationError

from investor_portal.client.errors import ConflictError, NetworkError, ValidationError
from investor_portal.core.coins import CoinAvailability
from investor_portal.core.config import settings
from investor_portal.core.resilience import retry_with_backoff
from investor_portal.models.investment_request import RequestStatus
from investor_portal.models.setting import CURRENT_RATE_KEY
from investor_portal.schemas.investment_request import InvestmentRequestResponse

logger = logging.getLogger(__name__)

REQUESTS_PATH = "/api/investment-requests"
SETTINGS_PATH = "/api/settings"


class PortalAPIClient:
    """
    Session-scoped API client.

    Parameters
    ----------
    base_url : str, optional
        Service root; defaults to ``settings.PORTAL_API_URL``.
    token : str, optional
        Opaque bearer token.  Without one, requests go out anonymously.
    read_retries : int, optional
        Retries for idempotent reads; defaults to ``settings.CLIENT_READ_RETRIES``.
    transport : httpx.AsyncBaseTransport, optional
        Injected transport (``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        read_retries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        token = token if token is not None else settings.PORTAL_API_TOKEN
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=base_url or settings.PORTAL_API_URL,
            headers=headers,
            transport=transport,
        )
        retries = settings.CLIENT_READ_RETRIES if read_retries is None else read_retries
        self._send_read = retry_with_backoff(
            max_retries=retries,
            base_delay=0.5,
            retryable_exceptions=(httpx.TransportError,),
        )(self._send)

    async def __aenter__(self) -> "PortalAPIClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Transport ──

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        return await self._client.request(method, path, **kwargs)

    async def _request(self, method: str, path: str, *, read: bool = False, **kwargs: Any) -> Any:
        """Send one request and return the envelope's ``data``."""
        send = self._send_read if read else self._send
        try:
            response = await send(method, path, **kwargs)
        except httpx.TransportError as exc:
            logger.error("%s %s failed: %s: %s", method, path, type(exc).__name__, exc)
            raise NetworkError("Could not reach the server. Please try again.") from exc

        try:
            body = response.json()
        except ValueError:
            body = None

        error_message = body.get("error") if isinstance(body, dict) else None

        if response.status_code == 409:
            message = error_message or "The request is no longer pending"
            logger.warning("%s %s conflict: %s", method, path, message)
            raise ConflictError(message)
        if response.status_code == 422:
            message = error_message or "The server rejected the submitted values"
            logger.warning("%s %s rejected: %s", method, path, message)
            raise ValidationError(message)
        if response.is_error:
            logger.error(
                "%s %s returned HTTP %d: %s",
                method,
                path,
                response.status_code,
                error_message or response.text[:200],
            )
            raise NetworkError(
                error_message or f"Server error (HTTP {response.status_code}). Please try again.",
                status_code=response.status_code,
            )
        if not isinstance(body, dict) or not body.get("success"):
            logger.error("%s %s returned an unsuccessful envelope: %r", method, path, body)
            raise NetworkError(error_message or "Unexpected response from server")
        return body.get("data")

    @staticmethod
    def _parse_request(data: Any) -> InvestmentRequestResponse:
        try:
            return InvestmentRequestResponse.model_validate(data)
        except PydanticValidationError as exc:
            logger.error("Malformed investment request in response: %s", exc)
            raise NetworkError("Unexpected response from server") from exc

    # ── Investment requests ──

    async def list_investment_requests(
        self,
        status: Optional[RequestStatus] = None,
        investor_id: Optional[UUID] = None,
    ) -> List[InvestmentRequestResponse]:
        params: Dict[str, str] = {}
        if status is not None:
            params["status"] = status.value
        if investor_id is not None:
            params["investor_id"] = str(investor_id)
        data = await self._request("GET", REQUESTS_PATH, read=True, params=params)
        if not isinstance(data, list):
            raise NetworkError("Unexpected response from server")
        return [self._parse_request(item) for item in data]

    async def get_investment_request(self, request_id: UUID) -> InvestmentRequestResponse:
        data = await self._request("GET", f"{REQUESTS_PATH}/{request_id}", read=True)
        return self._parse_request(data)

    async def get_coin_availability(self) -> CoinAvailability:
        data = await self._request("GET", f"{REQUESTS_PATH}/availability", read=True)
        try:
            return CoinAvailability.model_validate(data)
        except PydanticValidationError as exc:
            logger.error("Malformed coin availability in response: %s", exc)
            raise NetworkError("Unexpected response from server") from exc

    async def submit_investment_request(self, payload: Dict[str, Any]) -> InvestmentRequestResponse:
        data = await self._request("POST", REQUESTS_PATH, json=payload)
        return self._parse_request(data)

    async def resolve_investment_request(
        self, request_id: UUID, status: RequestStatus, method: str = "PATCH"
    ) -> InvestmentRequestResponse:
        data = await self._request(
            method, f"{REQUESTS_PATH}/{request_id}", json={"status": status.value}
        )
        return self._parse_request(data)

    # ── Settings ──

    async def get_settings(self) -> Dict[str, Any]:
        data = await self._request("GET", SETTINGS_PATH, read=True)
        return data if isinstance(data, dict) else {}

    async def get_current_rate(self) -> Optional[Decimal]:
        """The coin rate right now, or ``None`` if the service has none configured."""
        entry = (await self.get_settings()).get(CURRENT_RATE_KEY) or {}
        raw = entry.get("value") if isinstance(entry, dict) else None
        if raw in (None, ""):
            return None
        try:
            return Decimal(str(raw))
        except InvalidOperation:
            logger.error("Current rate %r from server is not a number", raw)
            return None
