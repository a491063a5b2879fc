"""
Unit tests for PortalAPIClient using httpx.MockTransport.

Tests cover:
- envelope parsing for list / submit / resolve / settings / coin availability
- bearer token header
- error mapping: 409 → ConflictError, 422 → ValidationError,
  5xx / transport failure / bad envelope → NetworkError
- read retries on transport failure, no retries for writes
"""

import json
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from investor_portal.client.api import PortalAPIClient
from investor_portal.client.errors import ConflictError, NetworkError, ValidationError
from investor_portal.models.investment_request import RequestStatus

from .conftest import INVESTOR_ID, REQUEST_ID, make_investment_request, request_json


def _client(handler, **kwargs) -> PortalAPIClient:
    kwargs.setdefault("read_retries", 0)
    kwargs.setdefault("token", "")
    return PortalAPIClient(
        base_url="http://portal.test", transport=httpx.MockTransport(handler), **kwargs
    )


def _ok(data, status_code=200) -> httpx.Response:
    return httpx.Response(status_code, json={"success": True, "data": data})


def _fail(status_code, message) -> httpx.Response:
    return httpx.Response(status_code, json={"success": False, "error": message})


class TestReads:
    @pytest.mark.asyncio
    async def test_list_pending_sends_filter_and_parses(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = request.url
            return _ok([request_json(make_investment_request())])

        async with _client(handler) as api:
            result = await api.list_investment_requests(status=RequestStatus.PENDING)

        assert seen["url"].path == "/api/investment-requests"
        assert seen["url"].params["status"] == "pending"
        assert result[0].id == REQUEST_ID
        assert result[0].expected_coins == 2400

    @pytest.mark.asyncio
    async def test_get_current_rate(self):
        def handler(request):
            return _ok({"current_rate": {"value": "0.25", "updated_at": None}})

        async with _client(handler) as api:
            assert await api.get_current_rate() == Decimal("0.25")

    @pytest.mark.asyncio
    async def test_get_coin_availability(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            return _ok(
                {
                    "total_coin_limit": 10000,
                    "currently_used_coins": 9500,
                    "available_coins": 500,
                    "utilization_percentage": 95.0,
                    "is_available": True,
                    "is_nearly_full": True,
                }
            )

        async with _client(handler) as api:
            availability = await api.get_coin_availability()

        assert seen["path"] == "/api/investment-requests/availability"
        assert availability.available_coins == 500
        assert availability.is_nearly_full

    @pytest.mark.asyncio
    async def test_malformed_availability_is_network_error(self):
        async with _client(lambda request: _ok({"available_coins": "lots"})) as api:
            with pytest.raises(NetworkError):
                await api.get_coin_availability()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "settings_data", [{}, {"current_rate": {"value": ""}}, {"current_rate": {"value": "abc"}}]
    )
    async def test_missing_or_bad_rate_is_none(self, settings_data):
        async with _client(lambda request: _ok(settings_data)) as api:
            assert await api.get_current_rate() is None

    @pytest.mark.asyncio
    async def test_bearer_token_sent_when_configured(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return _ok({})

        async with _client(handler, token="abc123") as api:
            await api.get_settings()

        assert seen["auth"] == "Bearer abc123"

    @pytest.mark.asyncio
    async def test_no_auth_header_without_token(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return _ok({})

        async with _client(handler) as api:
            await api.get_settings()

        assert seen["auth"] is None

    @pytest.mark.asyncio
    async def test_reads_retry_transport_errors(self):
        calls = {"n": 0}

        def handler(request):
            calls["n"] += 1
            if calls["n"] == 1:
                raise httpx.ConnectError("refused")
            return _ok([])

        api = PortalAPIClient(
            base_url="http://portal.test",
            token="",
            read_retries=1,
            transport=httpx.MockTransport(handler),
        )
        with patch("investor_portal.core.resilience.asyncio.sleep", new_callable=AsyncMock):
            async with api:
                result = await api.list_investment_requests()

        assert result == []
        assert calls["n"] == 2


class TestWrites:
    @pytest.mark.asyncio
    async def test_submit_posts_payload(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return _ok(request_json(make_investment_request()), status_code=201)

        payload = {"investor_id": str(INVESTOR_ID), "investment_amount": "1000"}
        async with _client(handler) as api:
            created = await api.submit_investment_request(payload)

        assert seen["method"] == "POST"
        assert seen["body"] == payload
        assert created.status is RequestStatus.PENDING

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["PATCH", "PUT"])
    async def test_resolve_sends_status(self, method):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return _ok(request_json(make_investment_request(status=RequestStatus.APPROVED)))

        async with _client(handler) as api:
            result = await api.resolve_investment_request(
                REQUEST_ID, RequestStatus.APPROVED, method=method
            )

        assert seen == {
            "method": method,
            "path": f"/api/investment-requests/{REQUEST_ID}",
            "body": {"status": "approved"},
        }
        assert result.status is RequestStatus.APPROVED

    @pytest.mark.asyncio
    async def test_writes_are_not_retried(self):
        calls = {"n": 0}

        def handler(request):
            calls["n"] += 1
            raise httpx.ConnectError("refused")

        async with _client(handler, read_retries=3) as api:
            with pytest.raises(NetworkError):
                await api.resolve_investment_request(REQUEST_ID, RequestStatus.REJECTED)

        assert calls["n"] == 1


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_409_is_conflict(self):
        async with _client(lambda r: _fail(409, "already approved")) as api:
            with pytest.raises(ConflictError) as exc_info:
                await api.resolve_investment_request(REQUEST_ID, RequestStatus.APPROVED)

        assert exc_info.value.message == "already approved"
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_422_is_validation_error(self):
        async with _client(lambda r: _fail(422, "Minimum investment amount is $100")) as api:
            with pytest.raises(ValidationError) as exc_info:
                await api.submit_investment_request({})

        assert exc_info.value.message == "Minimum investment amount is $100"

    @pytest.mark.asyncio
    async def test_500_is_network_error(self):
        async with _client(lambda r: _fail(500, "Internal Server Error")) as api:
            with pytest.raises(NetworkError) as exc_info:
                await api.list_investment_requests()

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        async with _client(lambda r: httpx.Response(502, text="Bad Gateway")) as api:
            with pytest.raises(NetworkError):
                await api.get_settings()

    @pytest.mark.asyncio
    async def test_unsuccessful_envelope_is_network_error(self):
        async with _client(lambda r: httpx.Response(200, json={"success": False})) as api:
            with pytest.raises(NetworkError):
                await api.get_settings()

    @pytest.mark.asyncio
    async def test_malformed_record_is_network_error(self):
        async with _client(lambda r: _ok({"id": "nope"})) as api:
            with pytest.raises(NetworkError):
                await api.get_investment_request(REQUEST_ID)

    @pytest.mark.asyncio
    async def test_transport_failure_is_network_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out")

        async with _client(handler) as api:
            with pytest.raises(NetworkError):
                await api.list_investment_requests()
