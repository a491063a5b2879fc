"""
Shared pytest fixtures for unit tests.

All tests run with ``USE_SQLITE=true`` and mocked dependencies so that
no real database or network I/O is needed.  This ensures tests are
fast, deterministic, and fully isolated.
"""

import os

os.environ.setdefault("USE_SQLITE", "true")

import uuid  # noqa: E402
from datetime import date, datetime, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402

from investor_portal.core.cache import TTLCache  # noqa: E402
from investor_portal.core.coins import calculate_coins  # noqa: E402
from investor_portal.models.investment_request import (  # noqa: E402
    InvestmentRequest,
    RequestStatus,
)
from investor_portal.models.investor import Investor  # noqa: E402
from investor_portal.models.setting import RateHistory, Setting  # noqa: E402

# ────────────────────────────────────────────────────────────────────────────
# Factory helpers — create domain objects with sensible defaults
# ────────────────────────────────────────────────────────────────────────────

INVESTOR_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
REQUEST_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")
INVESTOR_ID_2 = uuid.UUID("55555555-5555-5555-5555-555555555555")
REQUEST_ID_2 = uuid.UUID("66666666-6666-6666-6666-666666666666")
RATE_ID = uuid.UUID("77777777-7777-7777-7777-777777777777")


def make_investor(
    *,
    id: uuid.UUID = INVESTOR_ID,
    full_name: str = "Test Investor",
    email: str = "test@example.com",
    created_at: datetime | None = None,
) -> Investor:
    """Create an Investor domain object with sensible test defaults."""
    return Investor(
        id=id,
        full_name=full_name,
        email=email,
        created_at=created_at or datetime.now(timezone.utc),
    )


def make_investment_request(
    *,
    id: uuid.UUID = REQUEST_ID,
    investor_id: uuid.UUID = INVESTOR_ID,
    investment_amount: Decimal = Decimal("1000.00"),
    current_rate: Decimal = Decimal("0.5"),
    status: RequestStatus = RequestStatus.PENDING,
    created_at: datetime | None = None,
) -> InvestmentRequest:
    """Create an InvestmentRequest priced with the real coin calculator."""
    quote = calculate_coins(investment_amount, current_rate)
    now = created_at or datetime.now(timezone.utc)
    return InvestmentRequest(
        id=id,
        investor_id=investor_id,
        investment_amount=investment_amount,
        current_rate=current_rate,
        discounted_rate=quote.discounted_rate,
        expected_coins=quote.expected_coins,
        status=status,
        created_at=now,
        updated_at=now,
    )


def make_setting(*, key: str = "current_rate", value: str = "0.5") -> Setting:
    return Setting(key=key, value=value, updated_at=datetime.now(timezone.utc))


def make_rate(
    *,
    id: uuid.UUID = RATE_ID,
    rate_value: Decimal = Decimal("0.5"),
    effective_date: date = date(2024, 7, 1),
    notes: str | None = None,
) -> RateHistory:
    return RateHistory(
        id=id,
        rate_value=rate_value,
        effective_date=effective_date,
        notes=notes,
        created_at=datetime.now(timezone.utc),
    )


def request_json(request: InvestmentRequest) -> dict:
    """Render a request the way the API envelope carries it."""
    return {
        "id": str(request.id),
        "investor_id": str(request.investor_id),
        "investment_amount": float(request.investment_amount),
        "current_rate": float(request.current_rate),
        "discounted_rate": float(request.discounted_rate),
        "expected_coins": request.expected_coins,
        "status": request.status.value,
        "created_at": request.created_at.isoformat(),
        "updated_at": request.updated_at.isoformat(),
    }


# ────────────────────────────────────────────────────────────────────────────
# Pytest fixtures
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
def mock_db():
    """A mocked AsyncSession that tracks add/commit/refresh/rollback calls."""
    session = AsyncMock()
    session.add = MagicMock()
    session.commit = AsyncMock()
    session.refresh = AsyncMock()
    session.rollback = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.merge = AsyncMock()
    session.delete = AsyncMock()
    return session


@pytest.fixture()
def test_cache():
    """A fresh TTL cache instance for test isolation."""
    return TTLCache(ttl=30.0, max_size=100, enabled=True)


@pytest.fixture()
def disabled_cache():
    """A disabled TTL cache — all operations are no-ops."""
    return TTLCache(ttl=30.0, max_size=100, enabled=False)


@pytest.fixture(autouse=True)
def _clear_global_cache():
    """
    Clear the global cache before each test to prevent cross-test pollution.

    Uses autouse=True so every test gets a clean cache automatically.
    """
    from investor_portal.core.cache import cache

    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def _reset_circuit_breaker():
    """Keep breaker failures from one test out of the next."""
    from investor_portal.core.resilience import db_circuit_breaker

    db_circuit_breaker.reset()
    yield
