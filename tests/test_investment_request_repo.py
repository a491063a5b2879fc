"""
Repository tests against a real aiosqlite database.

The review workflow depends on the database refusing a second transition,
so these tests use actual sessions rather than mocks.  Tests cover:
- transition_from_pending: success, already resolved, missing id
- two reviewers racing on the same request: exactly one wins
- list_requests ordering and filters
- sum_committed_coins over pending and approved requests
- a submitted request re-read from the database re-prices to its stored coins
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

import investor_portal.db.base  # noqa: F401
from investor_portal.core.coins import calculate_coins
from investor_portal.core.exceptions import ValidationError
from investor_portal.db.session import build_engine
from investor_portal.models.investment_request import InvestmentRequest, RequestStatus
from investor_portal.models.investor import Investor
from investor_portal.models.setting import Setting
from investor_portal.repositories.investment_request_repo import InvestmentRequestRepository
from investor_portal.repositories.investor_repo import InvestorRepository
from investor_portal.repositories.setting_repo import SettingRepository
from investor_portal.schemas.investment_request import InvestmentRequestCreate
from investor_portal.services.investment_request_service import InvestmentRequestService

from .conftest import (
    INVESTOR_ID,
    INVESTOR_ID_2,
    REQUEST_ID,
    REQUEST_ID_2,
    make_investment_request,
    make_investor,
    make_setting,
)


@pytest_asyncio.fixture()
async def session_factory():
    """A fresh in-memory database built the way the app builds it."""
    engine = build_engine("sqlite+aiosqlite://", use_sqlite=True)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    older = datetime.now(timezone.utc) - timedelta(hours=1)
    async with factory() as session:
        session.add(make_investor())
        session.add(make_investor(id=INVESTOR_ID_2, email="other@example.com"))
        await session.commit()
        session.add(make_investment_request(created_at=older))
        session.add(make_investment_request(id=REQUEST_ID_2, investor_id=INVESTOR_ID_2))
        await session.commit()

    yield factory
    await engine.dispose()


class TestTransitionFromPending:
    @pytest.mark.asyncio
    async def test_moves_pending_to_approved(self, session_factory):
        async with session_factory() as session:
            repo = InvestmentRequestRepository(InvestmentRequest, session)
            result = await repo.transition_from_pending(REQUEST_ID, RequestStatus.APPROVED)

        assert result is not None
        assert result.status == RequestStatus.APPROVED
        assert result.expected_coins == 2400

    @pytest.mark.asyncio
    async def test_second_transition_matches_nothing(self, session_factory):
        async with session_factory() as session:
            repo = InvestmentRequestRepository(InvestmentRequest, session)
            await repo.transition_from_pending(REQUEST_ID, RequestStatus.REJECTED)
            second = await repo.transition_from_pending(REQUEST_ID, RequestStatus.APPROVED)
            stored = await repo.get(REQUEST_ID)

        assert second is None
        assert stored.status == RequestStatus.REJECTED

    @pytest.mark.asyncio
    async def test_missing_request_returns_none(self, session_factory):
        async with session_factory() as session:
            repo = InvestmentRequestRepository(InvestmentRequest, session)
            result = await repo.transition_from_pending(INVESTOR_ID, RequestStatus.APPROVED)

        assert result is None

    @pytest.mark.asyncio
    async def test_stale_read_cannot_resolve_twice(self, session_factory):
        async with session_factory() as first, session_factory() as second:
            repo_a = InvestmentRequestRepository(InvestmentRequest, first)
            repo_b = InvestmentRequestRepository(InvestmentRequest, second)
            seen_a = await repo_a.get(REQUEST_ID)
            seen_b = await repo_b.get(REQUEST_ID)
            assert seen_a.status == seen_b.status == RequestStatus.PENDING

            won = await repo_a.transition_from_pending(REQUEST_ID, RequestStatus.APPROVED)
            lost = await repo_b.transition_from_pending(REQUEST_ID, RequestStatus.REJECTED)

        assert won is not None and won.status == RequestStatus.APPROVED
        assert lost is None

    @pytest.mark.asyncio
    async def test_concurrent_reviewers_exactly_one_wins(self, session_factory):
        async def review(new_status):
            async with session_factory() as session:
                repo = InvestmentRequestRepository(InvestmentRequest, session)
                return await repo.transition_from_pending(REQUEST_ID, new_status)

        results = await asyncio.gather(
            review(RequestStatus.APPROVED), review(RequestStatus.REJECTED)
        )

        winners = [r for r in results if r is not None]
        assert len(winners) == 1
        async with session_factory() as session:
            stored = await session.get(InvestmentRequest, REQUEST_ID)
        assert stored.status == winners[0].status


class TestListRequests:
    @pytest.mark.asyncio
    async def test_pending_oldest_first(self, session_factory):
        async with session_factory() as session:
            repo = InvestmentRequestRepository(InvestmentRequest, session)
            pending = await repo.list_requests(status=RequestStatus.PENDING)

        assert [r.id for r in pending] == [REQUEST_ID, REQUEST_ID_2]

    @pytest.mark.asyncio
    async def test_resolved_requests_leave_pending_list(self, session_factory):
        async with session_factory() as session:
            repo = InvestmentRequestRepository(InvestmentRequest, session)
            await repo.transition_from_pending(REQUEST_ID, RequestStatus.APPROVED)
            pending = await repo.list_requests(status=RequestStatus.PENDING)
            approved = await repo.list_requests(status=RequestStatus.APPROVED)

        assert [r.id for r in pending] == [REQUEST_ID_2]
        assert [r.id for r in approved] == [REQUEST_ID]

    @pytest.mark.asyncio
    async def test_filter_by_investor(self, session_factory):
        async with session_factory() as session:
            repo = InvestmentRequestRepository(InvestmentRequest, session)
            mine = await repo.list_requests(investor_id=INVESTOR_ID_2)

        assert [r.id for r in mine] == [REQUEST_ID_2]


class TestSumCommittedCoins:
    @pytest.mark.asyncio
    async def test_counts_pending_requests(self, session_factory):
        async with session_factory() as session:
            repo = InvestmentRequestRepository(InvestmentRequest, session)
            total = await repo.sum_committed_coins()

        assert total == 4800

    @pytest.mark.asyncio
    async def test_rejected_requests_release_their_coins(self, session_factory):
        async with session_factory() as session:
            repo = InvestmentRequestRepository(InvestmentRequest, session)
            await repo.transition_from_pending(REQUEST_ID, RequestStatus.APPROVED)
            await repo.transition_from_pending(REQUEST_ID_2, RequestStatus.REJECTED)
            total = await repo.sum_committed_coins()

        assert total == 2400


def _service(session) -> InvestmentRequestService:
    return InvestmentRequestService(
        InvestmentRequestRepository(InvestmentRequest, session),
        InvestorRepository(Investor, session),
        SettingRepository(Setting, session),
    )


class TestStoredRequestPricing:
    """A persisted request re-prices from its own stored figures."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "amount, rate",
        [
            (Decimal("100.01"), Decimal("0.00001")),
            (Decimal("1000"), Decimal("0.0000123457")),
            (Decimal("2500.55"), Decimal("0.3333333333")),
        ],
    )
    async def test_stored_row_matches_its_coins(self, session_factory, amount, rate):
        body = InvestmentRequestCreate(
            investor_id=INVESTOR_ID, investment_amount=amount, current_rate=rate
        )
        async with session_factory() as session:
            created = await _service(session).submit_request(body)

        async with session_factory() as session:
            stored = await session.get(InvestmentRequest, created.id)

        assert stored.investment_amount == amount
        assert stored.current_rate == rate
        repriced = calculate_coins(stored.investment_amount, stored.current_rate)
        assert stored.expected_coins == repriced.expected_coins
        assert stored.discounted_rate == repriced.discounted_rate

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "amount, rate",
        [
            (Decimal("100.004"), Decimal("0.00001")),
            (Decimal("1000"), Decimal("0.000012345678901")),
        ],
    )
    async def test_unstorable_figures_are_not_persisted(self, session_factory, amount, rate):
        body = InvestmentRequestCreate(
            investor_id=INVESTOR_ID, investment_amount=amount, current_rate=rate
        )
        async with session_factory() as session:
            with pytest.raises(ValidationError):
                await _service(session).submit_request(body)

        async with session_factory() as session:
            repo = InvestmentRequestRepository(InvestmentRequest, session)
            assert len(await repo.list_requests()) == 2

    @pytest.mark.asyncio
    async def test_coin_limit_is_enforced_against_stored_requests(self, session_factory):
        async with session_factory() as session:
            session.add(make_setting(key="total_coin_limit", value="6000"))
            await session.commit()

        body = InvestmentRequestCreate(
            investor_id=INVESTOR_ID,
            investment_amount=Decimal("1000"),
            current_rate=Decimal("0.5"),
        )
        async with session_factory() as session:
            with pytest.raises(ValidationError, match="exceeds available 1,200 coins"):
                await _service(session).submit_request(body)
