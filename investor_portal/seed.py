"""
Seed script — populates the database with sample data for development / demo.

Usage:
    USE_SQLITE=true python -m investor_portal.seed

The script is idempotent: it checks for existing data before inserting.
"""

import asyncio
import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlmodel import SQLModel

import investor_portal.db.base  # noqa: F401  (populates SQLModel.metadata)
from investor_portal.core.coins import calculate_coins
from investor_portal.db.session import AsyncSessionLocal, engine
from investor_portal.models.investment_request import InvestmentRequest, RequestStatus
from investor_portal.models.investor import Investor
from investor_portal.models.setting import (
    CURRENT_RATE_KEY,
    TOTAL_COIN_LIMIT_KEY,
    RateHistory,
    Setting,
)

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s"
)
logger = logging.getLogger(__name__)

# ── Sample data ──

CURRENT_RATE = Decimal("0.5")

INVESTORS = [
    Investor(
        id=uuid.UUID("770e8400-e29b-41d4-a716-446655440002"),
        full_name="Amara Okafor",
        email="amara.okafor@example.com",
        created_at=datetime(2024, 2, 10, 9, 15, 0, tzinfo=timezone.utc),
    ),
    Investor(
        id=uuid.UUID("880e8400-e29b-41d4-a716-446655440003"),
        full_name="Lukas Berger",
        email="lukas.berger@example.com",
        created_at=datetime(2024, 9, 22, 15, 45, 0, tzinfo=timezone.utc),
    ),
    Investor(
        id=uuid.UUID("330e8400-e29b-41d4-a716-446655440030"),
        full_name="Priya Raman",
        email="priya.raman@example.com",
        created_at=datetime(2024, 4, 5, 11, 0, 0, tzinfo=timezone.utc),
    ),
]

RATES = [
    RateHistory(
        id=uuid.UUID("550e8400-e29b-41d4-a716-446655440000"),
        rate_value=Decimal("0.4"),
        effective_date=date(2024, 1, 1),
        notes="Launch price",
    ),
    RateHistory(
        id=uuid.UUID("660e8400-e29b-41d4-a716-446655440001"),
        rate_value=CURRENT_RATE,
        effective_date=date(2024, 7, 1),
        notes="Mid-year revaluation",
    ),
]

SETTINGS = [
    Setting(key=CURRENT_RATE_KEY, value=str(CURRENT_RATE)),
    Setting(key=TOTAL_COIN_LIMIT_KEY, value="50000000"),
]

# (id, investor, amount, status)
REQUESTS = [
    ("990e8400-e29b-41d4-a716-446655440004", INVESTORS[0].id, Decimal("1000.00"), RequestStatus.PENDING),
    ("aa0e8400-e29b-41d4-a716-446655440005", INVESTORS[1].id, Decimal("250.00"), RequestStatus.PENDING),
    ("bb0e8400-e29b-41d4-a716-446655440006", INVESTORS[2].id, Decimal("5000.00"), RequestStatus.APPROVED),
    ("cc0e8400-e29b-41d4-a716-446655440007", INVESTORS[0].id, Decimal("100.00"), RequestStatus.REJECTED),
]


def _build_request(request_id: str, investor_id: uuid.UUID, amount: Decimal, status: RequestStatus) -> InvestmentRequest:
    quote = calculate_coins(amount, CURRENT_RATE)
    return InvestmentRequest(
        id=uuid.UUID(request_id),
        investor_id=investor_id,
        investment_amount=amount,
        current_rate=CURRENT_RATE,
        discounted_rate=quote.discounted_rate,
        expected_coins=quote.expected_coins,
        status=status,
    )


async def seed() -> None:
    """Create tables and insert sample data if the database is empty."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async with AsyncSessionLocal() as session:
        result = await session.execute(select(Investor).limit(1))
        if result.scalars().first() is not None:
            logger.info("Database already contains data — skipping seed.")
            return

        for investor in INVESTORS:
            session.add(investor)
        for rate in RATES:
            session.add(rate)
        for setting in SETTINGS:
            session.add(setting)
        await session.commit()

        # Requests reference investors, so insert after
        for row in REQUESTS:
            session.add(_build_request(*row))
        await session.commit()

        logger.info(
            "Seeded %d investors, %d rate entries, %d settings, %d investment requests",
            len(INVESTORS),
            len(RATES),
            len(SETTINGS),
            len(REQUESTS),
        )


if __name__ == "__main__":
    asyncio.run(seed())
