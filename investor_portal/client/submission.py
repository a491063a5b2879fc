"""
Investment submission for the investor-facing form.

Validation happens before any network traffic: an amount below the minimum
raises :class:`ValidationError` and nothing is sent, as does a request for
more coins than the supply has left.  The rate is read once per submission
and the same value prices the payload, so the coins an investor sees and
the coins the service stores come from one calculation.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from investor_portal.client.api import PortalAPIClient
from investor_portal.client.errors import ActionInProgressError, ValidationError
from investor_portal.core.coins import (
    CoinQuote,
    calculate_coins,
    ensure_coins_available,
    parse_amount,
    validate_investment_amount,
    validate_rate,
)
from investor_portal.models.investment_request import RequestStatus
from investor_portal.schemas.investment_request import InvestmentRequestResponse

logger = logging.getLogger(__name__)


def build_payload(investor_id: UUID, quote: CoinQuote) -> Dict[str, Any]:
    """Request body for ``POST /api/investment-requests``.

    Decimals travel as strings so the service sees the exact values that
    priced the quote.
    """
    return {
        "investor_id": str(investor_id),
        "investment_amount": str(quote.amount),
        "current_rate": str(quote.rate),
        "discounted_rate": str(quote.discounted_rate),
        "expected_coins": quote.expected_coins,
        "status": RequestStatus.PENDING.value,
    }


class InvestmentSubmitter:
    """Submission form state for one signed-in investor."""

    def __init__(self, api: PortalAPIClient, investor_id: UUID):
        self._api = api
        self._investor_id = investor_id
        self._lock = asyncio.Lock()

    @property
    def is_submitting(self) -> bool:
        return self._lock.locked()

    async def quote(self, amount: Any, rate: Optional[Decimal] = None) -> CoinQuote:
        """
        Live preview of the coins ``amount`` buys.

        Unparseable or non-positive input previews as zero coins rather than
        raising; the minimum is enforced on submit only.
        """
        if rate is None:
            rate = await self._api.get_current_rate()
        try:
            parsed = parse_amount(amount)
        except ValidationError:
            parsed = Decimal("0")
        return calculate_coins(parsed, rate if rate is not None else Decimal("0"))

    async def submit(self, amount: Any) -> InvestmentRequestResponse:
        """
        Validate ``amount``, price it at the current rate and create a pending
        request.

        Raises:
        - :class:`ActionInProgressError` if a submission is already in flight.
        - :class:`ValidationError` for a bad amount, a missing rate or too few
          coins left (nothing is sent) or if the service rejects the figures.
        - :class:`NetworkError` if the service is unreachable or fails.
        """
        if self._lock.locked():
            raise ActionInProgressError("A submission is already in progress")

        async with self._lock:
            parsed = validate_investment_amount(parse_amount(amount))
            rate = validate_rate(await self._api.get_current_rate())
            quote = calculate_coins(parsed, rate)
            ensure_coins_available(
                quote.expected_coins, await self._api.get_coin_availability()
            )

            created = await self._api.submit_investment_request(
                build_payload(self._investor_id, quote)
            )
            logger.info(
                "Submitted investment request %s: $%s → %d coins",
                created.id,
                parsed,
                created.expected_coins,
            )
            return created
