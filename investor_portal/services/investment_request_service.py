"""
Investment request service — submission and review of coin purchases.

Two business rules live here:

1. **Submission** recomputes the coin allocation with the shared calculator
   and refuses the request if the amount is below the minimum, the rate is
   unusable, the figures the investor was shown disagree with the
   recomputation, or the coins would exceed the remaining supply.
2. **Review** moves a request ``pending → approved | rejected`` exactly once.
   The repository performs the move as a conditional UPDATE, so when two
   administrators act on the same request only one wins; the other gets a
   409 and should re-fetch.

Caching:
    Listings are cache-backed under ``investment_requests:``; submission and
    review both invalidate that prefix.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from investor_portal.core.cache import cache
from investor_portal.core.coins import (
    RATE_QUANTUM,
    CoinAvailability,
    calculate_coins,
    coin_availability,
    ensure_coins_available,
    validate_investment_amount,
    validate_rate,
)
from investor_portal.core.exceptions import (
    BusinessRuleViolation,
    ConflictException,
    NotFoundException,
    ValidationError,
)
from investor_portal.models.investment_request import InvestmentRequest, RequestStatus
from investor_portal.models.setting import TOTAL_COIN_LIMIT_KEY
from investor_portal.repositories.investment_request_repo import InvestmentRequestRepository
from investor_portal.repositories.investor_repo import InvestorRepository
from investor_portal.repositories.setting_repo import SettingRepository
from investor_portal.schemas.investment_request import InvestmentRequestCreate
from investor_portal.services.setting_service import parse_coin_limit

logger = logging.getLogger(__name__)


class InvestmentRequestService:
    """Encapsulates the investment request lifecycle."""

    CACHE_PREFIX = "investment_requests:"

    def __init__(
        self,
        request_repo: InvestmentRequestRepository,
        investor_repo: InvestorRepository,
        setting_repo: SettingRepository,
    ):
        self._repo = request_repo
        self._investor_repo = investor_repo
        self._settings = setting_repo

    # ── Queries ──

    async def list_requests(
        self,
        status: Optional[RequestStatus] = None,
        investor_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[InvestmentRequest]:
        """Filtered, paginated listing (cache-backed)."""
        status_key = status.value if status else "all"
        cache_key = f"{self.CACHE_PREFIX}{status_key}:{investor_id or 'all'}:{skip}:{limit}"
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        requests = await self._repo.list_requests(
            status=status, investor_id=investor_id, skip=skip, limit=limit
        )
        cache.set(cache_key, requests)
        return requests

    async def get_request(self, request_id: UUID) -> InvestmentRequest:
        request = await self._repo.get(request_id)
        if not request:
            raise NotFoundException("Investment request", request_id)
        return request

    async def get_coin_availability(self) -> CoinAvailability:
        """
        Coins still open to new requests.

        Pending and approved requests count against ``total_coin_limit``;
        without that setting the supply is uncapped.  Not cached: a
        submission must see every earlier one.
        """
        setting = await self._settings.get(TOTAL_COIN_LIMIT_KEY)
        limit = parse_coin_limit(setting.value) if setting is not None else None
        used = await self._repo.sum_committed_coins()
        return coin_availability(limit, used)

    # ── Commands ──

    async def submit_request(self, request_in: InvestmentRequestCreate) -> InvestmentRequest:
        """
        Create a ``pending`` request from an investor submission.

        Validation sequence:
        1. Amount ≥ minimum and rate > 0 → 422 ``ValidationError``.
        2. Client-side ``expected_coins`` / ``discounted_rate``, when sent,
           must equal the recomputed values → 422.
        3. The investor must exist → 404.
        4. ``expected_coins`` must fit the remaining coin supply → 422.

        Amount and rate must already be at storage scale (cents, 10 decimal
        places), so the stored row re-prices to the stored coin count.
        """
        amount = validate_investment_amount(request_in.investment_amount)
        rate = validate_rate(request_in.current_rate)
        quote = calculate_coins(amount, rate)

        if (
            request_in.expected_coins is not None
            and request_in.expected_coins != quote.expected_coins
        ):
            raise ValidationError(
                f"expected_coins {request_in.expected_coins} does not match "
                f"{quote.expected_coins} computed for ${amount} at rate {rate}",
                field="expected_coins",
            )
        if request_in.discounted_rate is not None and (
            request_in.discounted_rate.quantize(RATE_QUANTUM) != quote.discounted_rate
        ):
            raise ValidationError(
                f"discounted_rate {request_in.discounted_rate} does not match "
                f"{quote.discounted_rate} computed for rate {rate}",
                field="discounted_rate",
            )

        investor = await self._investor_repo.get(request_in.investor_id)
        if not investor:
            raise NotFoundException("Investor", request_in.investor_id)

        availability = await self.get_coin_availability()
        try:
            ensure_coins_available(quote.expected_coins, availability)
        except ValidationError:
            logger.warning(
                "Refused investment request for investor %s: %d coins requested, %s available",
                request_in.investor_id,
                quote.expected_coins,
                availability.available_coins,
            )
            raise

        request = InvestmentRequest(
            investor_id=request_in.investor_id,
            investment_amount=amount,
            current_rate=rate,
            discounted_rate=quote.discounted_rate,
            expected_coins=quote.expected_coins,
            status=RequestStatus.PENDING,
        )
        try:
            created = await self._repo.create(request)
        except IntegrityError as exc:
            await self._repo.db.rollback()
            logger.warning(
                "IntegrityError creating investment request for investor %s: %s",
                request_in.investor_id,
                exc,
            )
            raise BusinessRuleViolation(
                "Investment request could not be created — the investor may have "
                "been removed, or a database constraint was violated."
            )

        cache.invalidate(self.CACHE_PREFIX)
        logger.info(
            "Investment request %s submitted: investor %s, $%s at %s → %d coins (awaiting review)",
            created.id,
            created.investor_id,
            created.investment_amount,
            created.current_rate,
            created.expected_coins,
        )
        return created

    async def resolve_request(
        self, request_id: UUID, new_status: RequestStatus
    ) -> InvestmentRequest:
        """
        Approve or reject a pending request and return the stored result.

        Raises:
        - :class:`BusinessRuleViolation` if ``new_status`` is ``pending``.
        - :class:`NotFoundException` if the request does not exist.
        - :class:`ConflictException` if it was already resolved (possibly by
          a concurrent reviewer a moment earlier).
        """
        if not new_status.is_terminal:
            raise BusinessRuleViolation(
                "A request can only be moved to 'approved' or 'rejected'; "
                "there is no transition back to 'pending'."
            )

        resolved = await self._repo.transition_from_pending(request_id, new_status)
        cache.invalidate(self.CACHE_PREFIX)

        if resolved is None:
            current = await self._repo.get(request_id)
            if current is None:
                raise NotFoundException("Investment request", request_id)
            logger.warning(
                "Rejected %s of investment request %s: already %s",
                new_status.value,
                request_id,
                current.status.value,
            )
            raise ConflictException(
                f"Investment request '{request_id}' is already {current.status.value}"
            )

        logger.info("Investment request %s %s", resolved.id, resolved.status.value)
        if resolved.status == RequestStatus.APPROVED:
            logger.info(
                "Investment request %s approved: %d coins for investor %s ready for contract generation",
                resolved.id,
                resolved.expected_coins,
                resolved.investor_id,
            )
        return resolved

