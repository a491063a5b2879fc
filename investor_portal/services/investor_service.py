"""
Investor service — business logic layer for investor operations.

Duplicate emails are caught by a pre-check for a friendly message; the DB
unique constraint remains the real guard against two concurrent sign-ups
(the resulting ``IntegrityError`` becomes the same 409).

Caching:
    ``get_all_investors`` is cache-backed; ``create_investor`` invalidates the
    ``investors:`` prefix.
"""

import logging
from typing import List
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from investor_portal.core.cache import cache
from investor_portal.core.exceptions import ConflictException, NotFoundException
from investor_portal.models.investor import Investor
from investor_portal.repositories.investor_repo import InvestorRepository
from investor_portal.schemas.investor import InvestorCreate

logger = logging.getLogger(__name__)


class InvestorService:
    """Encapsulates CRUD + business rules for :class:`Investor`."""

    CACHE_PREFIX = "investors:"

    def __init__(self, investor_repo: InvestorRepository):
        self._repo = investor_repo

    # ── Queries ──

    async def get_all_investors(self, skip: int = 0, limit: int = 100) -> List[Investor]:
        cache_key = f"{self.CACHE_PREFIX}list:{skip}:{limit}"
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        investors = await self._repo.get_all(skip=skip, limit=limit)
        cache.set(cache_key, investors)
        return investors

    async def get_investor(self, investor_id: UUID) -> Investor:
        investor = await self._repo.get(investor_id)
        if not investor:
            raise NotFoundException("Investor", investor_id)
        return investor

    # ── Commands ──

    async def create_investor(self, investor_in: InvestorCreate) -> Investor:
        """
        Register a new investor.

        Raises :class:`ConflictException` if the email is already in use.
        """
        existing = await self._repo.get_by_email(str(investor_in.email))
        if existing:
            raise ConflictException(f"An investor with email '{investor_in.email}' already exists")

        investor = Investor(full_name=investor_in.full_name, email=str(investor_in.email))
        try:
            created = await self._repo.create(investor)
        except IntegrityError:
            await self._repo.db.rollback()
            logger.warning("IntegrityError on duplicate email '%s' (concurrent sign-up)", investor_in.email)
            raise ConflictException(f"An investor with email '{investor_in.email}' already exists")

        cache.invalidate(self.CACHE_PREFIX)
        logger.info("Created investor %s (%s)", created.id, created.full_name)
        return created
