"""
Investor repository — data-access layer for the ``investors`` table.

Adds the email look-up used for duplicate detection.
"""

from typing import Optional

from sqlalchemy.future import select

from investor_portal.models.investor import Investor
from investor_portal.repositories.base import BaseRepository


class InvestorRepository(BaseRepository[Investor]):
    """Concrete repository for :class:`Investor` entities."""

    async def get_by_email(self, email: str) -> Optional[Investor]:
        """Return the investor registered with ``email``, if any."""

        async def _get_by_email() -> Optional[Investor]:
            stmt = select(self.model).where(self.model.email == email)
            result = await self.db.execute(stmt)
            return result.scalars().first()

        return await self._execute_with_circuit_breaker(_get_by_email)
