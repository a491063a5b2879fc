"""
Investment request repository — data-access layer for ``investment_requests``.

Adds the filtered listing used by the portal views, the committed-coin
total behind the supply limit, and the atomic status transition used by the
review workflow.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.future import select

from investor_portal.models.investment_request import InvestmentRequest, RequestStatus
from investor_portal.repositories.base import BaseRepository


class InvestmentRequestRepository(BaseRepository[InvestmentRequest]):
    """Concrete repository for :class:`InvestmentRequest` entities."""

    async def list_requests(
        self,
        status: Optional[RequestStatus] = None,
        investor_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[InvestmentRequest]:
        """
        Return requests, optionally filtered by status and/or investor.

        Pending requests are listed oldest first (review queue order);
        every other listing is newest first.
        """

        async def _list() -> List[InvestmentRequest]:
            stmt = select(self.model)
            if status is not None:
                stmt = stmt.where(self.model.status == status)
            if investor_id is not None:
                stmt = stmt.where(self.model.investor_id == investor_id)
            if status == RequestStatus.PENDING:
                stmt = stmt.order_by(self.model.created_at.asc(), self.model.id)
            else:
                stmt = stmt.order_by(self.model.created_at.desc(), self.model.id)
            result = await self.db.execute(stmt.offset(skip).limit(limit))
            return list(result.scalars().all())

        return await self._execute_with_circuit_breaker(_list)

    async def transition_from_pending(
        self, request_id: UUID, new_status: RequestStatus
    ) -> Optional[InvestmentRequest]:
        """
        Move a request out of ``pending`` with a single conditional UPDATE.

        The ``status = 'pending'`` predicate makes this a compare-and-set:
        when two reviewers race, the database lets exactly one UPDATE match.
        Returns the refreshed record, or ``None`` if no pending row matched
        (missing id or already resolved — the caller tells them apart).
        """

        async def _transition() -> Optional[InvestmentRequest]:
            stmt = (
                update(self.model)
                .where(
                    self.model.id == request_id,
                    self.model.status == RequestStatus.PENDING,
                )
                .values(status=new_status, updated_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
            result = await self.db.execute(stmt)
            await self._commit("transition")
            if result.rowcount != 1:
                return None
            return await self.db.get(self.model, request_id, populate_existing=True)

        return await self._execute_with_circuit_breaker(_transition)

    async def sum_committed_coins(self) -> int:
        """Total ``expected_coins`` of pending and approved requests."""

        async def _sum() -> int:
            stmt = select(func.coalesce(func.sum(self.model.expected_coins), 0)).where(
                self.model.status.in_([RequestStatus.PENDING, RequestStatus.APPROVED])
            )
            result = await self.db.execute(stmt)
            return int(result.scalar_one())

        return await self._execute_with_circuit_breaker(_sum)
