"""
Administrator review of pending investment requests.

:class:`PendingRequestsController` keeps a local view of the pending queue,
re-fetches it on a fixed interval, and approves or rejects requests through
the API.  The service is the source of truth: after every action the queue
is re-fetched, and a 409 (someone else resolved the request first) triggers
a re-fetch before the error reaches the caller.

Usage::

    async with PortalAPIClient(token=token) as api:
        async with PendingRequestsController(api) as controller:
            for request in controller.pending:
                ...
            await controller.approve(request.id)
"""

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set
from uuid import UUID

from investor_portal.client.api import PortalAPIClient
from investor_portal.client.errors import (
    ActionInProgressError,
    ConflictError,
    NetworkError,
    PortalError,
)
from investor_portal.core.config import settings
from investor_portal.models.investment_request import RequestStatus
from investor_portal.schemas.investment_request import InvestmentRequestResponse

logger = logging.getLogger(__name__)


class PendingRequestsController:
    """
    Pending-queue state for one administrator session.

    Parameters
    ----------
    api : PortalAPIClient
        Client used for listing and resolving requests.
    poll_interval : float, optional
        Seconds between background refreshes; defaults to
        ``settings.POLL_INTERVAL_SECONDS``.
    resolve_method : str
        ``"PATCH"`` or ``"PUT"``; both are accepted by the service.
    """

    def __init__(
        self,
        api: PortalAPIClient,
        poll_interval: Optional[float] = None,
        resolve_method: str = "PATCH",
    ):
        self._api = api
        self._poll_interval = (
            settings.POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        )
        self._resolve_method = resolve_method
        self._pending: Dict[UUID, InvestmentRequestResponse] = {}
        self._in_flight: Set[UUID] = set()
        self._task: Optional[asyncio.Task] = None
        self.last_refreshed: Optional[datetime] = None
        self.last_error: Optional[PortalError] = None

    async def __aenter__(self) -> "PendingRequestsController":
        await self.refresh()
        self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    # ── State ──

    @property
    def pending(self) -> List[InvestmentRequestResponse]:
        """Pending requests, oldest first."""
        return sorted(self._pending.values(), key=lambda r: r.created_at)

    def is_busy(self, request_id: UUID) -> bool:
        """True while an approve/reject for ``request_id`` awaits a response."""
        return request_id in self._in_flight

    async def refresh(self) -> List[InvestmentRequestResponse]:
        """
        Replace the local queue with the service's pending list.

        On failure the previous queue is kept and the error propagates.
        """
        requests = await self._api.list_investment_requests(status=RequestStatus.PENDING)
        self._pending = {r.id: r for r in requests if r.status == RequestStatus.PENDING}
        self.last_refreshed = datetime.now(timezone.utc)
        self.last_error = None
        return self.pending

    # ── Actions ──

    async def approve(self, request_id: UUID) -> InvestmentRequestResponse:
        return await self._resolve(request_id, RequestStatus.APPROVED)

    async def reject(self, request_id: UUID) -> InvestmentRequestResponse:
        return await self._resolve(request_id, RequestStatus.REJECTED)

    async def _resolve(
        self, request_id: UUID, new_status: RequestStatus
    ) -> InvestmentRequestResponse:
        """
        Send one transition and reconcile the queue with the result.

        Raises:
        - :class:`ActionInProgressError` if an action on the same request is
          still awaiting a response; nothing is sent.
        - :class:`ConflictError` if the request is no longer pending; the queue
          has been re-fetched by the time it is raised.
        - :class:`NetworkError` on any other failure; the queue is untouched.
        """
        if request_id in self._in_flight:
            raise ActionInProgressError(
                f"An action on investment request {request_id} is already in progress"
            )

        self._in_flight.add(request_id)
        try:
            try:
                result = await self._api.resolve_investment_request(
                    request_id, new_status, method=self._resolve_method
                )
            except ConflictError as exc:
                logger.warning(
                    "Could not mark request %s %s: %s", request_id, new_status.value, exc
                )
                await self._refresh_after_action()
                raise
            except NetworkError as exc:
                logger.error(
                    "Error marking request %s %s: %s", request_id, new_status.value, exc
                )
                raise

            # The server-confirmed record is authoritative even if the
            # follow-up listing fails.
            if result.status.is_terminal:
                self._pending.pop(result.id, None)
            logger.info("Investment request %s %s", result.id, result.status.value)
            await self._refresh_after_action()
            return result
        finally:
            self._in_flight.discard(request_id)

    async def _refresh_after_action(self) -> None:
        try:
            await self.refresh()
        except PortalError as exc:
            self.last_error = exc
            logger.warning("Could not re-fetch pending requests: %s", exc)

    # ── Polling ──

    @property
    def is_polling(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background refresh loop (no-op if already running)."""
        if self.is_polling:
            return
        self._task = asyncio.create_task(self._poll_loop(), name="pending-requests-poll")
        logger.debug("Polling pending requests every %ss", self._poll_interval)

    async def stop(self) -> None:
        """Cancel the refresh loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            try:
                await self.refresh()
            except PortalError as exc:
                self.last_error = exc
                logger.warning("Pending requests poll failed: %s", exc)
