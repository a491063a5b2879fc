"""
Settings service — the Rate Provider.

Owns the platform key/value settings and the coin-rate history.  The current
coin rate lives in the ``current_rate`` setting; adding or deleting a
history entry re-derives it from the newest entry already in effect.  Rates
are kept at the 10 decimal places the rate columns store.

Caching:
    ``get_all_settings`` and ``get_current_rate`` are cache-backed; every
    write invalidates the ``settings:`` prefix.
"""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, List
from uuid import UUID

from investor_portal.core.cache import cache
from investor_portal.core.coins import RATE_QUANTUM, is_storable, validate_rate
from investor_portal.core.exceptions import BusinessRuleViolation, NotFoundException
from investor_portal.models.setting import (
    CURRENT_RATE_KEY,
    TOTAL_COIN_LIMIT_KEY,
    RateHistory,
    Setting,
)
from investor_portal.repositories.setting_repo import RateHistoryRepository, SettingRepository
from investor_portal.schemas.setting import RateCreate, SettingValue

logger = logging.getLogger(__name__)


def parse_rate(raw: str) -> Decimal:
    """Parse a stored or submitted rate; non-numeric or non-positive is a 422."""
    try:
        rate = Decimal(raw.strip())
    except (InvalidOperation, AttributeError):
        raise BusinessRuleViolation(f"'{raw}' is not a valid coin rate")
    if not rate.is_finite() or rate <= 0:
        raise BusinessRuleViolation("Coin rate must be a positive number")
    return validate_rate(rate)


def parse_coin_limit(raw: str) -> int:
    """Parse the ``total_coin_limit`` setting; it must be a whole number of coins."""
    try:
        limit = Decimal(raw.strip())
    except (InvalidOperation, AttributeError):
        raise BusinessRuleViolation(f"'{raw}' is not a valid coin limit")
    if not limit.is_finite() or limit < 0 or limit != limit.to_integral_value():
        raise BusinessRuleViolation("Coin limit must be a non-negative whole number")
    return int(limit)


class SettingService:
    """Encapsulates settings reads/writes and the rate-history rules."""

    CACHE_PREFIX = "settings:"

    def __init__(self, setting_repo: SettingRepository, rate_repo: RateHistoryRepository):
        self._settings = setting_repo
        self._rates = rate_repo

    # ── Queries ──

    async def get_all_settings(self) -> Dict[str, SettingValue]:
        """Every setting keyed by name (cache-backed)."""
        cache_key = f"{self.CACHE_PREFIX}all"
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        rows = await self._settings.get_all(limit=1000)
        result = {row.key: SettingValue(value=row.value, updated_at=row.updated_at) for row in rows}
        cache.set(cache_key, result)
        return result

    async def get_current_rate(self) -> Decimal:
        """
        The coin rate in force right now.

        Raises :class:`NotFoundException` when no rate has been configured.
        """
        cache_key = f"{self.CACHE_PREFIX}{CURRENT_RATE_KEY}"
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        setting = await self._settings.get(CURRENT_RATE_KEY)
        if setting is None:
            raise NotFoundException("Setting", CURRENT_RATE_KEY)
        rate = parse_rate(setting.value)
        cache.set(cache_key, rate)
        return rate

    async def get_rate_history(self, limit: int = 50) -> List[RateHistory]:
        return await self._rates.get_history(limit=limit)

    # ── Commands ──

    async def update_setting(self, key: str, value: str) -> Setting:
        """
        Create or overwrite a setting.

        ``current_rate`` must parse as a positive decimal with at most 10
        decimal places and ``total_coin_limit`` as a whole number; other keys
        are stored verbatim.
        """
        if key == CURRENT_RATE_KEY:
            value = str(parse_rate(value))
        elif key == TOTAL_COIN_LIMIT_KEY:
            value = str(parse_coin_limit(value))
        setting = await self._settings.upsert(key, value)
        cache.invalidate(self.CACHE_PREFIX)
        logger.info("Setting '%s' updated to %r", key, value)
        return setting

    async def add_rate(self, rate_in: RateCreate) -> RateHistory:
        """Record a rate entry and re-derive ``current_rate``."""
        if not is_storable(rate_in.rate_value, RATE_QUANTUM, 24):
            raise BusinessRuleViolation("Coin rate cannot have more than 10 decimal places")
        entry = RateHistory(**rate_in.model_dump())
        created = await self._rates.create(entry)
        logger.info(
            "Rate %s recorded, effective %s", created.rate_value, created.effective_date
        )
        await self._sync_current_rate()
        return created

    async def delete_rate(self, rate_id: UUID) -> None:
        """Remove a rate entry; ``current_rate`` follows the remaining history."""
        deleted = await self._rates.delete(rate_id)
        if not deleted:
            raise NotFoundException("Rate entry", rate_id)
        logger.info("Rate entry %s deleted", rate_id)
        await self._sync_current_rate()

    async def _sync_current_rate(self) -> None:
        # With no effective entry left the last configured rate stays in place.
        latest = await self._rates.get_latest_effective(date.today())
        if latest is not None:
            await self._settings.upsert(CURRENT_RATE_KEY, str(latest.rate_value))
            logger.info("current_rate is now %s", latest.rate_value)
        cache.invalidate(self.CACHE_PREFIX)
