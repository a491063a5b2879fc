"""
Settings repositories — key/value settings and the coin-rate history.
"""

from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy.future import select

from investor_portal.models.setting import RateHistory, Setting
from investor_portal.repositories.base import BaseRepository


class SettingRepository(BaseRepository[Setting]):
    """Concrete repository for :class:`Setting` rows (primary key = ``key``)."""

    async def upsert(self, key: str, value: str) -> Setting:
        """Create or overwrite the setting ``key``."""

        async def _upsert() -> Setting:
            setting = await self.db.get(self.model, key)
            if setting is None:
                setting = Setting(key=key, value=value)
                self.db.add(setting)
            else:
                setting.value = value
                setting.updated_at = datetime.now(timezone.utc)
            await self._commit("upsert")
            await self.db.refresh(setting)
            return setting

        return await self._execute_with_circuit_breaker(_upsert)


class RateHistoryRepository(BaseRepository[RateHistory]):
    """Concrete repository for :class:`RateHistory` entries."""

    async def get_history(self, limit: int = 50) -> List[RateHistory]:
        """Most recent entries first (by effective date, then entry time)."""

        async def _history() -> List[RateHistory]:
            stmt = (
                select(self.model)
                .order_by(self.model.effective_date.desc(), self.model.created_at.desc())
                .limit(limit)
            )
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._execute_with_circuit_breaker(_history)

    async def get_latest_effective(self, on_date: date) -> Optional[RateHistory]:
        """The entry in force on ``on_date``: newest ``effective_date <= on_date``."""

        async def _latest() -> Optional[RateHistory]:
            stmt = (
                select(self.model)
                .where(self.model.effective_date <= on_date)
                .order_by(self.model.effective_date.desc(), self.model.created_at.desc())
                .limit(1)
            )
            result = await self.db.execute(stmt)
            return result.scalars().first()

        return await self._execute_with_circuit_breaker(_latest)
