"""Repository for the append-only ai_usage_logs table."""

from db.models import UsageLogCreate
from db.repositories.base import BaseRepository

_TABLE = "ai_usage_logs"


class UsageRepository(BaseRepository):
    async def create(self, data: UsageLogCreate) -> None:
        await self._table(_TABLE).insert(self._payload(data)).execute()
