"""
Domain Cache Repository
Upsert-only rows of the last successful website analysis per domain.
"""
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from .base import BaseRepository
from ..models.domain_cache import DomainCacheEntry


class DomainCacheRepository(BaseRepository[DomainCacheEntry]):

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "domain_cache", DomainCacheEntry)

    async def get(self, domain: str) -> Optional[DomainCacheEntry]:
        return await self.find_one({"domain": domain})

    async def put(self, entry: DomainCacheEntry) -> DomainCacheEntry:
        """Replace whatever is stored for the domain; last write wins."""
        return await self.upsert({"domain": entry.domain}, entry)
