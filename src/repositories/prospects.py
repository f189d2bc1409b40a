"""
Prospect Repository
Prospect records, written by the intake layer and read by vetting runs.
"""
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from .base import BaseRepository
from ..models.prospect import Prospect


class ProspectRepository(BaseRepository[Prospect]):

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "prospects", Prospect)

    async def get_by_prospect_id(self, prospect_id: str) -> Optional[Prospect]:
        return await self.find_one({"prospect_id": prospect_id})

    async def save(self, prospect: Prospect) -> Prospect:
        """Upsert by prospect_id."""
        return await self.upsert({"prospect_id": prospect.prospect_id}, prospect)
