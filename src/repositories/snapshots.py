"""
Snapshot Repository
Append-only store of ValidationSnapshot rows keyed by (prospect_id, created_at).
"""
import datetime as dt
from typing import List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from .base import BaseRepository
from ..models.snapshot import ValidationSnapshot
from ..utils.observability import logger


class SnapshotRepository(BaseRepository[ValidationSnapshot]):
    """
    Snapshots are inserted, never updated: a new vetting run appends a row
    and "latest" is a sorted query.
    """

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "validation_snapshots", ValidationSnapshot)

    async def append(self, snapshot: ValidationSnapshot, created_at: Optional[dt.datetime] = None) -> ValidationSnapshot:
        stored = await self.create(snapshot, timestamp=created_at or snapshot.created_at)
        logger.info(
            f"Stored validation snapshot for {snapshot.prospect_id}",
            extra={"prospect_id": snapshot.prospect_id, "category": snapshot.category.value}
        )
        return stored

    async def get_latest(self, prospect_id: str) -> Optional[ValidationSnapshot]:
        return await self.find_one(
            {"prospect_id": prospect_id},
            sort=[("created_at", -1)]
        )

    async def list_for_prospect(self, prospect_id: str, limit: int = 20) -> List[ValidationSnapshot]:
        """Snapshot history, newest first."""
        return await self.find_many(
            filter_dict={"prospect_id": prospect_id},
            limit=limit,
            sort=[("created_at", -1)]
        )

    async def update(self, document: ValidationSnapshot) -> ValidationSnapshot:
        raise TypeError("Validation snapshots are immutable; append a new snapshot instead")
