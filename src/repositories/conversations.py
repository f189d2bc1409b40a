"""
Conversation Repository
Session-keyed persistence for intake conversations and their derived extraction state.
"""
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from .base import BaseRepository
from ..models.conversation import Conversation
from ..utils.observability import logger


class ConversationRepository(BaseRepository[Conversation]):
    """Repository for Conversation sessions."""

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "conversations", Conversation)

    async def get_by_session(self, session_id: str) -> Optional[Conversation]:
        return await self.find_one({"session_id": session_id})

    async def get_latest_for_prospect(self, prospect_id: str) -> Optional[Conversation]:
        """Most recently active conversation attached to a prospect."""
        return await self.find_one(
            {"prospect_id": prospect_id},
            sort=[("updated_at", -1)]
        )

    async def save(self, conversation: Conversation) -> Conversation:
        """
        Upsert operation: Create if new, update if exists.

        Args:
            conversation: Conversation instance to persist

        Returns:
            Persisted Conversation with updated timestamps
        """
        if conversation.id:
            return await self.update(conversation)

        existing = await self.get_by_session(conversation.session_id)
        if existing:
            conversation.id = existing.id
            return await self.update(conversation)

        created = await self.create(conversation)
        logger.info(f"Created conversation: {conversation.session_id}")
        return created
