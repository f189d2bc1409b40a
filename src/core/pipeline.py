"""
Vetting Pipeline
Wires repositories, collaborators and services together and exposes the
three operations the outer layers consume.
"""
from typing import List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from loguru import logger

from src.agents.completion_agent import CompletionAgent, TextCompleter
from src.config import settings
from src.core.extraction_session import ExtractionSessionService, ExtractionTurnResult
from src.core.vetting_orchestrator import VettingOrchestrator
from src.models.conversation import Conversation
from src.models.prospect import Prospect
from src.models.snapshot import ValidationSnapshot, VettingResult
from src.repositories import (
    db_manager,
    ConversationRepository,
    DomainCacheRepository,
    ProspectRepository,
    SnapshotRepository,
)
from src.services.budget_assessor import BudgetRealismAssessor
from src.services.domain_cache import DomainCache
from src.services.field_extractor import FieldExtractor
from src.services.identity_validator import CompletionIdentityLookup, IdentityLookup, IdentityValidator
from src.services.site_fetcher import HttpSiteFetcher, SiteFetcher
from src.services.website_intelligence import WebsiteIntelligenceAnalyzer


class VettingPipeline:
    """
    Facade over the extraction loop and the vetting orchestrator.

    Usage:
        >>> pipeline = await initialize_pipeline()
        >>> await pipeline.start_or_continue_extraction("s-1", "We are a 40 person clinic")
        >>> result = await pipeline.run_vetting("p-1")
        >>> latest = await pipeline.get_snapshot("p-1")
    """

    def __init__(
        self,
        sessions: ExtractionSessionService,
        orchestrator: VettingOrchestrator,
        prospects: ProspectRepository,
    ):
        self.sessions = sessions
        self.orchestrator = orchestrator
        self.prospects = prospects

    async def start_or_continue_extraction(
        self,
        session_id: str,
        new_user_turn: str,
        prospect_id: Optional[str] = None,
    ) -> ExtractionTurnResult:
        return await self.sessions.start_or_continue_extraction(session_id, new_user_turn, prospect_id)

    async def record_assistant_turn(self, session_id: str, text: str) -> Conversation:
        return await self.sessions.record_assistant_turn(session_id, text)

    async def close_session(self, session_id: str, reason: str = "operator") -> Conversation:
        return await self.sessions.close_session(session_id, reason)

    async def register_prospect(self, prospect: Prospect) -> Prospect:
        return await self.prospects.save(prospect)

    async def run_vetting(self, prospect_id: str, force_refresh: bool = False) -> VettingResult:
        return await self.orchestrator.run(prospect_id, force_refresh=force_refresh)

    async def get_snapshot(self, prospect_id: str) -> Optional[ValidationSnapshot]:
        return await self.orchestrator.get_snapshot(prospect_id)

    async def list_snapshots(self, prospect_id: str, limit: int = 20) -> List[ValidationSnapshot]:
        return await self.orchestrator.list_snapshots(prospect_id, limit=limit)


def build_pipeline(
    database: AsyncIOMotorDatabase,
    completer: TextCompleter | None = None,
    site_fetcher: SiteFetcher | None = None,
    identity_lookup: IdentityLookup | None = None,
) -> VettingPipeline:
    """
    Assemble the pipeline over a Motor database.
    Collaborators default to the production ones and can be swapped for tests.
    """
    conversations = ConversationRepository(database)
    snapshots = SnapshotRepository(database)
    prospects = ProspectRepository(database)
    domain_cache = DomainCache(DomainCacheRepository(database))

    extraction_completer = completer or CompletionAgent(settings.extraction_model, caller="FieldExtractor")
    website_completer = completer or CompletionAgent(settings.website_model, caller="WebsiteIntelligence")
    identity_completer = completer or CompletionAgent(
        settings.identity_model, caller="IdentityLookup", circuit_name="identity"
    )

    extractor = FieldExtractor(completer=extraction_completer)
    sessions = ExtractionSessionService(conversations, extractor)
    orchestrator = VettingOrchestrator(
        prospects=prospects,
        conversations=conversations,
        snapshots=snapshots,
        website=WebsiteIntelligenceAnalyzer(domain_cache, website_completer, fetcher=site_fetcher or HttpSiteFetcher()),
        identity=IdentityValidator(identity_lookup or CompletionIdentityLookup(identity_completer)),
        budget=BudgetRealismAssessor(),
        extractor=extractor,
    )
    return VettingPipeline(sessions, orchestrator, prospects)


async def initialize_pipeline() -> VettingPipeline:
    """
    Connect to MongoDB, ensure indexes and build the production pipeline.
    """
    logger.info("Initializing vetting pipeline with MongoDB persistence")
    await db_manager.connect()
    await db_manager.create_indexes()
    pipeline = build_pipeline(db_manager.database)
    logger.info("✅ Vetting pipeline initialized")
    return pipeline


async def shutdown_pipeline() -> None:
    logger.info("Shutting down vetting pipeline")
    await db_manager.disconnect()
