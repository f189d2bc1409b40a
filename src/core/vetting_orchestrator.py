"""
Vetting Orchestrator
Entry point of a vetting run: reuse a fresh snapshot, or fan out to the
three validators concurrently, score, and append a new snapshot.

Architecture:
    prospect + conversation -> [website | identity | budget] -> scorer -> snapshot
"""
import asyncio
import datetime as dt
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

from loguru import logger

from src.config import settings
from src.core.scoring import score
from src.models.base import utc_now
from src.models.conversation import Conversation
from src.models.extraction import FieldName
from src.models.prospect import Prospect
from src.models.snapshot import ValidationSnapshot, VettingResult
from src.models.validation import (
    CompanyProfile,
    FailedOutcome,
    FailureNote,
    FailureReason,
    OkOutcome,
    ValidatorName,
    ValidatorOutcome,
    failed,
)
from src.services.budget_assessor import BudgetRealismAssessor
from src.services.completeness import CompletenessAssessor, readiness_score
from src.services.field_extractor import FieldExtractor
from src.services.identity_validator import IdentityValidator
from src.services.website_intelligence import WebsiteIntelligenceAnalyzer
from src.utils.observability import log_business_event, log_validator_execution


class ProspectNotFoundError(Exception):
    """Raised when vetting is requested for an unknown prospect."""

    def __init__(self, prospect_id: str):
        super().__init__(f"Prospect {prospect_id} not found")
        self.prospect_id = prospect_id


class VettingImpossibleError(Exception):
    """
    Raised when a run cannot produce an honest score (no conversation data).
    No snapshot is written.
    """

    def __init__(self, prospect_id: str, reason: FailureReason, message: str):
        super().__init__(message)
        self.prospect_id = prospect_id
        self.reason = reason


class ProspectStore(Protocol):
    async def get_by_prospect_id(self, prospect_id: str) -> Optional[Prospect]:
        ...


class ConversationStore(Protocol):
    async def get_by_session(self, session_id: str) -> Optional[Conversation]:
        ...

    async def get_latest_for_prospect(self, prospect_id: str) -> Optional[Conversation]:
        ...


class SnapshotStore(Protocol):
    async def append(self, snapshot: ValidationSnapshot, created_at: Optional[dt.datetime] = None) -> ValidationSnapshot:
        ...

    async def get_latest(self, prospect_id: str) -> Optional[ValidationSnapshot]:
        ...

    async def list_for_prospect(self, prospect_id: str, limit: int = 20) -> List[ValidationSnapshot]:
        ...


@dataclass
class ValidatorTimeouts:
    """Independent per-validator budgets, in seconds."""
    website: float = field(default_factory=lambda: settings.website_timeout_seconds)
    identity: float = field(default_factory=lambda: settings.identity_timeout_seconds)
    budget: float = field(default_factory=lambda: settings.budget_timeout_seconds)

    def for_validator(self, name: ValidatorName) -> float:
        return getattr(self, name.value)


class VettingOrchestrator:
    """
    Runs a prospect through the validation fan-out.

    Every validator resolves to an Ok/Failed outcome before scoring; a
    timeout or exception in one never cancels the others. If the caller is
    cancelled mid-run, the validators that already finished are still
    scored and persisted (the rest marked cancelled); if none finished,
    nothing is written.

    Usage:
        >>> orchestrator = VettingOrchestrator(prospects, conversations, snapshots,
        ...                                    website, identity, budget)
        >>> result = await orchestrator.run("p-123")
        >>> result.snapshot.category
    """

    def __init__(
        self,
        prospects: ProspectStore,
        conversations: ConversationStore,
        snapshots: SnapshotStore,
        website: WebsiteIntelligenceAnalyzer,
        identity: IdentityValidator,
        budget: BudgetRealismAssessor | None = None,
        extractor: FieldExtractor | None = None,
        assessor: CompletenessAssessor | None = None,
        timeouts: ValidatorTimeouts | None = None,
        freshness: dt.timedelta | None = None,
        clock: Callable[[], dt.datetime] | None = None,
    ):
        self.prospects = prospects
        self.conversations = conversations
        self.snapshots = snapshots
        self.website = website
        self.identity = identity
        self.budget = budget or BudgetRealismAssessor()
        self.extractor = extractor or FieldExtractor()
        self.assessor = assessor or CompletenessAssessor()
        self.timeouts = timeouts or ValidatorTimeouts()
        self.freshness = freshness or dt.timedelta(hours=settings.snapshot_freshness_hours)
        self.clock = clock or utc_now

    # ============================================
    # PUBLIC OPERATIONS
    # ============================================

    async def run(self, prospect_id: str, force_refresh: bool = False) -> VettingResult:
        """
        Vet a prospect.

        Args:
            prospect_id: Prospect to vet
            force_refresh: Ignore a fresh snapshot and re-run the validators

        Returns:
            VettingResult with the snapshot and informational failure notes

        Raises:
            ProspectNotFoundError: Unknown prospect
            VettingImpossibleError: No conversation data to score
        """
        if not force_refresh:
            latest = await self.snapshots.get_latest(prospect_id)
            if latest is not None and self._is_fresh(latest):
                logger.info(f"🗂️ Reusing snapshot for {prospect_id} from {latest.created_at.isoformat()}")
                return VettingResult(
                    prospect_id=prospect_id,
                    snapshot=latest,
                    failures=list(latest.failures),
                    cached=True,
                )

        prospect = await self.prospects.get_by_prospect_id(prospect_id)
        if prospect is None:
            raise ProspectNotFoundError(prospect_id)

        conversation = await self._load_conversation(prospect)
        if conversation is None or not conversation.has_user_turns:
            log_business_event("vetting_aborted", prospect_id, reason=FailureReason.NO_CONVERSATION.value)
            raise VettingImpossibleError(
                prospect_id,
                FailureReason.NO_CONVERSATION,
                f"Vetting impossible for {prospect_id}: no conversation data",
            )

        conversation_score = self._conversation_score(conversation)
        logger.info(f"🎬 Vetting {prospect_id} (conversation score {conversation_score})")

        tasks = self._launch_validators(prospect, conversation)
        try:
            # Guarded tasks always return an outcome, so wait() only sees completions
            await asyncio.wait(tasks.values())
        except asyncio.CancelledError:
            await self._persist_after_cancel(prospect_id, conversation_score, tasks)
            raise

        outcomes = {name: task.result() for name, task in tasks.items()}
        snapshot = await self._persist(prospect_id, conversation_score, outcomes)
        return VettingResult(
            prospect_id=prospect_id,
            snapshot=snapshot,
            failures=list(snapshot.failures),
            cached=False,
        )

    async def get_snapshot(self, prospect_id: str) -> Optional[ValidationSnapshot]:
        """Most recent snapshot, or None if the prospect was never vetted."""
        return await self.snapshots.get_latest(prospect_id)

    async def list_snapshots(self, prospect_id: str, limit: int = 20) -> List[ValidationSnapshot]:
        return await self.snapshots.list_for_prospect(prospect_id, limit=limit)

    # ============================================
    # INTERNALS
    # ============================================

    def _is_fresh(self, snapshot: ValidationSnapshot) -> bool:
        return self.clock() - snapshot.created_at < self.freshness

    async def _load_conversation(self, prospect: Prospect) -> Optional[Conversation]:
        if prospect.session_id:
            conversation = await self.conversations.get_by_session(prospect.session_id)
            if conversation is not None:
                return conversation
        return await self.conversations.get_latest_for_prospect(prospect.prospect_id)

    def _conversation_score(self, conversation: Conversation) -> float:
        if conversation.readiness_score is not None:
            return conversation.readiness_score
        extraction = conversation.extraction or self.extractor.extract_rules_only(conversation.turns)
        completeness = conversation.completeness or self.assessor.assess(extraction)
        return readiness_score(extraction, completeness, self.assessor.required_fields)

    def _company_profile(self, prospect: Prospect, conversation: Conversation) -> CompanyProfile:
        extraction = conversation.extraction
        employees = prospect.estimated_employee_count()
        industry = prospect.industry
        if extraction is not None:
            if employees is None and extraction.value(FieldName.TEAM_SIZE):
                employees = int(extraction.value(FieldName.TEAM_SIZE))
            industry = industry or extraction.value(FieldName.INDUSTRY)
        return CompanyProfile(employee_count=employees, industry=industry, company_name=prospect.company_name)

    def _launch_validators(self, prospect: Prospect, conversation: Conversation) -> Dict[ValidatorName, asyncio.Task]:
        calls: Dict[ValidatorName, Callable[[], Awaitable[ValidatorOutcome]]] = {
            ValidatorName.WEBSITE: lambda: self.website.analyze(
                prospect.resolve_domain(), company_name=prospect.company_name
            ),
            ValidatorName.IDENTITY: lambda: self.identity.validate(
                prospect.company_name, prospect.contact_name, prospect.resolve_domain(),
                stated_title=prospect.title,
            ),
            ValidatorName.BUDGET: lambda: self.budget.assess(
                conversation.user_text(), self._company_profile(prospect, conversation)
            ),
        }
        return {
            name: asyncio.create_task(
                self._guarded(name, prospect.prospect_id, call),
                name=f"vetting:{prospect.prospect_id}:{name.value}",
            )
            for name, call in calls.items()
        }

    async def _guarded(
        self,
        name: ValidatorName,
        prospect_id: str,
        call: Callable[[], Awaitable[ValidatorOutcome]],
    ) -> ValidatorOutcome:
        """Run one validator under its own timeout, folding every error into a FailedOutcome."""
        timeout = self.timeouts.for_validator(name)
        start = time.perf_counter()
        try:
            outcome = await asyncio.wait_for(call(), timeout=timeout)
        except asyncio.TimeoutError:
            outcome = failed(name, FailureReason.TIMEOUT, f"No result within {timeout}s")
        except Exception as e:
            logger.exception(f"Validator {name.value} raised for {prospect_id}")
            outcome = failed(name, FailureReason.UPSTREAM_ERROR, str(e))

        duration_ms = (time.perf_counter() - start) * 1000
        if isinstance(outcome, OkOutcome):
            log_validator_execution(name.value, prospect_id, "ok", duration_ms, score=outcome.score)
        else:
            log_validator_execution(name.value, prospect_id, outcome.reason.value, duration_ms, message=outcome.message)
        return outcome

    async def _persist_after_cancel(
        self,
        prospect_id: str,
        conversation_score: float,
        tasks: Dict[ValidatorName, asyncio.Task],
    ) -> None:
        finished = {
            name: task.result()
            for name, task in tasks.items()
            if task.done() and not task.cancelled()
        }
        for task in tasks.values():
            if not task.done():
                task.cancel()

        if not finished:
            logger.warning(f"🛑 Vetting for {prospect_id} cancelled before any validator finished; nothing stored")
            log_business_event("vetting_aborted", prospect_id, reason=FailureReason.CANCELLED.value)
            return

        outcomes: Dict[ValidatorName, ValidatorOutcome] = {
            name: finished.get(name) or failed(name, FailureReason.CANCELLED, "Run cancelled before completion")
            for name in tasks
        }
        logger.warning(
            f"🛑 Vetting for {prospect_id} cancelled; storing {len(finished)}/{len(tasks)} completed validators"
        )
        await asyncio.shield(self._persist(prospect_id, conversation_score, outcomes, partial=True))

    async def _persist(
        self,
        prospect_id: str,
        conversation_score: float,
        outcomes: Dict[ValidatorName, ValidatorOutcome],
        partial: bool = False,
    ) -> ValidationSnapshot:
        result = score(conversation_score, outcomes)
        now = self.clock()
        failures = [
            FailureNote.from_outcome(outcome, at=now)
            for outcome in outcomes.values()
            if isinstance(outcome, FailedOutcome)
        ]
        snapshot = ValidationSnapshot(
            prospect_id=prospect_id,
            final_score=result.final_score,
            category=result.category,
            confidence_level=result.confidence_level,
            per_signal_scores=result.per_signal_scores,
            conversation_score=min(max(conversation_score, 0.0), 100.0),
            outcomes=list(outcomes.values()),
            failures=failures,
            partial=partial,
            created_at=now,
            updated_at=now,
        )
        stored = await self.snapshots.append(snapshot, created_at=now)

        log_business_event(
            "snapshot_created",
            prospect_id,
            final_score=round(result.final_score, 2),
            category=result.category.value,
            confidence_level=result.confidence_level.value,
            failed_validators=[f.validator.value for f in failures],
            partial=partial,
        )
        return stored
