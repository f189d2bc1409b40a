"""
Extraction Session Service
Per-turn loop of an intake conversation: append the user turn, re-extract
over the full transcript, check completeness, close the session once it
has gathered enough.

Turns of the same session are processed one at a time; different sessions
run concurrently.
"""
import asyncio
import datetime as dt
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Dict, Optional, Protocol

from loguru import logger

from src.core.scoring import CONVERSATION_ONLY_THRESHOLDS, categorize
from src.models.base import utc_now
from src.models.conversation import Conversation, TurnRole
from src.models.extraction import CompletenessResult, FieldExtraction
from src.models.snapshot import ReadinessCategory
from src.services.completeness import CompletenessAssessor, readiness_score
from src.services.field_extractor import FieldExtractor
from src.utils.observability import log_business_event


class ConversationClosedError(Exception):
    """Raised when a user turn arrives for a session that is already closed."""

    def __init__(self, session_id: str, reason: Optional[str]):
        super().__init__(f"Session {session_id} is closed ({reason or 'no reason recorded'})")
        self.session_id = session_id
        self.reason = reason


class SessionNotFoundError(Exception):
    """Raised when an operation targets a session that was never started."""

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class SessionStore(Protocol):
    async def get_by_session(self, session_id: str) -> Optional[Conversation]:
        ...

    async def save(self, conversation: Conversation) -> Conversation:
        ...


@dataclass
class ExtractionTurnResult:
    """
    The complete result of processing one user turn.
    """
    session_id: str
    extraction: FieldExtraction
    completeness: CompletenessResult
    readiness_score: float
    readiness_category: ReadinessCategory
    session_closed: bool


class ExtractionSessionService:
    """
    Usage:
        >>> service = ExtractionSessionService(conversation_repo, FieldExtractor(completer))
        >>> result = await service.start_or_continue_extraction("s-1", "We run 40 clinics")
        >>> result.completeness.missing_fields
    """

    def __init__(
        self,
        store: SessionStore,
        extractor: FieldExtractor,
        assessor: CompletenessAssessor | None = None,
        clock: Callable[[], dt.datetime] | None = None,
    ):
        self.store = store
        self.extractor = extractor
        self.assessor = assessor or CompletenessAssessor()
        self.clock = clock or utc_now
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def _session_lock(self, session_id: str) -> AsyncIterator[None]:
        """Serialize work on one session; the lock is dropped once nobody holds or awaits it."""
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._waiters[session_id] = self._waiters.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[session_id] -= 1
            if not self._waiters[session_id]:
                del self._waiters[session_id]
                del self._locks[session_id]

    async def start_or_continue_extraction(
        self,
        session_id: str,
        user_text: str,
        prospect_id: Optional[str] = None,
    ) -> ExtractionTurnResult:
        """
        Process one user turn.

        Args:
            session_id: Intake session; created on first turn
            user_text: The new user message
            prospect_id: Attach the session to a prospect (first turn, or later)

        Returns:
            ExtractionTurnResult for the whole transcript so far

        Raises:
            ConversationClosedError: The session was already closed
        """
        async with self._session_lock(session_id):
            conversation = await self.store.get_by_session(session_id)
            if conversation is None:
                conversation = Conversation(session_id=session_id, prospect_id=prospect_id)
                logger.info(f"🆕 Starting extraction session {session_id}")
            elif conversation.is_closed:
                raise ConversationClosedError(session_id, conversation.closed_reason)

            if prospect_id and not conversation.prospect_id:
                conversation.prospect_id = prospect_id

            conversation.add_turn(TurnRole.USER, user_text, timestamp=self.clock())

            extraction = await self.extractor.extract(conversation.turns)
            completeness = self.assessor.assess(extraction)
            score = readiness_score(extraction, completeness, self.assessor.required_fields)

            conversation.extraction = extraction
            conversation.completeness = completeness
            conversation.readiness_score = score

            if completeness.is_complete:
                conversation.close("complete", at=self.clock())
                log_business_event(
                    "session_completed",
                    conversation.prospect_id or session_id,
                    session_id=session_id,
                    turns=len(conversation.turns),
                    readiness_score=score,
                )

            await self.store.save(conversation)

        logger.info(
            f"📋 Session {session_id}: completeness {completeness.completeness_score}% "
            f"(missing={len(completeness.missing_fields)}, unclear={len(completeness.unclear_fields)})"
        )
        return ExtractionTurnResult(
            session_id=session_id,
            extraction=extraction,
            completeness=completeness,
            readiness_score=score,
            readiness_category=categorize(score, CONVERSATION_ONLY_THRESHOLDS),
            session_closed=conversation.is_closed,
        )

    async def record_assistant_turn(self, session_id: str, text: str) -> Conversation:
        """Append a collaborator reply; assistant turns never trigger re-extraction."""
        async with self._session_lock(session_id):
            conversation = await self.store.get_by_session(session_id)
            if conversation is None:
                raise SessionNotFoundError(session_id)
            if conversation.is_closed:
                raise ConversationClosedError(session_id, conversation.closed_reason)
            conversation.add_turn(TurnRole.ASSISTANT, text, timestamp=self.clock())
            return await self.store.save(conversation)

    async def close_session(self, session_id: str, reason: str = "operator") -> Conversation:
        """Operator-forced closure. Closing an already closed session is a no-op."""
        async with self._session_lock(session_id):
            conversation = await self.store.get_by_session(session_id)
            if conversation is None:
                raise SessionNotFoundError(session_id)
            if conversation.is_closed:
                return conversation
            conversation.close(reason, at=self.clock())
            saved = await self.store.save(conversation)

        log_business_event(
            "session_closed",
            conversation.prospect_id or session_id,
            session_id=session_id,
            reason=reason,
        )
        return saved
