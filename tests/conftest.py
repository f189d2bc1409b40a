import os

os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("ENVIRONMENT", "test")

import asyncio
import datetime as dt
import json
import uuid
from typing import Callable, Dict, List, Optional, Sequence, Union

import pytest
from unittest.mock import AsyncMock, MagicMock

from src.models.conversation import Conversation, ConversationTurn, TurnRole
from src.models.domain_cache import DomainCacheEntry
from src.models.prospect import Prospect
from src.models.snapshot import ValidationSnapshot
from src.utils.circuit_breaker import reset_circuits

T0 = dt.datetime(2026, 3, 2, 9, 0, 0, tzinfo=dt.UTC)


# ============================================
# TIME
# ============================================

class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: dt.datetime = T0):
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **delta) -> dt.datetime:
        self.now = self.now + dt.timedelta(**delta)
        return self.now


# ============================================
# TEXT COMPLETION
# ============================================

Reply = Union[str, dict, Exception]


class FakeCompleter:
    """
    Scripted TextCompleter.

    Replies are consumed in order; the last one repeats. A dict is sent as
    JSON, an exception is raised, a callable receives the messages.
    """

    def __init__(self, *replies: Union[Reply, Callable], delay: float = 0.0):
        self.replies = list(replies) or ["{}"]
        self.delay = delay
        self.calls: List[Sequence[ConversationTurn]] = []

    async def complete(self, messages: Sequence[ConversationTurn]) -> str:
        self.calls.append(list(messages))
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies[min(len(self.calls), len(self.replies)) - 1]
        if callable(reply) and not isinstance(reply, type):
            reply = reply(messages)
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, dict):
            return json.dumps(reply)
        return reply

    @property
    def call_count(self) -> int:
        return len(self.calls)


# ============================================
# IN-MEMORY STORES
# ============================================

class InMemoryConversationStore:

    def __init__(self):
        self.rows: Dict[str, Conversation] = {}
        self.saves = 0

    async def get_by_session(self, session_id: str) -> Optional[Conversation]:
        row = self.rows.get(session_id)
        return row.model_copy(deep=True) if row else None

    async def get_latest_for_prospect(self, prospect_id: str) -> Optional[Conversation]:
        matches = [c for c in self.rows.values() if c.prospect_id == prospect_id]
        if not matches:
            return None
        return max(matches, key=lambda c: c.updated_at).model_copy(deep=True)

    async def save(self, conversation: Conversation) -> Conversation:
        await asyncio.sleep(0)
        if conversation.id is None:
            conversation.id = uuid.uuid4().hex
        self.rows[conversation.session_id] = conversation.model_copy(deep=True)
        self.saves += 1
        return conversation


class InMemorySnapshotStore:

    def __init__(self):
        self.rows: List[ValidationSnapshot] = []

    async def append(self, snapshot: ValidationSnapshot, created_at: Optional[dt.datetime] = None) -> ValidationSnapshot:
        if created_at is not None:
            snapshot.created_at = created_at
            snapshot.updated_at = created_at
        snapshot.id = uuid.uuid4().hex
        self.rows.append(snapshot.model_copy(deep=True))
        return snapshot

    async def get_latest(self, prospect_id: str) -> Optional[ValidationSnapshot]:
        history = await self.list_for_prospect(prospect_id, limit=1)
        return history[0] if history else None

    async def list_for_prospect(self, prospect_id: str, limit: int = 20) -> List[ValidationSnapshot]:
        rows = [s for s in self.rows if s.prospect_id == prospect_id]
        rows.sort(key=lambda s: s.created_at, reverse=True)
        return [s.model_copy(deep=True) for s in rows[:limit]]


class InMemoryProspectStore:

    def __init__(self, *prospects: Prospect):
        self.rows: Dict[str, Prospect] = {p.prospect_id: p for p in prospects}

    async def get_by_prospect_id(self, prospect_id: str) -> Optional[Prospect]:
        return self.rows.get(prospect_id)

    async def save(self, prospect: Prospect) -> Prospect:
        self.rows[prospect.prospect_id] = prospect
        return prospect


class InMemoryDomainCacheStore:

    def __init__(self):
        self.rows: Dict[str, DomainCacheEntry] = {}
        self.puts = 0

    async def get(self, domain: str) -> Optional[DomainCacheEntry]:
        return self.rows.get(domain)

    async def put(self, entry: DomainCacheEntry) -> DomainCacheEntry:
        self.rows[entry.domain] = entry
        self.puts += 1
        return entry


# ============================================
# MOTOR DOUBLES
# ============================================

def make_motor_collection(find_one=None, docs=()):
    """Collection double: awaitable CRUD methods and a chainable find() cursor."""
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=find_one)
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id="65f0c0ffee0000000000abcd"))
    collection.update_one = AsyncMock(return_value=MagicMock(matched_count=1))

    cursor = MagicMock()
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.sort.return_value = cursor
    cursor.to_list = AsyncMock(return_value=list(docs))
    collection.find.return_value = cursor
    return collection


def make_motor_database(collection):
    database = MagicMock()
    database.__getitem__.return_value = collection
    return database


def make_conversation(session_id: str, *user_texts: str, prospect_id: Optional[str] = None) -> Conversation:
    conversation = Conversation(session_id=session_id, prospect_id=prospect_id)
    for text in user_texts:
        conversation.add_turn(TurnRole.USER, text, timestamp=T0)
    return conversation


# ============================================
# FIXTURES
# ============================================

@pytest.fixture(autouse=True)
def fresh_circuits():
    """Every test starts with no open circuits."""
    reset_circuits()
    yield
    reset_circuits()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def conversation_store():
    return InMemoryConversationStore()


@pytest.fixture
def snapshot_store():
    return InMemorySnapshotStore()


@pytest.fixture
def domain_cache_store():
    return InMemoryDomainCacheStore()


@pytest.fixture
def acme_prospect():
    return Prospect(
        prospect_id="p-acme",
        session_id="s-acme",
        company_name="Acme Builders",
        contact_name="Jordan Reyes",
        title="Chief Operating Officer",
        email="jordan@acmebuilders.com",
        industry="construction",
        employee_count=200,
    )
