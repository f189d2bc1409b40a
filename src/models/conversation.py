import datetime as dt
from enum import StrEnum
from typing import List, Optional, Sequence
from pydantic import BaseModel, Field
from src.models.base import MongoBaseModel, UtcDatetime, utc_now
from src.models.extraction import FieldExtraction, CompletenessResult


class TurnRole(StrEnum):
    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"


class ConversationTurn(BaseModel):
    role: TurnRole
    text: str
    timestamp: UtcDatetime = Field(default_factory=utc_now)


def user_text(turns: Sequence[ConversationTurn]) -> str:
    """Lower-cased concatenation of the user turns, the input of the rule layer."""
    return "\n".join(turn.text.lower() for turn in turns if turn.role == TurnRole.USER)


def format_transcript(turns: Sequence[ConversationTurn]) -> str:
    """Render turns as 'ROLE: text' lines for prompts."""
    return "\n".join(f"{turn.role.upper()}: {turn.text}" for turn in turns)


class Conversation(MongoBaseModel):
    """
    One prospect intake session.

    The turn list is append-only and owned by the session. The derived
    extraction state is recomputed from the full transcript after every
    user turn and stored alongside it.
    """
    session_id: str
    prospect_id: Optional[str] = None
    turns: List[ConversationTurn] = Field(default_factory=list)

    extraction: Optional[FieldExtraction] = None
    completeness: Optional[CompletenessResult] = None
    readiness_score: Optional[float] = None

    is_closed: bool = False
    closed_reason: Optional[str] = None
    closed_at: Optional[UtcDatetime] = None

    def add_turn(self, role: TurnRole, text: str, timestamp: dt.datetime | None = None) -> ConversationTurn:
        turn = ConversationTurn(role=role, text=text, timestamp=timestamp or utc_now())
        self.turns.append(turn)
        self.updated_at = turn.timestamp
        return turn

    def user_text(self) -> str:
        return user_text(self.turns)

    @property
    def has_user_turns(self) -> bool:
        return any(turn.role == TurnRole.USER for turn in self.turns)

    def close(self, reason: str, at: dt.datetime | None = None) -> None:
        self.is_closed = True
        self.closed_reason = reason
        self.closed_at = at or utc_now()
