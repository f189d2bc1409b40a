from enum import StrEnum
from typing import List, Optional
from pydantic import BaseModel, Field
from src.models.base import MongoBaseModel
from src.models.validation import FailureNote, ValidatorOutcome


class ReadinessCategory(StrEnum):
    HOT = "HOT"
    WARM = "WARM"
    COOL = "COOL"
    COLD = "COLD"


class ConfidenceLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SignalName(StrEnum):
    CONVERSATION = "conversation"
    WEBSITE = "website"
    IDENTITY = "identity"
    BUDGET = "budget"
    BEHAVIORAL = "behavioral"


class SignalScore(BaseModel):
    signal: SignalName
    score: float = Field(..., ge=0, le=100)
    weight: float = Field(..., ge=0, le=1)
    used_default: bool = False

    @property
    def contribution(self) -> float:
        return self.score * self.weight


class ValidationSnapshot(MongoBaseModel):
    """
    Immutable record of one vetting run.

    A new run appends a new snapshot; "latest" is a query over
    (prospect_id, created_at). Snapshots are never updated in place.
    """
    prospect_id: str
    final_score: float = Field(..., ge=0, le=100)
    category: ReadinessCategory
    confidence_level: ConfidenceLevel
    per_signal_scores: List[SignalScore]
    conversation_score: float = Field(..., ge=0, le=100)
    outcomes: List[ValidatorOutcome] = Field(default_factory=list)
    failures: List[FailureNote] = Field(default_factory=list)
    partial: bool = False  # Persisted from a cancelled run

    def signal(self, name: SignalName) -> Optional[SignalScore]:
        return next((s for s in self.per_signal_scores if s.signal == name), None)


class VettingResult(BaseModel):
    """What run_vetting hands back: the snapshot plus informational failure notes."""
    prospect_id: str
    snapshot: ValidationSnapshot
    failures: List[FailureNote] = Field(default_factory=list)
    cached: bool = False
