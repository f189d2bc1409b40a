"""
Validator Outcome Models
Tagged Ok/Failed outcomes for the three external validation signals.
A failed validator carries a reason, never a fabricated score.
"""
import datetime as dt
from enum import StrEnum
from typing import Annotated, Dict, Literal, Optional, Union
from pydantic import BaseModel, Field
from src.models.base import UtcDatetime, utc_now


class ValidatorName(StrEnum):
    WEBSITE = "website"
    IDENTITY = "identity"
    BUDGET = "budget"


class FailureReason(StrEnum):
    TIMEOUT = "timeout"
    UPSTREAM_ERROR = "upstream_error"
    NO_CONVERSATION = "no_conversation"
    MISSING_INPUT = "missing_input"
    CANCELLED = "cancelled"


class SeniorityLevel(StrEnum):
    C_LEVEL = "c_level"
    VP = "vp"
    DIRECTOR = "director"
    MANAGER = "manager"
    INDIVIDUAL_CONTRIBUTOR = "individual_contributor"
    UNSPECIFIED = "unspecified"


class BudgetCategory(StrEnum):
    APPROVED = "approved"
    IN_PLANNING = "in_planning"
    EXPLORING = "exploring"
    UNKNOWN = "unknown"


class BudgetAlignment(StrEnum):
    WITHIN_BAND = "within_band"
    SLIGHTLY_BELOW = "slightly_below"
    SLIGHTLY_ABOVE = "slightly_above"
    FAR_BELOW = "far_below"
    FAR_ABOVE = "far_above"
    NO_STATED_BUDGET = "no_stated_budget"


class WebsiteDetails(BaseModel):
    kind: Literal["website"] = "website"
    domain: str
    legitimacy_score: int = Field(..., ge=0, le=100)
    signals: Dict[str, bool] = Field(default_factory=dict)
    title: Optional[str] = None
    summary: Optional[str] = None
    confidence_level: Literal["low", "medium", "high"] = "medium"
    from_cache: bool = False
    analysis_version: str = "v1.0"
    analyzed_at: UtcDatetime = Field(default_factory=utc_now)


class IdentityDetails(BaseModel):
    kind: Literal["identity"] = "identity"
    company_found: bool
    person_found: bool
    authority_score: int = Field(..., ge=0, le=100)
    seniority: SeniorityLevel = SeniorityLevel.UNSPECIFIED
    title: Optional[str] = None
    company_employee_count: Optional[int] = None
    company_industry: Optional[str] = None


class BudgetDetails(BaseModel):
    kind: Literal["budget"] = "budget"
    category: BudgetCategory
    realism_score: int = Field(..., ge=0, le=100)
    alignment: BudgetAlignment
    stated_amount: Optional[int] = None
    benchmark_min: int
    benchmark_max: int
    employee_count: Optional[int] = None
    industry: Optional[str] = None


ValidatorDetails = Annotated[
    Union[WebsiteDetails, IdentityDetails, BudgetDetails],
    Field(discriminator="kind"),
]


class OkOutcome(BaseModel):
    kind: Literal["ok"] = "ok"
    validator: ValidatorName
    score: float = Field(..., ge=0, le=100)
    details: ValidatorDetails


class FailedOutcome(BaseModel):
    kind: Literal["failed"] = "failed"
    validator: ValidatorName
    reason: FailureReason
    message: str = ""


ValidatorOutcome = Annotated[Union[OkOutcome, FailedOutcome], Field(discriminator="kind")]


def ok(validator: ValidatorName, score: float, details: BaseModel) -> OkOutcome:
    return OkOutcome(validator=validator, score=score, details=details)


def failed(validator: ValidatorName, reason: FailureReason, message: str = "") -> FailedOutcome:
    return FailedOutcome(validator=validator, reason=reason, message=message)


class CompanyProfile(BaseModel):
    """What the budget assessor knows about the prospect's company."""
    employee_count: Optional[int] = Field(None, gt=0)
    industry: Optional[str] = None
    company_name: Optional[str] = None


class FailureNote(BaseModel):
    """Informational entry in a vetting result's error list."""
    validator: ValidatorName
    reason: FailureReason
    message: str = ""
    noted_at: UtcDatetime = Field(default_factory=utc_now)

    @classmethod
    def from_outcome(cls, outcome: FailedOutcome, at: dt.datetime | None = None) -> "FailureNote":
        return cls(
            validator=outcome.validator,
            reason=outcome.reason,
            message=outcome.message,
            noted_at=at or utc_now(),
        )
