"""
Qualification Field Models
The fixed field vocabulary extracted from prospect conversations, with the
enumerated value domain of every field and the per-field confidence category.
"""
from enum import StrEnum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class FieldName(StrEnum):
    PROBLEM_TYPE = "problem_type"
    INDUSTRY = "industry"
    JOB_FUNCTION = "job_function"
    DECISION_ROLE = "decision_role"
    SOLUTION_PREFERENCE = "solution_preference"
    IMPLEMENTATION_CAPACITY = "implementation_capacity"
    BUSINESS_URGENCY = "business_urgency"
    BUDGET_STATUS = "budget_status"
    BUDGET_AMOUNT = "budget_amount"
    TEAM_SIZE = "team_size"
    TECH_CAPABILITY = "tech_capability"


class FieldCategory(StrEnum):
    CLEAR = "CLEAR"
    VAGUE = "VAGUE"
    UNKNOWN = "UNKNOWN"


class ValueSource(StrEnum):
    RULE = "rule"
    COMPLETION = "completion"
    NONE = "none"


FIELD_DOMAINS: Dict[FieldName, frozenset[str]] = {
    FieldName.PROBLEM_TYPE: frozenset({
        "hiring_recruitment", "customer_support", "data_analysis", "financial_management",
        "sales_marketing", "time_tracking", "inventory_management", "content_creation",
        "document_processing", "quality_assurance", "predictive_analytics",
        "process_automation", "compliance_reporting", "fraud_detection",
        "personalization", "other",
    }),
    FieldName.INDUSTRY: frozenset({
        "healthcare", "finance", "construction", "retail", "manufacturing", "technology",
        "education", "government", "real_estate", "insurance", "consulting",
        "media_entertainment", "transportation", "energy", "agriculture", "legal",
        "nonprofit", "other",
    }),
    FieldName.JOB_FUNCTION: frozenset({
        "individual_contributor", "manager", "director", "vp", "c_level", "founder", "consultant",
    }),
    FieldName.DECISION_ROLE: frozenset({
        "researcher", "influencer", "team_member", "decision_maker", "budget_holder",
    }),
    FieldName.SOLUTION_PREFERENCE: frozenset({
        "off_the_shelf", "custom_build", "hybrid_approach", "undecided",
    }),
    FieldName.IMPLEMENTATION_CAPACITY: frozenset({
        "have_internal_team", "need_external_help", "hybrid_approach",
    }),
    FieldName.BUSINESS_URGENCY: frozenset({
        "urgent_asap", "under_3_months", "3_to_6_months", "6_to_12_months",
        "1_year_plus", "just_exploring",
    }),
    FieldName.BUDGET_STATUS: frozenset({
        "approved", "in_planning", "researching_costs", "just_exploring",
    }),
    FieldName.TECH_CAPABILITY: frozenset({
        "basic", "intermediate", "advanced",
    }),
}

# Positive integers carried as digit strings (dollars, head count)
NUMERIC_FIELDS: frozenset[FieldName] = frozenset({FieldName.BUDGET_AMOUNT, FieldName.TEAM_SIZE})


def is_valid_value(field: FieldName, value: Optional[str]) -> bool:
    """True when value is None or belongs to the field's domain."""
    if value is None:
        return True
    if field in NUMERIC_FIELDS:
        return value.isdigit() and int(value) > 0
    return value in FIELD_DOMAINS[field]


class FieldValue(BaseModel):
    """One extracted field: the value, how sure we are, and where it came from."""
    value: Optional[str] = None
    category: FieldCategory = FieldCategory.UNKNOWN
    source: ValueSource = ValueSource.NONE

    @model_validator(mode="after")
    def absent_value_is_unknown(self) -> "FieldValue":
        if self.value is None:
            self.category = FieldCategory.UNKNOWN
            self.source = ValueSource.NONE
        return self

    @property
    def is_present(self) -> bool:
        return self.value is not None


class FieldExtraction(BaseModel):
    """
    The full field map for one conversation.

    Always carries every FieldName; fields nobody could fill are
    UNKNOWN with a null value. Re-derived from the whole transcript on
    every turn, never patched incrementally.
    """
    fields: Dict[FieldName, FieldValue] = Field(default_factory=dict)

    @field_validator("fields")
    @classmethod
    def fill_and_check_domains(cls, fields: Dict[FieldName, FieldValue]) -> Dict[FieldName, FieldValue]:
        for name, field_value in fields.items():
            if not is_valid_value(name, field_value.value):
                raise ValueError(f"{field_value.value!r} is not a valid {name.value}")
        return {name: fields.get(name, FieldValue()) for name in FieldName}

    def get(self, name: FieldName) -> FieldValue:
        return self.fields[name]

    def value(self, name: FieldName) -> Optional[str]:
        return self.fields[name].value

    def category(self, name: FieldName) -> FieldCategory:
        return self.fields[name].category

    def unknown_fields(self) -> List[FieldName]:
        return [name for name in FieldName if self.fields[name].category == FieldCategory.UNKNOWN]

    def as_flat_dict(self) -> Dict[str, Optional[str]]:
        """Plain name -> value view for prompts and logs."""
        return {name.value: self.fields[name].value for name in FieldName}


class CompletenessResult(BaseModel):
    """
    Outcome of checking an extraction against the required field list.
    A present but VAGUE/UNKNOWN required field counts toward the score yet
    keeps the conversation incomplete.
    """
    is_complete: bool
    completeness_score: float = Field(..., ge=0, le=100)
    missing_fields: List[FieldName] = Field(default_factory=list)
    unclear_fields: List[FieldName] = Field(default_factory=list)

    @model_validator(mode="after")
    def complete_iff_nothing_outstanding(self) -> "CompletenessResult":
        outstanding = bool(self.missing_fields or self.unclear_fields)
        if self.is_complete == outstanding:
            raise ValueError(
                "is_complete must be true exactly when no field is missing or unclear"
            )
        return self
