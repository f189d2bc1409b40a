"""
Completeness Assessor
Decides whether a conversation has gathered enough to stop, and derives the
conversation readiness signal used by the vetting score.
"""
from typing import Dict, Tuple

from src.models.extraction import (
    CompletenessResult,
    FieldCategory,
    FieldExtraction,
    FieldName,
)

REQUIRED_FIELDS: Tuple[FieldName, ...] = (
    FieldName.PROBLEM_TYPE,
    FieldName.INDUSTRY,
    FieldName.SOLUTION_PREFERENCE,
    FieldName.BUSINESS_URGENCY,
    FieldName.DECISION_ROLE,
    FieldName.BUDGET_STATUS,
)


class CompletenessAssessor:
    """
    Two-tier check over the required fields.

    Presence drives the percentage; clarity is checked separately. A field
    that is present but VAGUE counts toward the score and still keeps the
    conversation open.
    """

    def __init__(self, required_fields: Tuple[FieldName, ...] = REQUIRED_FIELDS):
        if not required_fields:
            raise ValueError("At least one required field is needed")
        self.required_fields = required_fields

    def assess(self, extraction: FieldExtraction) -> CompletenessResult:
        missing = []
        unclear = []
        for name in self.required_fields:
            field_value = extraction.get(name)
            if not field_value.is_present:
                missing.append(name)
            elif field_value.category != FieldCategory.CLEAR:
                unclear.append(name)

        total = len(self.required_fields)
        return CompletenessResult(
            is_complete=not missing and not unclear,
            completeness_score=round(100 * (total - len(missing)) / total, 2),
            missing_fields=missing,
            unclear_fields=unclear,
        )


# ============================================
# CONVERSATION READINESS
# ============================================

_BUDGET_POINTS: Dict[str, float] = {
    "approved": 25, "in_planning": 15, "researching_costs": 8, "just_exploring": 3,
}
_URGENCY_POINTS: Dict[str, float] = {
    "urgent_asap": 20, "under_3_months": 18, "3_to_6_months": 14,
    "6_to_12_months": 8, "1_year_plus": 4, "just_exploring": 2,
}
_ROLE_POINTS: Dict[str, float] = {
    "budget_holder": 20, "decision_maker": 20, "influencer": 12, "team_member": 8, "researcher": 4,
}
_JOB_FUNCTION_POINTS: Dict[str, float] = {
    "c_level": 20, "founder": 20, "vp": 16, "director": 14, "manager": 10,
    "consultant": 6, "individual_contributor": 5,
}
_TECH_POINTS: Dict[str, float] = {"advanced": 10, "intermediate": 6, "basic": 3}
_CAPACITY_POINTS: Dict[str, float] = {
    "have_internal_team": 5, "hybrid_approach": 5, "need_external_help": 3,
}

CLARITY_POINTS = 20.0


def _points(extraction: FieldExtraction, name: FieldName, table: Dict[str, float]) -> float:
    field_value = extraction.get(name)
    if not field_value.is_present:
        return 0.0
    earned = table.get(field_value.value, 0.0)
    # Hedged answers earn half credit
    if field_value.category != FieldCategory.CLEAR:
        earned /= 2
    return earned


def readiness_score(
    extraction: FieldExtraction,
    completeness: CompletenessResult,
    required_fields: Tuple[FieldName, ...] = REQUIRED_FIELDS,
) -> float:
    """
    Deterministic 0-100 conversation signal.

    budget status (25) + urgency (20) + authority (20) + clarity of the
    required fields (20) + technical and implementation readiness (15).

    Clarity is measured against the same required_fields the completeness
    result was assessed with.
    """
    score = _points(extraction, FieldName.BUDGET_STATUS, _BUDGET_POINTS)
    score += _points(extraction, FieldName.BUSINESS_URGENCY, _URGENCY_POINTS)
    score += max(
        _points(extraction, FieldName.DECISION_ROLE, _ROLE_POINTS),
        _points(extraction, FieldName.JOB_FUNCTION, _JOB_FUNCTION_POINTS),
    )

    required = len(completeness.missing_fields) + len(completeness.unclear_fields)
    total_required = len(required_fields)
    clear_required = max(total_required - required, 0)
    score += CLARITY_POINTS * clear_required / total_required

    score += _points(extraction, FieldName.TECH_CAPABILITY, _TECH_POINTS)
    score += _points(extraction, FieldName.IMPLEMENTATION_CAPACITY, _CAPACITY_POINTS)

    return round(min(max(score, 0.0), 100.0), 2)
