"""
Budget Realism Assessor
Compares the budget a prospect states against what companies of that size
and industry typically spend. Deliberately skeptical: a figure far outside
the benchmark band lowers the score whether it is too small or too large.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from loguru import logger

from src.models.extraction import FieldName
from src.models.validation import (
    BudgetAlignment,
    BudgetCategory,
    BudgetDetails,
    CompanyProfile,
    FailureReason,
    ValidatorName,
    ValidatorOutcome,
    failed,
    ok,
)
from src.services.extraction_rules import match_field, parse_budget_amount


@dataclass(frozen=True)
class BenchmarkBand:
    min_employees: int
    max_employees: Optional[int]  # exclusive; None for the open top band
    budget_min: int
    budget_max: int

    def contains(self, employees: int) -> bool:
        return employees >= self.min_employees and (
            self.max_employees is None or employees < self.max_employees
        )


BENCHMARK_BANDS: Tuple[BenchmarkBand, ...] = (
    BenchmarkBand(1, 10, 5_000, 30_000),
    BenchmarkBand(10, 50, 25_000, 100_000),
    BenchmarkBand(50, 200, 75_000, 300_000),
    BenchmarkBand(200, 1000, 200_000, 800_000),
    BenchmarkBand(1000, None, 500_000, 2_000_000),
)
DEFAULT_BAND = BENCHMARK_BANDS[2]

INDUSTRY_MULTIPLIERS: Dict[str, float] = {
    "finance": 1.4,
    "insurance": 1.3,
    "healthcare": 1.2,
    "technology": 1.0,
    "government": 0.9,
    "manufacturing": 0.8,
    "construction": 0.8,
    "retail": 0.7,
    "education": 0.6,
    "nonprofit": 0.5,
}

_INDUSTRY_ALIASES = {
    "financial services": "finance",
    "financial": "finance",
    "banking": "finance",
    "tech": "technology",
    "software": "technology",
    "health care": "healthcare",
    "non-profit": "nonprofit",
}

BASE_SCORE = 50
ALIGNMENT_ADJUSTMENTS: Dict[BudgetAlignment, int] = {
    BudgetAlignment.WITHIN_BAND: 30,
    BudgetAlignment.SLIGHTLY_BELOW: 5,
    BudgetAlignment.SLIGHTLY_ABOVE: -5,
    BudgetAlignment.FAR_BELOW: -25,
    BudgetAlignment.FAR_ABOVE: -35,
    BudgetAlignment.NO_STATED_BUDGET: -10,
}
CATEGORY_ADJUSTMENTS: Dict[BudgetCategory, int] = {
    BudgetCategory.APPROVED: 15,
    BudgetCategory.IN_PLANNING: 5,
    BudgetCategory.EXPLORING: -10,
    BudgetCategory.UNKNOWN: -5,
}
UNKNOWN_SIZE_PENALTY = 5

_STATUS_TO_CATEGORY = {
    "approved": BudgetCategory.APPROVED,
    "in_planning": BudgetCategory.IN_PLANNING,
    "researching_costs": BudgetCategory.EXPLORING,
    "just_exploring": BudgetCategory.EXPLORING,
}


def normalize_industry(industry: Optional[str]) -> Optional[str]:
    if not industry:
        return None
    key = industry.strip().lower().replace("_", " ")
    return _INDUSTRY_ALIASES.get(key, key.replace(" ", "_"))


def benchmark_for(employee_count: Optional[int], industry: Optional[str]) -> Tuple[int, int]:
    """(min, max) dollars for the size band, scaled by the industry multiplier."""
    band = DEFAULT_BAND
    if employee_count:
        band = next((b for b in BENCHMARK_BANDS if b.contains(employee_count)), DEFAULT_BAND)
    multiplier = INDUSTRY_MULTIPLIERS.get(normalize_industry(industry) or "", 1.0)
    return int(band.budget_min * multiplier), int(band.budget_max * multiplier)


def classify_alignment(amount: Optional[int], benchmark_min: int, benchmark_max: int) -> BudgetAlignment:
    if amount is None:
        return BudgetAlignment.NO_STATED_BUDGET
    if amount < 0.5 * benchmark_min:
        return BudgetAlignment.FAR_BELOW
    if amount < benchmark_min:
        return BudgetAlignment.SLIGHTLY_BELOW
    if amount <= benchmark_max:
        return BudgetAlignment.WITHIN_BAND
    if amount <= 2 * benchmark_max:
        return BudgetAlignment.SLIGHTLY_ABOVE
    return BudgetAlignment.FAR_ABOVE


def budget_category(conversation_text: str) -> BudgetCategory:
    found = match_field(FieldName.BUDGET_STATUS, conversation_text.lower())
    if found is None:
        return BudgetCategory.UNKNOWN
    return _STATUS_TO_CATEGORY.get(found.value, BudgetCategory.UNKNOWN)


class BudgetRealismAssessor:
    """
    Usage:
        >>> assessor = BudgetRealismAssessor()
        >>> outcome = await assessor.assess(conversation.user_text(), CompanyProfile(employee_count=120))
    """

    async def assess(self, conversation_text: Optional[str], company_profile: CompanyProfile) -> ValidatorOutcome:
        if not conversation_text or not conversation_text.strip():
            return failed(ValidatorName.BUDGET, FailureReason.NO_CONVERSATION, "No conversation to assess")
        return ok(ValidatorName.BUDGET, *self._evaluate(conversation_text, company_profile))

    def _evaluate(self, conversation_text: str, profile: CompanyProfile) -> Tuple[int, BudgetDetails]:
        amount = parse_budget_amount(conversation_text)
        category = budget_category(conversation_text)
        benchmark_min, benchmark_max = benchmark_for(profile.employee_count, profile.industry)
        alignment = classify_alignment(amount, benchmark_min, benchmark_max)

        score = BASE_SCORE + ALIGNMENT_ADJUSTMENTS[alignment] + CATEGORY_ADJUSTMENTS[category]
        if not profile.employee_count:
            score -= UNKNOWN_SIZE_PENALTY
        score = max(0, min(100, score))

        logger.info(
            f"💰 Budget assessed: amount={amount} band={benchmark_min}-{benchmark_max} "
            f"alignment={alignment.value} category={category.value} score={score}"
        )
        return score, BudgetDetails(
            category=category,
            realism_score=score,
            alignment=alignment,
            stated_amount=amount,
            benchmark_min=benchmark_min,
            benchmark_max=benchmark_max,
            employee_count=profile.employee_count,
            industry=normalize_industry(profile.industry),
        )
