"""
Comprehensive Scorer
Pure, table-driven combination of the conversation signal and the three
validator outcomes into one readiness score, category and confidence level.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from src.models.snapshot import ConfidenceLevel, ReadinessCategory, SignalName, SignalScore
from src.models.validation import OkOutcome, ValidatorName, ValidatorOutcome

WEIGHTS: Dict[SignalName, float] = {
    SignalName.CONVERSATION: 0.40,
    SignalName.WEBSITE: 0.20,
    SignalName.IDENTITY: 0.20,
    SignalName.BUDGET: 0.10,
    SignalName.BEHAVIORAL: 0.10,
}

# Stands in for any failed or absent signal, and for the behavioral signal until one exists
NEUTRAL_SCORE = 50.0

# (lower bound inclusive, category), highest first; the last bound must be 0
VETTING_THRESHOLDS: Tuple[Tuple[float, ReadinessCategory], ...] = (
    (80.0, ReadinessCategory.HOT),
    (65.0, ReadinessCategory.WARM),
    (45.0, ReadinessCategory.COOL),
    (0.0, ReadinessCategory.COLD),
)

CONVERSATION_ONLY_THRESHOLDS: Tuple[Tuple[float, ReadinessCategory], ...] = (
    (80.0, ReadinessCategory.HOT),
    (60.0, ReadinessCategory.WARM),
    (40.0, ReadinessCategory.COOL),
    (0.0, ReadinessCategory.COLD),
)

CONFIDENCE_THRESHOLDS: Tuple[Tuple[float, ConfidenceLevel], ...] = (
    (70.0, ConfidenceLevel.HIGH),
    (40.0, ConfidenceLevel.MEDIUM),
    (0.0, ConfidenceLevel.LOW),
)

_VALIDATOR_SIGNALS = {
    ValidatorName.WEBSITE: SignalName.WEBSITE,
    ValidatorName.IDENTITY: SignalName.IDENTITY,
    ValidatorName.BUDGET: SignalName.BUDGET,
}


def check_threshold_table(table: Iterable[Tuple[float, object]]) -> None:
    """Bounds must strictly descend and end at 0 so [0, 100] has no gap or overlap."""
    bounds = [bound for bound, _ in table]
    if not bounds or bounds[-1] != 0.0:
        raise ValueError("Threshold table must end with a 0 lower bound")
    if any(upper <= lower for upper, lower in zip(bounds, bounds[1:])):
        raise ValueError("Threshold bounds must strictly descend")
    if bounds[0] > 100.0:
        raise ValueError("Threshold bounds must lie within [0, 100]")


for _table in (VETTING_THRESHOLDS, CONVERSATION_ONLY_THRESHOLDS, CONFIDENCE_THRESHOLDS):
    check_threshold_table(_table)

if abs(sum(WEIGHTS.values()) - 1.0) > 1e-9:
    raise ValueError("Signal weights must sum to 1")


def _lookup(score: float, table):
    for bound, label in table:
        if score >= bound:
            return label
    return table[-1][1]


def categorize(score: float, thresholds=VETTING_THRESHOLDS) -> ReadinessCategory:
    """Category for an unrounded score; each category's lower bound is inclusive."""
    return _lookup(score, thresholds)


def confidence_for(score: float) -> ConfidenceLevel:
    return _lookup(score, CONFIDENCE_THRESHOLDS)


def _clamp(score: float) -> float:
    return min(max(score, 0.0), 100.0)


@dataclass
class ScoreResult:
    """The snapshot fields a scoring pass produces."""
    final_score: float
    category: ReadinessCategory
    confidence_level: ConfidenceLevel
    per_signal_scores: List[SignalScore]


def score(
    conversation_score: float,
    outcomes: Dict[ValidatorName, Optional[ValidatorOutcome]],
    behavioral_score: Optional[float] = None,
) -> ScoreResult:
    """
    Weighted sum over the five signals.

    A validator that failed or was never run contributes NEUTRAL_SCORE at
    its full weight, so the scale does not shift with validator availability.

    Args:
        conversation_score: 0-100 readiness derived from the extraction
        outcomes: Validator outcome per name; missing keys count as absent
        behavioral_score: Reserved authenticity signal, neutral when None

    Returns:
        ScoreResult with the unrounded final score
    """
    signals = [
        SignalScore(
            signal=SignalName.CONVERSATION,
            score=_clamp(conversation_score),
            weight=WEIGHTS[SignalName.CONVERSATION],
        )
    ]

    for validator, signal_name in _VALIDATOR_SIGNALS.items():
        outcome = outcomes.get(validator)
        if isinstance(outcome, OkOutcome):
            signals.append(SignalScore(signal=signal_name, score=_clamp(outcome.score), weight=WEIGHTS[signal_name]))
        else:
            signals.append(SignalScore(
                signal=signal_name, score=NEUTRAL_SCORE, weight=WEIGHTS[signal_name], used_default=True
            ))

    signals.append(SignalScore(
        signal=SignalName.BEHAVIORAL,
        score=NEUTRAL_SCORE if behavioral_score is None else _clamp(behavioral_score),
        weight=WEIGHTS[SignalName.BEHAVIORAL],
        used_default=behavioral_score is None,
    ))

    # Trim float noise (79.99999999999999) without rounding away real fractions
    final = _clamp(round(sum(s.contribution for s in signals), 9))
    return ScoreResult(
        final_score=final,
        category=categorize(final),
        confidence_level=confidence_for(final),
        per_signal_scores=signals,
    )
