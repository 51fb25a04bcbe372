"""Deterministic health and feed-efficiency scoring.

Score values are always clamped to [0, 100]. Missing history degrades to the
policy's neutral default instead of raising.
"""

from __future__ import annotations

import math
import statistics
from collections.abc import Sequence

from herdhealth.domains.livestock.domain_logic.models import (
    FeedEfficiency,
    FeedTotals,
    Observation,
    WeightTotals,
)
from herdhealth.domains.livestock.domain_logic.policy import (
    DEFAULT_SCORING_POLICY,
    ScoringPolicy,
)
from herdhealth.domains.livestock.domain_logic.validation import ValidationError


def _clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    """Clamp a value to [lo, hi]."""
    return max(lo, min(hi, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


# ---------------------------------------------------------------------------
# Health score
# ---------------------------------------------------------------------------

def compute_observation_score(
    observation: Observation,
    policy: ScoringPolicy = DEFAULT_SCORING_POLICY,
) -> int:
    """Score a single observation on 0-100.

    Starts at ``base_score``; each severity level and each distinct symptom
    (standard and custom together) costs points; a body condition score at or
    above the threshold earns a bonus.
    """
    score = policy.base_score

    if observation.severity_level:
        score -= observation.severity_level * policy.severity_penalty

    score -= len(observation.distinct_symptoms()) * policy.symptom_penalty

    bcs = observation.body_condition_score
    if bcs is not None and bcs >= policy.body_condition_threshold:
        score += policy.body_condition_bonus

    return int(_clamp(score))


def compute_health_summary_score(
    history: Sequence[Observation],
    policy: ScoringPolicy = DEFAULT_SCORING_POLICY,
) -> float:
    """Mean observation score over the most recent window.

    Args:
        history: Observations, newest first.

    Returns:
        The mean rounded to one decimal, or ``policy.neutral_score`` when
        there is no history.
    """
    recent = list(history[: policy.score_window])
    if not recent:
        return policy.neutral_score
    scores = [compute_observation_score(obs, policy) for obs in recent]
    return round(statistics.mean(scores), 1)


def compute_condition_score(
    history: Sequence[Observation],
    policy: ScoringPolicy = DEFAULT_SCORING_POLICY,
) -> float:
    """Mean of the four 1-5 condition scores over the recent window.

    A score left blank on an observation counts as the neutral midpoint.
    """
    recent = list(history[: policy.score_window])
    if not recent:
        return policy.neutral_condition_score

    neutral = policy.neutral_condition_score
    per_record = []
    for obs in recent:
        parts = [
            obs.body_condition_score,
            obs.mobility_score,
            obs.appetite_score,
            obs.alertness_score,
        ]
        per_record.append(statistics.mean(neutral if p is None else p for p in parts))
    return round(statistics.mean(per_record), 1)


# ---------------------------------------------------------------------------
# Feed efficiency
# ---------------------------------------------------------------------------

def compute_feed_efficiency(
    feed_totals: FeedTotals,
    weight_totals: WeightTotals,
    policy: ScoringPolicy = DEFAULT_SCORING_POLICY,
) -> FeedEfficiency:
    """Compute FCR, cost per pound of gain and the 0-100 efficiency score.

    FCR and cost per gain are undefined when the animal gained nothing; both
    are reported as None and the efficiency score is 0.
    """
    if feed_totals.total_feed < 0:
        raise ValidationError("total_feed", "must not be negative")
    if feed_totals.total_cost < 0:
        raise ValidationError("total_cost", "must not be negative")

    gain = weight_totals.total_gain
    if gain <= 0:
        return FeedEfficiency(fcr=None, cost_per_lb_gain=None, efficiency_score=0)

    fcr = feed_totals.total_feed / gain
    cost_per_lb_gain = feed_totals.total_cost / gain

    fcr_score = _clamp(100 - (fcr - policy.fcr_optimum) * policy.fcr_penalty)
    cost_score = _clamp(100 - (cost_per_lb_gain - policy.cost_optimum) * policy.cost_penalty)

    return FeedEfficiency(
        fcr=fcr,
        cost_per_lb_gain=cost_per_lb_gain,
        efficiency_score=round_half_up((fcr_score + cost_score) / 2),
        fcr_score=fcr_score,
        cost_score=cost_score,
    )
