"""Tunable scoring and alerting policy.

The constants below encode program policy (how much a symptom costs, what a
good feed conversion looks like), not physical law. Every value can be
overridden through :class:`~herdhealth.core.config.settings.Settings`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from herdhealth.core.config.settings import Settings


@dataclass(frozen=True)
class ScoringPolicy:
    """Constants for health, feed-efficiency and trend scoring."""

    # Per-observation health score (0-100)
    base_score: int = 100
    severity_penalty: int = 10        # per severity level
    symptom_penalty: int = 5          # per distinct symptom
    body_condition_bonus: int = 10
    body_condition_threshold: int = 4  # BCS on the 1-5 scale
    neutral_score: float = 50.0       # aggregate score with no history
    score_window: int = 5             # most recent observations averaged
    neutral_condition_score: float = 3.0

    # Feed efficiency (0-100)
    fcr_optimum: float = 2.0
    fcr_penalty: float = 10.0         # points per unit of FCR above optimum
    cost_optimum: float = 1.0         # $/lb gain
    cost_penalty: float = 20.0        # points per $ above optimum

    # Trend classification
    trend_band: float = 0.05
    trend_window: int = 3

    @classmethod
    def from_settings(cls, settings: Settings) -> ScoringPolicy:
        return cls(
            base_score=settings.score_base,
            severity_penalty=settings.score_severity_penalty,
            symptom_penalty=settings.score_symptom_penalty,
            body_condition_bonus=settings.score_body_condition_bonus,
            body_condition_threshold=settings.score_body_condition_threshold,
            neutral_score=settings.score_neutral,
            score_window=settings.score_window,
            fcr_optimum=settings.fcr_optimum,
            fcr_penalty=settings.fcr_penalty,
            cost_optimum=settings.cost_optimum,
            cost_penalty=settings.cost_penalty,
            trend_band=settings.trend_band,
            trend_window=settings.trend_window,
        )


@dataclass(frozen=True)
class AlertPolicy:
    """Constants for alert synthesis."""

    emergency_severity: int = 4          # severity_level at or above -> emergency
    vaccination_lead_days: int = 7       # alert due this many days before the vaccine
    routine_check_days: int = 30         # days without an observation before a reminder
    upcoming_vaccination_days: int = 30  # window for "upcoming" vaccinations
    expert_review_priorities: frozenset[str] = frozenset({"urgent", "emergency"})

    @classmethod
    def from_settings(cls, settings: Settings) -> AlertPolicy:
        return cls(
            vaccination_lead_days=settings.vaccination_lead_days,
            routine_check_days=settings.routine_check_days,
            upcoming_vaccination_days=settings.upcoming_vaccination_days,
        )


DEFAULT_SCORING_POLICY = ScoringPolicy()
DEFAULT_ALERT_POLICY = AlertPolicy()
