"""Per-animal health summary read model."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from herdhealth.domains.livestock.domain_logic.alert_engine import list_active_alerts
from herdhealth.domains.livestock.domain_logic.models import (
    Alert,
    HealthSummary,
    Observation,
    Treatment,
    Vaccination,
    as_utc,
)
from herdhealth.domains.livestock.domain_logic.policy import (
    DEFAULT_ALERT_POLICY,
    DEFAULT_SCORING_POLICY,
    AlertPolicy,
    ScoringPolicy,
)
from herdhealth.domains.livestock.domain_logic.scoring import (
    compute_condition_score,
    compute_health_summary_score,
    compute_observation_score,
)
from herdhealth.domains.livestock.domain_logic.symptom_matcher import symptom_frequency
from herdhealth.domains.livestock.domain_logic.trend_analyzer import classify_trend


def build_health_summary(
    animal_id: str,
    observations: Sequence[Observation],
    treatments: Sequence[Treatment] = (),
    vaccinations: Sequence[Vaccination] = (),
    alerts: Sequence[Alert] = (),
    *,
    now: datetime | None = None,
    policy: ScoringPolicy = DEFAULT_SCORING_POLICY,
    alert_policy: AlertPolicy = DEFAULT_ALERT_POLICY,
) -> HealthSummary:
    """Aggregate one animal's records into a HealthSummary.

    Args:
        observations: Observations for the animal, newest first.
        treatments: Treatments for the animal.
        vaccinations: Vaccinations for the animal.
        alerts: Every alert for the animal; only active ones are kept.
        now: Reference time for "upcoming" windows.
    """
    current = as_utc(now) if now else datetime.now(timezone.utc)
    recent = list(observations[: policy.score_window])

    scores = [compute_observation_score(obs, policy) for obs in observations]
    trend = classify_trend(
        scores,
        higher_is_better=True,
        band=policy.trend_band,
        window=policy.trend_window,
    )

    recent_issues = [
        obs.notes or "Health concern noted"
        for obs in observations[:3]
        if obs.observation_type == "illness" or obs.symptoms or obs.custom_symptoms
    ]

    upcoming_treatments = sorted(
        (t for t in treatments if not t.treatment_complete and t.next_dose_date is not None),
        key=lambda t: t.next_dose_date,
    )

    today = current.date()
    horizon = today + timedelta(days=alert_policy.upcoming_vaccination_days)
    upcoming_vaccinations = sorted(
        (
            v for v in vaccinations
            if v.next_due_date is not None and today <= v.next_due_date <= horizon
        ),
        key=lambda v: v.next_due_date,
    )

    cost_by_category: dict[str, float] = defaultdict(float)
    for t in treatments:
        if t.cost:
            cost_by_category[t.treatment_type] += t.cost
    for v in vaccinations:
        if v.cost:
            cost_by_category["vaccination"] += v.cost

    active = list_active_alerts(alerts)

    return HealthSummary(
        animal_id=animal_id,
        total_records=len(observations),
        last_health_check=observations[0].recorded_at if observations else None,
        current_health_score=compute_health_summary_score(observations, policy),
        condition_score=compute_condition_score(observations, policy),
        health_trend=trend,
        recent_issues=recent_issues,
        common_symptoms=symptom_frequency(recent),
        active_alerts=active,
        upcoming_treatments=upcoming_treatments,
        upcoming_vaccinations=upcoming_vaccinations,
        total_health_costs=round(sum(cost_by_category.values()), 2),
        cost_by_category=dict(cost_by_category),
        recommendations=health_recommendations(
            observations, active, now=current, alert_policy=alert_policy
        ),
    )


def health_recommendations(
    observations: Sequence[Observation],
    active_alerts: Sequence[Alert],
    *,
    now: datetime,
    alert_policy: AlertPolicy = DEFAULT_ALERT_POLICY,
) -> list[str]:
    """Plain-language next steps for the animal's caretaker."""
    recommendations: list[str] = []

    if active_alerts:
        recommendations.append("Address active health alerts promptly")

    if any((obs.severity_level or 0) >= 3 for obs in observations[:3]):
        recommendations.append("Monitor animal closely for any changes")
        recommendations.append("Consider veterinary consultation if symptoms persist")

    routine_gap = timedelta(days=alert_policy.routine_check_days)
    if not observations:
        recommendations.append("Schedule routine health check-up")
    elif as_utc(now) - as_utc(observations[0].recorded_at) > routine_gap:
        recommendations.append("Schedule routine health check-up")

    recommendations.append("Maintain consistent daily health observations")
    return recommendations
