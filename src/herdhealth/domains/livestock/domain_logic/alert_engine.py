"""Rules that turn new health records into alerts, and the alert lifecycle.

Each trigger is evaluated once, at the moment of the write that caused it.
Triggers only build :class:`Alert` values; persisting them is the caller's job.

Lifecycle::

    (none) -> active -> dismissed
                     -> resolved

``dismissed`` and ``resolved`` are absorbing: transitions out of them are
no-ops.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from collections.abc import Callable, Iterable
from datetime import date, datetime, timedelta, timezone

from herdhealth.domains.livestock.domain_logic.models import (
    SEVERITY_RANK,
    Alert,
    AlertSeverity,
    AlertType,
    Observation,
    Treatment,
    Trend,
    Vaccination,
    as_utc,
)
from herdhealth.domains.livestock.domain_logic.policy import (
    DEFAULT_ALERT_POLICY,
    AlertPolicy,
)

logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]


def _new_alert_id() -> str:
    return f"alert_{uuid.uuid4().hex}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _build(
    *,
    animal_id: str,
    alert_type: AlertType,
    severity: AlertSeverity,
    title: str,
    description: str,
    action_required: str,
    due_date: date | None,
    source_record_id: str | None,
    now: datetime | None,
    id_factory: IdFactory | None,
) -> Alert:
    return Alert(
        id=(id_factory or _new_alert_id)(),
        animal_id=animal_id,
        alert_type=alert_type,
        severity=severity,
        title=title,
        description=description,
        action_required=action_required,
        due_date=due_date,
        created_at=now or _now(),
        source_record_id=source_record_id,
    )


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------

def on_observation_created(
    observation: Observation,
    *,
    policy: AlertPolicy = DEFAULT_ALERT_POLICY,
    now: datetime | None = None,
    id_factory: IdFactory | None = None,
) -> list[Alert]:
    """Alerts for a newly recorded observation.

    Also sets ``observation.expert_review_requested`` when an unknown
    condition is flagged urgent or emergency.
    """
    alerts: list[Alert] = []

    severity = observation.severity_level or 0
    if severity >= policy.emergency_severity:
        alerts.append(_build(
            animal_id=observation.animal_id,
            alert_type="emergency",
            severity="critical",
            title="High Severity Health Issue",
            description=(
                f"High severity health issue detected: {observation.notes} "
                f"(severity level {severity}/5)"
            ),
            action_required="Contact a veterinarian immediately",
            due_date=None,
            source_record_id=observation.id,
            now=now,
            id_factory=id_factory,
        ))

    if observation.follow_up_required and observation.follow_up_date is not None:
        alerts.append(_build(
            animal_id=observation.animal_id,
            alert_type="follow_up_required",
            severity="medium",
            title="Follow-up Required",
            description=(
                "Follow-up needed for health observation from "
                f"{observation.recorded_at.date().isoformat()}"
            ),
            action_required="Conduct follow-up health check",
            due_date=observation.follow_up_date,
            source_record_id=observation.id,
            now=now,
            id_factory=id_factory,
        ))

    if (
        observation.is_unknown_condition
        and observation.priority in policy.expert_review_priorities
    ):
        observation.expert_review_requested = True
        logger.info(
            "Expert review requested for observation %s (priority=%s)",
            observation.id,
            observation.priority,
        )

    return alerts


def on_treatment_created(
    treatment: Treatment,
    *,
    now: datetime | None = None,
    id_factory: IdFactory | None = None,
) -> list[Alert]:
    """A ``treatment_due`` alert when the treatment has a next dose."""
    if treatment.next_dose_date is None:
        return []
    return [_build(
        animal_id=treatment.animal_id,
        alert_type="treatment_due",
        severity="high",
        title="Treatment Due",
        description=f"Next dose of {treatment.name} is due on {treatment.next_dose_date.isoformat()}",
        action_required="Administer treatment",
        due_date=treatment.next_dose_date,
        source_record_id=treatment.id,
        now=now,
        id_factory=id_factory,
    )]


def on_vaccination_created(
    vaccination: Vaccination,
    *,
    policy: AlertPolicy = DEFAULT_ALERT_POLICY,
    now: datetime | None = None,
    id_factory: IdFactory | None = None,
) -> list[Alert]:
    """A ``vaccination_due`` alert, due a lead time before the next vaccination."""
    if vaccination.next_due_date is None:
        return []
    remind_on = vaccination.next_due_date - timedelta(days=policy.vaccination_lead_days)
    return [_build(
        animal_id=vaccination.animal_id,
        alert_type="vaccination_due",
        severity="medium",
        title="Vaccination Due Soon",
        description=(
            f"{vaccination.vaccine_name} vaccination due on "
            f"{vaccination.next_due_date.isoformat()}"
        ),
        action_required="Schedule vaccination",
        due_date=remind_on,
        source_record_id=vaccination.id,
        now=now,
        id_factory=id_factory,
    )]


def _has_active(alerts: Iterable[Alert], alert_type: AlertType) -> bool:
    return any(a.alert_type == alert_type and a.is_active for a in alerts)


def on_health_trend_evaluated(
    animal_id: str,
    trend: Trend,
    health_score: float,
    existing_alerts: Iterable[Alert] = (),
    *,
    now: datetime | None = None,
    id_factory: IdFactory | None = None,
) -> list[Alert]:
    """A ``health_decline`` alert when the score trend turns downward.

    Skipped while an earlier decline alert is still active.
    """
    if trend != "declining" or _has_active(existing_alerts, "health_decline"):
        return []
    return [_build(
        animal_id=animal_id,
        alert_type="health_decline",
        severity="high",
        title="Health Declining",
        description=f"Health score is trending down (current score {health_score:g})",
        action_required="Monitor closely and consider a veterinary consultation",
        due_date=None,
        source_record_id=None,
        now=now,
        id_factory=id_factory,
    )]


def check_routine_due(
    animal_id: str,
    last_observed_at: datetime | None,
    existing_alerts: Iterable[Alert] = (),
    *,
    policy: AlertPolicy = DEFAULT_ALERT_POLICY,
    now: datetime | None = None,
    id_factory: IdFactory | None = None,
) -> list[Alert]:
    """A ``routine_check`` reminder when the animal has gone unobserved too long."""
    current = as_utc(now) if now else _now()
    if last_observed_at is not None:
        if current - as_utc(last_observed_at) <= timedelta(days=policy.routine_check_days):
            return []
    if _has_active(existing_alerts, "routine_check"):
        return []
    return [_build(
        animal_id=animal_id,
        alert_type="routine_check",
        severity="low",
        title="Routine Check Recommended",
        description=(
            "No health observation recorded yet"
            if last_observed_at is None
            else f"No health observation in over {policy.routine_check_days} days"
        ),
        action_required="Schedule routine health check-up",
        due_date=current.date(),
        source_record_id=None,
        now=current,
        id_factory=id_factory,
    )]


# ---------------------------------------------------------------------------
# Retrieval and lifecycle
# ---------------------------------------------------------------------------

def alert_sort_key(alert: Alert) -> tuple[int, float, str]:
    """Severity descending, then newest first, then id for a total order."""
    return (-SEVERITY_RANK[alert.severity], -alert.created_at.timestamp(), alert.id)


def list_active_alerts(alerts: Iterable[Alert]) -> list[Alert]:
    """Active alerts ordered critical first, newest first within a severity."""
    return sorted((a for a in alerts if a.is_active), key=alert_sort_key)


def dismiss_alert(
    alert: Alert,
    *,
    actor: str | None = None,
    now: datetime | None = None,
) -> Alert:
    """Move an active alert to ``dismissed``. Terminal alerts are returned unchanged."""
    if alert.is_terminal:
        return alert
    when = now or _now()
    return dataclasses.replace(
        alert,
        status="dismissed",
        dismissed_at=when,
        acknowledged_by=alert.acknowledged_by or actor,
        acknowledged_at=alert.acknowledged_at or (when if actor else None),
    )


def resolve_alert(alert: Alert, *, now: datetime | None = None) -> Alert:
    """Move an active alert to ``resolved``. Terminal alerts are returned unchanged."""
    if alert.is_terminal:
        return alert
    return dataclasses.replace(alert, status="resolved", resolved_at=now or _now())


def acknowledge_alert(
    alert: Alert,
    actor: str,
    *,
    now: datetime | None = None,
) -> Alert:
    """Record who has seen an alert. The alert stays active."""
    if alert.is_terminal or alert.acknowledged_by:
        return alert
    return dataclasses.replace(alert, acknowledged_by=actor, acknowledged_at=now or _now())
