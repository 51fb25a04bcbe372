"""Health record service: validated writes, alert synthesis, summaries.

Orchestrates the pure engine modules around a :class:`HerdRepository`:

    new observation -> validate -> persist -> alert triggers -> trend check

Validation runs before anything is written. Alert persistence is best-effort:
when saving an alert fails the failure is logged and the health record that
triggered it still stands.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from herdhealth.core.storage.repository import PersistenceError
from herdhealth.domains.livestock.domain_logic import alert_engine
from herdhealth.domains.livestock.domain_logic.feed_efficiency import (
    FeedEfficiencyAnalysis,
    FeedOptimizationPlan,
    analyze_feed_efficiency,
    compute_benchmarks,
    create_optimization_plan,
    efficiency_distribution,
    summarize_feed_period,
)
from herdhealth.domains.livestock.domain_logic.models import (
    Alert,
    FeedEfficiencyRecord,
    FeedEntry,
    HealthSummary,
    Observation,
    Treatment,
    Vaccination,
    WeightEntry,
    as_utc,
)
from herdhealth.domains.livestock.domain_logic.policy import (
    DEFAULT_ALERT_POLICY,
    DEFAULT_SCORING_POLICY,
    AlertPolicy,
    ScoringPolicy,
)
from herdhealth.domains.livestock.domain_logic.scoring import (
    compute_health_summary_score,
    compute_observation_score,
)
from herdhealth.domains.livestock.domain_logic.summary import build_health_summary
from herdhealth.domains.livestock.domain_logic.trend_analyzer import classify_trend
from herdhealth.domains.livestock.domain_logic.validation import (
    ValidationError,
    validate_feed_entry,
    validate_observation,
    validate_observation_update,
    validate_treatment,
    validate_vaccination,
    validate_weight_entry,
)

if TYPE_CHECKING:
    from herdhealth.core.audit.logger import AuditLogger
    from herdhealth.core.storage.repository import HerdRepository

logger = logging.getLogger(__name__)

# Observations considered when checking for a declining health trend
TREND_HISTORY_LIMIT = 10
FEED_HISTORY_LIMIT = 12

_IMMUTABLE_TREATMENT_FIELDS = frozenset(
    {"id", "health_record_id", "animal_id", "created_at", "updated_at"}
)


class RecordNotFoundError(LookupError):
    """Raised when an operation names a record that does not exist."""


@dataclass
class RecordOutcome:
    """A persisted health record together with the alerts it produced."""

    record: Observation | Treatment | Vaccination
    alerts: list[Alert] = field(default_factory=list)


def _new_id() -> str:
    return str(uuid.uuid4())


class HealthRecordService:
    """Entry point for recording and analysing herd health data.

    Usage::

        service = HealthRecordService(repository)
        outcome = service.record_observation(observation)
        summary = service.get_health_summary("calf-17")
    """

    def __init__(
        self,
        repository: HerdRepository,
        policy: ScoringPolicy = DEFAULT_SCORING_POLICY,
        alert_policy: AlertPolicy = DEFAULT_ALERT_POLICY,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._repo = repository
        self._policy = policy
        self._alert_policy = alert_policy
        self._audit = audit_logger

    @property
    def repository(self) -> HerdRepository:
        return self._repo

    @property
    def policy(self) -> ScoringPolicy:
        return self._policy

    # ------------------------------------------------------------------
    # Alert emission
    # ------------------------------------------------------------------

    def _emit(self, alerts: list[Alert]) -> list[Alert]:
        """Persist alerts one by one; failures are logged, not raised."""
        saved = []
        for alert in alerts:
            try:
                self._repo.save_alert(alert)
            except PersistenceError:
                logger.exception(
                    "Could not save %s alert for animal %s", alert.alert_type, alert.animal_id
                )
                continue
            saved.append(alert)
        return saved

    def _check_health_decline(self, animal_id: str, now: datetime) -> list[Alert]:
        try:
            history = self._repo.list_observations(animal_id, limit=TREND_HISTORY_LIMIT)
            active = self._repo.list_alerts(animal_id, status="active")
        except PersistenceError:
            logger.exception("Could not load history for trend check of animal %s", animal_id)
            return []

        scores = [compute_observation_score(obs, self._policy) for obs in history]
        trend = classify_trend(
            scores,
            higher_is_better=True,
            band=self._policy.trend_band,
            window=self._policy.trend_window,
        )
        return alert_engine.on_health_trend_evaluated(
            animal_id,
            trend,
            compute_health_summary_score(history, self._policy),
            active,
            now=now,
        )

    # ------------------------------------------------------------------
    # Observations
    # ------------------------------------------------------------------

    def record_observation(
        self,
        observation: Observation,
        *,
        now: datetime | None = None,
    ) -> RecordOutcome:
        """Validate, persist and raise alerts for a new observation.

        Raises:
            ValidationError: If the observation is malformed. Nothing is written.
            PersistenceError: If the observation itself could not be saved.
        """
        current = now or datetime.now(timezone.utc)
        validate_observation(observation)
        if not observation.id:
            observation.id = _new_id()
        observation.recorded_at = as_utc(observation.recorded_at)
        observation.created_at = current

        # Sets expert_review_requested before the row is written
        alerts = alert_engine.on_observation_created(
            observation, policy=self._alert_policy, now=current
        )
        self._repo.save_observation(observation)

        alerts.extend(self._check_health_decline(observation.animal_id, current))
        saved = self._emit(alerts)

        logger.info(
            "Recorded observation %s for animal %s (%d alerts)",
            observation.id, observation.animal_id, len(saved),
        )
        return RecordOutcome(record=observation, alerts=saved)

    def update_observation(
        self,
        observation_id: str,
        updates: dict[str, Any],
        *,
        now: datetime | None = None,
    ) -> Observation:
        """Apply field updates to an observation and refresh ``updated_at``.

        ``recorded_at`` and the identity fields cannot change. Updates do not
        raise new alerts.
        """
        validate_observation_update(updates)
        existing = self._repo.get_observation(observation_id)
        if existing is None:
            raise RecordNotFoundError(f"Observation {observation_id!r} not found")

        updated = dataclasses.replace(
            existing, **updates, updated_at=now or datetime.now(timezone.utc)
        )
        validate_observation(updated)
        self._repo.update_observation(updated)
        logger.info("Updated observation %s (%s)", observation_id, ", ".join(sorted(updates)))
        return updated

    # ------------------------------------------------------------------
    # Treatments and vaccinations
    # ------------------------------------------------------------------

    def record_treatment(
        self,
        treatment: Treatment,
        *,
        now: datetime | None = None,
    ) -> RecordOutcome:
        current = now or datetime.now(timezone.utc)
        validate_treatment(treatment)
        if not treatment.id:
            treatment.id = _new_id()
        treatment.created_at = current
        self._repo.save_treatment(treatment)
        saved = self._emit(alert_engine.on_treatment_created(treatment, now=current))
        return RecordOutcome(record=treatment, alerts=saved)

    def update_treatment(
        self,
        treatment_id: str,
        updates: dict[str, Any],
        *,
        now: datetime | None = None,
    ) -> Treatment:
        for name in updates:
            if name in _IMMUTABLE_TREATMENT_FIELDS:
                raise ValidationError(name, "cannot be changed after creation")
            if name not in Treatment.__dataclass_fields__:
                raise ValidationError(name, "is not a treatment field")

        existing = self._repo.get_treatment(treatment_id)
        if existing is None:
            raise RecordNotFoundError(f"Treatment {treatment_id!r} not found")

        updated = dataclasses.replace(
            existing, **updates, updated_at=now or datetime.now(timezone.utc)
        )
        validate_treatment(updated)
        self._repo.update_treatment(updated)
        return updated

    def record_vaccination(
        self,
        vaccination: Vaccination,
        *,
        now: datetime | None = None,
    ) -> RecordOutcome:
        current = now or datetime.now(timezone.utc)
        validate_vaccination(vaccination)
        if not vaccination.id:
            vaccination.id = _new_id()
        vaccination.created_at = current
        self._repo.save_vaccination(vaccination)
        saved = self._emit(
            alert_engine.on_vaccination_created(vaccination, policy=self._alert_policy, now=current)
        )
        return RecordOutcome(record=vaccination, alerts=saved)

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    def get_health_summary(self, animal_id: str, *, now: datetime | None = None) -> HealthSummary:
        return build_health_summary(
            animal_id,
            self._repo.list_observations(animal_id),
            self._repo.list_treatments(animal_id),
            self._repo.list_vaccinations(animal_id),
            self._repo.list_alerts(animal_id),
            now=now,
            policy=self._policy,
            alert_policy=self._alert_policy,
        )

    def list_observations(self, animal_id: str, *, limit: int | None = None) -> list[Observation]:
        return self._repo.list_observations(animal_id, limit=limit)

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def list_active_alerts(self, animal_id: str | None = None) -> list[Alert]:
        """Active alerts, critical first and newest first within a severity."""
        return alert_engine.list_active_alerts(self._repo.list_alerts(animal_id, status="active"))

    def _transition(
        self,
        alert_id: str,
        action: str,
        change: Callable[[Alert], Alert],
        actor: str | None,
    ) -> Alert:
        """Apply ``change`` to a stored alert; an unchanged result is returned as-is."""
        alert = self._repo.get_alert(alert_id)
        if alert is None:
            raise RecordNotFoundError(f"Alert {alert_id!r} not found")

        updated = change(alert)
        if updated is alert:
            return alert

        self._repo.update_alert(updated)
        if self._audit is not None:
            self._audit.log_alert_action(action, updated, actor=actor)
        logger.info("Alert %s %s", alert_id, action)
        return updated

    def dismiss_alert(
        self,
        alert_id: str,
        *,
        actor: str | None = None,
        now: datetime | None = None,
    ) -> Alert:
        """Dismiss an alert. Dismissing a dismissed or resolved alert is a no-op."""
        return self._transition(
            alert_id,
            "dismissed",
            lambda a: alert_engine.dismiss_alert(a, actor=actor, now=now),
            actor,
        )

    def resolve_alert(self, alert_id: str, *, now: datetime | None = None) -> Alert:
        return self._transition(
            alert_id, "resolved", lambda a: alert_engine.resolve_alert(a, now=now), None
        )

    def acknowledge_alert(
        self,
        alert_id: str,
        actor: str,
        *,
        now: datetime | None = None,
    ) -> Alert:
        if not actor or not actor.strip():
            raise ValidationError("actor", "is required")
        return self._transition(
            alert_id,
            "acknowledged",
            lambda a: alert_engine.acknowledge_alert(a, actor, now=now),
            actor,
        )

    def check_routine_due(self, animal_id: str, *, now: datetime | None = None) -> list[Alert]:
        """Raise a routine-check reminder when the animal has gone unobserved."""
        current = now or datetime.now(timezone.utc)
        latest = self._repo.list_observations(animal_id, limit=1)
        alerts = alert_engine.check_routine_due(
            animal_id,
            latest[0].recorded_at if latest else None,
            self._repo.list_alerts(animal_id, status="active"),
            policy=self._alert_policy,
            now=current,
        )
        return self._emit(alerts)

    # ------------------------------------------------------------------
    # Feed efficiency
    # ------------------------------------------------------------------

    def record_feed_entry(self, entry: FeedEntry) -> FeedEntry:
        validate_feed_entry(entry)
        self._repo.save_feed_entry(entry)
        return entry

    def record_weight(self, entry: WeightEntry) -> WeightEntry:
        validate_weight_entry(entry)
        self._repo.save_weight_entry(entry)
        return entry

    def calculate_feed_efficiency(
        self,
        animal_id: str,
        *,
        period_days: int = 30,
        end_date: date | None = None,
    ) -> FeedEfficiencyRecord:
        """Aggregate the stored feed and weight samples of one period and save it."""
        if period_days <= 0:
            raise ValidationError("period_days", "must be positive")
        end = end_date or datetime.now(timezone.utc).date()
        start = end - timedelta(days=period_days)

        record = summarize_feed_period(
            animal_id,
            self._repo.list_feed_entries(animal_id, since=start, until=end),
            self._repo.list_weight_entries(animal_id, since=start, until=end),
            period_days=period_days,
            end_date=end,
            policy=self._policy,
        )
        self._repo.save_feed_efficiency_record(record)
        return record

    def get_feed_efficiency_analysis(self, animal_id: str) -> FeedEfficiencyAnalysis | None:
        """Analysis of the latest stored period, or None if none was calculated."""
        history = self._repo.list_feed_efficiency_records(animal_id, limit=FEED_HISTORY_LIMIT)
        if not history:
            return None
        herd = self._repo.latest_feed_efficiency_records()
        benchmarks = compute_benchmarks([r.fcr for r in herd if r.fcr is not None])
        return analyze_feed_efficiency(history[0], history, benchmarks, self._policy)

    def get_herd_feed_distribution(self) -> dict[str, Any]:
        return efficiency_distribution(self._repo.latest_feed_efficiency_records())

    def create_feed_optimization_plan(self, animal_id: str, target_fcr: float) -> FeedOptimizationPlan:
        if target_fcr <= 0:
            raise ValidationError("target_fcr", "must be positive")
        history = self._repo.list_feed_efficiency_records(animal_id, limit=1)
        if not history:
            raise RecordNotFoundError(f"No feed efficiency data for animal {animal_id!r}")
        return create_optimization_plan(history[0], target_fcr)

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_animal_records(self, animal_id: str) -> int:
        count = self._repo.delete_animal_records(animal_id)
        if self._audit is not None:
            self._audit.log_data_delete(
                tool_name="delete_animal_records", animal_id=animal_id, count=count
            )
        return count
