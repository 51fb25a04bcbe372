"""Tests for alert synthesis and the alert lifecycle."""

from __future__ import annotations

import itertools
from datetime import date, timedelta

from conftest import NOW, make_observation
from herdhealth.domains.livestock.domain_logic import alert_engine
from herdhealth.domains.livestock.domain_logic.models import Alert, Treatment, Vaccination
from herdhealth.domains.livestock.domain_logic.policy import AlertPolicy


def _ids():
    counter = itertools.count(1)
    return lambda: f"alert-{next(counter)}"


def _alert(alert_id="a1", **overrides) -> Alert:
    defaults = dict(
        id=alert_id,
        animal_id="calf-17",
        alert_type="emergency",
        severity="critical",
        title="High Severity Health Issue",
        description="Off feed",
        created_at=NOW,
    )
    defaults.update(overrides)
    return Alert(**defaults)


class TestObservationTriggers:
    def test_high_severity_raises_emergency(self):
        obs = make_observation(id="obs-1", severity_level=4, notes="Labored breathing")
        alerts = alert_engine.on_observation_created(obs, now=NOW, id_factory=_ids())

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.alert_type == "emergency"
        assert alert.severity == "critical"
        assert alert.status == "active"
        assert alert.source_record_id == "obs-1"
        assert alert.created_at == NOW
        assert "Labored breathing" in alert.description
        assert "4/5" in alert.description

    def test_moderate_severity_raises_nothing(self):
        obs = make_observation(id="obs-1", severity_level=3)
        assert alert_engine.on_observation_created(obs, now=NOW) == []

    def test_follow_up_alert(self):
        obs = make_observation(
            id="obs-1",
            follow_up_required=True,
            follow_up_date=date(2024, 6, 20),
        )
        alerts = alert_engine.on_observation_created(obs, now=NOW)

        assert [a.alert_type for a in alerts] == ["follow_up_required"]
        assert alerts[0].severity == "medium"
        assert alerts[0].due_date == date(2024, 6, 20)
        assert "2024-06-15" in alerts[0].description

    def test_emergency_and_follow_up_together(self):
        obs = make_observation(
            id="obs-1",
            severity_level=5,
            follow_up_required=True,
            follow_up_date=date(2024, 6, 16),
        )
        alerts = alert_engine.on_observation_created(obs, now=NOW, id_factory=_ids())
        assert [a.alert_type for a in alerts] == ["emergency", "follow_up_required"]
        assert [a.id for a in alerts] == ["alert-1", "alert-2"]

    def test_urgent_unknown_condition_requests_expert_review(self):
        obs = make_observation(id="obs-1", is_unknown_condition=True, priority="urgent")
        alert_engine.on_observation_created(obs, now=NOW)
        assert obs.expert_review_requested is True

    def test_monitor_priority_needs_no_expert(self):
        obs = make_observation(id="obs-1", is_unknown_condition=True, priority="monitor")
        alert_engine.on_observation_created(obs, now=NOW)
        assert obs.expert_review_requested is False

    def test_custom_emergency_threshold(self):
        obs = make_observation(id="obs-1", severity_level=3)
        alerts = alert_engine.on_observation_created(
            obs, policy=AlertPolicy(emergency_severity=3), now=NOW
        )
        assert [a.alert_type for a in alerts] == ["emergency"]


class TestTreatmentAndVaccinationTriggers:
    def test_next_dose_raises_treatment_due(self):
        treatment = Treatment(
            id="tx-1",
            health_record_id="obs-1",
            animal_id="calf-17",
            name="Oxytetracycline",
            administered_by="jo",
            administered_date=date(2024, 6, 15),
            next_dose_date=date(2024, 6, 18),
        )
        alerts = alert_engine.on_treatment_created(treatment, now=NOW)

        assert len(alerts) == 1
        assert alerts[0].alert_type == "treatment_due"
        assert alerts[0].severity == "high"
        assert alerts[0].due_date == date(2024, 6, 18)
        assert alerts[0].source_record_id == "tx-1"

    def test_single_dose_treatment_raises_nothing(self):
        treatment = Treatment(
            id="tx-1",
            health_record_id="obs-1",
            animal_id="calf-17",
            name="Banamine",
            administered_by="jo",
            administered_date=date(2024, 6, 15),
        )
        assert alert_engine.on_treatment_created(treatment, now=NOW) == []

    def test_vaccination_alert_leads_due_date(self):
        vaccination = Vaccination(
            id="vx-1",
            animal_id="calf-17",
            vaccine_name="Clostridial 7-way",
            administered_date=date(2024, 1, 1),
            next_due_date=date(2024, 7, 1),
        )
        alerts = alert_engine.on_vaccination_created(vaccination, now=NOW)

        assert len(alerts) == 1
        assert alerts[0].alert_type == "vaccination_due"
        assert alerts[0].severity == "medium"
        assert alerts[0].due_date == date(2024, 6, 24)
        assert "Clostridial 7-way" in alerts[0].description

    def test_vaccination_without_booster_raises_nothing(self):
        vaccination = Vaccination(
            id="vx-1",
            animal_id="calf-17",
            vaccine_name="Clostridial 7-way",
            administered_date=date(2024, 1, 1),
        )
        assert alert_engine.on_vaccination_created(vaccination, now=NOW) == []


class TestHealthDecline:
    def test_declining_trend_raises_alert(self):
        alerts = alert_engine.on_health_trend_evaluated("calf-17", "declining", 55.0, now=NOW)
        assert [a.alert_type for a in alerts] == ["health_decline"]
        assert alerts[0].severity == "high"

    def test_stable_or_improving_raise_nothing(self):
        assert alert_engine.on_health_trend_evaluated("calf-17", "stable", 80.0) == []
        assert alert_engine.on_health_trend_evaluated("calf-17", "improving", 90.0) == []

    def test_active_decline_alert_suppresses_another(self):
        existing = [_alert(alert_type="health_decline", severity="high")]
        assert alert_engine.on_health_trend_evaluated(
            "calf-17", "declining", 55.0, existing, now=NOW
        ) == []

    def test_resolved_decline_alert_does_not_suppress(self):
        existing = [_alert(alert_type="health_decline", severity="high", status="resolved")]
        alerts = alert_engine.on_health_trend_evaluated(
            "calf-17", "declining", 55.0, existing, now=NOW
        )
        assert len(alerts) == 1


class TestRoutineCheck:
    def test_overdue_animal_gets_reminder(self):
        alerts = alert_engine.check_routine_due("calf-17", NOW - timedelta(days=31), now=NOW)
        assert [a.alert_type for a in alerts] == ["routine_check"]
        assert alerts[0].severity == "low"
        assert alerts[0].due_date == NOW.date()

    def test_naive_last_observation_is_read_as_utc(self):
        naive = (NOW - timedelta(days=31)).replace(tzinfo=None)
        alerts = alert_engine.check_routine_due("calf-17", naive, now=NOW)
        assert [a.alert_type for a in alerts] == ["routine_check"]

        recent = (NOW - timedelta(days=2)).replace(tzinfo=None)
        assert alert_engine.check_routine_due("calf-17", recent, now=NOW) == []

    def test_naive_now_is_read_as_utc(self):
        alerts = alert_engine.check_routine_due(
            "calf-17", NOW - timedelta(days=31), now=NOW.replace(tzinfo=None)
        )
        assert alerts[0].created_at == NOW

    def test_recently_observed_animal_is_fine(self):
        assert alert_engine.check_routine_due("calf-17", NOW - timedelta(days=10), now=NOW) == []

    def test_never_observed_animal_gets_reminder(self):
        alerts = alert_engine.check_routine_due("calf-17", None, now=NOW)
        assert len(alerts) == 1
        assert "No health observation recorded yet" in alerts[0].description

    def test_existing_reminder_not_duplicated(self):
        existing = [_alert(alert_type="routine_check", severity="low")]
        assert alert_engine.check_routine_due("calf-17", None, existing, now=NOW) == []


class TestActiveAlertOrdering:
    def test_severity_then_newest_first(self):
        alerts = [
            _alert("low-old", severity="low", created_at=NOW - timedelta(hours=5)),
            _alert("crit-old", severity="critical", created_at=NOW - timedelta(hours=3)),
            _alert("high-new", severity="high", created_at=NOW),
            _alert("crit-new", severity="critical", created_at=NOW - timedelta(hours=1)),
            _alert("medium", severity="medium", created_at=NOW),
        ]
        ordered = alert_engine.list_active_alerts(alerts)
        assert [a.id for a in ordered] == ["crit-new", "crit-old", "high-new", "medium", "low-old"]

    def test_inactive_alerts_excluded(self):
        alerts = [
            _alert("a1"),
            _alert("a2", status="dismissed"),
            _alert("a3", status="resolved"),
        ]
        assert [a.id for a in alert_engine.list_active_alerts(alerts)] == ["a1"]

    def test_identical_timestamps_ordered_by_id(self):
        alerts = [_alert("b"), _alert("a")]
        assert [a.id for a in alert_engine.list_active_alerts(alerts)] == ["a", "b"]


class TestLifecycle:
    def test_dismiss(self):
        dismissed = alert_engine.dismiss_alert(_alert(), actor="jo", now=NOW)
        assert dismissed.status == "dismissed"
        assert dismissed.dismissed is True
        assert dismissed.is_active is False
        assert dismissed.dismissed_at == NOW
        assert dismissed.acknowledged_by == "jo"

    def test_dismiss_is_idempotent(self):
        once = alert_engine.dismiss_alert(_alert(), now=NOW)
        twice = alert_engine.dismiss_alert(once, now=NOW + timedelta(hours=1))
        assert twice == once
        assert twice.dismissed_at == NOW

    def test_dismiss_does_not_mutate_input(self):
        original = _alert()
        alert_engine.dismiss_alert(original, now=NOW)
        assert original.status == "active"

    def test_resolve(self):
        resolved = alert_engine.resolve_alert(_alert(), now=NOW)
        assert resolved.status == "resolved"
        assert resolved.resolved_at == NOW

    def test_terminal_states_are_absorbing(self):
        dismissed = alert_engine.dismiss_alert(_alert(), now=NOW)
        assert alert_engine.resolve_alert(dismissed, now=NOW) is dismissed

        resolved = alert_engine.resolve_alert(_alert(), now=NOW)
        assert alert_engine.dismiss_alert(resolved, now=NOW) is resolved

    def test_acknowledge_keeps_alert_active(self):
        acked = alert_engine.acknowledge_alert(_alert(), "sam", now=NOW)
        assert acked.is_active
        assert acked.acknowledged_by == "sam"
        assert acked.acknowledged_at == NOW

    def test_first_acknowledgement_wins(self):
        acked = alert_engine.acknowledge_alert(_alert(), "sam", now=NOW)
        again = alert_engine.acknowledge_alert(acked, "jo", now=NOW)
        assert again.acknowledged_by == "sam"
