"""Tests for the health record service."""

from __future__ import annotations

import logging
from datetime import date, timedelta

import pytest

from conftest import NOW, make_observation
from herdhealth.core.storage.repository import PersistenceError
from herdhealth.domains.livestock.domain_logic.health_records import (
    HealthRecordService,
    RecordNotFoundError,
)
from herdhealth.domains.livestock.domain_logic.models import (
    FeedEntry,
    Treatment,
    Vaccination,
    WeightEntry,
)
from herdhealth.domains.livestock.domain_logic.validation import ValidationError


def _treatment(observation_id, **overrides) -> Treatment:
    defaults = dict(
        id="",
        health_record_id=observation_id,
        animal_id="calf-17",
        name="Oxytetracycline",
        administered_by="jo",
        administered_date=date(2024, 6, 15),
    )
    defaults.update(overrides)
    return Treatment(**defaults)


class TestRecordObservation:
    def test_persists_and_assigns_identity(self, health_service, herd_repository):
        outcome = health_service.record_observation(make_observation(), now=NOW)

        assert outcome.record.id
        assert outcome.record.created_at == NOW
        assert outcome.alerts == []
        stored = herd_repository.get_observation(outcome.record.id)
        assert stored.notes == "Routine check"

    def test_invalid_observation_writes_nothing(self, health_service, herd_repository):
        with pytest.raises(ValidationError):
            health_service.record_observation(make_observation(severity_level=9), now=NOW)
        assert herd_repository.count_observations() == 0
        assert herd_repository.list_alerts() == []

    def test_non_numeric_vital_is_a_validation_error(self, health_service, herd_repository):
        with pytest.raises(ValidationError) as exc_info:
            health_service.record_observation(make_observation(temperature="hot"), now=NOW)
        assert exc_info.value.field == "temperature"
        assert herd_repository.count_observations() == 0

    def test_naive_recorded_at_is_stored_as_utc(self, health_service):
        outcome = health_service.record_observation(
            make_observation(recorded_at=NOW.replace(tzinfo=None)), now=NOW
        )
        assert outcome.record.recorded_at == NOW

    def test_emergency_alert_persisted(self, health_service):
        outcome = health_service.record_observation(
            make_observation(severity_level=5, notes="Down and bloated"), now=NOW
        )

        assert [a.alert_type for a in outcome.alerts] == ["emergency"]
        assert outcome.alerts[0].source_record_id == outcome.record.id
        active = health_service.list_active_alerts("calf-17")
        assert [a.id for a in active] == [outcome.alerts[0].id]

    def test_expert_review_flag_is_stored(self, health_service, herd_repository):
        outcome = health_service.record_observation(
            make_observation(is_unknown_condition=True, priority="emergency"), now=NOW
        )
        assert herd_repository.get_observation(outcome.record.id).expert_review_requested is True

    def test_alert_failure_keeps_observation(
        self, health_service, herd_repository, monkeypatch, caplog
    ):
        def _fail(alert):
            raise PersistenceError("disk full")

        monkeypatch.setattr(herd_repository, "save_alert", _fail)
        with caplog.at_level(logging.ERROR):
            outcome = health_service.record_observation(
                make_observation(severity_level=5), now=NOW
            )

        assert outcome.alerts == []
        assert herd_repository.get_observation(outcome.record.id) is not None
        assert "Could not save emergency alert" in caplog.text

    def test_declining_trend_raises_one_alert(self, health_service, herd_repository):
        for day, severity in enumerate([None, None, 4, 5, 5]):
            health_service.record_observation(
                make_observation(
                    recorded_at=NOW + timedelta(days=day),
                    severity_level=severity,
                ),
                now=NOW + timedelta(days=day),
            )

        declines = [
            a for a in herd_repository.list_alerts("calf-17") if a.alert_type == "health_decline"
        ]
        assert len(declines) == 1


class TestUpdateObservation:
    def test_updates_fields_and_timestamp(self, health_service, herd_repository):
        original = health_service.record_observation(make_observation(), now=NOW).record
        later = NOW + timedelta(hours=2)

        updated = health_service.update_observation(
            original.id, {"notes": "Eating again", "appetite_score": 4}, now=later
        )

        assert updated.updated_at == later
        stored = herd_repository.get_observation(original.id)
        assert stored.notes == "Eating again"
        assert stored.appetite_score == 4
        assert stored.recorded_at == original.recorded_at
        assert stored.updated_at == later

    def test_recorded_at_is_immutable(self, health_service):
        original = health_service.record_observation(make_observation(), now=NOW).record
        with pytest.raises(ValidationError):
            health_service.update_observation(original.id, {"recorded_at": NOW})

    def test_update_is_revalidated(self, health_service):
        original = health_service.record_observation(make_observation(), now=NOW).record
        with pytest.raises(ValidationError):
            health_service.update_observation(original.id, {"mobility_score": 9})

    def test_missing_observation(self, health_service):
        with pytest.raises(RecordNotFoundError):
            health_service.update_observation("nope", {"notes": "x"})


class TestTreatmentsAndVaccinations:
    def test_treatment_due_alert(self, health_service):
        obs = health_service.record_observation(make_observation(), now=NOW).record
        outcome = health_service.record_treatment(
            _treatment(obs.id, next_dose_date=date(2024, 6, 18)), now=NOW
        )
        assert [a.alert_type for a in outcome.alerts] == ["treatment_due"]
        assert outcome.alerts[0].source_record_id == outcome.record.id

    def test_update_treatment(self, health_service, herd_repository):
        obs = health_service.record_observation(make_observation(), now=NOW).record
        treatment = health_service.record_treatment(_treatment(obs.id), now=NOW).record

        health_service.update_treatment(treatment.id, {"treatment_complete": True}, now=NOW)
        assert herd_repository.get_treatment(treatment.id).treatment_complete is True

    def test_treatment_identity_is_immutable(self, health_service):
        with pytest.raises(ValidationError):
            health_service.update_treatment("tx", {"animal_id": "other"})

    def test_vaccination_due_alert(self, health_service):
        outcome = health_service.record_vaccination(
            Vaccination(
                id="",
                animal_id="calf-17",
                vaccine_name="Clostridial 7-way",
                administered_date=date(2024, 1, 1),
                next_due_date=date(2024, 7, 1),
            ),
            now=NOW,
        )
        assert outcome.alerts[0].due_date == date(2024, 6, 24)


class TestSummary:
    def test_summary_reads_stored_records(self, health_service):
        health_service.record_observation(
            make_observation(symptoms=["fever", "coughing"], severity_level=4), now=NOW
        )
        summary = health_service.get_health_summary("calf-17", now=NOW)

        assert summary.total_records == 1
        assert summary.current_health_score == 50.0
        assert [a.alert_type for a in summary.active_alerts] == ["emergency"]


class TestAlertLifecycle:
    def test_dismiss_is_idempotent_and_audited_once(self, health_service, audit_logger):
        alert = health_service.record_observation(
            make_observation(severity_level=5), now=NOW
        ).alerts[0]

        first = health_service.dismiss_alert(alert.id, actor="jo", now=NOW)
        second = health_service.dismiss_alert(alert.id, actor="jo", now=NOW + timedelta(hours=1))

        assert first.status == second.status == "dismissed"
        assert second.dismissed_at == NOW
        assert health_service.list_active_alerts("calf-17") == []
        assert len(audit_logger.get_events(action="alert_dismissed")) == 1

    def test_resolve_after_dismiss_is_noop(self, health_service, herd_repository):
        alert = health_service.record_observation(
            make_observation(severity_level=5), now=NOW
        ).alerts[0]
        health_service.dismiss_alert(alert.id, now=NOW)
        health_service.resolve_alert(alert.id, now=NOW)
        assert herd_repository.get_alert(alert.id).status == "dismissed"

    def test_acknowledge_requires_actor(self, health_service):
        with pytest.raises(ValidationError):
            health_service.acknowledge_alert("a1", " ")

    def test_unknown_alert(self, health_service):
        with pytest.raises(RecordNotFoundError):
            health_service.dismiss_alert("missing")

    def test_routine_check(self, health_service):
        health_service.record_observation(make_observation(), now=NOW)

        assert health_service.check_routine_due("calf-17", now=NOW + timedelta(days=5)) == []
        alerts = health_service.check_routine_due("calf-17", now=NOW + timedelta(days=40))
        assert [a.alert_type for a in alerts] == ["routine_check"]
        assert health_service.check_routine_due("calf-17", now=NOW + timedelta(days=41)) == []


class TestFeedEfficiency:
    def _seed(self, service):
        for day in (date(2024, 6, 1), date(2024, 6, 10), date(2024, 6, 20)):
            service.record_feed_entry(
                FeedEntry(id="", animal_id="calf-17", entry_date=day, amount_lbs=100.0, cost=50.0)
            )
        service.record_weight(
            WeightEntry(id="", animal_id="calf-17", entry_date=date(2024, 6, 1), weight_lbs=500.0)
        )
        service.record_weight(
            WeightEntry(id="", animal_id="calf-17", entry_date=date(2024, 6, 30), weight_lbs=600.0)
        )

    def test_calculate_and_store(self, health_service, herd_repository):
        self._seed(health_service)
        record = health_service.calculate_feed_efficiency("calf-17", end_date=date(2024, 6, 30))

        assert record.fcr == pytest.approx(3.0)
        assert record.efficiency_score == 90
        stored = herd_repository.list_feed_efficiency_records("calf-17")
        assert [r.id for r in stored] == [record.id]

    def test_invalid_period(self, health_service):
        with pytest.raises(ValidationError):
            health_service.calculate_feed_efficiency("calf-17", period_days=0)

    def test_analysis_needs_history(self, health_service):
        assert health_service.get_feed_efficiency_analysis("calf-17") is None

    def test_analysis_and_plan(self, health_service):
        self._seed(health_service)
        health_service.calculate_feed_efficiency("calf-17", end_date=date(2024, 6, 30))

        analysis = health_service.get_feed_efficiency_analysis("calf-17")
        assert analysis.benchmarks.industry_average == pytest.approx(3.0)

        plan = health_service.create_feed_optimization_plan("calf-17", 2.5)
        assert plan.target_fcr == 2.5

        herd = health_service.get_herd_feed_distribution()
        assert herd["total_animals"] == 1

    def test_plan_without_history(self, health_service):
        with pytest.raises(RecordNotFoundError):
            health_service.create_feed_optimization_plan("calf-17", 2.5)

    def test_negative_weight_rejected(self, health_service):
        with pytest.raises(ValidationError):
            health_service.record_weight(
                WeightEntry(id="", animal_id="calf-17", entry_date=date(2024, 6, 1), weight_lbs=-1)
            )


class TestDeletion:
    def test_delete_animal_records_is_audited(self, health_service, herd_repository, audit_logger):
        health_service.record_observation(make_observation(severity_level=5), now=NOW)
        health_service.record_observation(make_observation(animal_id="ewe-3"), now=NOW)

        deleted = health_service.delete_animal_records("calf-17")

        assert deleted == 2
        assert herd_repository.count_observations("calf-17") == 0
        assert herd_repository.count_observations("ewe-3") == 1
        events = audit_logger.get_events(action="data_delete")
        assert events[0]["animal_id"] == "calf-17"


class TestWithoutAudit:
    def test_service_works_without_audit_logger(self, herd_repository):
        service = HealthRecordService(herd_repository)
        alert = service.record_observation(make_observation(severity_level=4), now=NOW).alerts[0]
        assert service.dismiss_alert(alert.id, now=NOW).dismissed
