"""Tests for health record validation."""

from __future__ import annotations

from datetime import date

import pytest

from conftest import make_observation
from herdhealth.domains.livestock.domain_logic.models import (
    FeedEntry,
    Treatment,
    Vaccination,
    WeightEntry,
)
from herdhealth.domains.livestock.domain_logic.validation import (
    ValidationError,
    validate_feed_entry,
    validate_observation,
    validate_observation_update,
    validate_treatment,
    validate_vaccination,
    validate_weight_entry,
)


def _treatment(**overrides) -> Treatment:
    defaults = dict(
        id="",
        health_record_id="obs-1",
        animal_id="calf-17",
        name="Oxytetracycline",
        administered_by="jo",
        administered_date=date(2024, 6, 15),
    )
    defaults.update(overrides)
    return Treatment(**defaults)


class TestObservation:
    def test_valid_observation_passes(self):
        validate_observation(make_observation(
            severity_level=3,
            body_condition_score=4,
            temperature=102.5,
            symptoms=["fever"],
        ))

    @pytest.mark.parametrize("field_name", ["animal_id", "recorded_by", "notes"])
    def test_required_text(self, field_name):
        with pytest.raises(ValidationError) as exc_info:
            validate_observation(make_observation(**{field_name: "  "}))
        assert exc_info.value.field == field_name

    @pytest.mark.parametrize("value", [0, 6, 3.5, True])
    def test_condition_scores_are_integers_one_to_five(self, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_observation(make_observation(body_condition_score=value))
        assert exc_info.value.field == "body_condition_score"

    @pytest.mark.parametrize("value", [-1, 6])
    def test_severity_range(self, value):
        with pytest.raises(ValidationError, match="severity_level"):
            validate_observation(make_observation(severity_level=value))

    def test_severity_zero_allowed(self):
        validate_observation(make_observation(severity_level=0))

    def test_categorical_values(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_observation(make_observation(eye_condition="purple"))
        assert exc_info.value.field == "eye_condition"

    def test_negative_vitals_rejected(self):
        with pytest.raises(ValidationError, match="heart_rate"):
            validate_observation(make_observation(heart_rate=-5))

    @pytest.mark.parametrize(
        ("field_name", "value"),
        [("temperature", "hot"), ("heart_rate", True), ("respiratory_rate", [20])],
    )
    def test_non_numeric_vitals_rejected(self, field_name, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_observation(make_observation(**{field_name: value}))
        assert exc_info.value.field == field_name

    def test_integer_vitals_accepted(self):
        validate_observation(make_observation(heart_rate=72, respiratory_rate=30))

    @pytest.mark.parametrize("field_name", ["symptoms", "custom_symptoms"])
    def test_symptoms_must_be_a_list(self, field_name):
        with pytest.raises(ValidationError) as exc_info:
            validate_observation(make_observation(**{field_name: "fever"}))
        assert exc_info.value.field == field_name

    def test_symptoms_must_be_strings(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_observation(make_observation(symptoms=["fever", 3]))
        assert exc_info.value.field == "symptoms"

    def test_unknown_condition_needs_priority(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_observation(make_observation(is_unknown_condition=True))
        assert exc_info.value.field == "priority"

    def test_follow_up_needs_date(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_observation(make_observation(follow_up_required=True))
        assert exc_info.value.field == "follow_up_date"


class TestObservationUpdate:
    def test_mutable_fields_pass(self):
        validate_observation_update({"notes": "Better today", "severity_level": 1})

    @pytest.mark.parametrize("field_name", ["id", "animal_id", "recorded_at", "created_at"])
    def test_identity_fields_are_immutable(self, field_name):
        with pytest.raises(ValidationError, match="cannot be changed"):
            validate_observation_update({field_name: "x"})

    def test_unknown_field(self):
        with pytest.raises(ValidationError, match="not an observation field"):
            validate_observation_update({"horn_length": 4})


class TestTreatment:
    def test_valid(self):
        validate_treatment(_treatment(next_dose_date=date(2024, 6, 18), cost=12.5))

    def test_requires_source_observation(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_treatment(_treatment(health_record_id=""))
        assert exc_info.value.field == "health_record_id"

    def test_negative_cost(self):
        with pytest.raises(ValidationError, match="cost"):
            validate_treatment(_treatment(cost=-1.0))

    def test_next_dose_before_administered(self):
        with pytest.raises(ValidationError, match="next_dose_date"):
            validate_treatment(_treatment(next_dose_date=date(2024, 6, 1)))

    def test_unknown_type(self):
        with pytest.raises(ValidationError, match="treatment_type"):
            validate_treatment(_treatment(treatment_type="magic"))


class TestVaccination:
    def test_next_due_must_follow_administration(self):
        vaccination = Vaccination(
            id="",
            animal_id="calf-17",
            vaccine_name="Clostridial 7-way",
            administered_date=date(2024, 6, 15),
            next_due_date=date(2024, 6, 15),
        )
        with pytest.raises(ValidationError, match="next_due_date"):
            validate_vaccination(vaccination)

    def test_requires_vaccine_name(self):
        vaccination = Vaccination(
            id="", animal_id="calf-17", vaccine_name="", administered_date=date(2024, 6, 15)
        )
        with pytest.raises(ValidationError, match="vaccine_name"):
            validate_vaccination(vaccination)


class TestFeedAndWeight:
    def test_negative_feed(self):
        entry = FeedEntry(id="", animal_id="calf-17", entry_date=date(2024, 6, 1), amount_lbs=-3)
        with pytest.raises(ValidationError, match="amount_lbs"):
            validate_feed_entry(entry)

    @pytest.mark.parametrize("weight", [0, -10])
    def test_weight_must_be_positive(self, weight):
        entry = WeightEntry(id="", animal_id="calf-17", entry_date=date(2024, 6, 1), weight_lbs=weight)
        with pytest.raises(ValidationError, match="weight_lbs"):
            validate_weight_entry(entry)

    @pytest.mark.parametrize("amount", ["3", None])
    def test_feed_amount_must_be_numeric(self, amount):
        entry = FeedEntry(id="", animal_id="calf-17", entry_date=date(2024, 6, 1), amount_lbs=amount)
        with pytest.raises(ValidationError) as exc_info:
            validate_feed_entry(entry)
        assert exc_info.value.field == "amount_lbs"

    def test_feed_cost_must_be_numeric(self):
        entry = FeedEntry(
            id="", animal_id="calf-17", entry_date=date(2024, 6, 1), amount_lbs=12, cost="cheap"
        )
        with pytest.raises(ValidationError) as exc_info:
            validate_feed_entry(entry)
        assert exc_info.value.field == "cost"

    @pytest.mark.parametrize("weight", ["450", None, True])
    def test_weight_must_be_numeric(self, weight):
        entry = WeightEntry(id="", animal_id="calf-17", entry_date=date(2024, 6, 1), weight_lbs=weight)
        with pytest.raises(ValidationError) as exc_info:
            validate_weight_entry(entry)
        assert exc_info.value.field == "weight_lbs"
