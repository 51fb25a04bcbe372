"""Input validation for new and updated health records.

Every check runs before any score is derived or any row is written, so a
record is either accepted whole or rejected whole.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from herdhealth.domains.livestock.domain_logic.models import (
    APPETITE_CATEGORIES,
    EYE_CONDITIONS,
    GAIT_MOBILITIES,
    MANURE_CONSISTENCIES,
    NASAL_DISCHARGES,
    OBSERVATION_TYPES,
    TREATMENT_TYPES,
    UNKNOWN_CONDITION_PRIORITIES,
    FeedEntry,
    Observation,
    Treatment,
    Vaccination,
    WeightEntry,
)


class ValidationError(ValueError):
    """Raised when a record is missing a required field or holds an out-of-range value."""

    def __init__(self, field_name: str, message: str) -> None:
        super().__init__(f"{field_name}: {message}")
        self.field = field_name


_CONDITION_SCORE_FIELDS = (
    "body_condition_score",
    "mobility_score",
    "appetite_score",
    "alertness_score",
)

_CATEGORICAL_FIELDS = {
    "eye_condition": EYE_CONDITIONS,
    "nasal_discharge": NASAL_DISCHARGES,
    "manure_consistency": MANURE_CONSISTENCIES,
    "gait_mobility": GAIT_MOBILITIES,
    "appetite": APPETITE_CATEGORIES,
    "observation_type": OBSERVATION_TYPES,
}

_VITAL_FIELDS = ("temperature", "heart_rate", "respiratory_rate")

# Fields an update may never touch
_IMMUTABLE_OBSERVATION_FIELDS = frozenset(
    {"id", "animal_id", "recorded_at", "created_at", "updated_at"}
)


def _require_text(field_name: str, value: str | None) -> None:
    if value is None or not str(value).strip():
        raise ValidationError(field_name, "is required")


def _check_number(field_name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(field_name, f"must be a number (got {value!r})")


def _check_non_negative(field_name: str, value: float | None) -> None:
    if value is None:
        return
    _check_number(field_name, value)
    if value < 0:
        raise ValidationError(field_name, f"must not be negative (got {value})")


def _check_text_list(field_name: str, value: Any) -> None:
    if not isinstance(value, (list, tuple)):
        raise ValidationError(field_name, f"must be a list of strings (got {value!r})")
    for item in value:
        if not isinstance(item, str):
            raise ValidationError(field_name, f"must contain only strings (got {item!r})")


def validate_observation(observation: Observation) -> None:
    """Validate a new or updated observation."""
    _require_text("animal_id", observation.animal_id)
    _require_text("recorded_by", observation.recorded_by)
    _require_text("notes", observation.notes)
    if not isinstance(observation.recorded_at, datetime):
        raise ValidationError("recorded_at", "must be a datetime")

    for name in _CONDITION_SCORE_FIELDS:
        score = getattr(observation, name)
        if score is None:
            continue
        if isinstance(score, bool) or not isinstance(score, int) or not 1 <= score <= 5:
            raise ValidationError(name, f"must be an integer from 1 to 5 (got {score!r})")

    severity = observation.severity_level
    if severity is not None:
        if isinstance(severity, bool) or not isinstance(severity, int) or not 0 <= severity <= 5:
            raise ValidationError("severity_level", f"must be an integer from 0 to 5 (got {severity!r})")

    for name, allowed in _CATEGORICAL_FIELDS.items():
        value = getattr(observation, name)
        if value not in allowed:
            raise ValidationError(name, f"must be one of {', '.join(allowed)} (got {value!r})")

    for name in _VITAL_FIELDS:
        _check_non_negative(name, getattr(observation, name))

    _check_text_list("symptoms", observation.symptoms)
    _check_text_list("custom_symptoms", observation.custom_symptoms)

    if observation.is_unknown_condition:
        if observation.priority not in UNKNOWN_CONDITION_PRIORITIES:
            raise ValidationError(
                "priority",
                "unknown conditions need a priority of "
                f"{', '.join(UNKNOWN_CONDITION_PRIORITIES)}",
            )

    if observation.follow_up_required and observation.follow_up_date is None:
        raise ValidationError("follow_up_date", "is required when a follow-up is requested")


def validate_observation_update(updates: dict[str, Any]) -> None:
    """Reject updates that touch identity fields or unknown attributes."""
    for name in updates:
        if name in _IMMUTABLE_OBSERVATION_FIELDS:
            raise ValidationError(name, "cannot be changed after creation")
        if name not in Observation.__dataclass_fields__:
            raise ValidationError(name, "is not an observation field")


def validate_treatment(treatment: Treatment) -> None:
    _require_text("health_record_id", treatment.health_record_id)
    _require_text("animal_id", treatment.animal_id)
    _require_text("name", treatment.name)
    _require_text("administered_by", treatment.administered_by)
    if treatment.treatment_type not in TREATMENT_TYPES:
        raise ValidationError(
            "treatment_type", f"must be one of {', '.join(TREATMENT_TYPES)}"
        )
    _check_non_negative("cost", treatment.cost)
    if treatment.next_dose_date is not None and treatment.next_dose_date < treatment.administered_date:
        raise ValidationError("next_dose_date", "must not be before the administered date")


def validate_vaccination(vaccination: Vaccination) -> None:
    _require_text("animal_id", vaccination.animal_id)
    _require_text("vaccine_name", vaccination.vaccine_name)
    _check_non_negative("cost", vaccination.cost)
    if vaccination.next_due_date is not None and vaccination.next_due_date <= vaccination.administered_date:
        raise ValidationError("next_due_date", "must be after the administered date")


def validate_feed_entry(entry: FeedEntry) -> None:
    _require_text("animal_id", entry.animal_id)
    _check_number("amount_lbs", entry.amount_lbs)
    _check_non_negative("amount_lbs", entry.amount_lbs)
    _check_non_negative("cost", entry.cost)


def validate_weight_entry(entry: WeightEntry) -> None:
    _require_text("animal_id", entry.animal_id)
    _check_number("weight_lbs", entry.weight_lbs)
    if entry.weight_lbs <= 0:
        raise ValidationError("weight_lbs", f"must be positive (got {entry.weight_lbs})")
