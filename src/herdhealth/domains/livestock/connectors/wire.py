"""Translation between camelCase JSON payloads and the snake_case domain models.

This is the only module that knows about the client-facing field names.
Timestamps travel as ISO 8601 strings, calendar dates as ``YYYY-MM-DD``.
"""

from __future__ import annotations

import dataclasses
import re
from datetime import date, datetime, timezone
from typing import Any, TypeVar

from herdhealth.domains.livestock.domain_logic.models import (
    FeedEntry,
    Observation,
    Treatment,
    Vaccination,
    WeightEntry,
    as_utc,
)
from herdhealth.domains.livestock.domain_logic.validation import ValidationError

T = TypeVar("T")

_DATETIME_FIELDS = frozenset({
    "recorded_at",
    "created_at",
    "updated_at",
    "acknowledged_at",
    "dismissed_at",
    "resolved_at",
    "calculated_at",
    "last_health_check",
})

_DATE_FIELDS = frozenset({
    "follow_up_date",
    "administered_date",
    "next_dose_date",
    "next_due_date",
    "due_date",
    "entry_date",
    "start_date",
    "end_date",
})

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


# ---------------------------------------------------------------------------
# Outbound
# ---------------------------------------------------------------------------

def to_wire(value: Any) -> Any:
    """Recursively convert a domain value into JSON-ready camelCase data.

    Dataclass properties are not included; callers add derived values
    explicitly where the client needs them.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            to_camel(f.name): to_wire(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    if isinstance(value, dict):
        return {to_camel(str(k)) if isinstance(k, str) else k: to_wire(v) for k, v in value.items()}
    if isinstance(value, (frozenset, set)):
        return sorted(to_wire(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [to_wire(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def alert_to_wire(alert: Any) -> dict[str, Any]:
    payload = to_wire(alert)
    payload["isActive"] = alert.is_active
    payload["dismissed"] = alert.dismissed
    return payload


def disease_match_to_wire(match: Any) -> dict[str, Any]:
    payload = to_wire(match.disease)
    payload["matchedSymptoms"] = sorted(match.matched_symptoms)
    payload["matchCount"] = match.match_count
    payload["primaryMatchCount"] = match.primary_match_count
    return payload


def summary_to_wire(summary: Any) -> dict[str, Any]:
    payload = to_wire(summary)
    payload["commonSymptoms"] = [
        {"symptom": symptom, "count": count} for symptom, count in summary.common_symptoms
    ]
    payload["activeAlerts"] = [alert_to_wire(a) for a in summary.active_alerts]
    # Category names are data, not field names
    payload["costByCategory"] = dict(summary.cost_by_category)
    return payload


# ---------------------------------------------------------------------------
# Inbound
# ---------------------------------------------------------------------------

def _parse_datetime(name: str, value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationError(name, f"is not an ISO 8601 timestamp ({value!r})") from exc
    return as_utc(parsed)


def parse_date(name: str, value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise ValidationError(name, f"is not a YYYY-MM-DD date ({value!r})") from exc


def fields_from_wire(payload: dict[str, Any], allowed: frozenset[str]) -> dict[str, Any]:
    """Translate camelCase keys to snake_case and parse temporal values.

    Raises:
        ValidationError: On an unknown key or an unparseable date.
    """
    result: dict[str, Any] = {}
    for key, value in payload.items():
        name = to_snake(key)
        if name not in allowed:
            raise ValidationError(name, "is not a recognized field")
        if name in _DATETIME_FIELDS:
            value = _parse_datetime(name, value)
        elif name in _DATE_FIELDS:
            value = parse_date(name, value)
        result[name] = value
    return result


def _field_names(cls: type) -> frozenset[str]:
    return frozenset(f.name for f in dataclasses.fields(cls))


def _build(cls: type[T], payload: dict[str, Any], required: tuple[str, ...]) -> T:
    values = fields_from_wire(payload, _field_names(cls))
    values.setdefault("id", "")
    for name in required:
        if values.get(name) is None:
            raise ValidationError(name, "is required")
    return cls(**values)


def observation_from_wire(payload: dict[str, Any]) -> Observation:
    values = dict(payload)
    values.setdefault("recordedAt", datetime.now(timezone.utc).isoformat())
    return _build(Observation, values, ("animal_id", "recorded_by", "recorded_at"))


def treatment_from_wire(payload: dict[str, Any]) -> Treatment:
    return _build(
        Treatment,
        payload,
        ("health_record_id", "animal_id", "name", "administered_by", "administered_date"),
    )


def vaccination_from_wire(payload: dict[str, Any]) -> Vaccination:
    return _build(Vaccination, payload, ("animal_id", "vaccine_name", "administered_date"))


def observation_updates_from_wire(payload: dict[str, Any]) -> dict[str, Any]:
    return fields_from_wire(payload, _field_names(Observation))


def treatment_updates_from_wire(payload: dict[str, Any]) -> dict[str, Any]:
    return fields_from_wire(payload, _field_names(Treatment))


def feed_entry_from_wire(payload: dict[str, Any]) -> FeedEntry:
    return _build(FeedEntry, payload, ("animal_id", "entry_date", "amount_lbs"))


def weight_entry_from_wire(payload: dict[str, Any]) -> WeightEntry:
    return _build(WeightEntry, payload, ("animal_id", "entry_date", "weight_lbs"))


def error_to_wire(exc: Exception) -> dict[str, Any]:
    """Error payload returned by tools instead of raising across the MCP boundary."""
    payload: dict[str, Any] = {
        "status": "error",
        "errorType": type(exc).__name__,
        "message": str(exc),
    }
    field_name = getattr(exc, "field", None)
    if field_name:
        payload["field"] = to_camel(field_name)
    return payload
