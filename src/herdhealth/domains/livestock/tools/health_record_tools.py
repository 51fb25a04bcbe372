"""MCP tools for recording and reviewing animal health records.

Observations, treatments and vaccinations are validated, stored in the
encrypted record bank, and may raise alerts as a side effect. Payloads use the
camelCase field names of the client application.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

from herdhealth.core.storage.repository import PersistenceError
from herdhealth.domains.livestock.connectors import wire
from herdhealth.domains.livestock.domain_logic.health_records import RecordNotFoundError
from herdhealth.domains.livestock.domain_logic.scoring import compute_observation_score
from herdhealth.domains.livestock.domain_logic.validation import ValidationError

if TYPE_CHECKING:
    from herdhealth.core.audit.logger import AuditLogger
    from herdhealth.domains.livestock.domain_logic.health_records import HealthRecordService
    from herdhealth.domains.livestock.domain_logic.trend_analyzer import TrendAnalyzer

logger = logging.getLogger(__name__)

_EXPECTED_ERRORS = (ValidationError, RecordNotFoundError, PersistenceError)


def register_health_record_tools(
    mcp: FastMCP,
    service: HealthRecordService,
    trend_analyzer: TrendAnalyzer,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register health record tools on the MCP server."""

    def _audit(tool_name: str, tool_input: Any, start: float, **kwargs: Any) -> None:
        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name,
                tool_input,
                duration_ms=(time.monotonic() - start) * 1000,
                **kwargs,
            )

    def _failed(tool_name: str, tool_input: Any, start: float, exc: Exception) -> str:
        if isinstance(exc, PersistenceError):
            logger.error("%s failed: %s", tool_name, exc)
        _audit(tool_name, tool_input, start, status="failure", error_type=type(exc).__name__)
        return json.dumps(wire.error_to_wire(exc))

    @mcp.tool
    async def record_observation(ctx: Context, observation: dict[str, Any]) -> str:
        """Record a health observation for one animal.

        High-severity observations (4 or 5) raise an emergency alert, requested
        follow-ups raise a follow-up alert, and a declining health trend raises
        a health-decline alert.

        Args:
            observation: camelCase observation payload. Required keys:
                animalId, recordedBy, notes. Optional: recordedAt (ISO 8601,
                defaults to now), temperature, heartRate, respiratoryRate,
                bodyConditionScore / mobilityScore / appetiteScore /
                alertnessScore (1-5), eyeCondition, nasalDischarge,
                manureConsistency, gaitMobility, appetite, symptoms (catalog
                ids), customSymptoms, severityLevel (0-5), observationType,
                isUnknownCondition, priority, followUpRequired, followUpDate.
        """
        start = time.monotonic()
        try:
            outcome = service.record_observation(wire.observation_from_wire(observation))
        except _EXPECTED_ERRORS as exc:
            return _failed("record_observation", observation, start, exc)

        record = outcome.record
        _audit("record_observation", observation, start, animal_id=record.animal_id, record_id=record.id)
        return json.dumps({
            "status": "saved",
            "observation": wire.to_wire(record),
            "alerts": [wire.alert_to_wire(a) for a in outcome.alerts],
        })

    @mcp.tool
    async def update_observation(
        ctx: Context,
        observation_id: str,
        updates: dict[str, Any],
    ) -> str:
        """Update fields of an existing observation.

        The recording time and the animal cannot be changed.

        Args:
            observation_id: ID of the observation to update.
            updates: camelCase field -> new value.
        """
        start = time.monotonic()
        try:
            updated = service.update_observation(
                observation_id, wire.observation_updates_from_wire(updates)
            )
        except _EXPECTED_ERRORS as exc:
            return _failed("update_observation", updates, start, exc)

        _audit("update_observation", updates, start, animal_id=updated.animal_id, record_id=updated.id)
        return json.dumps({"status": "updated", "observation": wire.to_wire(updated)})

    @mcp.tool
    async def list_observations(ctx: Context, animal_id: str, limit: int = 20) -> str:
        """List an animal's observations, newest first, with their health scores.

        Args:
            animal_id: The animal to list.
            limit: Maximum observations to return (default: 20).
        """
        start = time.monotonic()
        try:
            observations = service.list_observations(animal_id, limit=limit)
        except PersistenceError as exc:
            return _failed("list_observations", {"animal_id": animal_id}, start, exc)

        _audit("list_observations", {"animal_id": animal_id}, start, animal_id=animal_id)
        items = []
        for obs in observations:
            item = wire.to_wire(obs)
            item["healthScore"] = compute_observation_score(obs, service.policy)
            items.append(item)
        return json.dumps({"animalId": animal_id, "count": len(items), "observations": items})

    @mcp.tool
    async def record_treatment(ctx: Context, treatment: dict[str, Any]) -> str:
        """Record a treatment given in response to an observation.

        A treatment with a next dose date raises a treatment-due alert.

        Args:
            treatment: camelCase payload. Required keys: healthRecordId,
                animalId, name, administeredBy, administeredDate. Optional:
                treatmentType, description, nextDoseDate, cost,
                treatmentComplete, notes.
        """
        start = time.monotonic()
        try:
            outcome = service.record_treatment(wire.treatment_from_wire(treatment))
        except _EXPECTED_ERRORS as exc:
            return _failed("record_treatment", treatment, start, exc)

        record = outcome.record
        _audit("record_treatment", treatment, start, animal_id=record.animal_id, record_id=record.id)
        return json.dumps({
            "status": "saved",
            "treatment": wire.to_wire(record),
            "alerts": [wire.alert_to_wire(a) for a in outcome.alerts],
        })

    @mcp.tool
    async def update_treatment(
        ctx: Context,
        treatment_id: str,
        updates: dict[str, Any],
    ) -> str:
        """Update an existing treatment, e.g. mark it complete.

        Args:
            treatment_id: ID of the treatment to update.
            updates: camelCase field -> new value.
        """
        start = time.monotonic()
        try:
            updated = service.update_treatment(treatment_id, wire.treatment_updates_from_wire(updates))
        except _EXPECTED_ERRORS as exc:
            return _failed("update_treatment", updates, start, exc)

        _audit("update_treatment", updates, start, animal_id=updated.animal_id, record_id=updated.id)
        return json.dumps({"status": "updated", "treatment": wire.to_wire(updated)})

    @mcp.tool
    async def record_vaccination(ctx: Context, vaccination: dict[str, Any]) -> str:
        """Record a vaccination.

        A vaccination with a next due date raises a reminder alert due one
        week before that date.

        Args:
            vaccination: camelCase payload. Required keys: animalId,
                vaccineName, administeredDate. Optional: administeredBy,
                vaccineType, nextDueDate, cost, notes.
        """
        start = time.monotonic()
        try:
            outcome = service.record_vaccination(wire.vaccination_from_wire(vaccination))
        except _EXPECTED_ERRORS as exc:
            return _failed("record_vaccination", vaccination, start, exc)

        record = outcome.record
        _audit("record_vaccination", vaccination, start, animal_id=record.animal_id, record_id=record.id)
        return json.dumps({
            "status": "saved",
            "vaccination": wire.to_wire(record),
            "alerts": [wire.alert_to_wire(a) for a in outcome.alerts],
        })

    @mcp.tool
    async def get_health_summary(ctx: Context, animal_id: str) -> str:
        """Summarize an animal's health: score, trend, alerts, costs and next steps.

        Args:
            animal_id: The animal to summarize.
        """
        start = time.monotonic()
        try:
            summary = service.get_health_summary(animal_id)
        except PersistenceError as exc:
            return _failed("get_health_summary", {"animal_id": animal_id}, start, exc)

        _audit("get_health_summary", {"animal_id": animal_id}, start, animal_id=animal_id)
        return json.dumps(wire.summary_to_wire(summary))

    @mcp.tool
    async def health_trend_analysis(ctx: Context, animal_id: str, limit: int = 30) -> str:
        """Trend direction and statistics of an animal's health score.

        Args:
            animal_id: The animal to analyze.
            limit: Number of most recent observations considered (default: 30).
        """
        start = time.monotonic()
        try:
            trend = trend_analyzer.compute_health_trend(animal_id, limit=limit)
        except PersistenceError as exc:
            return _failed("health_trend_analysis", {"animal_id": animal_id}, start, exc)

        _audit("health_trend_analysis", {"animal_id": animal_id}, start, animal_id=animal_id)
        return json.dumps(wire.to_wire(trend))

    @mcp.tool
    async def delete_animal_records(ctx: Context, animal_id: str, confirm: str = "") -> str:
        """Permanently delete every record held for one animal.

        Args:
            animal_id: The animal whose records are deleted.
            confirm: Must equal the animal ID. Safety gate.
        """
        if confirm != animal_id:
            return json.dumps({
                "status": "error",
                "message": "Set confirm to the animal ID to delete its records.",
            })

        start = time.monotonic()
        try:
            count = service.delete_animal_records(animal_id)
        except PersistenceError as exc:
            return _failed("delete_animal_records", {"animal_id": animal_id}, start, exc)

        return json.dumps({
            "status": "deleted",
            "animalId": animal_id,
            "recordsDeleted": count,
            "durationMs": round((time.monotonic() - start) * 1000, 1),
        })
