"""MCP tools for the herd alert feed.

Alerts are never created directly; they come from recorded observations,
treatments and vaccinations. These tools list them and move them through
their lifecycle (acknowledge, dismiss, resolve).
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from herdhealth.core.storage.repository import PersistenceError
from herdhealth.domains.livestock.connectors import wire
from herdhealth.domains.livestock.domain_logic.health_records import RecordNotFoundError
from herdhealth.domains.livestock.domain_logic.validation import ValidationError

if TYPE_CHECKING:
    from herdhealth.core.audit.logger import AuditLogger
    from herdhealth.domains.livestock.domain_logic.health_records import HealthRecordService

logger = logging.getLogger(__name__)

_EXPECTED_ERRORS = (ValidationError, RecordNotFoundError, PersistenceError)


def register_alert_tools(
    mcp: FastMCP,
    service: HealthRecordService,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register alert feed tools on the MCP server."""

    def _log(tool_name: str, alert_id: str, *, status: str = "success", error: Exception | None = None) -> None:
        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name,
                {"alert_id": alert_id},
                record_id=alert_id,
                status=status,
                error_type=type(error).__name__ if error else None,
            )

    @mcp.tool
    async def list_active_alerts(ctx: Context, animal_id: str = "") -> str:
        """List active alerts, most severe first and newest first within a severity.

        Args:
            animal_id: Optional animal filter. Empty lists alerts for the whole herd.
        """
        try:
            alerts = service.list_active_alerts(animal_id or None)
        except PersistenceError as exc:
            logger.error("list_active_alerts failed: %s", exc)
            return json.dumps(wire.error_to_wire(exc))

        return json.dumps({
            "count": len(alerts),
            "alerts": [wire.alert_to_wire(a) for a in alerts],
        })

    @mcp.tool
    async def dismiss_alert(ctx: Context, alert_id: str, actor: str = "") -> str:
        """Dismiss an alert. Dismissing an already dismissed alert changes nothing.

        Args:
            alert_id: The alert to dismiss.
            actor: Optional name of the person dismissing it.
        """
        try:
            alert = service.dismiss_alert(alert_id, actor=actor or None)
        except _EXPECTED_ERRORS as exc:
            _log("dismiss_alert", alert_id, status="failure", error=exc)
            return json.dumps(wire.error_to_wire(exc))

        _log("dismiss_alert", alert_id)
        return json.dumps({"status": alert.status, "alert": wire.alert_to_wire(alert)})

    @mcp.tool
    async def resolve_alert(ctx: Context, alert_id: str) -> str:
        """Mark an alert as resolved once the underlying issue is handled.

        Args:
            alert_id: The alert to resolve.
        """
        try:
            alert = service.resolve_alert(alert_id)
        except _EXPECTED_ERRORS as exc:
            _log("resolve_alert", alert_id, status="failure", error=exc)
            return json.dumps(wire.error_to_wire(exc))

        _log("resolve_alert", alert_id)
        return json.dumps({"status": alert.status, "alert": wire.alert_to_wire(alert)})

    @mcp.tool
    async def acknowledge_alert(ctx: Context, alert_id: str, actor: str) -> str:
        """Record that someone has seen an alert. The alert stays active.

        Args:
            alert_id: The alert to acknowledge.
            actor: Name of the person acknowledging it.
        """
        try:
            alert = service.acknowledge_alert(alert_id, actor)
        except _EXPECTED_ERRORS as exc:
            _log("acknowledge_alert", alert_id, status="failure", error=exc)
            return json.dumps(wire.error_to_wire(exc))

        _log("acknowledge_alert", alert_id)
        return json.dumps({"status": alert.status, "alert": wire.alert_to_wire(alert)})

    @mcp.tool
    async def check_routine_health(ctx: Context, animal_id: str) -> str:
        """Raise a routine-check reminder if the animal has gone 30 days unobserved.

        Args:
            animal_id: The animal to check.
        """
        try:
            alerts = service.check_routine_due(animal_id)
        except PersistenceError as exc:
            logger.error("check_routine_health failed: %s", exc)
            return json.dumps(wire.error_to_wire(exc))

        return json.dumps({
            "animalId": animal_id,
            "routineCheckDue": bool(alerts),
            "alerts": [wire.alert_to_wire(a) for a in alerts],
        })
