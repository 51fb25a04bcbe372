"""MCP tools for viewing the audit trail.

The audit log holds hashed tool inputs and record ids only; notes and other
caretaker free text never reach it.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from herdhealth.core.audit.logger import AuditLogger

logger = logging.getLogger(__name__)


def register_audit_tools(
    mcp: FastMCP,
    audit_logger: AuditLogger,
) -> None:
    """Register audit trail tools on the MCP server."""

    @mcp.tool
    async def audit_summary(
        ctx: Context,
        days: int = 30,
        animal_id: str = "",
    ) -> str:
        """View recent tool calls, alert actions and deletions.

        Args:
            days: Number of days to look back (default: 30).
            animal_id: Optional animal filter.
        """
        since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()

        events = audit_logger.get_events(animal_id=animal_id or None, since=since, limit=20)
        display_events = [
            {
                "timestamp": event.get("timestamp"),
                "action": event.get("action"),
                "toolName": event.get("tool_name"),
                "animalId": event.get("animal_id"),
                "recordId": event.get("record_id"),
                "status": event.get("status"),
                "durationMs": event.get("duration_ms"),
            }
            for event in events
        ]

        return json.dumps({
            "periodDays": days,
            "totalEvents": audit_logger.count_events(since=since),
            "recentEvents": display_events,
        })
