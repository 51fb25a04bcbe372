"""Audit logger: an append-only trail of tool calls and record changes.

Every tool invocation, alert lifecycle transition and deletion is written to
the ``audit_log`` table. Tool inputs are stored as a SHA-256 hash of their
canonical JSON, never raw, because they can carry caretaker notes.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from herdhealth.core.storage.database import HealthDatabase

logger = logging.getLogger(__name__)


def _hash_input(data: Any) -> str:
    """SHA-256 hash of canonical JSON, or empty string if not serializable."""
    try:
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return ""
    return hashlib.sha256(canonical.encode()).hexdigest()


@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str                  # 'tool_invocation' | 'alert_dismissed' | 'alert_resolved' | ...
    tool_name: str = ""
    tool_input_hash: str = ""
    animal_id: str | None = None
    record_id: str | None = None
    duration_ms: float | None = None
    status: str = "success"      # 'success' | 'failure'
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class AuditLogger:
    """Records audit events to the ``audit_log`` SQLite table.

    All writes are committed immediately. A failed audit write is logged and
    never interrupts the operation being audited.

    Usage::

        audit = AuditLogger(health_db)
        audit.log_tool_call("record_observation", {"animalId": "calf-17"}, animal_id="calf-17")
        audit.log_alert_action("dismissed", alert, actor="jo")
    """

    def __init__(self, database: HealthDatabase) -> None:
        self._db = database

    # ---------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------

    def log_event(self, event: AuditEvent) -> str:
        """Insert an audit event.

        Returns:
            The generated event ID, or an empty string if the write failed.
        """
        event_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        metadata_json = (
            json.dumps(event.metadata, separators=(",", ":"), default=str)
            if event.metadata
            else None
        )

        try:
            conn = self._db.connection
            conn.execute(
                """INSERT INTO audit_log
                   (id, timestamp, action, tool_name, tool_input_hash, animal_id,
                    record_id, duration_ms, status, error_type, metadata_json)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event_id,
                    now,
                    event.action,
                    event.tool_name or None,
                    event.tool_input_hash or None,
                    event.animal_id,
                    event.record_id,
                    event.duration_ms,
                    event.status,
                    event.error_type,
                    metadata_json,
                ),
            )
            conn.commit()
        except sqlite3.Error:
            logger.exception("Failed to write audit event %s, event lost", event.action)
            return ""

        return event_id

    def log_tool_call(
        self,
        tool_name: str,
        tool_input: Any = None,
        *,
        animal_id: str | None = None,
        record_id: str | None = None,
        duration_ms: float | None = None,
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Convenience wrapper for logging an MCP tool invocation.

        Args:
            tool_name: Name of the MCP tool.
            tool_input: Tool input data (hashed, never stored raw).
            animal_id: Animal the call concerned, if any.
            record_id: ID of any record the call created or changed.
            duration_ms: Tool execution duration in milliseconds.
            status: 'success' or 'failure'.
            error_type: Exception class name on failure.
        """
        return self.log_event(AuditEvent(
            action="tool_invocation",
            tool_name=tool_name,
            tool_input_hash=_hash_input(tool_input) if tool_input else "",
            animal_id=animal_id,
            record_id=record_id,
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        ))

    def log_alert_action(self, action: str, alert: Any, *, actor: str | None = None) -> str:
        """Log an alert lifecycle transition ('dismissed', 'resolved', 'acknowledged')."""
        metadata = {"alert_type": alert.alert_type}
        if actor:
            metadata["actor"] = actor
        return self.log_event(AuditEvent(
            action=f"alert_{action}",
            animal_id=alert.animal_id,
            record_id=alert.id,
            metadata=metadata,
        ))

    def log_data_delete(
        self,
        *,
        tool_name: str = "",
        animal_id: str | None = None,
        count: int = 0,
    ) -> str:
        """Log a deletion of stored records."""
        return self.log_event(AuditEvent(
            action="data_delete",
            tool_name=tool_name,
            animal_id=animal_id,
            metadata={"records_deleted": count},
        ))

    # ---------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------

    def get_events(
        self,
        *,
        action: str | None = None,
        animal_id: str | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Query audit events with optional filters, newest first."""
        conditions: list[str] = []
        params: list[Any] = []

        if action:
            conditions.append("action = ?")
            params.append(action)
        if animal_id:
            conditions.append("animal_id = ?")
            params.append(animal_id)
        if since:
            conditions.append("timestamp >= ?")
            params.append(since)

        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        query = f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC, rowid DESC LIMIT ?"
        params.append(limit)

        rows = self._db.connection.execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def count_events(self, *, since: str | None = None) -> int:
        """Count total audit events, optionally since a timestamp."""
        if since:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM audit_log WHERE timestamp >= ?", (since,)
            ).fetchone()
        else:
            row = self._db.connection.execute("SELECT COUNT(*) FROM audit_log").fetchone()
        return row[0]
