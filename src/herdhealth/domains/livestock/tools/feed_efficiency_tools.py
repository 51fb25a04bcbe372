"""MCP tools for feed intake, weigh-ins and feed conversion analysis."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from herdhealth.core.storage.repository import PersistenceError
from herdhealth.domains.livestock.connectors import wire
from herdhealth.domains.livestock.domain_logic.health_records import RecordNotFoundError
from herdhealth.domains.livestock.domain_logic.validation import ValidationError

if TYPE_CHECKING:
    from herdhealth.core.audit.logger import AuditLogger
    from herdhealth.domains.livestock.domain_logic.health_records import HealthRecordService
    from herdhealth.domains.livestock.domain_logic.trend_analyzer import TrendAnalyzer

logger = logging.getLogger(__name__)

_EXPECTED_ERRORS = (ValidationError, RecordNotFoundError, PersistenceError)


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def register_feed_efficiency_tools(
    mcp: FastMCP,
    service: HealthRecordService,
    trend_analyzer: TrendAnalyzer,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register feed efficiency tools on the MCP server."""

    def _audit(tool_name: str, animal_id: str | None, error: Exception | None = None) -> None:
        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name,
                {"animal_id": animal_id},
                animal_id=animal_id,
                status="failure" if error else "success",
                error_type=type(error).__name__ if error else None,
            )

    @mcp.tool
    async def record_feed(
        ctx: Context,
        animal_id: str,
        amount_lbs: float,
        cost: float = 0.0,
        feed_type: str = "",
        entry_date: str = "",
    ) -> str:
        """Record feed given to an animal.

        Args:
            animal_id: The animal fed.
            amount_lbs: Feed amount in pounds.
            cost: Cost of the feed in dollars.
            feed_type: Feed name, e.g. "grower pellets".
            entry_date: Date fed (YYYY-MM-DD). Defaults to today.
        """
        try:
            entry = service.record_feed_entry(wire.feed_entry_from_wire({
                "animalId": animal_id,
                "amountLbs": amount_lbs,
                "cost": cost,
                "feedType": feed_type,
                "entryDate": entry_date or _today(),
            }))
        except _EXPECTED_ERRORS as exc:
            _audit("record_feed", animal_id, exc)
            return json.dumps(wire.error_to_wire(exc))

        _audit("record_feed", animal_id)
        return json.dumps({"status": "saved", "feedEntry": wire.to_wire(entry)})

    @mcp.tool
    async def record_weight(
        ctx: Context,
        animal_id: str,
        weight_lbs: float,
        entry_date: str = "",
    ) -> str:
        """Record a weigh-in.

        Args:
            animal_id: The animal weighed.
            weight_lbs: Weight in pounds.
            entry_date: Date weighed (YYYY-MM-DD). Defaults to today.
        """
        try:
            entry = service.record_weight(wire.weight_entry_from_wire({
                "animalId": animal_id,
                "weightLbs": weight_lbs,
                "entryDate": entry_date or _today(),
            }))
        except _EXPECTED_ERRORS as exc:
            _audit("record_weight", animal_id, exc)
            return json.dumps(wire.error_to_wire(exc))

        _audit("record_weight", animal_id)
        return json.dumps({"status": "saved", "weightEntry": wire.to_wire(entry)})

    @mcp.tool
    async def calculate_feed_efficiency(
        ctx: Context,
        animal_id: str,
        period_days: int = 30,
        end_date: str = "",
    ) -> str:
        """Compute and store feed conversion ratio and cost per pound of gain.

        Uses the feed entries and weigh-ins inside the period. FCR is null when
        the animal gained no weight during the period.

        Args:
            animal_id: The animal to analyze.
            period_days: Period length in days (default: 30).
            end_date: Last day of the period (YYYY-MM-DD). Defaults to today.
        """
        try:
            record = service.calculate_feed_efficiency(
                animal_id,
                period_days=period_days,
                end_date=wire.parse_date("end_date", end_date),
            )
        except _EXPECTED_ERRORS as exc:
            _audit("calculate_feed_efficiency", animal_id, exc)
            return json.dumps(wire.error_to_wire(exc))

        _audit("calculate_feed_efficiency", animal_id)
        return json.dumps({"status": "calculated", "record": wire.to_wire(record)})

    @mcp.tool
    async def feed_efficiency_analysis(ctx: Context, animal_id: str) -> str:
        """Trends, benchmarks, recommendations and projections for an animal's feed efficiency.

        Args:
            animal_id: The animal to analyze.
        """
        try:
            analysis = service.get_feed_efficiency_analysis(animal_id)
        except PersistenceError as exc:
            _audit("feed_efficiency_analysis", animal_id, exc)
            return json.dumps(wire.error_to_wire(exc))

        _audit("feed_efficiency_analysis", animal_id)
        if analysis is None:
            return json.dumps({
                "status": "insufficient_data",
                "animalId": animal_id,
                "message": "Calculate feed efficiency for at least one period first.",
            })
        return json.dumps(wire.to_wire(analysis))

    @mcp.tool
    async def feed_efficiency_trends(ctx: Context, animal_id: str) -> str:
        """FCR, cost and efficiency trend directions from stored periods.

        Args:
            animal_id: The animal to analyze.
        """
        try:
            trends = trend_analyzer.compute_feed_trends(animal_id)
        except PersistenceError as exc:
            return json.dumps(wire.error_to_wire(exc))
        return json.dumps({"animalId": animal_id, **wire.to_wire(trends)})

    @mcp.tool
    async def herd_feed_efficiency(ctx: Context) -> str:
        """Herd-wide efficiency distribution and top performers from each animal's latest period."""
        try:
            distribution = service.get_herd_feed_distribution()
        except PersistenceError as exc:
            return json.dumps(wire.error_to_wire(exc))
        return json.dumps(wire.to_wire(distribution))

    @mcp.tool
    async def feed_optimization_plan(ctx: Context, animal_id: str, target_fcr: float) -> str:
        """Action plan and timeline for reaching a target feed conversion ratio.

        Args:
            animal_id: The animal to plan for.
            target_fcr: Desired feed conversion ratio (lbs feed per lb gain).
        """
        try:
            plan = service.create_feed_optimization_plan(animal_id, target_fcr)
        except _EXPECTED_ERRORS as exc:
            _audit("feed_optimization_plan", animal_id, exc)
            return json.dumps(wire.error_to_wire(exc))

        _audit("feed_optimization_plan", animal_id)
        return json.dumps(wire.to_wire(plan))
