"""Herd Health MCP Server: application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from herdhealth.core.audit.logger import AuditLogger
from herdhealth.core.config.settings import get_settings
from herdhealth.core.storage.database import HealthDatabase
from herdhealth.core.storage.encryption import FieldEncryptor
from herdhealth.core.storage.repository import HerdRepository
from herdhealth.domains.livestock.connectors.catalog import DiseaseCatalog, load_catalog
from herdhealth.domains.livestock.domain_logic.health_records import HealthRecordService
from herdhealth.domains.livestock.domain_logic.policy import AlertPolicy, ScoringPolicy
from herdhealth.domains.livestock.domain_logic.trend_analyzer import TrendAnalyzer
from herdhealth.domains.livestock.tools.alert_tools import register_alert_tools
from herdhealth.domains.livestock.tools.audit_tools import register_audit_tools
from herdhealth.domains.livestock.tools.disease_reference_tools import (
    register_disease_reference_tools,
)
from herdhealth.domains.livestock.tools.feed_efficiency_tools import (
    register_feed_efficiency_tools,
)
from herdhealth.domains.livestock.tools.health_record_tools import (
    register_health_record_tools,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "Herd Health"
SERVER_VERSION = "0.1.0"


def create_app(
    *,
    repository_override: HerdRepository | None = None,
    catalog_override: DiseaseCatalog | None = None,
    audit_logger_override: AuditLogger | None = None,
) -> FastMCP:
    """Create and configure the Herd Health MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Loads the disease reference catalog
    3. Initializes the encrypted storage layer (health record bank)
    4. Builds the health record service from the configured policies
    5. Registers all tools

    Raises:
        EncryptionError: If ENCRYPTION_KEY is missing or invalid and no
            repository override is given.
        CatalogError: If the catalog file is missing or malformed.
    """
    settings = get_settings()

    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "Livestock health and performance analytics. Records observations, "
            "treatments, vaccinations, feed and weights; computes health scores, "
            "trends and feed conversion; maintains a prioritized alert feed; "
            "and looks up diseases by symptom. Reference information never "
            "replaces a veterinarian."
        ),
    )

    # --- Disease reference catalog ---
    if catalog_override is not None:
        catalog = catalog_override
    else:
        catalog = load_catalog(settings.catalog_path or None)

    # --- Encrypted storage (health record bank) ---
    audit_logger = audit_logger_override
    if repository_override is not None:
        repository = repository_override
    else:
        encryptor = FieldEncryptor(settings.encryption_key)
        herd_db = HealthDatabase(settings.db_path)
        herd_db.initialize()
        repository = HerdRepository(herd_db, encryptor)
        if audit_logger is None:
            audit_logger = AuditLogger(herd_db)
        logger.info(
            "Health record bank initialized: %s (schema v%d)",
            settings.db_path,
            herd_db.get_schema_version(),
        )

    service = HealthRecordService(
        repository,
        policy=ScoringPolicy.from_settings(settings),
        alert_policy=AlertPolicy.from_settings(settings),
        audit_logger=audit_logger,
    )
    trend_analyzer = TrendAnalyzer(repository, service.policy)

    # --- Register tools ---
    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "diseases_loaded": len(catalog),
            "symptoms_loaded": len(catalog.symptoms),
            "observations_stored": repository.count_observations(),
            "audit_enabled": audit_logger is not None,
        }

    register_health_record_tools(server, service, trend_analyzer, audit_logger)
    register_alert_tools(server, service, audit_logger)
    register_feed_efficiency_tools(server, service, trend_analyzer, audit_logger)
    register_disease_reference_tools(server, catalog)
    if audit_logger is not None:
        register_audit_tools(server, audit_logger)
    logger.info("Herd health tools registered (%d diseases in catalog)", len(catalog))

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
