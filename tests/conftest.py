"""Shared test fixtures for herd health tests."""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from herdhealth.domains.livestock.domain_logic.models import Observation  # noqa: E402


# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CATALOG_PATH", "")
    monkeypatch.setenv("DB_PATH", ":memory:")


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_observation(**overrides) -> Observation:
    """Create a test observation with sensible defaults."""
    defaults = dict(
        id="",
        animal_id="calf-17",
        recorded_by="jo",
        recorded_at=NOW,
        notes="Routine check",
    )
    defaults.update(overrides)
    return Observation(**defaults)


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def health_db():
    """Create an in-memory HealthDatabase for testing."""
    from herdhealth.core.storage.database import HealthDatabase

    db = HealthDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from herdhealth.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def herd_repository(health_db, field_encryptor):
    """Create a HerdRepository backed by in-memory SQLite."""
    from herdhealth.core.storage.repository import HerdRepository

    return HerdRepository(health_db, field_encryptor)


@pytest.fixture
def audit_logger(health_db):
    """Create an AuditLogger backed by in-memory SQLite."""
    from herdhealth.core.audit.logger import AuditLogger

    return AuditLogger(health_db)


@pytest.fixture
def health_service(herd_repository, audit_logger):
    """Create a HealthRecordService with default policies."""
    from herdhealth.domains.livestock.domain_logic.health_records import HealthRecordService

    return HealthRecordService(herd_repository, audit_logger=audit_logger)


@pytest.fixture(scope="session")
def catalog():
    """The bundled disease reference catalog."""
    from herdhealth.domains.livestock.connectors.catalog import load_catalog

    return load_catalog()
