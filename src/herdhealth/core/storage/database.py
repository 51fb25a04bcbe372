"""SQLite database management for the herd health record bank.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

# Current schema version
SCHEMA_VERSION = 2

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
-- One row per health check
CREATE TABLE IF NOT EXISTS observations (
    id                      TEXT PRIMARY KEY,
    animal_id               TEXT NOT NULL,
    recorded_by             TEXT NOT NULL,
    recorded_at             TEXT NOT NULL,
    observation_type        TEXT NOT NULL DEFAULT 'routine',

    -- Encrypted free text
    notes_enc               TEXT,
    custom_symptoms_enc     TEXT,

    temperature             REAL,
    heart_rate              REAL,
    respiratory_rate        REAL,
    body_condition_score    INTEGER,
    mobility_score          INTEGER,
    appetite_score          INTEGER,
    alertness_score         INTEGER,
    eye_condition           TEXT NOT NULL DEFAULT 'normal',
    nasal_discharge         TEXT NOT NULL DEFAULT 'none',
    manure_consistency      TEXT NOT NULL DEFAULT 'normal',
    gait_mobility           TEXT NOT NULL DEFAULT 'normal',
    appetite                TEXT NOT NULL DEFAULT 'normal',
    symptoms_json           TEXT NOT NULL DEFAULT '[]',
    severity_level          INTEGER,

    is_unknown_condition    INTEGER NOT NULL DEFAULT 0,
    priority                TEXT,
    expert_review_requested INTEGER NOT NULL DEFAULT 0,
    follow_up_required      INTEGER NOT NULL DEFAULT 0,
    follow_up_date          TEXT,

    created_at              TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at              TEXT
);

CREATE TABLE IF NOT EXISTS treatments (
    id                 TEXT PRIMARY KEY,
    health_record_id   TEXT NOT NULL REFERENCES observations(id),
    animal_id          TEXT NOT NULL,
    treatment_type     TEXT NOT NULL,
    name               TEXT NOT NULL,
    description        TEXT,
    administered_by    TEXT NOT NULL,
    administered_date  TEXT NOT NULL,
    next_dose_date     TEXT,
    cost               REAL,
    treatment_complete INTEGER NOT NULL DEFAULT 0,
    notes_enc          TEXT,
    created_at         TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at         TEXT
);

CREATE TABLE IF NOT EXISTS vaccinations (
    id                TEXT PRIMARY KEY,
    animal_id         TEXT NOT NULL,
    vaccine_name      TEXT NOT NULL,
    vaccine_type      TEXT,
    administered_date TEXT NOT NULL,
    administered_by   TEXT,
    next_due_date     TEXT,
    cost              REAL,
    notes_enc         TEXT,
    created_at        TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS alerts (
    id               TEXT PRIMARY KEY,
    animal_id        TEXT NOT NULL,
    alert_type       TEXT NOT NULL,
    severity         TEXT NOT NULL,
    title            TEXT NOT NULL,
    description      TEXT NOT NULL,
    action_required  TEXT,
    due_date         TEXT,
    status           TEXT NOT NULL DEFAULT 'active',
    source_record_id TEXT,
    acknowledged_by  TEXT,
    acknowledged_at  TEXT,
    dismissed_at     TEXT,
    resolved_at      TEXT,
    created_at       TEXT NOT NULL
);

-- Raw samples for feed conversion
CREATE TABLE IF NOT EXISTS feed_entries (
    id         TEXT PRIMARY KEY,
    animal_id  TEXT NOT NULL,
    entry_date TEXT NOT NULL,
    amount_lbs REAL NOT NULL,
    cost       REAL NOT NULL DEFAULT 0,
    feed_type  TEXT
);

CREATE TABLE IF NOT EXISTS weight_entries (
    id         TEXT PRIMARY KEY,
    animal_id  TEXT NOT NULL,
    entry_date TEXT NOT NULL,
    weight_lbs REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS feed_efficiency_records (
    id               TEXT PRIMARY KEY,
    animal_id        TEXT NOT NULL,
    start_date       TEXT NOT NULL,
    end_date         TEXT NOT NULL,
    period_days      INTEGER NOT NULL,
    total_feed       REAL NOT NULL,
    avg_daily_feed   REAL NOT NULL,
    feed_cost        REAL NOT NULL,
    feed_types_json  TEXT NOT NULL DEFAULT '[]',
    start_weight     REAL,
    end_weight       REAL,
    total_gain       REAL NOT NULL,
    avg_daily_gain   REAL NOT NULL,
    fcr              REAL,
    cost_per_lb_gain REAL,
    efficiency_score INTEGER NOT NULL,
    calculated_at    TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Indexes for common query patterns
CREATE INDEX IF NOT EXISTS idx_obs_animal_ts      ON observations(animal_id, recorded_at);
CREATE INDEX IF NOT EXISTS idx_treatments_animal  ON treatments(animal_id);
CREATE INDEX IF NOT EXISTS idx_vacc_animal        ON vaccinations(animal_id);
CREATE INDEX IF NOT EXISTS idx_alerts_animal      ON alerts(animal_id, status);
CREATE INDEX IF NOT EXISTS idx_feed_animal_date   ON feed_entries(animal_id, entry_date);
CREATE INDEX IF NOT EXISTS idx_weight_animal_date ON weight_entries(animal_id, entry_date);
CREATE INDEX IF NOT EXISTS idx_fer_animal_end     ON feed_efficiency_records(animal_id, end_date);
"""

# ---------------------------------------------------------------------------
# V2: Audit log table (tool invocations and alert lifecycle actions)
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
CREATE TABLE IF NOT EXISTS audit_log (
    id              TEXT PRIMARY KEY,
    timestamp       TEXT NOT NULL DEFAULT (datetime('now')),
    action          TEXT NOT NULL,
    tool_name       TEXT,
    tool_input_hash TEXT,
    animal_id       TEXT,
    record_id       TEXT,
    duration_ms     REAL,
    status          TEXT NOT NULL DEFAULT 'success',
    error_type      TEXT,
    metadata_json   TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
CREATE INDEX IF NOT EXISTS idx_audit_animal    ON audit_log(animal_id);
"""


class DatabaseError(Exception):
    """Raised when database operations fail."""


class HealthDatabase:
    """SQLite database manager for the herd health record bank.

    Supports both file-based and in-memory (`:memory:`) databases.
    In-memory mode is used for testing.

    Usage::

        db = HealthDatabase(":memory:")
        db.initialize()
        conn = db.connection
        # ... use connection ...
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        """Initialize database manager.

        Args:
            db_path: Path to SQLite file, or ":memory:" for in-memory DB.
        """
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Create the database connection and ensure schema exists.

        For file-based databases, creates parent directories if needed.
        Idempotent: safe to call multiple times.
        """
        if self._conn is not None:
            return  # Already initialized

        if self._db_path != ":memory:":
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_file), check_same_thread=False)
        else:
            self._conn = sqlite3.connect(":memory:", check_same_thread=False)

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._ensure_schema()
        logger.info("Herd database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist and apply migrations."""
        conn = self.connection

        # V1: Core tables (CREATE IF NOT EXISTS is idempotent)
        conn.executescript(_SCHEMA_V1)

        cursor = conn.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        current_version = row[0] if row[0] is not None else 0

        # V2: Audit log table
        if current_version < 2:
            conn.executescript(_SCHEMA_V2)
            logger.info("Applied schema migration V2: audit_log table")

        if current_version < SCHEMA_VERSION:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        """Return the current schema version."""
        cursor = self.connection.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Herd database closed")

    def __enter__(self) -> HealthDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
