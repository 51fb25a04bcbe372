"""Herd health repository: CRUD over the encrypted SQLite record bank.

The repository mediates between domain dataclasses (Observation, Alert, ...)
and the database, using FieldEncryptor for clinical free text. Every list
method returns records newest first, and every ``sqlite3.Error`` surfaces as
:class:`PersistenceError`.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any

from herdhealth.core.storage.database import HealthDatabase
from herdhealth.core.storage.encryption import FieldEncryptor
from herdhealth.domains.livestock.domain_logic.models import (
    Alert,
    FeedEfficiencyRecord,
    FeedEntry,
    Observation,
    Treatment,
    Vaccination,
    WeightEntry,
)

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when the backing store rejects a read or write."""


# ---------------------------------------------------------------------------
# Column conversions
# ---------------------------------------------------------------------------

def _ts(value: datetime | None) -> str | None:
    """Serialize a datetime as UTC ISO 8601. Naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _day(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_day(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


class HerdRepository:
    """CRUD repository for observations, treatments, alerts and feed data.

    Usage::

        db = HealthDatabase(":memory:")
        db.initialize()
        encryptor = FieldEncryptor(key="...")
        repo = HerdRepository(db, encryptor)

        repo.save_observation(observation)
        history = repo.list_observations("calf-17", limit=5)
    """

    def __init__(self, database: HealthDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    @contextmanager
    def _writing(self, action: str) -> Iterator[sqlite3.Connection]:
        """Run a write in one transaction, translating driver errors."""
        conn = self._db.connection
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise PersistenceError(f"{action} failed: {exc}") from exc

    def _query(self, sql: str, params: tuple | list = ()) -> list[sqlite3.Row]:
        try:
            return self._db.connection.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Query failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Observations
    # ------------------------------------------------------------------

    def _observation_params(self, obs: Observation) -> dict[str, Any]:
        return {
            "id": obs.id,
            "animal_id": obs.animal_id,
            "recorded_by": obs.recorded_by,
            "recorded_at": _ts(obs.recorded_at),
            "observation_type": obs.observation_type,
            "notes_enc": self._enc.encrypt(obs.notes),
            "custom_symptoms_enc": self._enc.encrypt(obs.custom_symptoms) if obs.custom_symptoms else "",
            "temperature": obs.temperature,
            "heart_rate": obs.heart_rate,
            "respiratory_rate": obs.respiratory_rate,
            "body_condition_score": obs.body_condition_score,
            "mobility_score": obs.mobility_score,
            "appetite_score": obs.appetite_score,
            "alertness_score": obs.alertness_score,
            "eye_condition": obs.eye_condition,
            "nasal_discharge": obs.nasal_discharge,
            "manure_consistency": obs.manure_consistency,
            "gait_mobility": obs.gait_mobility,
            "appetite": obs.appetite,
            "symptoms_json": json.dumps(list(obs.symptoms)),
            "severity_level": obs.severity_level,
            "is_unknown_condition": int(obs.is_unknown_condition),
            "priority": obs.priority,
            "expert_review_requested": int(obs.expert_review_requested),
            "follow_up_required": int(obs.follow_up_required),
            "follow_up_date": _day(obs.follow_up_date),
            "created_at": _ts(obs.created_at),
            "updated_at": _ts(obs.updated_at),
        }

    def save_observation(self, observation: Observation) -> str:
        """Insert an observation. An empty ``id`` is replaced with a UUID.

        Returns:
            The observation ID.
        """
        if not observation.id:
            observation.id = self._new_id()
        if observation.created_at is None:
            observation.created_at = self._now()

        params = self._observation_params(observation)
        columns = ", ".join(params)
        placeholders = ", ".join(f":{name}" for name in params)
        with self._writing("Saving observation") as conn:
            conn.execute(f"INSERT INTO observations ({columns}) VALUES ({placeholders})", params)

        logger.info(
            "Saved observation %s (animal=%s, type=%s)",
            observation.id, observation.animal_id, observation.observation_type,
        )
        return observation.id

    def update_observation(self, observation: Observation) -> None:
        """Overwrite every mutable column of an existing observation."""
        params = self._observation_params(observation)
        assignments = ", ".join(
            f"{name} = :{name}"
            for name in params
            if name not in ("id", "animal_id", "recorded_at", "created_at")
        )
        with self._writing("Updating observation") as conn:
            cursor = conn.execute(f"UPDATE observations SET {assignments} WHERE id = :id", params)
        if cursor.rowcount == 0:
            raise PersistenceError(f"Observation {observation.id!r} does not exist")

    def get_observation(self, observation_id: str) -> Observation | None:
        rows = self._query("SELECT * FROM observations WHERE id = ?", (observation_id,))
        return self._row_to_observation(rows[0]) if rows else None

    def list_observations(self, animal_id: str, *, limit: int | None = None) -> list[Observation]:
        """Observations for one animal, newest ``recorded_at`` first.

        Observations sharing a timestamp are ordered by insertion, latest first.
        """
        sql = "SELECT * FROM observations WHERE animal_id = ? ORDER BY recorded_at DESC, rowid DESC"
        params: list[Any] = [animal_id]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [self._row_to_observation(row) for row in self._query(sql, params)]

    def count_observations(self, animal_id: str | None = None) -> int:
        if animal_id:
            rows = self._query("SELECT COUNT(*) FROM observations WHERE animal_id = ?", (animal_id,))
        else:
            rows = self._query("SELECT COUNT(*) FROM observations")
        return rows[0][0]

    def _row_to_observation(self, row: sqlite3.Row) -> Observation:
        return Observation(
            id=row["id"],
            animal_id=row["animal_id"],
            recorded_by=row["recorded_by"],
            recorded_at=_parse_ts(row["recorded_at"]),
            observation_type=row["observation_type"],
            notes=self._enc.decrypt(row["notes_enc"]) or "",
            custom_symptoms=self._enc.decrypt(row["custom_symptoms_enc"]) or [],
            temperature=row["temperature"],
            heart_rate=row["heart_rate"],
            respiratory_rate=row["respiratory_rate"],
            body_condition_score=row["body_condition_score"],
            mobility_score=row["mobility_score"],
            appetite_score=row["appetite_score"],
            alertness_score=row["alertness_score"],
            eye_condition=row["eye_condition"],
            nasal_discharge=row["nasal_discharge"],
            manure_consistency=row["manure_consistency"],
            gait_mobility=row["gait_mobility"],
            appetite=row["appetite"],
            symptoms=json.loads(row["symptoms_json"] or "[]"),
            severity_level=row["severity_level"],
            is_unknown_condition=bool(row["is_unknown_condition"]),
            priority=row["priority"],
            expert_review_requested=bool(row["expert_review_requested"]),
            follow_up_required=bool(row["follow_up_required"]),
            follow_up_date=_parse_day(row["follow_up_date"]),
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    # ------------------------------------------------------------------
    # Treatments
    # ------------------------------------------------------------------

    def _treatment_params(self, t: Treatment) -> dict[str, Any]:
        return {
            "id": t.id,
            "health_record_id": t.health_record_id,
            "animal_id": t.animal_id,
            "treatment_type": t.treatment_type,
            "name": t.name,
            "description": t.description,
            "administered_by": t.administered_by,
            "administered_date": _day(t.administered_date),
            "next_dose_date": _day(t.next_dose_date),
            "cost": t.cost,
            "treatment_complete": int(t.treatment_complete),
            "notes_enc": self._enc.encrypt(t.notes) if t.notes else "",
            "created_at": _ts(t.created_at),
            "updated_at": _ts(t.updated_at),
        }

    def save_treatment(self, treatment: Treatment) -> str:
        if not treatment.id:
            treatment.id = self._new_id()
        if treatment.created_at is None:
            treatment.created_at = self._now()

        params = self._treatment_params(treatment)
        columns = ", ".join(params)
        placeholders = ", ".join(f":{name}" for name in params)
        with self._writing("Saving treatment") as conn:
            conn.execute(f"INSERT INTO treatments ({columns}) VALUES ({placeholders})", params)

        logger.info("Saved treatment %s (animal=%s)", treatment.id, treatment.animal_id)
        return treatment.id

    def update_treatment(self, treatment: Treatment) -> None:
        params = self._treatment_params(treatment)
        assignments = ", ".join(
            f"{name} = :{name}" for name in params if name not in ("id", "created_at")
        )
        with self._writing("Updating treatment") as conn:
            cursor = conn.execute(f"UPDATE treatments SET {assignments} WHERE id = :id", params)
        if cursor.rowcount == 0:
            raise PersistenceError(f"Treatment {treatment.id!r} does not exist")

    def get_treatment(self, treatment_id: str) -> Treatment | None:
        rows = self._query("SELECT * FROM treatments WHERE id = ?", (treatment_id,))
        return self._row_to_treatment(rows[0]) if rows else None

    def list_treatments(self, animal_id: str) -> list[Treatment]:
        rows = self._query(
            "SELECT * FROM treatments WHERE animal_id = ? "
            "ORDER BY administered_date DESC, rowid DESC",
            (animal_id,),
        )
        return [self._row_to_treatment(row) for row in rows]

    def _row_to_treatment(self, row: sqlite3.Row) -> Treatment:
        return Treatment(
            id=row["id"],
            health_record_id=row["health_record_id"],
            animal_id=row["animal_id"],
            treatment_type=row["treatment_type"],
            name=row["name"],
            description=row["description"] or "",
            administered_by=row["administered_by"],
            administered_date=_parse_day(row["administered_date"]),
            next_dose_date=_parse_day(row["next_dose_date"]),
            cost=row["cost"],
            treatment_complete=bool(row["treatment_complete"]),
            notes=self._enc.decrypt(row["notes_enc"]) or "",
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    # ------------------------------------------------------------------
    # Vaccinations
    # ------------------------------------------------------------------

    def save_vaccination(self, vaccination: Vaccination) -> str:
        if not vaccination.id:
            vaccination.id = self._new_id()
        if vaccination.created_at is None:
            vaccination.created_at = self._now()

        with self._writing("Saving vaccination") as conn:
            conn.execute(
                """INSERT INTO vaccinations
                   (id, animal_id, vaccine_name, vaccine_type, administered_date,
                    administered_by, next_due_date, cost, notes_enc, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    vaccination.id,
                    vaccination.animal_id,
                    vaccination.vaccine_name,
                    vaccination.vaccine_type,
                    _day(vaccination.administered_date),
                    vaccination.administered_by,
                    _day(vaccination.next_due_date),
                    vaccination.cost,
                    self._enc.encrypt(vaccination.notes) if vaccination.notes else "",
                    _ts(vaccination.created_at),
                ),
            )
        logger.info("Saved vaccination %s (animal=%s)", vaccination.id, vaccination.animal_id)
        return vaccination.id

    def list_vaccinations(self, animal_id: str) -> list[Vaccination]:
        rows = self._query(
            "SELECT * FROM vaccinations WHERE animal_id = ? "
            "ORDER BY administered_date DESC, rowid DESC",
            (animal_id,),
        )
        return [
            Vaccination(
                id=row["id"],
                animal_id=row["animal_id"],
                vaccine_name=row["vaccine_name"],
                vaccine_type=row["vaccine_type"] or "",
                administered_date=_parse_day(row["administered_date"]),
                administered_by=row["administered_by"] or "",
                next_due_date=_parse_day(row["next_due_date"]),
                cost=row["cost"],
                notes=self._enc.decrypt(row["notes_enc"]) or "",
                created_at=_parse_ts(row["created_at"]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    @staticmethod
    def _alert_params(alert: Alert) -> tuple:
        return (
            alert.animal_id,
            alert.alert_type,
            alert.severity,
            alert.title,
            alert.description,
            alert.action_required,
            _day(alert.due_date),
            alert.status,
            alert.source_record_id,
            alert.acknowledged_by,
            _ts(alert.acknowledged_at),
            _ts(alert.dismissed_at),
            _ts(alert.resolved_at),
            _ts(alert.created_at),
            alert.id,
        )

    def save_alert(self, alert: Alert) -> str:
        with self._writing("Saving alert") as conn:
            conn.execute(
                """INSERT INTO alerts
                   (animal_id, alert_type, severity, title, description, action_required,
                    due_date, status, source_record_id, acknowledged_by, acknowledged_at,
                    dismissed_at, resolved_at, created_at, id)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                self._alert_params(alert),
            )
        logger.info(
            "Saved alert %s (animal=%s, type=%s, severity=%s)",
            alert.id, alert.animal_id, alert.alert_type, alert.severity,
        )
        return alert.id

    def update_alert(self, alert: Alert) -> None:
        with self._writing("Updating alert") as conn:
            cursor = conn.execute(
                """UPDATE alerts SET
                   animal_id = ?, alert_type = ?, severity = ?, title = ?, description = ?,
                   action_required = ?, due_date = ?, status = ?, source_record_id = ?,
                   acknowledged_by = ?, acknowledged_at = ?, dismissed_at = ?,
                   resolved_at = ?, created_at = ?
                   WHERE id = ?""",
                self._alert_params(alert),
            )
        if cursor.rowcount == 0:
            raise PersistenceError(f"Alert {alert.id!r} does not exist")

    def get_alert(self, alert_id: str) -> Alert | None:
        rows = self._query("SELECT * FROM alerts WHERE id = ?", (alert_id,))
        return self._row_to_alert(rows[0]) if rows else None

    def list_alerts(
        self,
        animal_id: str | None = None,
        *,
        status: str | None = None,
    ) -> list[Alert]:
        """Alerts, optionally filtered by animal and status, newest first."""
        conditions: list[str] = []
        params: list[Any] = []
        if animal_id:
            conditions.append("animal_id = ?")
            params.append(animal_id)
        if status:
            conditions.append("status = ?")
            params.append(status)

        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        rows = self._query(f"SELECT * FROM alerts{where} ORDER BY created_at DESC, rowid DESC", params)
        return [self._row_to_alert(row) for row in rows]

    @staticmethod
    def _row_to_alert(row: sqlite3.Row) -> Alert:
        return Alert(
            id=row["id"],
            animal_id=row["animal_id"],
            alert_type=row["alert_type"],
            severity=row["severity"],
            title=row["title"],
            description=row["description"],
            action_required=row["action_required"] or "",
            due_date=_parse_day(row["due_date"]),
            status=row["status"],
            source_record_id=row["source_record_id"],
            acknowledged_by=row["acknowledged_by"],
            acknowledged_at=_parse_ts(row["acknowledged_at"]),
            dismissed_at=_parse_ts(row["dismissed_at"]),
            resolved_at=_parse_ts(row["resolved_at"]),
            created_at=_parse_ts(row["created_at"]),
        )

    # ------------------------------------------------------------------
    # Feed and weight samples
    # ------------------------------------------------------------------

    def save_feed_entry(self, entry: FeedEntry) -> str:
        if not entry.id:
            entry.id = self._new_id()
        with self._writing("Saving feed entry") as conn:
            conn.execute(
                """INSERT INTO feed_entries (id, animal_id, entry_date, amount_lbs, cost, feed_type)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (entry.id, entry.animal_id, _day(entry.entry_date), entry.amount_lbs,
                 entry.cost, entry.feed_type),
            )
        return entry.id

    def list_feed_entries(
        self,
        animal_id: str,
        *,
        since: date | None = None,
        until: date | None = None,
    ) -> list[FeedEntry]:
        conditions = ["animal_id = ?"]
        params: list[Any] = [animal_id]
        if since:
            conditions.append("entry_date >= ?")
            params.append(_day(since))
        if until:
            conditions.append("entry_date <= ?")
            params.append(_day(until))

        rows = self._query(
            f"SELECT * FROM feed_entries WHERE {' AND '.join(conditions)} "
            "ORDER BY entry_date DESC, rowid DESC",
            params,
        )
        return [
            FeedEntry(
                id=row["id"],
                animal_id=row["animal_id"],
                entry_date=_parse_day(row["entry_date"]),
                amount_lbs=row["amount_lbs"],
                cost=row["cost"],
                feed_type=row["feed_type"] or "",
            )
            for row in rows
        ]

    def save_weight_entry(self, entry: WeightEntry) -> str:
        if not entry.id:
            entry.id = self._new_id()
        with self._writing("Saving weight entry") as conn:
            conn.execute(
                "INSERT INTO weight_entries (id, animal_id, entry_date, weight_lbs) VALUES (?, ?, ?, ?)",
                (entry.id, entry.animal_id, _day(entry.entry_date), entry.weight_lbs),
            )
        return entry.id

    def list_weight_entries(
        self,
        animal_id: str,
        *,
        since: date | None = None,
        until: date | None = None,
    ) -> list[WeightEntry]:
        conditions = ["animal_id = ?"]
        params: list[Any] = [animal_id]
        if since:
            conditions.append("entry_date >= ?")
            params.append(_day(since))
        if until:
            conditions.append("entry_date <= ?")
            params.append(_day(until))

        rows = self._query(
            f"SELECT * FROM weight_entries WHERE {' AND '.join(conditions)} "
            "ORDER BY entry_date DESC, rowid DESC",
            params,
        )
        return [
            WeightEntry(
                id=row["id"],
                animal_id=row["animal_id"],
                entry_date=_parse_day(row["entry_date"]),
                weight_lbs=row["weight_lbs"],
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Feed efficiency history
    # ------------------------------------------------------------------

    def save_feed_efficiency_record(self, record: FeedEfficiencyRecord) -> str:
        if not record.id:
            record.id = self._new_id()
        if record.calculated_at is None:
            record.calculated_at = self._now()

        with self._writing("Saving feed efficiency record") as conn:
            conn.execute(
                """INSERT INTO feed_efficiency_records
                   (id, animal_id, start_date, end_date, period_days, total_feed,
                    avg_daily_feed, feed_cost, feed_types_json, start_weight, end_weight,
                    total_gain, avg_daily_gain, fcr, cost_per_lb_gain, efficiency_score,
                    calculated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    record.id,
                    record.animal_id,
                    _day(record.start_date),
                    _day(record.end_date),
                    record.period_days,
                    record.total_feed,
                    record.avg_daily_feed,
                    record.feed_cost,
                    json.dumps(record.feed_types),
                    record.start_weight,
                    record.end_weight,
                    record.total_gain,
                    record.avg_daily_gain,
                    record.fcr,
                    record.cost_per_lb_gain,
                    record.efficiency_score,
                    _ts(record.calculated_at),
                ),
            )
        logger.info(
            "Saved feed efficiency record %s (animal=%s, fcr=%s)",
            record.id, record.animal_id, record.fcr,
        )
        return record.id

    def list_feed_efficiency_records(
        self,
        animal_id: str,
        *,
        limit: int | None = None,
    ) -> list[FeedEfficiencyRecord]:
        """Stored periods for one animal, latest period end first."""
        sql = (
            "SELECT * FROM feed_efficiency_records WHERE animal_id = ? "
            "ORDER BY end_date DESC, calculated_at DESC"
        )
        params: list[Any] = [animal_id]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [self._row_to_feed_record(row) for row in self._query(sql, params)]

    def latest_feed_efficiency_records(self) -> list[FeedEfficiencyRecord]:
        """The most recent stored period of every animal."""
        rows = self._query(
            """SELECT * FROM feed_efficiency_records AS r
               WHERE r.id = (
                   SELECT id FROM feed_efficiency_records
                   WHERE animal_id = r.animal_id
                   ORDER BY end_date DESC, calculated_at DESC
                   LIMIT 1
               )
               ORDER BY r.animal_id"""
        )
        return [self._row_to_feed_record(row) for row in rows]

    @staticmethod
    def _row_to_feed_record(row: sqlite3.Row) -> FeedEfficiencyRecord:
        return FeedEfficiencyRecord(
            id=row["id"],
            animal_id=row["animal_id"],
            start_date=_parse_day(row["start_date"]),
            end_date=_parse_day(row["end_date"]),
            period_days=row["period_days"],
            total_feed=row["total_feed"],
            avg_daily_feed=row["avg_daily_feed"],
            feed_cost=row["feed_cost"],
            feed_types=json.loads(row["feed_types_json"] or "[]"),
            start_weight=row["start_weight"],
            end_weight=row["end_weight"],
            total_gain=row["total_gain"],
            avg_daily_gain=row["avg_daily_gain"],
            fcr=row["fcr"],
            cost_per_lb_gain=row["cost_per_lb_gain"],
            efficiency_score=row["efficiency_score"],
            calculated_at=_parse_ts(row["calculated_at"]),
        )

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_animal_records(self, animal_id: str) -> int:
        """Delete every record held for one animal.

        Returns:
            Total number of rows deleted.
        """
        deleted = 0
        with self._writing("Deleting animal records") as conn:
            # Treatments reference observations
            for table in (
                "treatments",
                "observations",
                "vaccinations",
                "alerts",
                "feed_entries",
                "weight_entries",
                "feed_efficiency_records",
            ):
                deleted += conn.execute(
                    f"DELETE FROM {table} WHERE animal_id = ?", (animal_id,)
                ).rowcount
        logger.warning("Deleted %d records for animal %s", deleted, animal_id)
        return deleted
