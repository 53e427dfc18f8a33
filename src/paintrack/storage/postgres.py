"""PostgreSQL-backed primary store.

Every operation is a parameterized asyncpg query. Constraint violations map
to domain errors; every other failure surfaces as
:class:`~paintrack.storage.errors.StorageUnavailableError` so the facade can
fall back. The store itself never retries.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date
from typing import Any

import asyncpg

from paintrack.db import Database
from paintrack.storage.base import Store, trend_cutoff
from paintrack.storage.errors import NotFoundError, StorageUnavailableError, ValidationError
from paintrack.storage.models import (
    LIST_PROFILE_FIELDS,
    Medication,
    MedicationStatus,
    NewMedication,
    NewPainEntry,
    NewUser,
    PainEntry,
    ReminderSettings,
    User,
    validate_dose_index,
)
from paintrack.storage.schema import ensure_schema

logger = logging.getLogger(__name__)

_USER_JSONB_COLUMNS = LIST_PROFILE_FIELDS
_ENTRY_JSONB_COLUMNS = ("locations", "characteristics", "triggers", "medications")


def decode_jsonb(val: Any) -> Any:
    """asyncpg returns JSONB as text unless a codec is registered."""
    if isinstance(val, str):
        return json.loads(val)
    return val


def _encode_jsonb(val: Any) -> str | None:
    if val is None:
        return None
    return json.dumps(val)


def _row_to_dict(row: asyncpg.Record, jsonb_columns: Any = ()) -> dict[str, Any]:
    d = dict(row)
    for key in jsonb_columns:
        if key in d:
            d[key] = decode_jsonb(d[key])
    return d


def _user_from_row(row: asyncpg.Record) -> User:
    return User(**_row_to_dict(row, _USER_JSONB_COLUMNS))


def _entry_from_row(row: asyncpg.Record) -> PainEntry:
    return PainEntry(**_row_to_dict(row, _ENTRY_JSONB_COLUMNS))


def _medication_from_row(row: asyncpg.Record) -> Medication:
    d = _row_to_dict(row, ("time_of_day",))
    d["time_of_day"] = d.get("time_of_day") or []
    return Medication(**d)


def _settings_from_row(row: asyncpg.Record) -> ReminderSettings:
    return ReminderSettings(**dict(row))


@contextmanager
def _translate_errors(operation: str, missing: tuple[str, object] | None = None) -> Iterator[None]:
    """Map asyncpg failures onto the storage error taxonomy.

    *missing* names the referenced entity reported when a foreign key
    constraint rejects the write.
    """
    try:
        yield
    except (ValidationError, NotFoundError):
        raise
    except asyncpg.UniqueViolationError as exc:
        raise ValidationError(f"{operation}: {getattr(exc, 'detail', None) or exc}") from exc
    except asyncpg.ForeignKeyViolationError as exc:
        if missing is None:
            raise StorageUnavailableError(f"{operation} failed: {exc}") from exc
        raise NotFoundError(*missing) from exc
    except Exception as exc:
        raise StorageUnavailableError(f"{operation} failed: {exc}") from exc


class PostgresStore(Store):
    """Durable implementation of :class:`~paintrack.storage.base.Store`."""

    def __init__(self, database: Database, today: Callable[[], date] = date.today) -> None:
        self.database = database
        self._today = today

    # -- Lifecycle ----------------------------------------------------------

    async def start(self) -> None:
        """Create the pool if needed and apply the schema."""
        with _translate_errors("start"):
            if self.database.pool is None:
                await self.database.connect()
            await ensure_schema(self.database.require_pool())

    async def ping(self) -> None:
        """Lightweight health query; raises StorageUnavailableError on failure."""
        if self.database.pool is None:
            await self.start()
        with _translate_errors("ping"):
            await self.database.require_pool().fetchval("SELECT 1")

    async def close(self) -> None:
        try:
            await self.database.close()
        except Exception:
            logger.warning("Error closing primary store pool", exc_info=True)
            self.database.pool = None

    @property
    def _pool(self) -> asyncpg.Pool:
        return self.database.require_pool()

    # -- Users --------------------------------------------------------------

    async def get_user(self, user_id: int) -> User | None:
        with _translate_errors("get_user"):
            row = await self._pool.fetchrow("SELECT * FROM users WHERE id = $1", user_id)
        return _user_from_row(row) if row is not None else None

    async def get_user_by_username(self, username: str) -> User | None:
        with _translate_errors("get_user_by_username"):
            row = await self._pool.fetchrow("SELECT * FROM users WHERE username = $1", username)
        return _user_from_row(row) if row is not None else None

    async def create_user(self, new_user: NewUser) -> User:
        with _translate_errors("create_user"):
            row = await self._pool.fetchrow(
                """
                INSERT INTO users (username, password, first_name, last_name, email)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING *
                """,
                new_user.username,
                new_user.password,
                new_user.first_name,
                new_user.last_name,
                new_user.email,
            )
        return _user_from_row(row)

    async def update_user(self, user_id: int, changes: dict[str, Any]) -> User:
        # Column names come from the validated profile-field allowlist.
        assignments = ["profile_created = true"]
        args: list[Any] = [user_id]
        for idx, (column, value) in enumerate(sorted(changes.items()), start=2):
            if column in _USER_JSONB_COLUMNS:
                assignments.append(f"{column} = ${idx}::jsonb")
                args.append(_encode_jsonb(value))
            else:
                assignments.append(f"{column} = ${idx}")
                args.append(value)

        with _translate_errors("update_user"):
            row = await self._pool.fetchrow(
                f"UPDATE users SET {', '.join(assignments)} WHERE id = $1 RETURNING *",
                *args,
            )
        if row is None:
            raise NotFoundError("user", user_id)
        return _user_from_row(row)

    # -- Pain entries -------------------------------------------------------

    async def create_pain_entry(self, entry: NewPainEntry) -> PainEntry:
        with _translate_errors("create_pain_entry", missing=("user", entry.user_id)):
            row = await self._pool.fetchrow(
                """
                INSERT INTO pain_entries
                    (user_id, date, intensity, locations, characteristics, triggers,
                     notes, medication_taken, medications)
                VALUES ($1, COALESCE($2, now()), $3, $4::jsonb, $5::jsonb, $6::jsonb,
                        $7, $8, $9::jsonb)
                RETURNING *
                """,
                entry.user_id,
                entry.date,
                entry.intensity,
                _encode_jsonb(entry.locations),
                _encode_jsonb(entry.characteristics),
                _encode_jsonb(entry.triggers),
                entry.notes,
                entry.medication_taken,
                _encode_jsonb(entry.medications),
            )
        return _entry_from_row(row)

    async def get_pain_entries_by_user(self, user_id: int) -> list[PainEntry]:
        with _translate_errors("get_pain_entries_by_user"):
            rows = await self._pool.fetch(
                "SELECT * FROM pain_entries WHERE user_id = $1 ORDER BY date DESC, id DESC",
                user_id,
            )
        return [_entry_from_row(r) for r in rows]

    async def get_recent_pain_entries(self, user_id: int, limit: int) -> list[PainEntry]:
        with _translate_errors("get_recent_pain_entries"):
            rows = await self._pool.fetch(
                """
                SELECT * FROM pain_entries
                WHERE user_id = $1
                ORDER BY date DESC, id DESC
                LIMIT $2
                """,
                user_id,
                limit,
            )
        return [_entry_from_row(r) for r in rows]

    async def get_pain_trend(self, user_id: int, days: int) -> list[PainEntry]:
        with _translate_errors("get_pain_trend"):
            rows = await self._pool.fetch(
                """
                SELECT * FROM pain_entries
                WHERE user_id = $1 AND date >= $2
                ORDER BY date ASC, id ASC
                """,
                user_id,
                trend_cutoff(days),
            )
        return [_entry_from_row(r) for r in rows]

    # -- Medications --------------------------------------------------------

    async def create_medication(self, medication: NewMedication) -> Medication:
        with _translate_errors("create_medication", missing=("user", medication.user_id)):
            row = await self._pool.fetchrow(
                """
                INSERT INTO medications (user_id, name, dosage, frequency, time_of_day, active)
                VALUES ($1, $2, $3, $4, $5::jsonb, $6)
                RETURNING *
                """,
                medication.user_id,
                medication.name,
                medication.dosage,
                medication.frequency,
                _encode_jsonb(medication.time_of_day),
                medication.active,
            )
        return _medication_from_row(row)

    async def get_medications_by_user(self, user_id: int) -> list[Medication]:
        with _translate_errors("get_medications_by_user"):
            rows = await self._pool.fetch(
                "SELECT * FROM medications WHERE user_id = $1 AND active = true ORDER BY id",
                user_id,
            )
        return [_medication_from_row(r) for r in rows]

    async def _taken_slots(self, medication_ids: list[int]) -> set[tuple[int, int]]:
        if not medication_ids:
            return set()
        rows = await self._pool.fetch(
            """
            SELECT medication_id, dose_index FROM medication_doses
            WHERE taken_on = $1 AND medication_id = ANY($2::int[])
            """,
            self._today(),
            medication_ids,
        )
        return {(r["medication_id"], r["dose_index"]) for r in rows}

    @staticmethod
    def _status(med: Medication, taken: set[tuple[int, int]]) -> MedicationStatus:
        return MedicationStatus(
            medication=med,
            taken_today=[(med.id, i) in taken for i in range(len(med.time_of_day))],
        )

    async def get_today_medications(self, user_id: int) -> list[MedicationStatus]:
        meds = await self.get_medications_by_user(user_id)
        with _translate_errors("get_today_medications"):
            taken = await self._taken_slots([m.id for m in meds])
        return [self._status(m, taken) for m in meds]

    async def take_medication(self, medication_id: int, dose_index: int) -> MedicationStatus:
        with _translate_errors("take_medication"):
            row = await self._pool.fetchrow(
                "SELECT * FROM medications WHERE id = $1", medication_id
            )
        if row is None:
            raise NotFoundError("medication", medication_id)
        med = _medication_from_row(row)
        validate_dose_index(med, dose_index)

        with _translate_errors("take_medication", missing=("medication", medication_id)):
            await self._pool.execute(
                """
                INSERT INTO medication_doses (medication_id, taken_on, dose_index)
                VALUES ($1, $2, $3)
                ON CONFLICT (medication_id, taken_on, dose_index) DO NOTHING
                """,
                medication_id,
                self._today(),
                dose_index,
            )
            taken = await self._taken_slots([medication_id])
        return self._status(med, taken)

    # -- Reminder settings --------------------------------------------------

    async def get_reminder_settings(self, user_id: int) -> ReminderSettings:
        with _translate_errors("get_reminder_settings", missing=("user", user_id)):
            row = await self._pool.fetchrow(
                "SELECT * FROM reminder_settings WHERE user_id = $1", user_id
            )
            if row is None:
                await self._pool.execute(
                    "INSERT INTO reminder_settings (user_id) VALUES ($1) ON CONFLICT DO NOTHING",
                    user_id,
                )
                row = await self._pool.fetchrow(
                    "SELECT * FROM reminder_settings WHERE user_id = $1", user_id
                )
                logger.debug("Created default reminder settings for user %s", user_id)
        return _settings_from_row(row)

    async def update_reminder_settings(
        self, user_id: int, changes: dict[str, Any]
    ) -> ReminderSettings:
        await self.get_reminder_settings(user_id)

        # Column names come from the validated reminder-field allowlist.
        assignments = ["last_updated = now()"]
        args: list[Any] = [user_id]
        for idx, (column, value) in enumerate(sorted(changes.items()), start=2):
            assignments.append(f"{column} = ${idx}")
            args.append(value)

        with _translate_errors("update_reminder_settings"):
            row = await self._pool.fetchrow(
                f"UPDATE reminder_settings SET {', '.join(assignments)} "
                f"WHERE user_id = $1 RETURNING *",
                *args,
            )
        return _settings_from_row(row)
