"""Tests for the PostgreSQL primary store.

Error translation is unit-tested; everything else runs against a real
PostgreSQL 16 container and is skipped when Docker is not available.
"""

from __future__ import annotations

import shutil
import uuid
from dataclasses import asdict
from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from paintrack.config import ReconnectConfig, StorageConfig
from paintrack.db import Database
from paintrack.storage.errors import NotFoundError, StorageUnavailableError, ValidationError
from paintrack.storage.facade import StorageFacade, StorageState
from paintrack.storage.models import NewMedication, NewPainEntry, NewUser
from paintrack.storage.postgres import PostgresStore, _translate_errors
from paintrack.storage.sessions import PostgresSessionStore

docker_available = shutil.which("docker") is not None

# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestTranslateErrors:
    def test_unique_violation_becomes_validation_error(self):
        with pytest.raises(ValidationError, match="create_user"):
            with _translate_errors("create_user"):
                raise asyncpg.UniqueViolationError("duplicate key")

    def test_foreign_key_violation_becomes_not_found(self):
        with pytest.raises(NotFoundError) as exc_info:
            with _translate_errors("create_pain_entry", missing=("user", 99)):
                raise asyncpg.ForeignKeyViolationError("fk")
        assert exc_info.value.kind == "user"
        assert exc_info.value.entity_id == 99

    def test_foreign_key_without_target_is_unavailable(self):
        with pytest.raises(StorageUnavailableError):
            with _translate_errors("update"):
                raise asyncpg.ForeignKeyViolationError("fk")

    @pytest.mark.parametrize(
        "exc",
        [
            ConnectionRefusedError("refused"),
            TimeoutError(),
            RuntimeError("Database 'x' has no active connection pool"),
            asyncpg.InterfaceError("pool is closing"),
        ],
    )
    def test_other_failures_become_unavailable(self, exc):
        with pytest.raises(StorageUnavailableError):
            with _translate_errors("get_user"):
                raise exc

    def test_domain_errors_pass_through(self):
        with pytest.raises(NotFoundError):
            with _translate_errors("take_medication"):
                raise NotFoundError("medication", 1)


@pytest.mark.unit
class TestQueryArguments:
    async def test_medication_schedule_is_encoded_as_jsonb_text(self):
        db = Database(db_name="unit")
        db.pool = MagicMock()
        db.pool.fetchrow = AsyncMock(
            return_value={
                "id": 1,
                "user_id": 1,
                "name": "Naproxen",
                "dosage": None,
                "frequency": None,
                "time_of_day": '["08:00"]',
                "active": True,
            }
        )

        med = await PostgresStore(db).create_medication(
            NewMedication(user_id=1, name="Naproxen", time_of_day=["08:00"])
        )

        args = db.pool.fetchrow.await_args.args
        assert args[5] == '["08:00"]'
        assert med.time_of_day == ["08:00"]


# ---------------------------------------------------------------------------
# Integration
# ---------------------------------------------------------------------------


async def _create_database(container, name: str) -> Database:
    host = container.get_container_host_ip()
    port = int(container.get_exposed_port(5432))
    conn = await asyncpg.connect(
        host=host,
        port=port,
        user=container.username,
        password=container.password,
        database="postgres",
    )
    try:
        await conn.execute(f'CREATE DATABASE "{name}"')
    finally:
        await conn.close()
    return Database(
        db_name=name,
        host=host,
        port=port,
        user=container.username,
        password=container.password,
        min_pool_size=1,
        max_pool_size=3,
    )


@pytest.fixture
async def database(postgres_container):
    db = await _create_database(postgres_container, f"test_{uuid.uuid4().hex[:12]}")
    yield db
    await db.close()


@pytest.fixture
async def store(database):
    today = date.today()
    pg = PostgresStore(database, today=lambda: today)
    await pg.start()
    return pg


integration = [
    pytest.mark.integration,
    pytest.mark.skipif(not docker_available, reason="Docker not available"),
]


class TestPostgresStore:
    pytestmark = integration

    async def test_schema_is_idempotent(self, store, database):
        await store.start()
        tables = await database.require_pool().fetch(
            "SELECT table_name FROM information_schema.tables WHERE table_schema = 'public'"
        )
        assert {r["table_name"] for r in tables} >= {
            "users",
            "pain_entries",
            "medications",
            "medication_doses",
            "reminder_settings",
            "user_sessions",
        }

    async def test_ping(self, store):
        await store.ping()

    async def test_user_round_trip_and_duplicate(self, store):
        user = await store.create_user(NewUser(username="alice", password="h.s", first_name="A"))
        assert user.id > 0
        assert user.profile_created is False
        assert user.medical_history == []
        assert await store.get_user_by_username("alice") == user

        with pytest.raises(ValidationError):
            await store.create_user(NewUser(username="alice", password="x.y"))

    async def test_update_user_marks_profile_created(self, store):
        user = await store.create_user(NewUser(username="bob", password="h.s"))
        updated = await store.update_user(
            user.id, {"age": 41, "allergies": ["penicillin"], "occupation": "nurse"}
        )
        assert updated.profile_created is True
        assert updated.allergies == ["penicillin"]
        assert updated.age == 41

        with pytest.raises(NotFoundError):
            await store.update_user(user.id + 1000, {"age": 3})

    async def test_pain_entry_round_trip(self, store):
        user = await store.create_user(NewUser(username="carol", password="h.s"))
        when = datetime(2026, 3, 10, 8, 30, tzinfo=UTC)
        created = await store.create_pain_entry(
            NewPainEntry(
                user_id=user.id,
                intensity=6,
                locations=["Lower Back"],
                date=when,
                characteristics=["Dull"],
                triggers=["Poor Sleep"],
                notes="woke up stiff",
            )
        )
        [fetched] = await store.get_pain_entries_by_user(user.id)
        assert asdict(fetched) == asdict(created)
        assert fetched.date == when
        assert fetched.medications is None

    async def test_pain_entry_for_missing_user(self, store):
        with pytest.raises(NotFoundError):
            await store.create_pain_entry(
                NewPainEntry(user_id=4242, intensity=3, locations=["Neck"])
            )

    async def test_recent_and_trend_ordering(self, store):
        user = await store.create_user(NewUser(username="dave", password="h.s"))
        now = datetime.now(UTC).replace(microsecond=0)
        for days_ago, intensity in [(40, 2), (3, 5), (1, 7)]:
            await store.create_pain_entry(
                NewPainEntry(
                    user_id=user.id,
                    intensity=intensity,
                    locations=["Knee"],
                    date=now - timedelta(days=days_ago),
                )
            )
        recent = await store.get_recent_pain_entries(user.id, 2)
        assert [e.intensity for e in recent] == [7, 5]

        trend = await store.get_pain_trend(user.id, 7)
        assert [e.intensity for e in trend] == [5, 7]

    async def test_medication_doses_persist(self, store, database):
        user = await store.create_user(NewUser(username="erin", password="h.s"))
        med = await store.create_medication(
            NewMedication(user_id=user.id, name="Naproxen", time_of_day=["08:00", "20:00"])
        )
        [status] = await store.get_today_medications(user.id)
        assert status.taken_today == [False, False]

        await store.take_medication(med.id, 1)
        again = await store.take_medication(med.id, 1)
        assert again.taken_today == [False, True]

        # A second store over the same database sees the dose.
        other = PostgresStore(database)
        [status] = await other.get_today_medications(user.id)
        assert status.taken_today == [False, True]

        with pytest.raises(ValidationError):
            await store.take_medication(med.id, 2)
        with pytest.raises(NotFoundError):
            await store.take_medication(med.id + 1000, 0)

    async def test_reminder_defaults_created_once(self, store, database):
        user = await store.create_user(NewUser(username="fay", password="h.s"))
        first = await store.get_reminder_settings(user.id)
        second = await store.get_reminder_settings(user.id)
        assert first == second
        assert first.reminder_frequency == "daily"
        count = await database.require_pool().fetchval(
            "SELECT count(*) FROM reminder_settings WHERE user_id = $1", user.id
        )
        assert count == 1

        updated = await store.update_reminder_settings(
            user.id, {"weekly_summary": False, "preferred_time": "morning"}
        )
        assert updated.weekly_summary is False
        assert updated.preferred_time == "morning"
        assert updated.email_notifications is True

    async def test_session_store(self, store, database):
        sessions = PostgresSessionStore(database)
        await sessions.set("sid-1", {"user_id": 5}, max_age=60)
        assert await sessions.get("sid-1") == {"user_id": 5}

        await sessions.set("sid-old", {"user_id": 6}, max_age=-1)
        assert await sessions.get("sid-old") is None
        assert await sessions.prune_expired() == 1

        await sessions.destroy("sid-1")
        assert await sessions.get("sid-1") is None

    async def test_closed_pool_is_unavailable(self, store, database):
        await database.close()
        with pytest.raises(StorageUnavailableError):
            await store.get_user(1)

    async def test_facade_falls_back_when_pool_closes(self, database):
        facade = StorageFacade(
            StorageConfig(
                reconnect=ReconnectConfig(
                    base_delay_seconds=0.01, max_delay_seconds=0.02, max_attempts=2, jitter=0.0
                )
            ),
            primary=PostgresStore(database),
            primary_sessions=PostgresSessionStore(database),
        )
        try:
            assert await facade.init() is StorageState.HEALTHY
            durable = await facade.create_user(NewUser(username="gil", password="h.s"))

            await database.close()
            volatile = await facade.create_user(NewUser(username="hal", password="h.s"))

            assert volatile.username == "hal"
            assert facade.status().volatile_writes == 1
            assert durable.id >= 1
        finally:
            await facade.shutdown()


