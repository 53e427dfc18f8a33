"""Storage facade: the only storage object the application talks to.

Routes each operation to the PostgreSQL primary store while it is healthy and
to the in-memory fallback store otherwise:

- ``init()`` probes the primary. No database URL, or a failed probe, leaves
  the facade DEGRADED.
- While HEALTHY, a primary failure (``StorageUnavailableError``) flips the
  facade to DEGRADED and the same call is re-run against the fallback store,
  so callers only ever see results or domain errors.
- While DEGRADED, one background task at a time retries the primary with
  capped exponential backoff and jitter. Success returns to HEALTHY; after
  ``max_attempts`` failures the facade stays DEGRADED until restart.

Writes served by the fallback store are not replayed into PostgreSQL after
recovery. They are logged and counted in :meth:`StorageFacade.status`.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from paintrack.config import ReconnectConfig, StorageConfig
from paintrack.db import Database
from paintrack.storage.base import StorageState
from paintrack.storage.errors import (
    FallbackDataLossWarning,
    StorageUnavailableError,
    ValidationError,
)
from paintrack.storage.memory import MemoryStore
from paintrack.storage.models import (
    Medication,
    MedicationStatus,
    NewMedication,
    NewPainEntry,
    NewUser,
    PainEntry,
    PainReport,
    Pattern,
    Recommendation,
    ReminderSettings,
    Resource,
    TriggerStat,
    User,
    validate_days,
    validate_limit,
    validate_new_medication,
    validate_new_pain_entry,
    validate_new_user,
    validate_reminder_update,
    validate_user_id,
    validate_user_update,
)
from paintrack.storage.postgres import PostgresStore
from paintrack.storage.sessions import MemorySessionStore, PostgresSessionStore, SessionStore

logger = logging.getLogger(__name__)


def backoff_delay(
    attempt: int,
    config: ReconnectConfig,
    rand: Callable[[], float] = random.random,
) -> float:
    """Delay before reconnect attempt *attempt* (0-based).

    ``min(max_delay, base_delay * 2**attempt)`` plus up to ``config.jitter``
    of that value.
    """
    delay = min(config.max_delay_seconds, config.base_delay_seconds * (2**attempt))
    return delay + delay * config.jitter * rand()


@dataclass(frozen=True)
class StorageStatus:
    """Point-in-time view of the facade's health bookkeeping."""

    state: StorageState
    primary_configured: bool
    reconnect_attempts: int
    reconnect_pending: bool
    reconnect_exhausted: bool
    volatile_writes: int

    @property
    def durable(self) -> bool:
        return self.state is StorageState.HEALTHY


class StorageFacade:
    """Primary-with-fallback storage with health tracking and reconnection.

    Construct explicitly, call :meth:`init` once at startup and
    :meth:`shutdown` at exit. A ``primary`` store may be injected (tests);
    otherwise one is built from ``config.database_url``.
    """

    def __init__(
        self,
        config: StorageConfig | None = None,
        *,
        primary: PostgresStore | None = None,
        primary_sessions: SessionStore | None = None,
        fallback: MemoryStore | None = None,
        fallback_sessions: SessionStore | None = None,
    ) -> None:
        self._config = config or StorageConfig()
        self._primary = primary
        self._primary_sessions = primary_sessions
        self._fallback = fallback or MemoryStore()
        self._fallback_sessions = fallback_sessions or MemorySessionStore()
        self.state = StorageState.UNINITIALIZED
        self._reconnect_task: asyncio.Task | None = None
        self._prune_task: asyncio.Task | None = None
        self._reconnect_attempts = 0
        self._reconnect_exhausted = False
        self._volatile_writes = 0
        self._shutdown = False
        self.sessions: SessionStore = RoutedSessionStore(self)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self) -> StorageState:
        """Probe the primary store and settle into HEALTHY or DEGRADED."""
        if self.state is not StorageState.UNINITIALIZED:
            logger.warning("StorageFacade.init() called twice; ignoring")
            return self.state

        self.state = StorageState.PROBING

        if self._primary is None:
            database_url = self._config.database_url
            if not database_url:
                logger.warning(
                    "No database URL configured; using in-memory storage only. "
                    "All data will be lost when the process restarts."
                )
                self.state = StorageState.DEGRADED
                return self.state
            try:
                database = Database.from_url(
                    database_url,
                    min_pool_size=self._config.min_pool_size,
                    max_pool_size=self._config.max_pool_size,
                    connect_timeout=self._config.connect_timeout_seconds,
                    idle_timeout=self._config.idle_timeout_seconds,
                )
            except ValueError as exc:
                logger.error("Invalid database URL (%s); using in-memory storage only", exc)
                self.state = StorageState.DEGRADED
                return self.state
            self._primary = PostgresStore(database)
            self._primary_sessions = PostgresSessionStore(database)

        try:
            await self._primary.start()
            await self._primary.ping()
        except Exception as exc:
            logger.error("Primary store probe failed: %s", exc)
            self._enter_degraded()
            return self.state

        self.state = StorageState.HEALTHY
        logger.info("Primary store healthy; using PostgreSQL storage")
        return self.state

    async def shutdown(self) -> None:
        """Cancel pending reconnection and close the primary pool. Idempotent."""
        if self._shutdown:
            return
        self._shutdown = True
        for task in (self._reconnect_task, self._prune_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._reconnect_task = None
        self._prune_task = None
        if self._primary is not None:
            await self._primary.close()
        logger.info("Storage facade shut down (state=%s)", self.state)

    def status(self) -> StorageStatus:
        return StorageStatus(
            state=self.state,
            primary_configured=self._primary is not None,
            reconnect_attempts=self._reconnect_attempts,
            reconnect_pending=self._reconnect_task is not None and not self._reconnect_task.done(),
            reconnect_exhausted=self._reconnect_exhausted,
            volatile_writes=self._volatile_writes,
        )

    # ------------------------------------------------------------------
    # Health transitions and reconnection
    # ------------------------------------------------------------------

    def _enter_degraded(self) -> None:
        if self.state is not StorageState.DEGRADED:
            logger.warning(
                "Storage degraded: routing all operations to in-memory fallback store"
            )
        self.state = StorageState.DEGRADED
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        """Start the reconnect loop unless one is already pending."""
        if self._shutdown or self._primary is None or self._reconnect_exhausted:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.ensure_future(self._reconnect_loop())

    async def _reconnect_loop(self) -> None:
        """Probe the primary with capped exponential backoff until it answers.

        On each attempt:
        1. Wait ``backoff_delay(attempt)`` seconds
        2. Ping the primary store
        3. On success: reset the attempt counter and go HEALTHY
        4. On failure: bump the counter; give up once it reaches max_attempts
        """
        reconnect = self._config.reconnect
        assert self._primary is not None

        while not self._shutdown and self.state is StorageState.DEGRADED:
            if self._reconnect_attempts >= reconnect.max_attempts:
                self._reconnect_exhausted = True
                logger.warning(
                    "Primary store still unreachable after %d reconnect attempt(s); "
                    "no further retries. Data stays in memory until the process restarts.",
                    self._reconnect_attempts,
                )
                return

            delay = backoff_delay(self._reconnect_attempts, reconnect)
            logger.info(
                "Primary store reconnect attempt %d in %.2fs",
                self._reconnect_attempts + 1,
                delay,
            )
            await asyncio.sleep(delay)

            if self._shutdown:
                return

            try:
                await self._primary.ping()
            except Exception as exc:
                self._reconnect_attempts += 1
                logger.warning(
                    "Primary store reconnect attempt %d failed: %s",
                    self._reconnect_attempts,
                    exc,
                )
                continue

            logger.info(
                "Primary store reconnected after %d failed attempt(s); "
                "%d in-memory write(s) are not replayed",
                self._reconnect_attempts,
                self._volatile_writes,
            )
            self._reconnect_attempts = 0
            self.state = StorageState.HEALTHY

    # ------------------------------------------------------------------
    # Session housekeeping
    # ------------------------------------------------------------------

    def start_session_pruning(self, interval_seconds: float) -> None:
        """Delete expired sessions every *interval_seconds* until shutdown.

        A second call while the task is running is a no-op.
        """
        if self.state is StorageState.UNINITIALIZED:
            raise RuntimeError("StorageFacade.init() must be awaited before use")
        if self._shutdown:
            return
        if self._prune_task is not None and not self._prune_task.done():
            return
        self._prune_task = asyncio.ensure_future(self._prune_loop(interval_seconds))

    async def _prune_loop(self, interval_seconds: float) -> None:
        while not self._shutdown:
            await asyncio.sleep(interval_seconds)
            try:
                removed = await self.sessions.prune_expired()
                if self.state is StorageState.HEALTHY:
                    # Sessions created during an outage live only in memory.
                    removed += await self._fallback_sessions.prune_expired()
            except Exception:
                logger.warning("Session prune failed; retrying next interval", exc_info=True)
                continue
            logger.debug("Session prune removed %d expired session(s)", removed)

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    async def _route(
        self,
        primary: Any,
        fallback: Any,
        operation: str,
        *args: Any,
        write: bool | Callable[[], bool] = False,
    ) -> Any:
        """Run *operation* on the primary while healthy, otherwise on the fallback.

        *write* marks calls whose fallback execution loses data on restart. A
        callable is evaluated only when the fallback is about to be used.
        """
        if self.state is StorageState.UNINITIALIZED:
            raise RuntimeError("StorageFacade.init() must be awaited before use")

        if self.state is StorageState.HEALTHY and primary is not None:
            try:
                return await getattr(primary, operation)(*args)
            except StorageUnavailableError as exc:
                logger.error("Primary store %s failed; falling back: %s", operation, exc)
                self._enter_degraded()

        if callable(write):
            write = write()
        if write:
            self._volatile_writes += 1
            logger.warning(
                "%s: %s stored in memory only and will not survive a restart",
                FallbackDataLossWarning.__name__,
                operation,
            )
        return await getattr(fallback, operation)(*args)

    async def _call(
        self, operation: str, *args: Any, write: bool | Callable[[], bool] = False
    ) -> Any:
        return await self._route(self._primary, self._fallback, operation, *args, write=write)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: int) -> User | None:
        return await self._call("get_user", validate_user_id(user_id))

    async def get_user_by_username(self, username: str) -> User | None:
        return await self._call("get_user_by_username", username)

    async def create_user(self, new_user: NewUser) -> User:
        """Create a user with default profile fields.

        Username uniqueness is the caller's pre-check; see
        :func:`paintrack.auth.register_user`.
        """
        return await self._call("create_user", validate_new_user(new_user), write=True)

    async def update_user(self, user_id: int, changes: dict[str, Any]) -> User:
        """Merge profile *changes* and mark the profile as created."""
        cleaned = validate_user_update(changes)
        return await self._call("update_user", validate_user_id(user_id), cleaned, write=True)

    # ------------------------------------------------------------------
    # Pain entries and insights
    # ------------------------------------------------------------------

    async def create_pain_entry(self, entry: NewPainEntry) -> PainEntry:
        return await self._call("create_pain_entry", validate_new_pain_entry(entry), write=True)

    async def get_pain_entries_by_user(self, user_id: int) -> list[PainEntry]:
        return await self._call("get_pain_entries_by_user", validate_user_id(user_id))

    async def get_recent_pain_entries(self, user_id: int, limit: int) -> list[PainEntry]:
        return await self._call(
            "get_recent_pain_entries", validate_user_id(user_id), validate_limit(limit)
        )

    async def get_pain_trend(self, user_id: int, days: int) -> list[PainEntry]:
        return await self._call("get_pain_trend", validate_user_id(user_id), validate_days(days))

    async def get_trigger_stats(self, user_id: int) -> list[TriggerStat]:
        return await self._call("get_trigger_stats", validate_user_id(user_id))

    async def get_patterns(self, user_id: int) -> list[Pattern]:
        return await self._call("get_patterns", validate_user_id(user_id))

    async def get_recommendations(self, user_id: int) -> list[Recommendation]:
        return await self._call("get_recommendations", validate_user_id(user_id))

    async def get_resources(self) -> list[Resource]:
        return await self._call("get_resources")

    async def get_pain_report(self, user_id: int, days: int = 30) -> PainReport:
        return await self._call("get_pain_report", validate_user_id(user_id), validate_days(days))

    # ------------------------------------------------------------------
    # Medications
    # ------------------------------------------------------------------

    async def create_medication(self, medication: NewMedication) -> Medication:
        return await self._call(
            "create_medication", validate_new_medication(medication), write=True
        )

    async def get_medications_by_user(self, user_id: int) -> list[Medication]:
        return await self._call("get_medications_by_user", validate_user_id(user_id))

    async def get_today_medications(self, user_id: int) -> list[MedicationStatus]:
        return await self._call("get_today_medications", validate_user_id(user_id))

    async def take_medication(self, medication_id: int, dose_index: int) -> MedicationStatus:
        if isinstance(medication_id, bool) or not isinstance(medication_id, int):
            raise ValidationError(f"Invalid medication id: {medication_id!r}")
        return await self._call("take_medication", medication_id, dose_index, write=True)

    # ------------------------------------------------------------------
    # Reminder settings
    # ------------------------------------------------------------------

    async def get_reminder_settings(self, user_id: int) -> ReminderSettings:
        """Return the settings, creating the default record on first access."""
        user_id = validate_user_id(user_id)
        return await self._call(
            "get_reminder_settings",
            user_id,
            write=lambda: not self._fallback.has_reminder_settings(user_id),
        )

    async def update_reminder_settings(
        self, user_id: int, changes: dict[str, Any]
    ) -> ReminderSettings:
        cleaned = validate_reminder_update(changes)
        return await self._call(
            "update_reminder_settings", validate_user_id(user_id), cleaned, write=True
        )


class RoutedSessionStore(SessionStore):
    """Session store that follows the facade's health state."""

    def __init__(self, facade: StorageFacade) -> None:
        self._facade = facade

    async def _route(self, operation: str, *args: Any) -> Any:
        f = self._facade
        return await f._route(f._primary_sessions, f._fallback_sessions, operation, *args)

    async def get(self, sid: str) -> dict[str, Any] | None:
        return await self._route("get", sid)

    async def set(self, sid: str, data: dict[str, Any], max_age: float) -> None:
        await self._route("set", sid, data, max_age)

    async def destroy(self, sid: str) -> None:
        await self._route("destroy", sid)

    async def prune_expired(self) -> int:
        return await self._route("prune_expired")
