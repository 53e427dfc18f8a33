"""The storage interface shared by the primary and fallback stores."""

from __future__ import annotations

import abc
import enum
from datetime import datetime, timedelta
from typing import Any

from paintrack.storage import insights
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
    utcnow,
)


class StorageState(enum.StrEnum):
    """Health state of :class:`~paintrack.storage.facade.StorageFacade`."""

    UNINITIALIZED = "uninitialized"
    PROBING = "probing"
    HEALTHY = "healthy"
    DEGRADED = "degraded"


class Store(abc.ABC):
    """Operation set implemented by both ``PostgresStore`` and ``MemoryStore``.

    Inputs arrive already validated by the facade. Derived views (trigger
    stats, patterns, recommendations, reports) are computed from
    :meth:`get_pain_entries_by_user` via :mod:`paintrack.storage.insights`.
    """

    # -- Users --------------------------------------------------------------

    @abc.abstractmethod
    async def get_user(self, user_id: int) -> User | None: ...

    @abc.abstractmethod
    async def get_user_by_username(self, username: str) -> User | None: ...

    @abc.abstractmethod
    async def create_user(self, new_user: NewUser) -> User: ...

    @abc.abstractmethod
    async def update_user(self, user_id: int, changes: dict[str, Any]) -> User: ...

    # -- Pain entries -------------------------------------------------------

    @abc.abstractmethod
    async def create_pain_entry(self, entry: NewPainEntry) -> PainEntry: ...

    @abc.abstractmethod
    async def get_pain_entries_by_user(self, user_id: int) -> list[PainEntry]: ...

    @abc.abstractmethod
    async def get_recent_pain_entries(self, user_id: int, limit: int) -> list[PainEntry]: ...

    @abc.abstractmethod
    async def get_pain_trend(self, user_id: int, days: int) -> list[PainEntry]: ...

    async def get_trigger_stats(self, user_id: int) -> list[TriggerStat]:
        entries = await self.get_pain_entries_by_user(user_id)
        return insights.trigger_stats(entries)

    async def get_patterns(self, user_id: int) -> list[Pattern]:
        entries = await self.get_pain_entries_by_user(user_id)
        return insights.detect_patterns(entries)

    async def get_recommendations(self, user_id: int) -> list[Recommendation]:
        entries = await self.get_pain_entries_by_user(user_id)
        return insights.recommendations(entries)

    async def get_resources(self) -> list[Resource]:
        return list(insights.RESOURCES)

    async def get_pain_report(self, user_id: int, days: int) -> PainReport:
        end = utcnow()
        start = end - timedelta(days=days)
        entries = await self.get_pain_trend(user_id, days)
        return insights.pain_report(entries, start, end)

    # -- Medications --------------------------------------------------------

    @abc.abstractmethod
    async def create_medication(self, medication: NewMedication) -> Medication: ...

    @abc.abstractmethod
    async def get_medications_by_user(self, user_id: int) -> list[Medication]: ...

    @abc.abstractmethod
    async def get_today_medications(self, user_id: int) -> list[MedicationStatus]: ...

    @abc.abstractmethod
    async def take_medication(self, medication_id: int, dose_index: int) -> MedicationStatus: ...

    # -- Reminder settings --------------------------------------------------

    @abc.abstractmethod
    async def get_reminder_settings(self, user_id: int) -> ReminderSettings: ...

    @abc.abstractmethod
    async def update_reminder_settings(
        self, user_id: int, changes: dict[str, Any]
    ) -> ReminderSettings: ...


def trend_cutoff(days: int, now: datetime | None = None) -> datetime:
    """Start of the trailing ``days`` window ending at *now*."""
    return (now or utcnow()) - timedelta(days=days)
