"""In-process fallback store.

Everything lives in dicts keyed by sequential integer ids. Nothing survives a
process restart and no referential checks are made. There are no locks: the
store is only safe while every caller runs on the same event loop.
Records go in and come out as deep copies, so callers never hold a reference
to stored state.
"""

from __future__ import annotations

import itertools
import logging
from copy import deepcopy
from collections.abc import Callable
from dataclasses import replace
from datetime import date
from typing import Any

from paintrack.storage.base import Store, trend_cutoff
from paintrack.storage.errors import NotFoundError
from paintrack.storage.models import (
    Medication,
    MedicationStatus,
    NewMedication,
    NewPainEntry,
    NewUser,
    PainEntry,
    ReminderSettings,
    User,
    utcnow,
    validate_dose_index,
)

logger = logging.getLogger(__name__)


class MemoryStore(Store):
    """Volatile implementation of :class:`~paintrack.storage.base.Store`."""

    def __init__(self, today: Callable[[], date] = date.today) -> None:
        self._today = today
        self._users: dict[int, User] = {}
        self._pain_entries: dict[int, PainEntry] = {}
        self._medications: dict[int, Medication] = {}
        # (medication_id, ISO date, dose_index) -> taken
        self._taken: dict[tuple[int, str, int], bool] = {}
        self._reminder_settings: dict[int, ReminderSettings] = {}
        self._user_ids = itertools.count(1)
        self._pain_entry_ids = itertools.count(1)
        self._medication_ids = itertools.count(1)

    # -- Users --------------------------------------------------------------

    async def get_user(self, user_id: int) -> User | None:
        return deepcopy(self._users.get(user_id))

    async def get_user_by_username(self, username: str) -> User | None:
        user = next((u for u in self._users.values() if u.username == username), None)
        return deepcopy(user)

    async def create_user(self, new_user: NewUser) -> User:
        user = User(
            id=next(self._user_ids),
            username=new_user.username,
            password=new_user.password,
            first_name=new_user.first_name,
            last_name=new_user.last_name,
            email=new_user.email,
        )
        self._users[user.id] = deepcopy(user)
        return user

    async def update_user(self, user_id: int, changes: dict[str, Any]) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        updated = replace(user, **deepcopy(changes), profile_created=True)
        self._users[user_id] = updated
        return deepcopy(updated)

    # -- Pain entries -------------------------------------------------------

    async def create_pain_entry(self, entry: NewPainEntry) -> PainEntry:
        pain_entry = PainEntry(
            id=next(self._pain_entry_ids),
            user_id=entry.user_id,
            date=entry.date or utcnow(),
            intensity=entry.intensity,
            locations=list(entry.locations),
            characteristics=entry.characteristics,
            triggers=entry.triggers,
            notes=entry.notes,
            medication_taken=entry.medication_taken,
            medications=entry.medications,
        )
        self._pain_entries[pain_entry.id] = deepcopy(pain_entry)
        return pain_entry

    async def get_pain_entries_by_user(self, user_id: int) -> list[PainEntry]:
        entries = [deepcopy(e) for e in self._pain_entries.values() if e.user_id == user_id]
        entries.sort(key=lambda e: (e.date, e.id), reverse=True)
        return entries

    async def get_recent_pain_entries(self, user_id: int, limit: int) -> list[PainEntry]:
        entries = await self.get_pain_entries_by_user(user_id)
        return entries[:limit]

    async def get_pain_trend(self, user_id: int, days: int) -> list[PainEntry]:
        cutoff = trend_cutoff(days)
        entries = await self.get_pain_entries_by_user(user_id)
        return [e for e in reversed(entries) if e.date >= cutoff]

    # -- Medications --------------------------------------------------------

    async def create_medication(self, medication: NewMedication) -> Medication:
        med = Medication(
            id=next(self._medication_ids),
            user_id=medication.user_id,
            name=medication.name,
            dosage=medication.dosage,
            frequency=medication.frequency,
            time_of_day=list(medication.time_of_day),
            active=medication.active,
        )
        self._medications[med.id] = deepcopy(med)
        return med

    async def get_medications_by_user(self, user_id: int) -> list[Medication]:
        return [
            deepcopy(m)
            for m in self._medications.values()
            if m.user_id == user_id and m.active
        ]

    def _status(self, med: Medication) -> MedicationStatus:
        today = self._today().isoformat()
        taken = [
            self._taken.get((med.id, today, index), False)
            for index in range(len(med.time_of_day))
        ]
        return MedicationStatus(medication=deepcopy(med), taken_today=taken)

    async def get_today_medications(self, user_id: int) -> list[MedicationStatus]:
        meds = await self.get_medications_by_user(user_id)
        return [self._status(m) for m in meds]

    async def take_medication(self, medication_id: int, dose_index: int) -> MedicationStatus:
        med = self._medications.get(medication_id)
        if med is None:
            raise NotFoundError("medication", medication_id)
        validate_dose_index(med, dose_index)
        self._taken[(medication_id, self._today().isoformat(), dose_index)] = True
        return self._status(med)

    # -- Reminder settings --------------------------------------------------

    def has_reminder_settings(self, user_id: int) -> bool:
        return user_id in self._reminder_settings

    async def get_reminder_settings(self, user_id: int) -> ReminderSettings:
        settings = self._reminder_settings.get(user_id)
        if settings is None:
            settings = ReminderSettings(user_id=user_id, last_updated=utcnow())
            self._reminder_settings[user_id] = settings
            logger.debug("Created default reminder settings for user %s", user_id)
        return replace(settings)

    async def update_reminder_settings(
        self, user_id: int, changes: dict[str, Any]
    ) -> ReminderSettings:
        current = await self.get_reminder_settings(user_id)
        updated = replace(current, **changes, user_id=user_id, last_updated=utcnow())
        self._reminder_settings[user_id] = updated
        return replace(updated)
