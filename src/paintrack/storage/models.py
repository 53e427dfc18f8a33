"""Domain entities and input validation for the storage layer.

Entities are plain dataclasses shared by both store implementations. The
``validate_*`` helpers run in the facade before any store is touched and raise
:class:`~paintrack.storage.errors.ValidationError` on bad input.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from paintrack.storage.errors import ValidationError

MIN_INTENSITY = 0
MAX_INTENSITY = 10

# Profile fields a user may change through update_user().
SCALAR_PROFILE_FIELDS = frozenset(
    {
        "first_name",
        "last_name",
        "email",
        "pain_background",
        "age",
        "gender",
        "height",
        "weight",
        "activity_level",
        "occupation",
        "primary_doctor",
    }
)
LIST_PROFILE_FIELDS = frozenset(
    {
        "medical_history",
        "allergies",
        "current_medications",
        "chronic_conditions",
        "preferred_resources",
    }
)
PROFILE_FIELDS = SCALAR_PROFILE_FIELDS | LIST_PROFILE_FIELDS

REMINDER_BOOL_FIELDS = frozenset(
    {
        "email_notifications",
        "pain_log_reminders",
        "medication_reminders",
        "wellness_reminders",
        "weekly_summary",
    }
)
REMINDER_TEXT_FIELDS = frozenset({"reminder_frequency", "preferred_time", "notification_style"})
REMINDER_FIELDS = REMINDER_BOOL_FIELDS | REMINDER_TEXT_FIELDS


def utcnow() -> datetime:
    return datetime.now(UTC)


def normalize_timestamp(value: datetime) -> datetime:
    """Return an aware datetime; naive values are taken as local time."""
    if value.tzinfo is None:
        return value.astimezone()
    return value


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@dataclass
class NewUser:
    username: str
    password: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None


@dataclass
class User:
    """A registered user and their optional profile."""

    id: int
    username: str
    password: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    profile_created: bool = False
    medical_history: list[str] = field(default_factory=list)
    pain_background: str | None = None
    age: int | None = None
    gender: str | None = None
    height: str | None = None
    weight: str | None = None
    allergies: list[str] = field(default_factory=list)
    current_medications: list[str] = field(default_factory=list)
    chronic_conditions: list[str] = field(default_factory=list)
    activity_level: str | None = None
    occupation: str | None = None
    primary_doctor: str | None = None
    preferred_resources: list[str] = field(default_factory=list)

    def public_dict(self) -> dict[str, Any]:
        """Return the user as a dict without the password hash."""
        data = asdict(self)
        data.pop("password", None)
        return data


# ---------------------------------------------------------------------------
# Pain entries
# ---------------------------------------------------------------------------


@dataclass
class NewPainEntry:
    user_id: int
    intensity: int
    locations: list[str]
    date: datetime | None = None
    characteristics: list[str] | None = None
    triggers: list[str] | None = None
    notes: str | None = None
    medication_taken: bool = False
    medications: list[str] | None = None


@dataclass
class PainEntry:
    """One logged pain observation. Immutable once stored."""

    id: int
    user_id: int
    date: datetime
    intensity: int
    locations: list[str]
    characteristics: list[str] | None = None
    triggers: list[str] | None = None
    notes: str | None = None
    medication_taken: bool = False
    medications: list[str] | None = None


# ---------------------------------------------------------------------------
# Medications
# ---------------------------------------------------------------------------


@dataclass
class NewMedication:
    user_id: int
    name: str
    dosage: str | None = None
    frequency: str | None = None
    time_of_day: list[str] = field(default_factory=list)
    active: bool = True


@dataclass
class Medication:
    id: int
    user_id: int
    name: str
    dosage: str | None = None
    frequency: str | None = None
    time_of_day: list[str] = field(default_factory=list)
    active: bool = True


@dataclass
class MedicationStatus:
    """A medication paired with today's taken/not-taken flag per dose slot."""

    medication: Medication
    taken_today: list[bool]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self.medication)
        data["taken_today"] = list(self.taken_today)
        return data


# ---------------------------------------------------------------------------
# Reminder settings
# ---------------------------------------------------------------------------


@dataclass
class ReminderSettings:
    user_id: int
    email_notifications: bool = True
    pain_log_reminders: bool = True
    medication_reminders: bool = True
    wellness_reminders: bool = True
    weekly_summary: bool = True
    reminder_frequency: str = "daily"
    preferred_time: str = "evening"
    notification_style: str = "gentle"
    last_updated: datetime | None = None


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TriggerStat:
    name: str
    frequency: int


@dataclass(frozen=True)
class Pattern:
    id: str
    title: str
    description: str
    confidence: int
    source: str


@dataclass(frozen=True)
class Recommendation:
    id: str
    title: str
    description: str
    type: str  # "exercise" or "tip"
    resource_link: str


@dataclass(frozen=True)
class Resource:
    id: str
    title: str
    description: str
    type: str  # article, video, exercise, guide
    source: str
    url: str
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class PainReport:
    period_start: datetime
    period_end: datetime
    entry_count: int
    average_intensity: float | None
    most_common_location: str | None
    most_common_trigger: str | None


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _require_text(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must be a non-empty string")
    return value


def _require_str_list(value: Any, name: str) -> list[str]:
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{name} must be a list of strings")
    return list(value)


def _optional_str_list(value: Any, name: str) -> list[str] | None:
    if value is None:
        return None
    return _require_str_list(value, name)


def validate_user_id(user_id: Any) -> int:
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise ValidationError(f"Invalid user id: {user_id!r}")
    return user_id


def validate_new_user(new_user: NewUser) -> NewUser:
    _require_text(new_user.username, "username")
    _require_text(new_user.password, "password")
    return new_user


def validate_new_pain_entry(entry: NewPainEntry) -> NewPainEntry:
    """Check intensity range and location set; normalize the timestamp.

    Returns a new ``NewPainEntry``; the input is not mutated.
    """
    validate_user_id(entry.user_id)
    intensity = entry.intensity
    if isinstance(intensity, bool) or not isinstance(intensity, int):
        raise ValidationError(f"intensity must be an integer, got {intensity!r}")
    if not MIN_INTENSITY <= intensity <= MAX_INTENSITY:
        raise ValidationError(
            f"intensity must be between {MIN_INTENSITY} and {MAX_INTENSITY}, got {intensity}"
        )
    locations = _require_str_list(entry.locations, "locations")
    if not locations:
        raise ValidationError("locations must contain at least one body location")
    if entry.date is not None and not isinstance(entry.date, datetime):
        raise ValidationError(f"date must be a datetime, got {entry.date!r}")
    if entry.notes is not None and not isinstance(entry.notes, str):
        raise ValidationError("notes must be a string")

    return NewPainEntry(
        user_id=entry.user_id,
        intensity=intensity,
        locations=locations,
        date=normalize_timestamp(entry.date) if entry.date is not None else None,
        characteristics=_optional_str_list(entry.characteristics, "characteristics"),
        triggers=_optional_str_list(entry.triggers, "triggers"),
        notes=entry.notes,
        medication_taken=bool(entry.medication_taken),
        medications=_optional_str_list(entry.medications, "medications"),
    )


def validate_new_medication(medication: NewMedication) -> NewMedication:
    validate_user_id(medication.user_id)
    _require_text(medication.name, "name")
    time_of_day = _require_str_list(medication.time_of_day or [], "time_of_day")
    return NewMedication(
        user_id=medication.user_id,
        name=medication.name,
        dosage=medication.dosage,
        frequency=medication.frequency,
        time_of_day=time_of_day,
        active=bool(medication.active),
    )


def validate_user_update(partial: dict[str, Any]) -> dict[str, Any]:
    """Restrict a profile patch to known profile fields."""
    unknown = set(partial) - PROFILE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown or read-only profile field(s): {', '.join(sorted(unknown))}")
    cleaned: dict[str, Any] = {}
    for key, value in partial.items():
        if key in LIST_PROFILE_FIELDS:
            cleaned[key] = _require_str_list(value if value is not None else [], key)
        elif key == "age":
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise ValidationError(f"age must be an integer, got {value!r}")
            cleaned[key] = value
        else:
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{key} must be a string")
            cleaned[key] = value
    return cleaned


def validate_reminder_update(partial: dict[str, Any]) -> dict[str, Any]:
    unknown = set(partial) - REMINDER_FIELDS
    if unknown:
        raise ValidationError(f"Unknown reminder setting(s): {', '.join(sorted(unknown))}")
    for key, value in partial.items():
        if key in REMINDER_BOOL_FIELDS and not isinstance(value, bool):
            raise ValidationError(f"{key} must be a boolean")
        if key in REMINDER_TEXT_FIELDS:
            _require_text(value, key)
    return dict(partial)


def validate_limit(limit: Any) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
        raise ValidationError(f"limit must be a non-negative integer, got {limit!r}")
    return limit


def validate_days(days: Any) -> int:
    if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
        raise ValidationError(f"days must be a positive integer, got {days!r}")
    return days


def validate_dose_index(medication: Medication, dose_index: Any) -> int:
    if isinstance(dose_index, bool) or not isinstance(dose_index, int):
        raise ValidationError(f"dose_index must be an integer, got {dose_index!r}")
    if not 0 <= dose_index < len(medication.time_of_day):
        raise ValidationError(
            f"dose_index {dose_index} out of range for medication {medication.id} "
            f"with {len(medication.time_of_day)} scheduled dose(s)"
        )
    return dose_index
