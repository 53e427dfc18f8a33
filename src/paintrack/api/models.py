"""Pydantic request/response models for the HTTP API.

Successful responses follow ``{"data": T, "meta": {...}}``; errors follow
``{"error": {"code": "...", "message": "..."}}``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class ApiMeta(BaseModel):
    """Extensible metadata bag attached to every API response."""

    model_config = {"extra": "allow"}


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    data: T
    meta: ApiMeta = Field(default_factory=ApiMeta)


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: dict | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope."""

    error: ErrorDetail


class _FromDomain(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Auth and users
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    username: str
    password: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None


class LoginRequest(BaseModel):
    username: str
    password: str


class UserOut(_FromDomain):
    """A user without the password hash."""

    id: int
    username: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    profile_created: bool = False
    medical_history: list[str] = Field(default_factory=list)
    pain_background: str | None = None
    age: int | None = None
    gender: str | None = None
    height: str | None = None
    weight: str | None = None
    allergies: list[str] = Field(default_factory=list)
    current_medications: list[str] = Field(default_factory=list)
    chronic_conditions: list[str] = Field(default_factory=list)
    activity_level: str | None = None
    occupation: str | None = None
    primary_doctor: str | None = None
    preferred_resources: list[str] = Field(default_factory=list)


class ProfileUpdate(BaseModel):
    """Partial profile update; only fields present in the request are applied."""

    model_config = ConfigDict(extra="forbid")

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    medical_history: list[str] | None = None
    pain_background: str | None = None
    age: int | None = None
    gender: str | None = None
    height: str | None = None
    weight: str | None = None
    allergies: list[str] | None = None
    current_medications: list[str] | None = None
    chronic_conditions: list[str] | None = None
    activity_level: str | None = None
    occupation: str | None = None
    primary_doctor: str | None = None
    preferred_resources: list[str] | None = None


# ---------------------------------------------------------------------------
# Pain entries and insights
# ---------------------------------------------------------------------------


class PainEntryCreate(BaseModel):
    intensity: int
    locations: list[str]
    date: datetime | None = None
    characteristics: list[str] | None = None
    triggers: list[str] | None = None
    notes: str | None = None
    medication_taken: bool = False
    medications: list[str] | None = None


class PainEntryOut(_FromDomain):
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


class TriggerStatOut(_FromDomain):
    name: str
    frequency: int


class PatternOut(_FromDomain):
    id: str
    title: str
    description: str
    confidence: int
    source: str


class RecommendationOut(_FromDomain):
    id: str
    title: str
    description: str
    type: str
    resource_link: str


class ResourceOut(_FromDomain):
    id: str
    title: str
    description: str
    type: str
    source: str
    url: str
    tags: list[str] = Field(default_factory=list)


class PainReportOut(_FromDomain):
    period_start: datetime
    period_end: datetime
    entry_count: int
    average_intensity: float | None = None
    most_common_location: str | None = None
    most_common_trigger: str | None = None


# ---------------------------------------------------------------------------
# Medications
# ---------------------------------------------------------------------------


class MedicationCreate(BaseModel):
    name: str
    dosage: str | None = None
    frequency: str | None = None
    time_of_day: list[str] = Field(default_factory=list)
    active: bool = True


class MedicationOut(_FromDomain):
    id: int
    user_id: int
    name: str
    dosage: str | None = None
    frequency: str | None = None
    time_of_day: list[str] = Field(default_factory=list)
    active: bool = True


class MedicationStatusOut(MedicationOut):
    taken_today: list[bool] = Field(default_factory=list)


class TakeMedicationRequest(BaseModel):
    medication_id: int
    dose_index: int


# ---------------------------------------------------------------------------
# Reminder settings
# ---------------------------------------------------------------------------


class ReminderSettingsOut(_FromDomain):
    user_id: int
    email_notifications: bool
    pain_log_reminders: bool
    medication_reminders: bool
    wellness_reminders: bool
    weekly_summary: bool
    reminder_frequency: str
    preferred_time: str
    notification_style: str
    last_updated: datetime | None = None


class ReminderSettingsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email_notifications: bool | None = None
    pain_log_reminders: bool | None = None
    medication_reminders: bool | None = None
    wellness_reminders: bool | None = None
    weekly_summary: bool | None = None
    reminder_frequency: str | None = None
    preferred_time: str | None = None
    notification_style: str | None = None


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------


class StorageStatusOut(_FromDomain):
    state: str
    durable: bool
    primary_configured: bool
    reconnect_attempts: int
    reconnect_pending: bool
    reconnect_exhausted: bool
    volatile_writes: int
