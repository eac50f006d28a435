"""
Inbound commands.

Each command is a strict pydantic model: unknown fields are rejected, and
every command that creates an entity does so through a single ``build()``
method that lists every field of the new entity and its default.
Engine-owned fields (risk level, trimester, review flag, alert state) can
therefore never be supplied by a caller.

Instants arrive as ISO-8601 strings (or ``datetime`` objects) and are
converted to nanoseconds inside ``build()``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from matercare.errors import ValidationError
from matercare.models import (
    HealthcareProvider,
    HealthMetrics,
    MaternalProfile,
    PrenatalVisit,
    RiskLevel,
    Trimester,
)
from matercare.serialization import to_nanos


class Command(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        allow_inf_nan=False,
    )


CommandT = TypeVar("CommandT", bound=Command)


def parse_command(command_type: type[CommandT], payload: dict[str, Any]) -> CommandT:
    """Build a command from raw decoded input.

    Raises:
        ValidationError: describing the first structural problem found.
    """
    try:
        return command_type.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(describe_validation_error(e)) from e


def describe_validation_error(error: pydantic.ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "body"
    return f"{location}: {first.get('msg', 'invalid value')}"


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

class CreateProvider(Command):
    name: str = Field(..., min_length=1)
    specialization: str = ""
    license_number: str = Field(..., min_length=1)
    contact_info: str = ""
    facility_id: str = ""
    is_active: bool = True

    def build(self, provider_id: str, now: int) -> HealthcareProvider:
        return HealthcareProvider(
            id=provider_id,
            name=self.name,
            specialization=self.specialization,
            license_number=self.license_number,
            contact_info=self.contact_info,
            facility_id=self.facility_id,
            is_active=self.is_active,
            last_updated=now,
        )


class GetProvider(Command):
    provider_id: str


class SetProviderActive(Command):
    provider_id: str
    is_active: bool


# ---------------------------------------------------------------------------
# Maternal profiles
# ---------------------------------------------------------------------------

class CreateProfile(Command):
    """Profile input.

    ``name``, ``age`` and ``blood_type`` are optional here so that the
    validation layer, not the parser, reports them with its own messages.
    """

    name: Optional[str] = None
    age: Optional[int] = None
    blood_type: Optional[str] = None
    emergency_contact: str = ""
    due_date: datetime
    primary_care_provider_id: str
    medical_history: list[str] = Field(default_factory=list)
    allergies: list[str] = Field(default_factory=list)

    def build(self, profile_id: str, now: int, trimester: Trimester) -> MaternalProfile:
        return MaternalProfile(
            id=profile_id,
            name=(self.name or "").strip(),
            age=self.age,
            blood_type=self.blood_type,
            emergency_contact=self.emergency_contact,
            due_date=to_nanos(self.due_date),
            current_trimester=trimester,
            risk_level=RiskLevel.LOW,
            primary_care_provider_id=self.primary_care_provider_id,
            created_at=now,
            last_updated=now,
            medical_history=list(self.medical_history),
            allergies=list(self.allergies),
            is_high_risk_pregnancy=False,
        )


class GetProfile(Command):
    profile_id: str


class ListProfiles(Command):
    page: Optional[int] = None
    limit: Optional[int] = None


class SyncProfile(Command):
    profile_id: str


# ---------------------------------------------------------------------------
# Health metrics and alerts
# ---------------------------------------------------------------------------

class RecordMetrics(Command):
    maternal_profile_id: str
    recorded_by_id: str
    weight: Optional[float] = None
    blood_pressure_systolic: Optional[float] = None
    blood_pressure_diastolic: Optional[float] = None
    blood_sugar: Optional[float] = None
    hemoglobin_levels: Optional[float] = None
    fetal_heart_rate: Optional[float] = None
    notes: str = ""

    def build(self, metrics_id: str, now: int) -> HealthMetrics:
        return HealthMetrics(
            id=metrics_id,
            maternal_profile_id=self.maternal_profile_id,
            recorded_at=now,
            weight=self.weight,
            blood_pressure_systolic=self.blood_pressure_systolic,
            blood_pressure_diastolic=self.blood_pressure_diastolic,
            blood_sugar=self.blood_sugar,
            hemoglobin_levels=self.hemoglobin_levels,
            fetal_heart_rate=self.fetal_heart_rate,
            notes=self.notes,
            recorded_by_id=self.recorded_by_id,
            is_flagged_for_review=False,
        )


class ResolveAlert(Command):
    alert_id: str
    notes: Optional[str] = None


class ListAlerts(Command):
    profile_id: str
    include_resolved: bool = False


# ---------------------------------------------------------------------------
# Prenatal visits
# ---------------------------------------------------------------------------

class ScheduleVisit(Command):
    maternal_profile_id: str
    provider_id: str
    scheduled_date: datetime
    visit_type: str = ""

    def build(self, visit_id: str) -> PrenatalVisit:
        return PrenatalVisit(
            id=visit_id,
            maternal_profile_id=self.maternal_profile_id,
            provider_id=self.provider_id,
            scheduled_date=to_nanos(self.scheduled_date),
            completed=False,
            visit_type=self.visit_type,
            findings="",
            recommendations="",
            next_visit_date=None,
            prescriptions=[],
            follow_up_required=False,
            cancellation_reason=None,
        )


class CompleteVisit(Command):
    visit_id: str
    findings: str = ""
    recommendations: str = ""
    prescriptions: list[str] = Field(default_factory=list)
    follow_up_required: bool = False
    next_visit_date: Optional[datetime] = None


class CancelVisit(Command):
    visit_id: str
    reason: str
