"""
Core data models for the MaterCare risk engine.

All instants are stored as signed 64-bit integers counting nanoseconds since
the Unix epoch.  Conversion to ISO-8601 happens only at the boundary (see
``matercare.serialization``).

Field names are snake_case in Python and camelCase on the wire; every model
accepts either spelling on input.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

INSTANT_MIN = -(2**63)
INSTANT_MAX = 2**63 - 1


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class RiskLevel(str, enum.Enum):
    """Clinical severity classification.

    * ``LOW``    -- regular monitoring.
    * ``MEDIUM`` -- increased monitoring.  No classifier rule currently
      produces this level; it exists for profiles and alerts set by other
      means.
    * ``HIGH``   -- immediate medical attention.
    """

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        return _RISK_ORDER[self]


_RISK_ORDER = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2}


def max_risk(*levels: RiskLevel) -> RiskLevel:
    """Return the most severe of the given levels (LOW when none given)."""
    result = RiskLevel.LOW
    for level in levels:
        if level.rank > result.rank:
            result = level
    return result


class Trimester(str, enum.Enum):
    """Gestational period derived from the due date.

    * ``FIRST``  -- weeks 1-12.
    * ``SECOND`` -- weeks 13-26.
    * ``THIRD``  -- weeks 27-40.
    """

    FIRST = "FIRST"
    SECOND = "SECOND"
    THIRD = "THIRD"


class AlertAction(str, enum.Enum):
    """What the alert lifecycle manager did in response to a snapshot."""

    NONE = "NONE"
    CREATED = "CREATED"
    ESCALATED = "ESCALATED"
    CAPPED = "CAPPED"


# ---------------------------------------------------------------------------
# Entity models
# ---------------------------------------------------------------------------

class Entity(BaseModel):
    """Base for stored entities: camelCase aliases, snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, allow_inf_nan=False)

    id: str = Field(..., description="Unique identifier issued by the id factory.")


class HealthcareProvider(Entity):
    """A clinician who can own profiles and be responsible for alerts."""

    name: str
    specialization: str = ""
    license_number: str = Field(..., description="Professional license identifier.")
    contact_info: str = ""
    facility_id: str = ""
    is_active: bool = Field(
        default=True,
        description="Only active providers may be assigned to profiles or alerts.",
    )
    last_updated: int = Field(..., description="Nanoseconds since epoch.")


class MaternalProfile(Entity):
    """A pregnant patient's profile.

    ``current_trimester``, ``risk_level`` and ``is_high_risk_pregnancy`` are
    owned by the engine and recomputed by the profile risk synchronizer.
    """

    name: str
    age: int
    blood_type: str
    emergency_contact: str = ""
    due_date: int = Field(..., description="Expected delivery, nanoseconds since epoch.")
    current_trimester: Trimester = Trimester.FIRST
    risk_level: RiskLevel = RiskLevel.LOW
    primary_care_provider_id: str
    created_at: int
    last_updated: int
    medical_history: list[str] = Field(default_factory=list)
    allergies: list[str] = Field(default_factory=list)
    is_high_risk_pregnancy: bool = False


class HealthMetrics(Entity):
    """One immutable snapshot of vital-sign readings.

    The snapshot is frozen; the review flag is set by producing a copy
    before the snapshot is first stored.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        allow_inf_nan=False,
        frozen=True,
    )

    maternal_profile_id: str
    recorded_at: int
    weight: Optional[float] = None
    blood_pressure_systolic: Optional[float] = None
    blood_pressure_diastolic: Optional[float] = None
    blood_sugar: Optional[float] = None
    hemoglobin_levels: Optional[float] = None
    fetal_heart_rate: Optional[float] = None
    notes: str = ""
    recorded_by_id: str = Field(..., description="Provider who recorded the snapshot.")
    is_flagged_for_review: bool = Field(
        default=False,
        description="True if and only if the classifier verdict was HIGH.",
    )


class PrenatalVisit(Entity):
    """A scheduled prenatal appointment."""

    maternal_profile_id: str
    provider_id: str
    scheduled_date: int
    completed: bool = False
    visit_type: str = ""
    findings: str = ""
    recommendations: str = ""
    next_visit_date: Optional[int] = None
    prescriptions: list[str] = Field(default_factory=list)
    follow_up_required: bool = False
    cancellation_reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self.cancellation_reason is not None


class HealthAlert(Entity):
    """A clinical alert raised for a profile.

    ``escalation_level`` never decreases while the alert is open and is
    frozen once ``resolved`` is true.
    """

    maternal_profile_id: str
    created_at: int
    severity: RiskLevel
    description: str
    recommended_action: str
    resolved: bool = False
    resolved_at: Optional[int] = None
    provider_id: str = Field(..., description="Active provider responsible for the alert.")
    resolution_notes: Optional[str] = None
    escalation_level: int = Field(default=1, ge=1, le=3)
