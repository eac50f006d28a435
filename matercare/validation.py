"""
Validation Layer -- range and structure checks on incoming data.

Both validators are pure: they return the first violated rule as a
``ValidationError`` (or ``None``) and leave raising to the caller.  Rules
are checked in a fixed order so the reported error is deterministic.

Free-text fields must already have had ``<`` and ``>`` stripped by the
transport layer before they reach this module.
"""

from __future__ import annotations

from typing import Optional

from matercare.commands import CreateProfile, RecordMetrics
from matercare.config import DEFAULT_SETTINGS, ValidationLimits
from matercare.errors import ValidationError


def validate_profile(
    candidate: CreateProfile,
    limits: ValidationLimits = DEFAULT_SETTINGS.validation,
) -> Optional[ValidationError]:
    """Check a profile candidate against name, history, age and blood-type rules."""
    name = (candidate.name or "").strip()
    if not limits.name_min_length <= len(name) <= limits.name_max_length:
        return ValidationError(
            f"Name must be between {limits.name_min_length} and "
            f"{limits.name_max_length} characters"
        )

    if any(len(entry) > limits.history_entry_max_length for entry in candidate.medical_history):
        return ValidationError(
            f"Medical history entries cannot exceed "
            f"{limits.history_entry_max_length} characters"
        )

    if candidate.age is None or not limits.age_min <= candidate.age <= limits.age_max:
        return ValidationError(f"Age must be between {limits.age_min} and {limits.age_max}")

    if candidate.blood_type not in limits.blood_types:
        return ValidationError("Invalid blood type")

    return None


def validate_metrics(
    candidate: RecordMetrics,
    limits: ValidationLimits = DEFAULT_SETTINGS.validation,
) -> Optional[ValidationError]:
    """Check the optional vital-sign readings that have a plausible range.

    Absent readings are not checked.
    """
    checks = [
        (candidate.blood_pressure_systolic, limits.systolic_min, limits.systolic_max,
         "Invalid systolic blood pressure range"),
        (candidate.blood_pressure_diastolic, limits.diastolic_min, limits.diastolic_max,
         "Invalid diastolic blood pressure range"),
        (candidate.blood_sugar, limits.blood_sugar_min, limits.blood_sugar_max,
         "Invalid blood sugar range"),
    ]
    for value, low, high, message in checks:
        if value is not None and not low <= value <= high:
            return ValidationError(message)
    return None
