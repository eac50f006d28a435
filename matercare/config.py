"""
Engine Settings -- Thresholds, Limits and Transport Configuration.

Groups every tunable constant the engine uses into validated pydantic
models.  The built-in ``DEFAULT_SETTINGS`` reproduce the clinical
thresholds and input ranges the system has always used; deployments may
override any of them from a YAML file.

Example YAML structure::

    settings:
      risk_thresholds:
        systolic_high: 140
      alerts:
        max_escalation_level: 3
      rate_limit:
        max_requests: 100
        window_seconds: 900
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


SETTINGS_ENV_VAR = "MATERCARE_SETTINGS"


# ---------------------------------------------------------------------------
# Risk thresholds
# ---------------------------------------------------------------------------

class RiskThresholds(BaseModel):
    """Danger thresholds used by the risk classifier.

    A snapshot is HIGH when any one threshold is crossed:

    * systolic  >= ``systolic_high``
    * diastolic >= ``diastolic_high``
    * blood sugar > ``blood_sugar_high``
    * hemoglobin  < ``hemoglobin_low``
    """

    systolic_high: float = Field(default=140, gt=0, description="mmHg, inclusive.")
    diastolic_high: float = Field(default=90, gt=0, description="mmHg, inclusive.")
    blood_sugar_high: float = Field(default=140, gt=0, description="mg/dL, exclusive.")
    hemoglobin_low: float = Field(default=9, gt=0, description="g/dL, exclusive.")


# ---------------------------------------------------------------------------
# Input validation limits
# ---------------------------------------------------------------------------

BLOOD_TYPES = ("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-")


class ValidationLimits(BaseModel):
    """Accepted ranges for profile and metrics input."""

    name_min_length: int = Field(default=2, ge=1)
    name_max_length: int = Field(default=100, ge=1)
    history_entry_max_length: int = Field(default=1000, ge=1)
    age_min: int = Field(default=16, ge=0)
    age_max: int = Field(default=60, ge=0)
    blood_types: list[str] = Field(default_factory=lambda: list(BLOOD_TYPES))
    systolic_min: float = 70
    systolic_max: float = 190
    diastolic_min: float = 40
    diastolic_max: float = 120
    blood_sugar_min: float = 30
    blood_sugar_max: float = 500

    @model_validator(mode="after")
    def ranges_are_ordered(self) -> "ValidationLimits":
        pairs = [
            ("name_min_length", "name_max_length"),
            ("age_min", "age_max"),
            ("systolic_min", "systolic_max"),
            ("diastolic_min", "diastolic_max"),
            ("blood_sugar_min", "blood_sugar_max"),
        ]
        for low, high in pairs:
            if getattr(self, low) > getattr(self, high):
                raise ValueError(f"{low} ({getattr(self, low)}) must be <= {high} ({getattr(self, high)})")
        return self

    @field_validator("blood_types")
    @classmethod
    def blood_types_not_empty(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("blood_types must list at least one blood type")
        return v


# ---------------------------------------------------------------------------
# Alert lifecycle
# ---------------------------------------------------------------------------

class AlertSettings(BaseModel):
    """Fixed alert content and the escalation ceiling."""

    max_escalation_level: int = Field(
        default=3,
        ge=1,
        le=3,
        description="Escalation level at which repeated triggers stop escalating.",
    )
    description: str = Field(default="Abnormal health metrics detected", min_length=1)
    recommended_action: str = Field(default="Immediate medical review required", min_length=1)


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class RateLimitSettings(BaseModel):
    """Fixed-window request throttling applied by the HTTP shell."""

    max_requests: int = Field(default=100, gt=0)
    window_seconds: int = Field(default=15 * 60, gt=0)


class PaginationSettings(BaseModel):
    default_page: int = Field(default=1, ge=1)
    default_limit: int = Field(default=10, ge=1)
    max_limit: int = Field(default=100, ge=1)

    @field_validator("max_limit")
    @classmethod
    def max_above_default(cls, v: int, info) -> int:
        default = info.data.get("default_limit")
        if default is not None and v < default:
            raise ValueError(f"max_limit ({v}) must be >= default_limit ({default})")
        return v


# ---------------------------------------------------------------------------
# Aggregate settings
# ---------------------------------------------------------------------------

class EngineSettings(BaseModel):
    """Complete configuration for one engine instance."""

    risk_thresholds: RiskThresholds = Field(default_factory=RiskThresholds)
    validation: ValidationLimits = Field(default_factory=ValidationLimits)
    alerts: AlertSettings = Field(default_factory=AlertSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    pagination: PaginationSettings = Field(default_factory=PaginationSettings)
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True, description="Render logs as JSON lines.")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}, got '{v}'")
        return v.upper()


DEFAULT_SETTINGS = EngineSettings()
"""Built-in settings used when no YAML file is configured."""


# ---------------------------------------------------------------------------
# YAML loader
# ---------------------------------------------------------------------------

def load_settings_from_yaml(path: str | Path) -> EngineSettings:
    """Load engine settings from a YAML file.

    The file must contain a top-level ``settings`` mapping.  Omitted
    sections keep their defaults.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the YAML structure is invalid.
        pydantic.ValidationError: If any value fails validation.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    with open(path, "r") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict) or "settings" not in raw:
        raise ValueError("YAML file must contain a top-level 'settings' mapping.")

    data = raw["settings"]
    if data is None:
        return EngineSettings()
    if not isinstance(data, dict):
        raise ValueError("'settings' must be a mapping.")

    return EngineSettings.model_validate(data)


def load_settings(path: Optional[str | Path] = None) -> EngineSettings:
    """Resolve settings from ``path``, then ``$MATERCARE_SETTINGS``, then defaults."""
    path = path or os.environ.get(SETTINGS_ENV_VAR)
    if not path:
        return DEFAULT_SETTINGS.model_copy(deep=True)
    return load_settings_from_yaml(path)
