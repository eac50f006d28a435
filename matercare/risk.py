"""
Risk Classifier -- maps one metrics snapshot to a risk verdict.

The verdict is an order-independent OR over four danger thresholds; any
single crossing makes the snapshot HIGH, otherwise it is LOW.  Missing
readings never trigger.

No rule produces ``RiskLevel.MEDIUM``.  The level exists on profiles and
alerts, but there are no agreed MEDIUM thresholds, so the classifier does
not invent any.
"""

from __future__ import annotations

from matercare.config import DEFAULT_SETTINGS, RiskThresholds
from matercare.models import HealthMetrics, RiskLevel


class RiskAssessment:
    """Verdict for a snapshot plus the thresholds that caused it."""

    def __init__(self, level: RiskLevel, reasons: list[str]) -> None:
        self.level = level
        self.reasons = reasons

    @property
    def requires_review(self) -> bool:
        return self.level == RiskLevel.HIGH

    def __repr__(self) -> str:
        return f"RiskAssessment(level={self.level.value}, reasons={self.reasons})"


def assess(
    metrics: HealthMetrics,
    thresholds: RiskThresholds = DEFAULT_SETTINGS.risk_thresholds,
) -> RiskAssessment:
    """Evaluate every threshold and collect the ones crossed."""
    reasons: list[str] = []

    systolic = metrics.blood_pressure_systolic
    if systolic is not None and systolic >= thresholds.systolic_high:
        reasons.append(f"Systolic blood pressure ({systolic}) >= {thresholds.systolic_high}")

    diastolic = metrics.blood_pressure_diastolic
    if diastolic is not None and diastolic >= thresholds.diastolic_high:
        reasons.append(f"Diastolic blood pressure ({diastolic}) >= {thresholds.diastolic_high}")

    sugar = metrics.blood_sugar
    if sugar is not None and sugar > thresholds.blood_sugar_high:
        reasons.append(f"Blood sugar ({sugar}) > {thresholds.blood_sugar_high}")

    hemoglobin = metrics.hemoglobin_levels
    if hemoglobin is not None and hemoglobin < thresholds.hemoglobin_low:
        reasons.append(f"Hemoglobin ({hemoglobin}) < {thresholds.hemoglobin_low}")

    level = RiskLevel.HIGH if reasons else RiskLevel.LOW
    return RiskAssessment(level=level, reasons=reasons)


def classify(
    metrics: HealthMetrics,
    thresholds: RiskThresholds = DEFAULT_SETTINGS.risk_thresholds,
) -> RiskLevel:
    """Return HIGH if any danger threshold is crossed, LOW otherwise."""
    return assess(metrics, thresholds).level
