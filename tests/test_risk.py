"""
Tests for matercare.risk -- Risk Classifier.

Covers: each danger threshold at and around its boundary, all-normal
snapshots, missing readings, the absence of a MEDIUM verdict, reasons, and
custom thresholds.
"""

from __future__ import annotations

import pytest

from matercare.config import RiskThresholds
from matercare.models import HealthMetrics, RiskLevel
from matercare.risk import assess, classify


def _make_metrics(**kwargs) -> HealthMetrics:
    defaults = {
        "id": "m1",
        "maternal_profile_id": "p1",
        "recorded_at": 0,
        "recorded_by_id": "prov1",
        "blood_pressure_systolic": 115,
        "blood_pressure_diastolic": 75,
        "blood_sugar": 95,
        "hemoglobin_levels": 12,
    }
    defaults.update(kwargs)
    return HealthMetrics(**defaults)


# ---------------------------------------------------------------------------
# 1. Individual triggers
# ---------------------------------------------------------------------------

class TestTriggers:
    @pytest.mark.parametrize("systolic", [140, 141, 160, 190])
    def test_systolic_at_or_above_140_is_high(self, systolic):
        assert classify(_make_metrics(blood_pressure_systolic=systolic)) == RiskLevel.HIGH

    def test_systolic_just_below_threshold_is_low(self):
        assert classify(_make_metrics(blood_pressure_systolic=139.9)) == RiskLevel.LOW

    def test_diastolic_at_90_is_high(self):
        assert classify(_make_metrics(blood_pressure_diastolic=90)) == RiskLevel.HIGH

    def test_diastolic_below_90_is_low(self):
        assert classify(_make_metrics(blood_pressure_diastolic=89)) == RiskLevel.LOW

    def test_blood_sugar_threshold_is_exclusive(self):
        assert classify(_make_metrics(blood_sugar=140)) == RiskLevel.LOW
        assert classify(_make_metrics(blood_sugar=140.5)) == RiskLevel.HIGH

    def test_hemoglobin_threshold_is_exclusive(self):
        assert classify(_make_metrics(hemoglobin_levels=9)) == RiskLevel.LOW
        assert classify(_make_metrics(hemoglobin_levels=8.9)) == RiskLevel.HIGH


# ---------------------------------------------------------------------------
# 2. Combined and missing readings
# ---------------------------------------------------------------------------

class TestSnapshots:
    def test_all_normal_readings_are_low(self):
        assert classify(_make_metrics()) == RiskLevel.LOW

    def test_missing_readings_never_trigger(self):
        metrics = _make_metrics(
            blood_pressure_systolic=None,
            blood_pressure_diastolic=None,
            blood_sugar=None,
            hemoglobin_levels=None,
        )
        assert classify(metrics) == RiskLevel.LOW

    def test_multiple_triggers_report_every_reason(self):
        result = assess(_make_metrics(
            blood_pressure_systolic=150,
            blood_pressure_diastolic=95,
            hemoglobin_levels=8,
        ))
        assert result.level == RiskLevel.HIGH
        assert result.requires_review
        assert len(result.reasons) == 3

    def test_low_verdict_has_no_reasons(self):
        result = assess(_make_metrics())
        assert result.reasons == []
        assert not result.requires_review

    def test_classifier_never_produces_medium(self):
        """No MEDIUM thresholds exist; borderline readings fall to LOW or HIGH."""
        borderline = [
            _make_metrics(blood_pressure_systolic=135, blood_pressure_diastolic=85),
            _make_metrics(blood_sugar=139, hemoglobin_levels=9.5),
            _make_metrics(blood_pressure_systolic=140),
        ]
        verdicts = {classify(m) for m in borderline}
        assert RiskLevel.MEDIUM not in verdicts


# ---------------------------------------------------------------------------
# 3. Configurable thresholds
# ---------------------------------------------------------------------------

class TestCustomThresholds:
    def test_lower_systolic_threshold(self):
        thresholds = RiskThresholds(systolic_high=130)
        assert classify(_make_metrics(blood_pressure_systolic=132), thresholds) == RiskLevel.HIGH
        assert classify(_make_metrics(blood_pressure_systolic=132)) == RiskLevel.LOW
