"""
Tests for matercare.config -- Engine Settings.

Covers: default values, range ordering, alert ceiling bounds, log level
validation, YAML loading, and environment-variable resolution.
"""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from matercare.config import (
    BLOOD_TYPES,
    DEFAULT_SETTINGS,
    SETTINGS_ENV_VAR,
    AlertSettings,
    EngineSettings,
    PaginationSettings,
    ValidationLimits,
    load_settings,
    load_settings_from_yaml,
)


# ---------------------------------------------------------------------------
# 1. Defaults
# ---------------------------------------------------------------------------

class TestDefaults:
    def test_default_risk_thresholds(self):
        thresholds = DEFAULT_SETTINGS.risk_thresholds
        assert thresholds.systolic_high == 140
        assert thresholds.diastolic_high == 90
        assert thresholds.blood_sugar_high == 140
        assert thresholds.hemoglobin_low == 9

    def test_default_validation_limits(self):
        limits = DEFAULT_SETTINGS.validation
        assert (limits.age_min, limits.age_max) == (16, 60)
        assert (limits.name_min_length, limits.name_max_length) == (2, 100)
        assert limits.history_entry_max_length == 1000
        assert set(limits.blood_types) == set(BLOOD_TYPES)

    def test_default_alert_settings(self):
        alerts = DEFAULT_SETTINGS.alerts
        assert alerts.max_escalation_level == 3
        assert alerts.description == "Abnormal health metrics detected"
        assert alerts.recommended_action == "Immediate medical review required"

    def test_default_rate_limit(self):
        assert DEFAULT_SETTINGS.rate_limit.max_requests == 100
        assert DEFAULT_SETTINGS.rate_limit.window_seconds == 900


# ---------------------------------------------------------------------------
# 2. Validation of settings values
# ---------------------------------------------------------------------------

class TestSettingsValidation:
    def test_inverted_age_range_rejected(self):
        with pytest.raises(ValidationError, match="age_min"):
            ValidationLimits(age_min=50, age_max=20)

    def test_inverted_systolic_range_rejected(self):
        with pytest.raises(ValidationError):
            ValidationLimits(systolic_min=200)

    def test_empty_blood_types_rejected(self):
        with pytest.raises(ValidationError):
            ValidationLimits(blood_types=[])

    @pytest.mark.parametrize("level", [0, 4])
    def test_escalation_ceiling_bounds(self, level):
        with pytest.raises(ValidationError):
            AlertSettings(max_escalation_level=level)

    def test_max_limit_below_default_rejected(self):
        with pytest.raises(ValidationError, match="max_limit"):
            PaginationSettings(default_limit=50, max_limit=10)

    def test_log_level_normalized(self):
        assert EngineSettings(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            EngineSettings(log_level="VERBOSE")


# ---------------------------------------------------------------------------
# 3. YAML loading
# ---------------------------------------------------------------------------

class TestYAMLLoader:
    def _write_yaml(self, data: dict, tmp_dir: Path) -> Path:
        path = tmp_dir / "settings.yaml"
        with open(path, "w") as f:
            yaml.dump(data, f)
        return path

    def test_partial_settings_keep_defaults(self, tmp_path):
        path = self._write_yaml({"settings": {"risk_thresholds": {"systolic_high": 135}}}, tmp_path)
        settings = load_settings_from_yaml(path)
        assert settings.risk_thresholds.systolic_high == 135
        assert settings.risk_thresholds.diastolic_high == 90
        assert settings.alerts.max_escalation_level == 3

    def test_empty_settings_section_gives_defaults(self, tmp_path):
        path = self._write_yaml({"settings": None}, tmp_path)
        assert load_settings_from_yaml(path) == EngineSettings()

    def test_missing_file_raises(self):
        with pytest.raises(FileNotFoundError):
            load_settings_from_yaml("/nonexistent/settings.yaml")

    def test_missing_top_level_key_raises(self, tmp_path):
        path = self._write_yaml({"config": {}}, tmp_path)
        with pytest.raises(ValueError, match="top-level 'settings'"):
            load_settings_from_yaml(path)

    def test_non_mapping_settings_raises(self, tmp_path):
        path = self._write_yaml({"settings": [1, 2]}, tmp_path)
        with pytest.raises(ValueError, match="must be a mapping"):
            load_settings_from_yaml(path)

    def test_invalid_values_raise_validation_error(self, tmp_path):
        path = self._write_yaml({"settings": {"alerts": {"max_escalation_level": 9}}}, tmp_path)
        with pytest.raises(ValidationError):
            load_settings_from_yaml(path)

    def test_bundled_example_settings_load(self):
        sample_path = Path(__file__).parent.parent / "examples" / "settings.yaml"
        settings = load_settings_from_yaml(sample_path)
        assert settings.rate_limit.max_requests == 300
        assert settings.pagination.default_limit == 20


# ---------------------------------------------------------------------------
# 4. Resolution order
# ---------------------------------------------------------------------------

class TestLoadSettings:
    def test_defaults_without_path_or_env(self, monkeypatch):
        monkeypatch.delenv(SETTINGS_ENV_VAR, raising=False)
        settings = load_settings()
        assert settings == DEFAULT_SETTINGS
        assert settings is not DEFAULT_SETTINGS

    def test_env_var_used_when_no_path(self, monkeypatch, tmp_path):
        path = tmp_path / "env.yaml"
        path.write_text(yaml.dump({"settings": {"log_level": "WARNING"}}))
        monkeypatch.setenv(SETTINGS_ENV_VAR, str(path))
        assert load_settings().log_level == "WARNING"

    def test_explicit_path_wins_over_env(self, monkeypatch, tmp_path):
        env_path = tmp_path / "env.yaml"
        env_path.write_text(yaml.dump({"settings": {"log_level": "WARNING"}}))
        explicit = tmp_path / "explicit.yaml"
        explicit.write_text(yaml.dump({"settings": {"log_level": "ERROR"}}))
        monkeypatch.setenv(SETTINGS_ENV_VAR, str(env_path))
        assert load_settings(explicit).log_level == "ERROR"
