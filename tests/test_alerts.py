"""
Tests for matercare.alerts -- Alert Lifecycle Manager.

Covers: alert creation on a HIGH snapshot, no alert on LOW, the
one-open-alert policy with escalation, the escalation ceiling, review
flags, alert-before-snapshot persistence order, resolution, repeated
resolution rejection, and new alerts after resolution.
"""

from __future__ import annotations

import itertools

import pytest

from matercare.alerts import AlertLifecycleManager
from matercare.config import AlertSettings, EngineSettings
from matercare.errors import AlreadyResolvedError, NotFoundError, StorageUnavailableError
from matercare.models import AlertAction, HealthMetrics, RiskLevel
from matercare.store import MemoryBackend, RecordStore

NOW_NS = 1_700_000_000_000_000_000


class FakeClock:
    def __init__(self, start: int = NOW_NS) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, nanos: int) -> None:
        self.now += nanos


def _id_factory():
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


def _make_manager(store: RecordStore | None = None, clock: FakeClock | None = None, **settings):
    store = store or RecordStore()
    clock = clock or FakeClock()
    manager = AlertLifecycleManager(store, clock, _id_factory(), EngineSettings(**settings))
    return manager, store, clock


_metric_ids = itertools.count(1)


def _make_metrics(profile_id: str = "p1", **kwargs) -> HealthMetrics:
    defaults = {
        "id": f"m-{next(_metric_ids)}",
        "maternal_profile_id": profile_id,
        "recorded_at": NOW_NS,
        "recorded_by_id": "prov1",
        "blood_pressure_systolic": 115,
        "blood_pressure_diastolic": 75,
        "blood_sugar": 95,
        "hemoglobin_levels": 12,
    }
    defaults.update(kwargs)
    return HealthMetrics(**defaults)


def _high_metrics(profile_id: str = "p1") -> HealthMetrics:
    return _make_metrics(
        profile_id,
        blood_pressure_systolic=150,
        blood_pressure_diastolic=95,
        blood_sugar=100,
        hemoglobin_levels=12,
    )


# ---------------------------------------------------------------------------
# 1. Alert creation
# ---------------------------------------------------------------------------

class TestAlertCreation:
    def test_high_snapshot_creates_alert(self):
        manager, store, clock = _make_manager()
        metrics = _high_metrics()

        decision = manager.on_metrics_recorded(metrics)

        assert decision.verdict == RiskLevel.HIGH
        assert decision.action == AlertAction.CREATED
        alert = decision.alert
        assert alert.severity == RiskLevel.HIGH
        assert alert.escalation_level == 1
        assert alert.resolved is False
        assert alert.resolved_at is None
        assert alert.provider_id == "prov1"
        assert alert.created_at == clock.now
        assert alert.description == "Abnormal health metrics detected"
        assert alert.recommended_action == "Immediate medical review required"
        assert store.alerts.get(alert.id) == alert

    def test_high_snapshot_is_flagged_and_stored(self):
        manager, store, _ = _make_manager()
        metrics = _high_metrics()

        decision = manager.on_metrics_recorded(metrics)

        assert decision.metrics.is_flagged_for_review is True
        assert store.metrics.get(metrics.id).is_flagged_for_review is True

    def test_low_snapshot_creates_no_alert(self):
        manager, store, _ = _make_manager()
        metrics = _make_metrics()

        decision = manager.on_metrics_recorded(metrics)

        assert decision.verdict == RiskLevel.LOW
        assert decision.action == AlertAction.NONE
        assert decision.alert is None
        assert store.alerts.count() == 0
        assert store.metrics.get(metrics.id).is_flagged_for_review is False

    def test_custom_alert_text(self):
        manager, _, _ = _make_manager(alerts=AlertSettings(description="BP spike"))
        decision = manager.on_metrics_recorded(_high_metrics())
        assert decision.alert.description == "BP spike"


# ---------------------------------------------------------------------------
# 2. Escalation
# ---------------------------------------------------------------------------

class TestEscalation:
    def test_second_high_snapshot_escalates_existing_alert(self):
        manager, store, _ = _make_manager()

        first = manager.on_metrics_recorded(_high_metrics())
        second = manager.on_metrics_recorded(_high_metrics())

        assert second.action == AlertAction.ESCALATED
        assert second.alert.id == first.alert.id
        open_alerts = manager.open_alerts("p1")
        assert len(open_alerts) == 1
        assert open_alerts[0].escalation_level == 2

    def test_escalation_is_capped_at_three(self):
        manager, _, _ = _make_manager()

        decisions = [manager.on_metrics_recorded(_high_metrics()) for _ in range(5)]

        levels = [d.alert.escalation_level for d in decisions]
        assert levels == [1, 2, 3, 3, 3]
        assert decisions[-1].action == AlertAction.CAPPED
        assert manager.find_open_alert("p1").escalation_level == 3

    def test_lower_ceiling_from_settings(self):
        manager, _, _ = _make_manager(alerts=AlertSettings(max_escalation_level=2))
        for _ in range(4):
            decision = manager.on_metrics_recorded(_high_metrics())
        assert decision.alert.escalation_level == 2

    def test_low_snapshot_does_not_touch_open_alert(self):
        manager, _, _ = _make_manager()
        manager.on_metrics_recorded(_high_metrics())
        manager.on_metrics_recorded(_make_metrics())
        assert manager.find_open_alert("p1").escalation_level == 1

    def test_profiles_are_isolated(self):
        manager, store, _ = _make_manager()
        manager.on_metrics_recorded(_high_metrics("p1"))
        manager.on_metrics_recorded(_high_metrics("p2"))
        assert store.alerts.count() == 2
        assert manager.find_open_alert("p1").escalation_level == 1
        assert manager.find_open_alert("p2").escalation_level == 1


# ---------------------------------------------------------------------------
# 3. Persistence order
# ---------------------------------------------------------------------------

class MetricsDownBackend(MemoryBackend):
    def insert(self, key, value):
        raise ConnectionError("metrics store offline")


class TestPersistenceOrder:
    def test_alert_is_stored_before_snapshot(self):
        store = RecordStore(
            backend_factory=lambda name: (
                MetricsDownBackend(name) if name == "health_metrics" else MemoryBackend(name)
            )
        )
        manager, _, _ = _make_manager(store=store)

        with pytest.raises(StorageUnavailableError):
            manager.on_metrics_recorded(_high_metrics())

        assert store.alerts.count() == 1
        assert store.metrics.count() == 0


# ---------------------------------------------------------------------------
# 4. Resolution
# ---------------------------------------------------------------------------

class TestResolution:
    def test_resolve_sets_state_time_and_notes(self):
        manager, store, clock = _make_manager()
        alert = manager.on_metrics_recorded(_high_metrics()).alert
        clock.advance(60_000_000_000)

        resolved = manager.resolve_alert(alert.id, "BP normalized after rest")

        assert resolved.resolved is True
        assert resolved.resolved_at == clock.now
        assert resolved.resolution_notes == "BP normalized after rest"
        assert store.alerts.get(alert.id) == resolved

    def test_escalation_level_frozen_on_resolution(self):
        manager, _, _ = _make_manager()
        manager.on_metrics_recorded(_high_metrics())
        alert = manager.on_metrics_recorded(_high_metrics()).alert

        resolved = manager.resolve_alert(alert.id, "reviewed")
        assert resolved.escalation_level == 2

    def test_resolve_unknown_alert(self):
        manager, _, _ = _make_manager()
        with pytest.raises(NotFoundError):
            manager.resolve_alert("missing", "notes")

    def test_resolve_twice_fails_and_leaves_alert_unchanged(self):
        manager, store, clock = _make_manager()
        alert = manager.on_metrics_recorded(_high_metrics()).alert
        first = manager.resolve_alert(alert.id, "first review")
        clock.advance(1_000_000_000)

        with pytest.raises(AlreadyResolvedError):
            manager.resolve_alert(alert.id, "second review")

        assert store.alerts.get(alert.id) == first

    def test_notes_are_optional(self):
        manager, _, _ = _make_manager()
        alert = manager.on_metrics_recorded(_high_metrics()).alert
        assert manager.resolve_alert(alert.id).resolution_notes is None

    def test_high_snapshot_after_resolution_opens_new_alert(self):
        manager, store, _ = _make_manager()
        alert = manager.on_metrics_recorded(_high_metrics()).alert
        manager.resolve_alert(alert.id, "reviewed")

        decision = manager.on_metrics_recorded(_high_metrics())

        assert decision.action == AlertAction.CREATED
        assert decision.alert.id != alert.id
        assert decision.alert.escalation_level == 1
        assert store.alerts.count() == 2
        assert len(manager.list_alerts("p1", include_resolved=True)) == 2
        assert len(manager.list_alerts("p1")) == 1
