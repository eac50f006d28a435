"""
Alert Lifecycle Manager.

Turns classifier verdicts into alert state.  A profile has at most one open
alert: the first HIGH snapshot creates it at escalation level 1, each
further HIGH snapshot while it is open raises the level by one up to the
configured ceiling, and an explicit resolution closes it.

**Lifecycle:**

    (none) --HIGH--> OPEN(level 1) --HIGH--> OPEN(level 2) --HIGH--> OPEN(level 3)
    OPEN(any level) --resolve--> RESOLVED (level frozen)

**Safety property:**  ``on_metrics_recorded()`` persists the alert before
the flagged snapshot.  A HIGH snapshot is therefore never stored without
an open alert covering it.

The manager does not lock.  Callers must hold the record store's lock for
the profile id around each call.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Optional

import structlog

from matercare.config import DEFAULT_SETTINGS, EngineSettings
from matercare.errors import AlreadyResolvedError, NotFoundError
from matercare.models import AlertAction, HealthAlert, HealthMetrics, RiskLevel
from matercare.risk import assess
from matercare.store import RecordStore


class AlertDecision:
    """Outcome of running one snapshot through the lifecycle manager."""

    def __init__(
        self,
        verdict: RiskLevel,
        action: AlertAction,
        metrics: HealthMetrics,
        alert: Optional[HealthAlert] = None,
        reasons: Optional[list[str]] = None,
    ) -> None:
        self.verdict = verdict
        self.action = action
        self.metrics = metrics
        self.alert = alert
        self.reasons = reasons or []

    def __repr__(self) -> str:
        alert_id = self.alert.id if self.alert else None
        return (
            f"AlertDecision(verdict={self.verdict.value}, action={self.action.value}, "
            f"alert_id={alert_id})"
        )


class AlertLifecycleManager:
    """Creates, escalates and resolves alerts.

    Args:
        store: Record store holding alerts and metrics.
        clock: Returns the current time in nanoseconds since epoch.
        id_factory: Issues unique ids for new alerts.
        settings: Thresholds, escalation ceiling and alert texts.
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Callable[[], int],
        id_factory: Callable[[], str],
        settings: EngineSettings = DEFAULT_SETTINGS,
    ) -> None:
        self._store = store
        self._clock = clock
        self._new_id = id_factory
        self._settings = settings
        self.logger = structlog.get_logger(__name__, component="alert_lifecycle_manager")

    # -- queries --

    def open_alerts(self, profile_id: str) -> list[HealthAlert]:
        """All unresolved alerts for a profile, oldest first."""
        alerts = self._store.alerts.scan(
            lambda a: a.maternal_profile_id == profile_id and not a.resolved
        )
        return sorted(alerts, key=lambda a: a.created_at)

    def find_open_alert(self, profile_id: str) -> Optional[HealthAlert]:
        """The profile's current open alert, preferring the most recent."""
        alerts = self.open_alerts(profile_id)
        return alerts[-1] if alerts else None

    def list_alerts(self, profile_id: str, include_resolved: bool = False) -> list[HealthAlert]:
        alerts = self._store.alerts.scan(
            lambda a: a.maternal_profile_id == profile_id
            and (include_resolved or not a.resolved)
        )
        return sorted(alerts, key=lambda a: a.created_at)

    # -- lifecycle operations --

    def on_metrics_recorded(self, metrics: HealthMetrics) -> AlertDecision:
        """Classify a new snapshot, update alert state, then store the snapshot.

        Returns:
            An ``AlertDecision`` holding the verdict, what happened to the
            alert, and the snapshot as stored (flagged when HIGH).
        """
        assessment = assess(metrics, self._settings.risk_thresholds)

        if assessment.level != RiskLevel.HIGH:
            stored = metrics.model_copy(update={"is_flagged_for_review": False})
            self._store.metrics.put(stored.id, stored)
            return AlertDecision(
                verdict=assessment.level,
                action=AlertAction.NONE,
                metrics=stored,
                reasons=assessment.reasons,
            )

        existing = self.find_open_alert(metrics.maternal_profile_id)
        if existing is None:
            alert = self._create_alert(metrics)
            action = AlertAction.CREATED
        else:
            alert, action = self._escalate(existing)

        flagged = metrics.model_copy(update={"is_flagged_for_review": True})
        self._store.metrics.put(flagged.id, flagged)

        return AlertDecision(
            verdict=assessment.level,
            action=action,
            metrics=flagged,
            alert=alert,
            reasons=assessment.reasons,
        )

    def resolve_alert(self, alert_id: str, notes: Optional[str] = None) -> HealthAlert:
        """Close an open alert, recording the time and resolution notes.

        Raises:
            NotFoundError: If ``alert_id`` is unknown.
            AlreadyResolvedError: If the alert is already resolved.  The
                stored alert is left untouched.
        """
        alert = self._store.alerts.get(alert_id)
        if alert is None:
            raise NotFoundError(f"Health alert '{alert_id}' not found")
        if alert.resolved:
            raise AlreadyResolvedError(f"Health alert '{alert_id}' is already resolved")

        resolved = alert.model_copy(update={
            "resolved": True,
            "resolved_at": self._clock(),
            "resolution_notes": notes,
        })
        self._store.alerts.put(resolved.id, resolved)

        self.logger.info(
            "alert_resolved",
            alert_id=resolved.id,
            profile_id=resolved.maternal_profile_id,
            escalation_level=resolved.escalation_level,
        )
        return resolved

    # -- helpers --

    def _create_alert(self, metrics: HealthMetrics) -> HealthAlert:
        alerts = self._settings.alerts
        alert = HealthAlert(
            id=self._new_id(),
            maternal_profile_id=metrics.maternal_profile_id,
            created_at=self._clock(),
            severity=RiskLevel.HIGH,
            description=alerts.description,
            recommended_action=alerts.recommended_action,
            resolved=False,
            resolved_at=None,
            provider_id=metrics.recorded_by_id,
            resolution_notes=None,
            escalation_level=1,
        )
        self._store.alerts.put(alert.id, alert)
        self.logger.info(
            "alert_created",
            alert_id=alert.id,
            profile_id=alert.maternal_profile_id,
            metrics_id=metrics.id,
        )
        return alert

    def _escalate(self, alert: HealthAlert) -> tuple[HealthAlert, AlertAction]:
        ceiling = self._settings.alerts.max_escalation_level
        if alert.escalation_level >= ceiling:
            self.logger.info(
                "alert_escalation_capped",
                alert_id=alert.id,
                escalation_level=alert.escalation_level,
            )
            return alert, AlertAction.CAPPED

        escalated = alert.model_copy(update={"escalation_level": alert.escalation_level + 1})
        self._store.alerts.put(escalated.id, escalated)
        self.logger.warning(
            "alert_escalated",
            alert_id=escalated.id,
            profile_id=escalated.maternal_profile_id,
            escalation_level=escalated.escalation_level,
        )
        return escalated, AlertAction.ESCALATED
