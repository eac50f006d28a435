"""
Profile Risk Synchronizer.

Reconciles the engine-owned fields of a maternal profile with current
state:

* ``current_trimester`` from the due date and the clock, counting weeks
  from a conception reference of ``due_date - 280 days``;
* ``risk_level`` as the most severe open alert (LOW when none are open);
* ``is_high_risk_pregnancy`` as ``risk_level == HIGH``.

The profile is written back only when one of these fields changed, so
repeated syncs without new data are no-ops.  Callers must hold the record
store's lock for the profile id.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog

from matercare.alerts import AlertLifecycleManager
from matercare.errors import NotFoundError
from matercare.models import MaternalProfile, RiskLevel, Trimester, max_risk
from matercare.store import RecordStore

NANOS_PER_DAY = 24 * 60 * 60 * 1_000_000_000
GESTATION_DAYS = 280

FIRST_TRIMESTER_LAST_WEEK = 12
SECOND_TRIMESTER_LAST_WEEK = 26


def gestational_week(due_date: int, now: int) -> int:
    """1-based week of pregnancy at ``now`` (nanosecond instants).

    Values below 1 mean ``now`` is before the conception reference; values
    above 40 mean the due date has passed.
    """
    conception = due_date - GESTATION_DAYS * NANOS_PER_DAY
    elapsed_days = (now - conception) // NANOS_PER_DAY
    return elapsed_days // 7 + 1


def compute_trimester(due_date: int, now: int) -> Trimester:
    week = gestational_week(due_date, now)
    if week <= FIRST_TRIMESTER_LAST_WEEK:
        return Trimester.FIRST
    if week <= SECOND_TRIMESTER_LAST_WEEK:
        return Trimester.SECOND
    return Trimester.THIRD


class ProfileRiskSynchronizer:
    """Recomputes trimester and risk level for one profile at a time."""

    def __init__(
        self,
        store: RecordStore,
        alerts: AlertLifecycleManager,
        clock: Callable[[], int],
    ) -> None:
        self._store = store
        self._alerts = alerts
        self._clock = clock
        self.logger = structlog.get_logger(__name__, component="profile_risk_synchronizer")

    def sync_profile(self, profile_id: str) -> MaternalProfile:
        """Bring a profile's engine-owned fields up to date.

        Returns:
            The profile as stored after the sync (unchanged if nothing moved).

        Raises:
            NotFoundError: If no profile has ``profile_id``.
        """
        profile = self._store.profiles.get(profile_id)
        if profile is None:
            raise NotFoundError(f"Maternal profile '{profile_id}' not found")

        now = self._clock()
        trimester = compute_trimester(profile.due_date, now)
        risk_level = max_risk(*(a.severity for a in self._alerts.open_alerts(profile_id)))
        high_risk = risk_level == RiskLevel.HIGH

        if (
            trimester == profile.current_trimester
            and risk_level == profile.risk_level
            and high_risk == profile.is_high_risk_pregnancy
        ):
            return profile

        updated = profile.model_copy(update={
            "current_trimester": trimester,
            "risk_level": risk_level,
            "is_high_risk_pregnancy": high_risk,
            "last_updated": now,
        })
        self._store.profiles.put(updated.id, updated)

        self.logger.info(
            "profile_synced",
            profile_id=profile_id,
            trimester=trimester.value,
            risk_level=risk_level.value,
            previous_risk_level=profile.risk_level.value,
        )
        return updated
