"""
Maternal Health Service -- command handlers for the transport layer.

Each handler validates its command, runs the engine, and returns the
touched entity.  Handlers raise ``MaterCareError`` subclasses.
``execute()`` wraps any handler and returns a ``CommandResult`` instead:
a serialized success payload, or a ``{kind, message}`` error for every
recoverable failure.  ``StorageUnavailableError`` is fatal and always
propagates.

Metrics recording runs in this order under the profile's lock:

    validate -> classify -> create/escalate alert -> store snapshot -> sync profile
"""

from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Callable
from typing import Any, Optional

import structlog
from pydantic import BaseModel

from matercare.alerts import AlertDecision, AlertLifecycleManager
from matercare.commands import (
    CancelVisit,
    Command,
    CompleteVisit,
    CreateProfile,
    CreateProvider,
    GetProfile,
    GetProvider,
    ListAlerts,
    ListProfiles,
    RecordMetrics,
    ResolveAlert,
    ScheduleVisit,
    SetProviderActive,
    SyncProfile,
)
from matercare.config import DEFAULT_SETTINGS, EngineSettings
from matercare.errors import (
    MaterCareError,
    NotFoundError,
    PreconditionFailedError,
    StorageUnavailableError,
    ValidationError,
)
from matercare.models import (
    HealthAlert,
    HealthcareProvider,
    MaternalProfile,
    PrenatalVisit,
)
from matercare.serialization import Page, paginate, serialize, to_nanos
from matercare.store import RecordStore
from matercare.sync import ProfileRiskSynchronizer, compute_trimester
from matercare.validation import validate_metrics, validate_profile


# ---------------------------------------------------------------------------
# Identity and time sources
# ---------------------------------------------------------------------------

class MonotonicClock:
    """Wall-clock nanoseconds that never go backwards within a process."""

    def __init__(self, source: Callable[[], int] = time.time_ns) -> None:
        self._source = source
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            self._last = max(self._last, self._source())
            return self._last


def new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Command result
# ---------------------------------------------------------------------------

class CommandResult(BaseModel):
    """Outcome of ``MaternalHealthService.execute``."""

    ok: bool
    data: Any = None
    error: Optional[dict[str, str]] = None

    @classmethod
    def success(cls, data: Any) -> "CommandResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: MaterCareError) -> "CommandResult":
        return cls(ok=False, error=error.to_dict())


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class MaternalHealthService:
    """Entry point for every inbound command.

    Args:
        store: Record store; a fresh in-memory store when omitted.
        clock: Nanosecond time source; a ``MonotonicClock`` when omitted.
        id_factory: Unique id source; UUID4 strings when omitted.
        settings: Engine settings.
    """

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        clock: Optional[Callable[[], int]] = None,
        id_factory: Optional[Callable[[], str]] = None,
        settings: EngineSettings = DEFAULT_SETTINGS,
    ) -> None:
        self.store = store or RecordStore()
        self.settings = settings
        self._clock = clock or MonotonicClock()
        self._new_id = id_factory or new_id
        self.alerts = AlertLifecycleManager(self.store, self._clock, self._new_id, settings)
        self.synchronizer = ProfileRiskSynchronizer(self.store, self.alerts, self._clock)
        self.logger = structlog.get_logger(__name__, component="maternal_health_service")

        self._handlers: dict[type[Command], Callable[[Any], Any]] = {
            CreateProvider: self.create_provider,
            GetProvider: self.get_provider,
            SetProviderActive: self.set_provider_active,
            CreateProfile: self.create_profile,
            GetProfile: self.get_profile,
            ListProfiles: self.list_profiles,
            SyncProfile: self.sync_profile,
            RecordMetrics: self.record_metrics,
            ResolveAlert: self.resolve_alert,
            ListAlerts: self.list_alerts,
            ScheduleVisit: self.schedule_visit,
            CompleteVisit: self.complete_visit,
            CancelVisit: self.cancel_visit,
        }

    # -- dispatch --

    def execute(self, command: Command) -> CommandResult:
        """Run a command and wrap its outcome.

        Raises:
            StorageUnavailableError: If the record store cannot be reached.
            TypeError: If the command type has no handler.
        """
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"No handler for command {type(command).__name__}")

        try:
            result = handler(command)
        except StorageUnavailableError:
            raise
        except MaterCareError as e:
            self.logger.info(
                "command_failed",
                command=type(command).__name__,
                kind=e.kind,
                message=e.message,
            )
            return CommandResult.failure(e)

        return CommandResult.success(_render(result))

    # -- helpers --

    def _require_profile(self, profile_id: str) -> MaternalProfile:
        profile = self.store.profiles.get(profile_id)
        if profile is None:
            raise NotFoundError(f"Maternal profile '{profile_id}' not found")
        return profile

    def _require_provider(self, provider_id: str) -> HealthcareProvider:
        provider = self.store.providers.get(provider_id)
        if provider is None:
            raise NotFoundError("Healthcare provider not found")
        return provider

    def _require_active_provider(self, provider_id: str) -> HealthcareProvider:
        provider = self._require_provider(provider_id)
        if not provider.is_active:
            raise PreconditionFailedError("Healthcare provider not active")
        return provider

    def _require_visit(self, visit_id: str) -> PrenatalVisit:
        visit = self.store.visits.get(visit_id)
        if visit is None:
            raise NotFoundError(f"Prenatal visit '{visit_id}' not found")
        return visit

    # -- providers --

    def create_provider(self, command: CreateProvider) -> HealthcareProvider:
        provider = command.build(self._new_id(), self._clock())
        self.store.providers.put(provider.id, provider)
        self.logger.info("provider_created", provider_id=provider.id, active=provider.is_active)
        return provider

    def get_provider(self, command: GetProvider) -> HealthcareProvider:
        return self._require_provider(command.provider_id)

    def set_provider_active(self, command: SetProviderActive) -> HealthcareProvider:
        with self.store.lock(command.provider_id):
            provider = self._require_provider(command.provider_id)
            if provider.is_active == command.is_active:
                return provider
            updated = provider.model_copy(update={
                "is_active": command.is_active,
                "last_updated": self._clock(),
            })
            self.store.providers.put(updated.id, updated)
        self.logger.info("provider_status_changed", provider_id=updated.id, active=updated.is_active)
        return updated

    # -- profiles --

    def create_profile(self, command: CreateProfile) -> MaternalProfile:
        error = validate_profile(command, self.settings.validation)
        if error is not None:
            raise error

        self._require_active_provider(command.primary_care_provider_id)

        now = self._clock()
        trimester = compute_trimester(to_nanos(command.due_date), now)
        profile = command.build(self._new_id(), now, trimester)
        self.store.profiles.put(profile.id, profile)

        self.logger.info("profile_created", profile_id=profile.id, trimester=trimester.value)
        return profile

    def get_profile(self, command: GetProfile) -> MaternalProfile:
        return self._require_profile(command.profile_id)

    def list_profiles(self, command: ListProfiles) -> Page:
        pagination = self.settings.pagination
        page = pagination.default_page if command.page is None else command.page
        limit = pagination.default_limit if command.limit is None else command.limit
        if page < 1:
            raise ValidationError("page must be >= 1")
        if limit < 1:
            raise ValidationError("limit must be >= 1")
        if limit > pagination.max_limit:
            raise ValidationError(f"limit must be <= {pagination.max_limit}")

        total = self.store.profiles.count()
        return paginate(self.store.profiles.scan(), page, limit, total)

    def sync_profile(self, command: SyncProfile) -> MaternalProfile:
        with self.store.lock(command.profile_id):
            return self.synchronizer.sync_profile(command.profile_id)

    # -- metrics and alerts --

    def record_metrics(self, command: RecordMetrics) -> AlertDecision:
        self._require_profile(command.maternal_profile_id)

        error = validate_metrics(command, self.settings.validation)
        if error is not None:
            raise error

        self._require_active_provider(command.recorded_by_id)

        with self.store.lock(command.maternal_profile_id):
            metrics = command.build(self._new_id(), self._clock())
            decision = self.alerts.on_metrics_recorded(metrics)
            self.synchronizer.sync_profile(command.maternal_profile_id)

        self.logger.info(
            "metrics_recorded",
            metrics_id=metrics.id,
            profile_id=metrics.maternal_profile_id,
            verdict=decision.verdict.value,
            alert_action=decision.action.value,
        )
        return decision

    def resolve_alert(self, command: ResolveAlert) -> HealthAlert:
        alert = self.store.alerts.get(command.alert_id)
        if alert is None:
            raise NotFoundError(f"Health alert '{command.alert_id}' not found")

        with self.store.lock(alert.maternal_profile_id):
            resolved = self.alerts.resolve_alert(command.alert_id, command.notes)
            self.synchronizer.sync_profile(resolved.maternal_profile_id)
        return resolved

    def list_alerts(self, command: ListAlerts) -> list[HealthAlert]:
        self._require_profile(command.profile_id)
        return self.alerts.list_alerts(command.profile_id, command.include_resolved)

    # -- prenatal visits --

    def schedule_visit(self, command: ScheduleVisit) -> PrenatalVisit:
        self._require_profile(command.maternal_profile_id)
        self._require_active_provider(command.provider_id)

        visit = command.build(self._new_id())
        self.store.visits.put(visit.id, visit)
        self.logger.info("visit_scheduled", visit_id=visit.id, profile_id=visit.maternal_profile_id)
        return visit

    def complete_visit(self, command: CompleteVisit) -> PrenatalVisit:
        with self.store.lock(command.visit_id):
            visit = self._require_visit(command.visit_id)
            if visit.cancelled:
                raise PreconditionFailedError("Cannot complete a cancelled visit")
            if visit.completed:
                raise PreconditionFailedError("Visit is already completed")

            next_visit = (
                to_nanos(command.next_visit_date) if command.next_visit_date is not None else None
            )
            updated = visit.model_copy(update={
                "completed": True,
                "findings": command.findings,
                "recommendations": command.recommendations,
                "prescriptions": list(command.prescriptions),
                "follow_up_required": command.follow_up_required,
                "next_visit_date": next_visit,
            })
            self.store.visits.put(updated.id, updated)
        return updated

    def cancel_visit(self, command: CancelVisit) -> PrenatalVisit:
        reason = command.reason.strip()
        if not reason:
            raise ValidationError("Cancellation reason is required")

        with self.store.lock(command.visit_id):
            visit = self._require_visit(command.visit_id)
            if visit.completed:
                raise PreconditionFailedError("Cannot cancel a completed visit")
            if visit.cancelled:
                raise PreconditionFailedError("Visit is already cancelled")

            updated = visit.model_copy(update={"cancellation_reason": reason})
            self.store.visits.put(updated.id, updated)
        return updated


def _render(result: Any) -> Any:
    if isinstance(result, AlertDecision):
        return serialize(result.metrics)
    if isinstance(result, Page):
        return result.model_dump()
    if isinstance(result, list):
        return [serialize(item) for item in result]
    return serialize(result)
