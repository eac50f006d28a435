"""
HTTP transport shell.

Decodes JSON requests into commands, strips ``<`` and ``>`` from every
free-text value, throttles clients with a fixed-window limiter, and encodes
``CommandResult`` objects as responses.  No engine logic lives here.

Status mapping:

* ValidationError -> 400
* NotFound -> 404
* PreconditionFailed / AlreadyResolved -> 409
* rate limited -> 429
* StorageUnavailable -> 503
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any, Optional

import structlog
from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from matercare import __version__
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
    parse_command,
)
from matercare.config import EngineSettings, load_settings
from matercare.errors import MaterCareError, StorageUnavailableError
from matercare.logging_config import configure_logging
from matercare.service import CommandResult, MaternalHealthService

logger = structlog.get_logger(__name__)

_STATUS_BY_KIND = {
    "ValidationError": 400,
    "NotFound": 404,
    "PreconditionFailed": 409,
    "AlreadyResolved": 409,
    "StorageUnavailable": 503,
}


# ---------------------------------------------------------------------------
# Input sanitization
# ---------------------------------------------------------------------------

def sanitize(value: Any) -> Any:
    """Recursively remove ``<`` and ``>`` from every string in a decoded payload."""
    if isinstance(value, str):
        return value.replace("<", "").replace(">", "")
    if isinstance(value, dict):
        return {key: sanitize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [sanitize(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

class FixedWindowRateLimiter:
    """Allow at most ``max_requests`` per client within each window.

    Windows that have elapsed are dropped at most once per window length,
    so idle clients do not accumulate.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, tuple[float, int]] = {}
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._windows)

    def allow(self, client: str) -> bool:
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            started, count = self._windows.get(client, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0
            if count >= self.max_requests:
                self._windows[client] = (started, count)
                return False
            self._windows[client] = (started, count + 1)
            return True

    def _sweep(self, now: float) -> None:
        self._windows = {
            client: window
            for client, window in self._windows.items()
            if now - window[0] < self.window_seconds
        }
        self._last_sweep = now


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def _respond(result: CommandResult) -> JSONResponse:
    if result.ok:
        return JSONResponse(status_code=200, content=result.data)
    status = _STATUS_BY_KIND.get(result.error["kind"], 400)
    return JSONResponse(status_code=status, content=result.error)


def create_app(
    service: Optional[MaternalHealthService] = None,
    settings: Optional[EngineSettings] = None,
    rate_limit_clock: Callable[[], float] = time.monotonic,
) -> FastAPI:
    """Build the HTTP application around a service instance."""
    settings = settings or (service.settings if service else load_settings())
    configure_logging(settings.log_level, settings.log_json)
    service = service or MaternalHealthService(settings=settings)
    limiter = FixedWindowRateLimiter(
        settings.rate_limit.max_requests,
        settings.rate_limit.window_seconds,
        clock=rate_limit_clock,
    )

    app = FastAPI(title="MaterCare API", version=__version__)
    app.state.service = service

    def run(command_type: type[Command], payload: dict[str, Any]) -> JSONResponse:
        command = parse_command(command_type, sanitize(payload))
        return _respond(service.execute(command))

    @app.middleware("http")
    async def throttle(request: Request, call_next):
        client = request.client.host if request.client else "unknown"
        if not limiter.allow(client):
            logger.warning("request_throttled", client=client, path=request.url.path)
            return JSONResponse(
                status_code=429,
                content={"kind": "RateLimited", "message": "Too many requests, please try again later"},
            )
        return await call_next(request)

    @app.exception_handler(StorageUnavailableError)
    async def storage_unavailable(request: Request, exc: StorageUnavailableError):
        return JSONResponse(
            status_code=503,
            content={"kind": exc.kind, "message": "Record store unavailable"},
        )

    @app.exception_handler(MaterCareError)
    async def engine_error(request: Request, exc: MaterCareError):
        return JSONResponse(status_code=_STATUS_BY_KIND.get(exc.kind, 400), content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_invalid(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ())) or "request"
        return JSONResponse(
            status_code=400,
            content={"kind": "ValidationError", "message": f"{location}: {first.get('msg', 'invalid')}"},
        )

    # -- providers --

    @app.post("/providers")
    def create_provider(payload: dict[str, Any] = Body(...)):
        return run(CreateProvider, payload)

    @app.get("/providers/{provider_id}")
    def get_provider(provider_id: str):
        return run(GetProvider, {"providerId": provider_id})

    @app.patch("/providers/{provider_id}/status")
    def set_provider_status(provider_id: str, payload: dict[str, Any] = Body(...)):
        return run(SetProviderActive, {**payload, "providerId": provider_id})

    # -- maternal profiles --

    @app.post("/maternal-profiles")
    def create_profile(payload: dict[str, Any] = Body(...)):
        return run(CreateProfile, payload)

    @app.get("/maternal-profiles")
    def list_profiles(page: Optional[int] = None, limit: Optional[int] = None):
        return run(ListProfiles, {"page": page, "limit": limit})

    @app.get("/maternal-profiles/{profile_id}")
    def get_profile(profile_id: str):
        return run(GetProfile, {"profileId": profile_id})

    @app.post("/maternal-profiles/{profile_id}/sync")
    def sync_profile(profile_id: str):
        return run(SyncProfile, {"profileId": profile_id})

    @app.get("/maternal-profiles/{profile_id}/alerts")
    def list_alerts(profile_id: str, include_resolved: bool = False):
        return run(ListAlerts, {"profileId": profile_id, "includeResolved": include_resolved})

    # -- metrics and alerts --

    @app.post("/health-metrics")
    def record_metrics(payload: dict[str, Any] = Body(...)):
        return run(RecordMetrics, payload)

    @app.post("/alerts/{alert_id}/resolve")
    def resolve_alert(alert_id: str, payload: Optional[dict[str, Any]] = Body(default=None)):
        return run(ResolveAlert, {**(payload or {}), "alertId": alert_id})

    # -- prenatal visits --

    @app.post("/visits")
    def schedule_visit(payload: dict[str, Any] = Body(...)):
        return run(ScheduleVisit, payload)

    @app.post("/visits/{visit_id}/complete")
    def complete_visit(visit_id: str, payload: Optional[dict[str, Any]] = Body(default=None)):
        return run(CompleteVisit, {**(payload or {}), "visitId": visit_id})

    @app.post("/visits/{visit_id}/cancel")
    def cancel_visit(visit_id: str, payload: dict[str, Any] = Body(...)):
        return run(CancelVisit, {**payload, "visitId": visit_id})

    return app
