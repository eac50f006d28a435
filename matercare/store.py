"""
Record Store Façade -- Typed Access Over a Key-Value Backend.

The engine never touches a storage engine directly.  Each entity type gets
its own ``Repository`` wrapping a ``KeyValueBackend`` collection that only
needs to offer insert, point lookup, ordered full scan and count.

Values cross the façade as plain dicts: ``put()`` stores a dump of the
model and ``get()``/``scan()`` rebuild a fresh model on every call, so no
caller ever holds a reference into the store.

**Failure model:**  a backend signals that it cannot be reached by raising
``OSError`` (which includes ``ConnectionError`` and ``TimeoutError``).  The
façade turns that into ``StorageUnavailableError``, the one fatal
condition in the engine.  It is not retried here.

**Concurrency:**  ``RecordStore.lock(key)`` gives per-key mutual exclusion
so that a read-verdict-then-write sequence on one profile cannot interleave
with another writer on the same profile.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from typing import Any, Generic, Optional, Protocol, TypeVar

import structlog
from pydantic import BaseModel

from matercare.errors import StorageUnavailableError
from matercare.models import (
    HealthAlert,
    HealthcareProvider,
    HealthMetrics,
    MaternalProfile,
    PrenatalVisit,
)

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


# ---------------------------------------------------------------------------
# Backend contract
# ---------------------------------------------------------------------------

class KeyValueBackend(Protocol):
    """Ordered key-value collection consumed by the façade."""

    def get(self, key: str) -> Optional[dict[str, Any]]: ...

    def insert(self, key: str, value: dict[str, Any]) -> None: ...

    def values(self) -> Iterable[dict[str, Any]]: ...

    def __len__(self) -> int: ...


class MemoryBackend:
    """In-process backend preserving insertion order.

    Re-inserting an existing key replaces its value in place without
    changing its position.
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._data: dict[str, dict[str, Any]] = {}

    def get(self, key: str) -> Optional[dict[str, Any]]:
        return self._data.get(key)

    def insert(self, key: str, value: dict[str, Any]) -> None:
        self._data[key] = value

    def values(self) -> Iterable[dict[str, Any]]:
        return list(self._data.values())

    def __len__(self) -> int:
        return len(self._data)


BackendFactory = Callable[[str], KeyValueBackend]


# ---------------------------------------------------------------------------
# Typed repository
# ---------------------------------------------------------------------------

@contextmanager
def _backend_guard(collection: str, operation: str) -> Iterator[None]:
    try:
        yield
    except OSError as e:
        logger.error(
            "storage_unavailable",
            collection=collection,
            operation=operation,
            error=str(e),
        )
        raise StorageUnavailableError(
            f"Record store unavailable during {operation} on '{collection}': {e}"
        ) from e


class Repository(Generic[ModelT]):
    """Typed get/put/scan/count over one backend collection."""

    def __init__(self, name: str, model: type[ModelT], backend: KeyValueBackend) -> None:
        self.name = name
        self._model = model
        self._backend = backend

    def get(self, key: str) -> Optional[ModelT]:
        with _backend_guard(self.name, "get"):
            raw = self._backend.get(key)
        if raw is None:
            return None
        return self._model.model_validate(raw)

    def put(self, key: str, value: ModelT) -> None:
        with _backend_guard(self.name, "put"):
            self._backend.insert(key, value.model_dump())

    def scan(self, predicate: Optional[Callable[[ModelT], bool]] = None) -> Iterator[ModelT]:
        """Lazily yield every stored value, optionally filtered.

        Each call starts a fresh pass over the backend; an abandoned
        iterator cannot be resumed.
        """
        with _backend_guard(self.name, "scan"):
            rows = iter(self._backend.values())
        while True:
            with _backend_guard(self.name, "scan"):
                raw = next(rows, None)
            if raw is None:
                return
            item = self._model.model_validate(raw)
            if predicate is None or predicate(item):
                yield item

    def count(self) -> int:
        with _backend_guard(self.name, "count"):
            return len(self._backend)


# ---------------------------------------------------------------------------
# Per-key locks
# ---------------------------------------------------------------------------

class KeyedLocks:
    """One mutex per key, created on demand and dropped when unused."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._holders: dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._holders[key] = self._holders.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._holders[key] -= 1
                if self._holders[key] == 0:
                    del self._holders[key]
                    del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


# ---------------------------------------------------------------------------
# Store aggregate
# ---------------------------------------------------------------------------

class RecordStore:
    """One repository per entity type plus per-key locking.

    Args:
        backend_factory: Called once per collection name to create its
            backend.  Defaults to ``MemoryBackend``.
    """

    def __init__(self, backend_factory: BackendFactory = MemoryBackend) -> None:
        self.providers: Repository[HealthcareProvider] = Repository(
            "providers", HealthcareProvider, backend_factory("providers")
        )
        self.profiles: Repository[MaternalProfile] = Repository(
            "maternal_profiles", MaternalProfile, backend_factory("maternal_profiles")
        )
        self.metrics: Repository[HealthMetrics] = Repository(
            "health_metrics", HealthMetrics, backend_factory("health_metrics")
        )
        self.visits: Repository[PrenatalVisit] = Repository(
            "prenatal_visits", PrenatalVisit, backend_factory("prenatal_visits")
        )
        self.alerts: Repository[HealthAlert] = Repository(
            "health_alerts", HealthAlert, backend_factory("health_alerts")
        )
        self._locks = KeyedLocks()

    def lock(self, key: str):
        """Context manager serializing writers on ``key`` (usually a profile id)."""
        return self._locks.hold(key)
