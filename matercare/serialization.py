"""
Boundary serialization.

Instants are stored as nanoseconds since the Unix epoch and rendered as
ISO-8601 strings with millisecond precision and a ``Z`` suffix.  Inbound
dates must fit in a signed 64-bit nanosecond count.  A stored instant
outside that range, or one that cannot be represented as a calendar date,
is rendered as ``INVALID_DATE`` instead of failing the whole response.
"""

from __future__ import annotations

import itertools
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from matercare.errors import ValidationError
from matercare.models import (
    INSTANT_MAX,
    INSTANT_MIN,
    HealthAlert,
    HealthcareProvider,
    HealthMetrics,
    MaternalProfile,
    PrenatalVisit,
)

logger = structlog.get_logger(__name__)

NANOS_PER_MILLISECOND = 1_000_000
INVALID_DATE = "Invalid Date"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Instant conversion
# ---------------------------------------------------------------------------

def to_nanos(value: datetime) -> int:
    """Convert a datetime to nanoseconds since epoch, truncated to milliseconds.

    Naive datetimes are taken to be UTC.

    Raises:
        ValidationError: If the instant does not fit in a signed 64-bit
            nanosecond count.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    nanos = ((value - _EPOCH) // timedelta(milliseconds=1)) * NANOS_PER_MILLISECOND
    if not INSTANT_MIN <= nanos <= INSTANT_MAX:
        raise ValidationError(f"Date {value.isoformat()} is outside the supported range")
    return nanos


def from_nanos(nanos: int) -> datetime:
    """Convert nanoseconds since epoch to an aware UTC datetime.

    Raises:
        OverflowError: If the instant falls outside the calendar range.
    """
    return _EPOCH + timedelta(milliseconds=nanos // NANOS_PER_MILLISECOND)


def to_iso(nanos: int) -> str:
    return from_nanos(nanos).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def render_instant(nanos: Optional[int], field: str = "") -> Optional[str]:
    """Render a stored instant, degrading to ``INVALID_DATE`` when unrepresentable."""
    if nanos is None:
        return None
    if not INSTANT_MIN <= nanos <= INSTANT_MAX:
        logger.warning("instant_unrepresentable", field=field, nanos=nanos)
        return INVALID_DATE
    try:
        return to_iso(nanos)
    except (OverflowError, ValueError) as e:
        logger.warning("instant_unrepresentable", field=field, error=str(e))
        return INVALID_DATE


# ---------------------------------------------------------------------------
# Entity payloads
# ---------------------------------------------------------------------------

_INSTANT_FIELDS: dict[type[BaseModel], tuple[str, ...]] = {
    HealthcareProvider: ("last_updated",),
    MaternalProfile: ("due_date", "created_at", "last_updated"),
    HealthMetrics: ("recorded_at",),
    PrenatalVisit: ("scheduled_date", "next_visit_date"),
    HealthAlert: ("created_at", "resolved_at"),
}


def serialize(entity: BaseModel) -> dict[str, Any]:
    """Dump an entity to camelCase JSON-ready data with ISO-8601 instants."""
    payload = entity.model_dump(mode="json", by_alias=True)
    for name in _INSTANT_FIELDS.get(type(entity), ()):
        payload[to_camel(name)] = render_instant(getattr(entity, name), field=name)
    return payload


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

class Page(BaseModel):
    """One page of a list result.  ``total`` counts the full collection."""

    data: list[dict[str, Any]]
    page: int
    limit: int
    total: int


def paginate(items: Iterable[BaseModel], page: int, limit: int, total: int) -> Page:
    """Slice a 1-indexed page out of ``items`` without materializing the rest."""
    start = (page - 1) * limit
    window = itertools.islice(items, start, start + limit)
    return Page(
        data=[serialize(item) for item in window],
        page=page,
        limit=limit,
        total=total,
    )
