"""
Error taxonomy for the MaterCare risk engine.

Every recoverable failure is a ``MaterCareError`` subclass carrying a stable
``kind`` string.  The service layer converts these into structured
``{kind, message}`` payloads.  ``StorageUnavailableError`` is the only
fatal condition: it is never converted and always propagates to the
transport layer.
"""

from __future__ import annotations


class MaterCareError(Exception):
    """Base class for all engine errors."""

    kind = "MaterCareError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class ValidationError(MaterCareError):
    """Input failed a structural or range check."""

    kind = "ValidationError"


class NotFoundError(MaterCareError):
    """A referenced entity does not exist."""

    kind = "NotFound"


class PreconditionFailedError(MaterCareError):
    """The request is well-formed but the current state forbids it."""

    kind = "PreconditionFailed"


class AlreadyResolvedError(PreconditionFailedError):
    """An alert resolution was attempted on an alert that is already resolved."""

    kind = "AlreadyResolved"


class StorageUnavailableError(MaterCareError):
    """The underlying record store could not be reached."""

    kind = "StorageUnavailable"
