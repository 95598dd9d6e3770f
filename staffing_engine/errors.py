from __future__ import annotations

from typing import Dict, Optional


class EngineError(RuntimeError):
    """Base class for errors raised by the staffing engine."""


class PreconditionError(EngineError, ValueError):
    """Input that the caller was supposed to validate is malformed."""


class UnknownRecordError(EngineError, KeyError):
    def __init__(self, kind: str, record_id: object) -> None:
        super().__init__(f"{kind} {record_id!r} not found")
        self.kind = kind
        self.record_id = record_id

    def __str__(self) -> str:
        return str(self.args[0])


class ConflictError(EngineError):
    """A proposed write was rejected; ``detail`` holds what caused it."""

    def __init__(self, message: str, detail: Optional[Dict[str, object]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = dict(detail or {})


class CapacityConflictError(ConflictError):
    pass


class DuplicateAssignmentError(ConflictError):
    pass


class AvailabilityOverlapError(ConflictError):
    pass


class InsufficientAvailabilityError(ConflictError):
    pass
