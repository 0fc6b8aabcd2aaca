"""
questlog.errors — Error Taxonomy
=================================

``ValidationError`` and ``NotFound`` go straight to the caller and are
never retried.  ``TransportFailure`` is what the XP authorities raise when
the point of truth could not be reached; the gamification hook turns it
into a ``None`` result plus a log line.
"""

from __future__ import annotations


class QuestlogError(Exception):
    """Base class for every error raised by questlog."""


class ValidationError(QuestlogError, ValueError):
    """A required field is missing or empty.  Raised before any write."""

    def __init__(self, errors: str | list[str]) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors: list[str] = list(errors)
        super().__init__(", ".join(self.errors))


class NotFound(QuestlogError, LookupError):
    """No record with the requested id exists in the current snapshot."""

    def __init__(self, kind: str, entity_id: str) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} not found: {entity_id}")


class TransportFailure(QuestlogError, RuntimeError):
    """The authoritative XP call did not return success."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
