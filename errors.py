"""Error taxonomy shared by the store, the AI workflows and the coordinator.

Every failure is scoped to the action that triggered it; none of these are
fatal to the process.
"""

from __future__ import annotations


class MedflixError(Exception):
    """Base class for all application errors."""

    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message or self.__class__.__name__}


class StoreError(MedflixError):
    """A CRUD operation against the data store failed."""

    status_code = 502


class GenerationError(MedflixError):
    """An AI workflow failed or returned a result that does not fit its schema."""

    status_code = 502


class ValidationError(MedflixError):
    """A required field is missing; raised before any request is issued."""

    status_code = 400


class NotFoundError(MedflixError):
    """The requested subject, summary or question is not in the current term."""

    status_code = 404


class NavigationInconsistency(MedflixError):
    """A selected entity id no longer resolves. Always healed, never shown."""

    def __init__(self, kind: str, entity_id: int | None) -> None:
        super().__init__(f"{kind} {entity_id} no longer exists")
        self.kind = kind
        self.entity_id = entity_id
