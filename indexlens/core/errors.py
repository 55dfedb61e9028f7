"""Error taxonomy for the view/cache core."""

from __future__ import annotations


class IndexLensError(Exception):
    """Base class for all IndexLens errors."""

    pass


class ValidationError(IndexLensError):
    """Raised for local, pre-network input failures.

    A validation error blocks the initiating action entirely; the backend is
    never contacted.
    """

    pass


class InvalidQuery(ValidationError):
    """Raised when a user-supplied search body is not a well-formed JSON object."""

    pass


class CollaboratorError(IndexLensError):
    """Raised when a backend or directory call fails.

    The message is surfaced to the user verbatim.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StaleResponseDiscarded(IndexLensError):
    """Internal signal: a completed fetch no longer matches the wanted snapshot.

    Never surfaced to the user; the controller treats it as a no-op.
    """

    pass
