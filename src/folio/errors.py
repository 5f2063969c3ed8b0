"""Error taxonomy for the list-view engine.

All I/O failures are raised as subclasses of :class:`FolioError` at the
REST client boundary.  :class:`~folio.cache.DataCache` turns fetch failures
into state; mutation failures propagate to the caller.
"""

from __future__ import annotations


class FolioError(RuntimeError):
    """Base folio error."""


class FetchFailure(FolioError):
    """Raised when loading a collection fails (network error or non-2xx)."""

    def __init__(self, *, status_code: int | None, message: str) -> None:
        self.status_code = status_code
        self.message = message
        if status_code is None:
            super().__init__(f"Fetch failed: {message}")
        else:
            super().__init__(f"Fetch failed ({status_code}): {message}")


class ShapeMismatch(FetchFailure):
    """Raised when a collection payload is neither a list nor a known envelope."""

    def __init__(self, *, resource: str, message: str) -> None:
        self.resource = resource
        super().__init__(status_code=None, message=f"Unexpected {resource} payload: {message}")


class MutationFailure(FolioError):
    """Raised when a create/update/delete request fails."""

    def __init__(self, *, operation: str, status_code: int | None, message: str) -> None:
        self.operation = operation
        self.status_code = status_code
        self.message = message
        if status_code is None:
            super().__init__(f"{operation} failed: {message}")
        else:
            super().__init__(f"{operation} failed ({status_code}): {message}")
