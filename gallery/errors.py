"""Error taxonomy for the gallery core.

Every failure raised by this package derives from ``GalleryError`` so
callers can translate them at their own boundary (CLI, web handler, ...).
"""

from __future__ import annotations

from typing import Optional, Union


class GalleryError(Exception):
    """Base class for all gallery failures."""


class ValidationFailure(GalleryError):
    """Uploaded metadata violates a registry constraint.

    Always raised before anything is staged in the store.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        limit: Optional[Union[int, str]] = None,
    ) -> None:
        super().__init__(message)
        self.field = field
        self.limit = limit

    @classmethod
    def too_long(cls, field: str, limit: int) -> "ValidationFailure":
        return cls(
            f"The package manifest contains an invalid '{field}' property: "
            f"value exceeds the maximum length of {limit}",
            field=field,
            limit=limit,
        )


class ConflictFailure(GalleryError):
    """A uniqueness rule would be broken (duplicate id, version or request)."""


class AuthorizationFailure(GalleryError):
    """The acting user does not own the registration."""


class InvariantViolation(GalleryError):
    """An illegal state transition was attempted."""


class NotFound(GalleryError):
    """A lookup the caller relied on came back empty."""


class StorageFailure(GalleryError):
    """The store could not persist committed state."""
