"""Error kinds raised by the service layer.

Every service operation translates store and catalog failures into one of
these before they reach a route handler.  Each kind carries the HTTP status
the Flask layer answers with, so ``playlog_web`` needs a single handler for
the whole family.
"""
from typing import Optional


class CollectionError(Exception):
    """Base class for all PlayLog service errors."""

    status_code = 500

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        payload = {'error': self.message}
        if self.field:
            payload['field'] = self.field
        return payload


class AuthenticationError(CollectionError):
    """No valid principal for the request."""

    status_code = 401


class ValidationError(CollectionError):
    """Missing or out-of-range input."""

    status_code = 400


class DuplicateError(CollectionError):
    """The (user, game) pair is already logged."""

    status_code = 409


class NotFoundError(CollectionError):
    """A referenced record does not exist."""

    status_code = 404


class UpstreamError(CollectionError):
    """The external game catalog failed; the caller may retry."""

    status_code = 503


class StorageError(CollectionError):
    """The durable store failed for a reason other than a uniqueness clash."""

    status_code = 500
