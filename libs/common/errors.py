"""Domain errors raised by the Firestore services.

The API layer maps each error to an HTTP status through ``status_code``
and to a stable machine-readable ``error_code``.
"""


class CoachingError(Exception):
    """Base class for all domain errors."""

    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(CoachingError):
    """A business rule rejected an otherwise well-formed request."""

    status_code = 400
    error_code = "INVALID_REQUEST"


class ConflictError(CoachingError):
    """The request would break a uniqueness invariant."""

    status_code = 400
    error_code = "CONFLICT"


class NotFoundError(CoachingError):
    """A referenced document does not exist."""

    status_code = 404
    error_code = "NOT_FOUND"


class AuthorizationError(CoachingError):
    """Missing or invalid credentials, or a caller without admin rights."""

    status_code = 401
    error_code = "UNAUTHORIZED"

    def __init__(self, message: str, forbidden: bool = False):
        super().__init__(message)
        if forbidden:
            self.status_code = 403
            self.error_code = "FORBIDDEN"


class UpstreamError(CoachingError):
    """The document store or the model provider failed."""

    status_code = 503
    error_code = "UPSTREAM_UNAVAILABLE"
