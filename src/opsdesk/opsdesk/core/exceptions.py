class DomainError(Exception):
    """Base class for errors services raise on purpose.

    ``status_code`` is the HTTP status ``web.auth.handle_errors`` answers with.
    """

    status_code = 400


class ValidationError(DomainError):
    """Bad input, or a request that breaks a business rule."""


class AuthenticationError(DomainError):
    status_code = 401


class AuthorizationError(DomainError):
    status_code = 403


class NotFoundError(DomainError):
    status_code = 404


class ConflictError(DomainError):
    """A write collided with a row another request inserted first."""

    status_code = 409
