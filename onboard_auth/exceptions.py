"""Failure kinds raised or reported by the session client."""

from typing import Optional


class AuthFailure(RuntimeError):
    """Base class for failures surfaced to callers of this package."""

    default_message = 'An unexpected error occurred'

    def __init__(self, message: Optional[str] = None,
                 status_code: Optional[int] = None) -> None:
        self.message = message or self.default_message
        self.status_code = status_code
        super(AuthFailure, self).__init__(self.message)


class InvalidCredentials(AuthFailure):
    """The Account Service rejected login, registration or verification."""

    default_message = 'Invalid email or password'


class SessionExpired(AuthFailure):
    """The silent refresh failed; the user must log in again."""

    default_message = 'Session has expired'


class Unauthorized(AuthFailure):
    """Authorization failed again after a refresh and single retry."""

    default_message = 'Not authorized'


class NetworkError(AuthFailure):
    """The Account Service could not be reached."""

    default_message = 'Could not reach the account service'


class RequestFailed(AuthFailure):
    """The Account Service rejected the request for another reason."""


class ValidationFailed(AuthFailure):
    """A local precondition for the operation does not hold."""


class TokenStorageError(RuntimeError):
    """Failed to read or write the persisted credential."""


class RedirectLoop(RuntimeError):
    """Guard redirects did not settle on a renderable path."""
