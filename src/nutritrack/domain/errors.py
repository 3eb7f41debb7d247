"""Error taxonomy for consumption logging and propagation."""


class NutritrackError(Exception):
    """Base class for all nutritrack errors."""


class ValidationError(NutritrackError):
    """Raised when a request is malformed or rejected by the remote store."""


class AuthExpired(NutritrackError):
    """Raised when the remote store rejects the bearer credential."""


class RemoteUnavailable(NutritrackError):
    """Raised on network failures, server faults and undecodable responses."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class LocalMirrorFailure(NutritrackError):
    """Raised when the local cache could not mirror a remote entity."""


class HealthWriteFailure(NutritrackError):
    """Raised when the health store rejects a nutrition write."""


class InvalidFactor(NutritrackError, ValueError):
    """Raised when a nutrient vector is scaled by a negative or non-finite factor."""


class PhaseTransitionError(NutritrackError):
    """Raised when a requested authorization phase is not the next one."""


class HealthAuthorizationDenied(NutritrackError):
    """Raised when the health store does not grant the requested scopes."""


class CommittedResponseUnreadable(RemoteUnavailable):
    """Raised when a remote write succeeded but its response body is unusable.

    The record exists remotely, so the request must not be retried as is.
    """


class HealthStoreUnavailable(NutritrackError):
    """Raised when the health store cannot be reached or refuses a read."""
