"""Error taxonomy shared by the resolver, validator and remote client.

Local validation never raises for problems in the instance itself; those
end up as issues in a ValidationOutcome. Everything here is for failures
the caller has to react to.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models.outcome import Issue, ValidationOutcome


class FhirKitError(Exception):
    """Base class for all fhirkit errors."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        outcome: ValidationOutcome | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.outcome = outcome


class NotFound(FhirKitError):
    """A profile, value set or remote resource does not exist."""


class ValidationError(FhirKitError):
    """An instance was rejected as invalid. Carries the reported issues."""

    @property
    def issues(self) -> tuple[Issue, ...]:
        if self.outcome is None:
            return ()
        return self.outcome.issues


class ConflictError(FhirKitError):
    """The server refused a write because of a state conflict (409/412)."""


class TransportError(FhirKitError):
    """Connectivity, timeout or protocol-level failure talking to a server.

    The only error kind a caller may retry without changing the request.
    """

    retryable = True


class ConfigurationError(FhirKitError):
    """The resolver was set up with no usable definition store."""


class RemoteOperationError(FhirKitError):
    """Any other non-success answer from the server (401, 403, 405, 500...)."""
