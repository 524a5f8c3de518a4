"""Exception types shared by the backend client, services and controllers."""

from __future__ import annotations


class ShipdeskError(RuntimeError):
    """Base class for application errors."""


class BackendError(ShipdeskError):
    """Raised when the hosted backend rejects or fails a request."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.status_code = status_code


class BackendTimeout(BackendError):
    """The request did not complete before the client-side timeout."""


class BackendUnavailable(BackendError):
    """The backend could not be reached at all."""


class RecordNotFound(BackendError):
    """A single-row lookup matched nothing."""


class ValidationError(ShipdeskError):
    """Raised when user input fails local validation.

    ``errors`` maps field names to the message shown next to that field.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        first = next(iter(self.errors.values()), "Invalid input")
        super().__init__(first)


class InvalidTransition(ShipdeskError):
    """A shipment action was attempted from a state that does not allow it."""

    def __init__(self, action: str, status: str | None, message: str | None = None) -> None:
        self.action = action
        self.status = status
        super().__init__(
            message or f"Cannot {action.replace('_', ' ')} a shipment in status {status or 'unknown'}."
        )


class ProcessingBusy(ShipdeskError):
    """A mutation was submitted while another one is still in flight."""
