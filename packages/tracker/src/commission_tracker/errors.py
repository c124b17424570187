"""Error taxonomy shared by the domain logic, the clients and the web layer."""

from typing import Any


class TrackerError(Exception):
    """Base exception for commission tracker errors.

    Every kind declares whether retrying the same call can succeed, so
    callers (and the web layer) can tell transient failures from terminal ones.
    """

    kind = "tracker_error"
    retryable = False

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for API responses."""
        return {
            "error": self.kind,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class InvalidDate(TrackerError):
    """A date or timestamp could not be parsed."""

    kind = "invalid_date"


class UnknownPeriod(TrackerError):
    """A payroll lookup fell outside the tabulated calendar years."""

    kind = "unknown_period"


class ValidationFailed(TrackerError):
    """Input was rejected before any side effect was applied."""

    kind = "validation_failed"

    def __init__(self, message: str, problems: list[str] | None = None):
        super().__init__(message, details={"problems": problems or []})
        self.problems = problems or []


class NotFound(TrackerError):
    """A policy or profile id is unknown or not owned by the caller."""

    kind = "not_found"


class UpstreamUnavailable(TrackerError):
    """The data store, chat service or identity provider failed."""

    kind = "upstream_unavailable"
    retryable = True

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: Any = None,
        retryable: bool | None = None,
    ):
        super().__init__(message, details=details)
        self.status_code = status_code
        if retryable is not None:
            self.retryable = retryable
