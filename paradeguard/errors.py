"""Error taxonomy shared by the fetchers, the engine and the result assembler.

Callers branch on the exception class (or its `code`), never on message text.
Only `UpstreamUnavailableError` is retryable; everything else propagates to the
caller immediately.
"""

from __future__ import annotations


class ParadeGuardError(Exception):
    """Base class for all ParadeGuard failures."""

    code: str = "error"
    retryable: bool = False

    def __init__(self, message: str, *, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        """Serializable error body for whatever transport sits on top of the core."""
        body = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class InvalidInputError(ParadeGuardError, ValueError):
    """Caller-correctable input problem. Raised before any network call."""

    code = "invalid_input"


class LocationNotFoundError(ParadeGuardError):
    """The geocoder answered but had no match for the location text."""

    code = "not_found"


class UnauthenticatedError(ParadeGuardError):
    """Provider key missing or rejected. A configuration defect, never retried."""

    code = "unauthenticated"


class UpstreamUnavailableError(ParadeGuardError):
    """Transient transport failure, timeout or non-2xx answer."""

    code = "upstream_unavailable"
    retryable = True


class UpstreamInvalidResponseError(ParadeGuardError):
    """The provider answered with a payload we cannot interpret."""

    code = "upstream_invalid_response"


class NoDataError(ParadeGuardError):
    """A structurally valid response held zero usable records."""

    code = "no_data"


__all__ = [
    "ParadeGuardError",
    "InvalidInputError",
    "LocationNotFoundError",
    "UnauthenticatedError",
    "UpstreamUnavailableError",
    "UpstreamInvalidResponseError",
    "NoDataError",
]
