"""Exception hierarchy shared by the harvest pipeline."""

from __future__ import annotations


class HarvestError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(HarvestError):
    """A request could not be built; raised before any network call."""


class CredentialError(ValidationError):
    """The API credential is missing or malformed."""


class FetchError(HarvestError):
    """Base class for failures talking to the search API."""

    def __init__(self, message: str, *, url: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class TransientFetchError(FetchError):
    """Network failure, rate limiting or server error; safe to retry."""


class PermanentFetchError(FetchError):
    """Client error or an error reported inside the response body."""


class MalformedResponseError(FetchError):
    """Response body is not the structure the caller expected."""


__all__ = [
    "CredentialError",
    "FetchError",
    "HarvestError",
    "MalformedResponseError",
    "PermanentFetchError",
    "TransientFetchError",
    "ValidationError",
]
