"""
Typed failures raised by the core components.

Every error carries a machine-readable ``code`` and the HTTP status the
API layer should answer with, so routers never have to guess how to
classify an exception.
"""

from __future__ import annotations


class PlayScannerError(Exception):
    """Base class for all classified PLAYScanner failures."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message, "code": self.code}


class InvalidRequestError(PlayScannerError):
    """Client sent a malformed request (never retried)."""

    code = "VALIDATION_ERROR"
    status_code = 400


class SearchValidationError(InvalidRequestError):
    """A search query failed validation before reaching the store or providers."""


class UnauthorizedError(PlayScannerError):
    """Missing or wrong bearer token.  The message never says which."""

    code = "UNAUTHORIZED"
    status_code = 401


class ProviderError(PlayScannerError):
    """An upstream booking provider failed (network, HTTP status, payload)."""

    code = "PROVIDER_ERROR"
    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        code: str | None = None,
        upstream_status: int | None = None,
    ) -> None:
        super().__init__(message, code=code)
        self.provider = provider
        self.upstream_status = upstream_status


class ProviderTimeoutError(ProviderError):
    """A bounded call did not finish within its deadline."""

    code = "PROVIDER_TIMEOUT"
    status_code = 504


class SearchUnavailableError(PlayScannerError):
    """Every provider queried by a live search failed."""

    code = "PROVIDER_ERROR"
    status_code = 502


class StoreError(PlayScannerError):
    """The persistent cache store could not be reached or written."""

    code = "STORE_ERROR"
    status_code = 503


class CollectionInProgressError(PlayScannerError):
    """A collection pass is already running in this process."""

    code = "COLLECTION_IN_PROGRESS"
    status_code = 409
