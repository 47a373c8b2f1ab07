"""Exception types raised by the extraction and classification stages."""

from typing import Optional

__all__ = [
    "SuperScraperError",
    "MissingCredentialsError",
    "MalformedResponseError",
    "RetryExhaustedError",
    "ExtractionError",
    "StoreSearchError",
]


class SuperScraperError(Exception):
    """Base class for all package errors."""


class MissingCredentialsError(SuperScraperError):
    """No usable API key remains; the user has to configure credentials."""

    code = "MISSING_API_KEY"

    def __init__(self, message: str = "MISSING_API_KEY"):
        super().__init__(message)


class MalformedResponseError(SuperScraperError):
    """The service answered with something that is not the requested JSON."""

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw


class RetryExhaustedError(SuperScraperError):
    """An operation kept failing until the retry bound was reached."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


class ExtractionError(SuperScraperError):
    """Raw product extraction failed for one task."""


class StoreSearchError(SuperScraperError):
    """Store search failed on every model."""
