"""Exception hierarchy for the Pinboard vault sync."""

from typing import Optional


class PinboardError(Exception):
    """Base class for every error raised by this package."""


class RequestValidationError(PinboardError, ValueError):
    """An endpoint was called with arguments the API would reject."""


class TransportError(PinboardError):
    """The HTTP request failed or returned a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        method: Optional[str] = None,
        url: Optional[str] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.method = method
        self.url = url
        self.body = body


class DecodeError(PinboardError):
    """A response could not be decoded into the expected shape."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.body = body


class JoinError(PinboardError):
    """A note could not be matched to exactly one bookmark."""


class SyncError(PinboardError):
    """A sync run could not complete."""
