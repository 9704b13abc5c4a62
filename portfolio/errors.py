"""
Exception types raised by stores and clients.
"""

from __future__ import annotations


class PortfolioError(Exception):
    """Base class for errors raised inside the package."""


class StoreError(PortfolioError):
    """A backing store could not complete the request."""


class NotFoundError(StoreError):
    """The addressed row or object does not exist."""


class UploadError(PortfolioError):
    """A blob upload or public URL lookup failed."""


class ApiError(StoreError):
    """The thin HTTP API answered with an error or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ApiAuthError(ApiError):
    """The HTTP API rejected the admin password."""
