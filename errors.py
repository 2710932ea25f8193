"""
Error types raised by the marketplace client.

The API client raises; view-model actions and flows catch at the call site,
log, and turn the error into a user-facing notice.
"""

from typing import Optional


class MarketplaceError(Exception):
    """Base class for every client-side failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NetworkFailure(MarketplaceError):
    """The request never produced a usable response (connection, timeout, bad JSON)."""


class ServerRejection(MarketplaceError):
    """The backend answered with a non-2xx status."""

    def __str__(self) -> str:
        return f"HTTP {self.status_code}: {self.message}"


class ValidationError(MarketplaceError):
    """Input rejected locally before any request was sent."""
