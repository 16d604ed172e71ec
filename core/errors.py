"""
Error types shared by the worker, the store and the API.
"""
from __future__ import annotations


class BirdTrailError(Exception):
    """Base class for all application errors."""


class ConfigurationError(BirdTrailError):
    """Required settings (e.g. the eBird API key) are missing. Fatal at startup."""


class FetchError(BirdTrailError):
    """The sighting feed was unreachable or answered with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class DispatchError(BirdTrailError):
    """The alert transport failed to accept a message."""


class StoreError(BirdTrailError):
    """A subscription store write failed."""


class LocationLookupError(BirdTrailError):
    def __init__(self, message: str, rate_limited: bool = False):
        super().__init__(message)
        self.rate_limited = rate_limited


__all__ = [
    "BirdTrailError",
    "ConfigurationError",
    "FetchError",
    "DispatchError",
    "StoreError",
    "LocationLookupError",
]
