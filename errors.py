"""
Exception types raised by the cycle-time pipeline.
"""
from typing import Optional


class CycleTimeError(Exception):
    """Base class for every error surfaced by tickets()/metrics()."""


class ConfigurationError(CycleTimeError):
    """Required identification (org, token) is missing or a setting is invalid."""


class UpstreamFetchError(CycleTimeError):
    """A ticket-list or timeline request failed after retries."""

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.url = url


class CacheStoreError(CycleTimeError):
    """The backing cache store failed or returned an undecodable payload."""


__all__ = ["CycleTimeError", "ConfigurationError", "UpstreamFetchError", "CacheStoreError"]
