"""Exception hierarchy for the swap monitor.

Provides specific exception types for the failure modes the monitor
distinguishes between: bad configuration, remote API failures, status file
conflicts and daemon control problems.
"""
from __future__ import annotations

from typing import Any, Optional


class SwapWatchException(Exception):
    """Base exception for all swap monitor errors."""
    pass


class ConfigurationException(SwapWatchException):
    """Required configuration is missing or invalid."""
    pass


class SwapClientError(SwapWatchException):
    """Remote swap API call failed (transport, HTTP status or malformed body)."""

    def __init__(self, message: str, status: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status = status
        self.body = body


class DuplicateOrderError(SwapWatchException):
    """An order record with the same hash already exists in the status file."""
    pass


class DaemonError(SwapWatchException):
    """Monitor daemon could not be started or stopped."""
    pass
