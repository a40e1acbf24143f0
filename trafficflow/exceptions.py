"""
Error taxonomy for the Traffic Flow Dashboard API.

Configuration problems are rejected before any backend is contacted, backend
failures are recovered by the historical fetcher, and only the loss of every
row backend surfaces as a request-level error.
"""

from typing import Any, Optional


class TrafficFlowError(Exception):
    """Base class for all application errors"""


class ConfigurationError(TrafficFlowError):
    """Invalid or missing client-supplied configuration (key file, property id)"""


class InvalidTokenError(ConfigurationError):
    """Credential token unknown or expired"""

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message)


class BackendQueryError(TrafficFlowError):
    """A BigQuery or GA4 call failed"""

    def __init__(self, backend: str, message: str):
        super().__init__(f"{backend} failed: {message}")
        self.backend = backend
        self.reason = message


class AllBackendsFailedError(TrafficFlowError):
    """Every attempted row backend failed; carries the debug trail for diagnosis"""

    def __init__(self, message: str, debug: Optional[Any] = None, details: Optional[str] = None):
        super().__init__(message)
        self.debug = debug
        self.details = details
