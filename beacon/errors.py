"""Exception hierarchy shared by the worker and its callers."""

from typing import Optional


class BeaconError(Exception):
    """Base class for all engine errors."""
    pass


class ProtocolError(BeaconError, ValueError):
    """Unknown operation tag or malformed payload shape."""
    pass


class ComputationError(BeaconError):
    """Well-formed input the analytics cannot make sense of."""
    pass


class AnalyticsError(BeaconError):
    """Raised on the caller side when the worker answered with ERROR."""

    def __init__(self, message: str, trace: Optional[str] = None, kind: str = "computation"):
        super().__init__(message)
        self.message = message
        self.trace = trace
        self.kind = kind
