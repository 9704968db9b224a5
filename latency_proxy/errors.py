# latency_proxy/errors.py
from __future__ import annotations


class LatencyProxyError(Exception):
    """Base class for everything raised by latency_proxy."""


class PollError(LatencyProxyError):
    """One endpoint failed to produce records for this cycle."""


class ConnectionFailed(PollError):
    pass


class IncompleteResponse(PollError):
    """Stream ended before the terminal SLINFO record."""


class DecodeError(PollError):
    """The INFO payload was not the expected XML document."""


class InvalidQuery(LatencyProxyError, ValueError):
    pass


class NotReady(LatencyProxyError):
    """No refresh cycle has completed yet."""
