"""Core load testing components."""

from .models import (
    CONNECTION_ERROR_CODE,
    ConfigurationError,
    LatencyStats,
    LoadTestConfig,
    LoadTestResult,
    RequestSpec,
    TransportOutcome,
)
from .timing import HighResolutionTimer, LatencyError, LatencyTracker
from .clients import HttpClient, VirtualClient, WebSocketClient, client_class_for_url
from .operation import Operation, load_test
from .body_loader import load_body

__all__ = [
    "CONNECTION_ERROR_CODE",
    "ConfigurationError",
    "LatencyStats",
    "LoadTestConfig",
    "LoadTestResult",
    "RequestSpec",
    "TransportOutcome",
    "HighResolutionTimer",
    "LatencyError",
    "LatencyTracker",
    "HttpClient",
    "VirtualClient",
    "WebSocketClient",
    "client_class_for_url",
    "Operation",
    "load_test",
    "load_body",
]
