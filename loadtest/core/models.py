"""Data models for load testing."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any, Union
from urllib.parse import urlsplit

HTTP_SCHEMES = ("http", "https")
WEBSOCKET_SCHEMES = ("ws", "wss")

# Error code reported for requests that never got a response
CONNECTION_ERROR_CODE = -1


class ConfigurationError(ValueError):
    """Raised when a load test is configured in a way that cannot run."""


@dataclass
class LoadTestConfig:
    """Configuration for a single load test run."""

    url: str = ""
    concurrency: int = 1

    # Stop conditions
    max_requests: Optional[int] = None
    max_seconds: Optional[float] = None

    # Open-loop mode: requests per second for each client
    requests_per_second: Optional[float] = None

    # Request contents
    method: str = "GET"
    body: Optional[Union[str, bytes, Dict[str, Any], List[Any]]] = None
    content_type: Optional[str] = None
    cookies: List[str] = field(default_factory=list)

    # Replace this token in the URL with the client index
    index_param: Optional[str] = None

    # Connection handling
    keep_alive: bool = False
    recover: bool = False

    # Reporting
    show_interval_ms: int = 5000
    drain_seconds: float = 2.0
    quiet: bool = False
    debug: bool = False

    @property
    def is_rate_limited(self) -> bool:
        """Check if clients are paced by a fixed request rate."""
        return self.requests_per_second is not None

    @property
    def test_mode(self) -> str:
        return "open_loop" if self.is_rate_limited else "closed_loop"

    def url_for_client(self, index: int) -> str:
        """Return the target URL for the client in slot ``index``."""
        if not self.index_param:
            return self.url
        return self.url.replace(self.index_param, str(index))

    def encoded_body(self) -> Optional[bytes]:
        """Encode the body as bytes, or None when there is no body."""
        if self.body is None:
            return None
        if isinstance(self.body, bytes):
            return self.body
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        if isinstance(self.body, (dict, list)):
            return json.dumps(self.body).encode("utf-8")
        raise ConfigurationError(f"Unrecognized body: {type(self.body).__name__}")

    def resolved_content_type(self) -> str:
        if self.content_type:
            return self.content_type
        if isinstance(self.body, (dict, list)):
            return "application/json"
        return "text/plain"

    def validate(self) -> None:
        """
        Check that the configuration describes a runnable test.

        Raises:
            ConfigurationError: If any option is missing or out of range
        """
        if not self.url:
            raise ConfigurationError("Missing URL")
        parts = urlsplit(self.url)
        if parts.scheme.lower() not in HTTP_SCHEMES + WEBSOCKET_SCHEMES:
            raise ConfigurationError(
                f"Unsupported URL scheme '{parts.scheme}' in {self.url}: "
                "use http, https, ws or wss"
            )
        if not parts.netloc:
            raise ConfigurationError(f"Missing host in URL {self.url}")
        if self.concurrency < 1:
            raise ConfigurationError("Concurrency must be at least 1")
        if self.max_requests is not None and self.max_requests <= 0:
            raise ConfigurationError("Max requests must be positive")
        if self.max_seconds is not None and self.max_seconds <= 0:
            raise ConfigurationError("Max seconds must be positive")
        if self.requests_per_second is not None and self.requests_per_second <= 0:
            raise ConfigurationError("Requests per second must be positive")
        if self.show_interval_ms <= 0:
            raise ConfigurationError("Show interval must be positive")
        if self.drain_seconds < 0:
            raise ConfigurationError("Drain seconds cannot be negative")
        if not self.method:
            raise ConfigurationError("Missing request method")
        if self.index_param and self.index_param not in self.url:
            raise ConfigurationError(
                f"Index parameter '{self.index_param}' not found in URL {self.url}"
            )
        self.encoded_body()


@dataclass
class RequestSpec:
    """What a transport sends for one request."""

    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None


@dataclass
class TransportOutcome:
    """Result of a single request/response exchange."""

    # Connection-level failure description, None if a response arrived
    error: Optional[str] = None
    status: Optional[int] = None

    @property
    def error_code(self) -> Optional[int]:
        """Error code to record, or None for a successful exchange."""
        if self.error is not None:
            return CONNECTION_ERROR_CODE
        if self.status is not None and self.status >= 300:
            return self.status
        return None

    @property
    def success(self) -> bool:
        return self.error_code is None


@dataclass
class LatencyStats:
    """Aggregate statistics over a window of completed requests."""

    # Request metrics
    total_requests: int
    successful_requests: int
    failed_requests: int
    error_codes: Dict[int, int]

    # Latency metrics (milliseconds)
    avg_latency_ms: float
    min_latency_ms: float
    max_latency_ms: float
    p50_latency_ms: float
    p95_latency_ms: float
    p99_latency_ms: float
    total_latency_ms: float

    # Throughput metrics
    elapsed_seconds: float
    throughput_rps: float

    @property
    def error_rate(self) -> float:
        """Percentage of failed requests."""
        if not self.total_requests:
            return 0.0
        return self.failed_requests / self.total_requests * 100

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "error_codes": dict(self.error_codes),
            "avg_latency_ms": self.avg_latency_ms,
            "min_latency_ms": self.min_latency_ms,
            "max_latency_ms": self.max_latency_ms,
            "p50_latency_ms": self.p50_latency_ms,
            "p95_latency_ms": self.p95_latency_ms,
            "p99_latency_ms": self.p99_latency_ms,
            "total_latency_ms": self.total_latency_ms,
            "elapsed_seconds": self.elapsed_seconds,
            "throughput_rps": self.throughput_rps,
            "error_rate": self.error_rate,
        }


@dataclass
class LoadTestResult:
    """Results from a single load test run."""

    # Test identification
    url: str
    test_mode: str  # "closed_loop" or "open_loop"
    concurrency: int

    # Completions counted before the stop, and why the run stopped
    completed_requests: int
    stop_reason: str

    # Final statistics over the whole run
    stats: LatencyStats

    # Requests still running when the stop fired
    in_flight_at_stop: int = 0

    # Optional: per-client target rate (open-loop mode)
    target_requests_per_second: Optional[float] = None

    # Optional timing metadata
    start_timestamp: Optional[datetime] = None
    end_timestamp: Optional[datetime] = None

    # Periodic snapshots taken during the run
    partials: List[LatencyStats] = field(default_factory=list, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a flat dictionary for serialization."""
        data = {
            "url": self.url,
            "test_mode": self.test_mode,
            "concurrency": self.concurrency,
            "completed_requests": self.completed_requests,
            "stop_reason": self.stop_reason,
            "in_flight_at_stop": self.in_flight_at_stop,
            "target_requests_per_second": self.target_requests_per_second,
        }
        data.update(self.stats.to_dict())
        return data
