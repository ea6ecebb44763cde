"""Data models for probe results and per-domain counters."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ProbeResult:
    """Result of a single endpoint probe.

    Attributes:
        endpoint_name: Label of the probed endpoint.
        url: Full URL that was probed.
        domain: Hostname the result is aggregated under.
        status_code: HTTP status code, or None if the request failed.
        response_time_ms: Elapsed time until the response headers arrived
            (or the request failed), in milliseconds.
        is_up: True for a 2xx response faster than the latency threshold.
        error_message: Transport error description, None if a response arrived.
        checked_at: Timestamp when the probe started.
    """

    endpoint_name: str
    url: str
    domain: str
    status_code: int | None
    response_time_ms: int
    is_up: bool
    error_message: str | None
    checked_at: datetime


@dataclass
class DomainStatus:
    """Cumulative probe counters for one domain.

    Invariant: ``0 <= up_count <= requests``.
    """

    requests: int = 0
    up_count: int = 0

    @property
    def availability(self) -> float:
        """Percentage of probes classified as up (0.0 with no probes)."""
        if self.requests == 0:
            return 0.0
        return 100 * (self.up_count / self.requests)
