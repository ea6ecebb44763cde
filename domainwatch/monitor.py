"""Endpoint probing and the per-cycle check runner."""

import logging
import time
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from urllib.parse import urlsplit

import requests

from .config import (
    DEFAULT_LATENCY_THRESHOLD_MS,
    DEFAULT_TIMEOUT,
    EndpointConfig,
    MonitorConfig,
)
from .models import ProbeResult
from .store import DomainStatusStore

logger = logging.getLogger(__name__)

# Chunk size used to drain response bodies that are never inspected.
DRAIN_CHUNK_SIZE = 64 * 1024


def extract_domain(url: str) -> str | None:
    """Return the hostname of ``url``, or None if it has none.

    Ports and credentials are stripped, so ``https://a.com:8443/x`` and
    ``http://a.com/`` share the domain ``a.com``.
    """
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return None
    return hostname or None


def _is_up(status_code: int, elapsed_ms: int, latency_threshold_ms: int) -> bool:
    """Classify a completed response: 2xx and faster than the threshold."""
    return 200 <= status_code < 300 and elapsed_ms < latency_threshold_ms


def _drain(response: requests.Response) -> None:
    """Read and discard the remaining response body."""
    for _ in response.iter_content(chunk_size=DRAIN_CHUNK_SIZE):
        pass


def create_session(user_agent: str) -> requests.Session:
    """Create an HTTP session that sends ``user_agent`` unless overridden."""
    session = requests.Session()
    session.headers["User-Agent"] = user_agent
    return session


def check_endpoint(
    endpoint: EndpointConfig,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    latency_threshold_ms: int = DEFAULT_LATENCY_THRESHOLD_MS,
    domain: str | None = None,
) -> ProbeResult:
    """Send exactly one request to an endpoint and classify the outcome.

    Elapsed time is measured until the status line and headers arrive. The
    body is then drained and the connection released whatever the status.
    Any transport failure (refused connection, DNS error, timeout, invalid
    URL) yields a down result; nothing is retried.

    Args:
        endpoint: Endpoint to probe.
        session: Session to send the request with. A throwaway session is
            used when omitted.
        timeout: Connect and read timeout in seconds.
        latency_threshold_ms: Responses this slow or slower are down.
        domain: Precomputed hostname for the result; derived from the URL
            when omitted.

    Returns:
        ProbeResult with status, response time, and any error details.
    """
    if session is None:
        with requests.Session() as own_session:
            return check_endpoint(endpoint, own_session, timeout, latency_threshold_ms, domain)

    if domain is None:
        domain = extract_domain(endpoint.url) or ""

    checked_at = datetime.now(UTC)
    start = time.monotonic()

    try:
        with session.request(
            endpoint.effective_method,
            endpoint.url,
            headers=dict(endpoint.headers),
            data=endpoint.body.encode("utf-8"),
            timeout=timeout,
            stream=True,
        ) as response:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            status_code = response.status_code
            _drain(response)

        return ProbeResult(
            endpoint_name=endpoint.name,
            url=endpoint.url,
            domain=domain,
            status_code=status_code,
            response_time_ms=elapsed_ms,
            is_up=_is_up(status_code, elapsed_ms, latency_threshold_ms),
            error_message=None,
            checked_at=checked_at,
        )

    except requests.RequestException as e:
        elapsed_ms = int((time.monotonic() - start) * 1000)
        return ProbeResult(
            endpoint_name=endpoint.name,
            url=endpoint.url,
            domain=domain,
            status_code=None,
            response_time_ms=elapsed_ms,
            is_up=False,
            error_message=str(e) or type(e).__name__,
            checked_at=checked_at,
        )

    except Exception as e:
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.warning("Unexpected error probing %s: %s", endpoint.url, e)
        return ProbeResult(
            endpoint_name=endpoint.name,
            url=endpoint.url,
            domain=domain,
            status_code=None,
            response_time_ms=elapsed_ms,
            is_up=False,
            error_message=str(e) or type(e).__name__,
            checked_at=checked_at,
        )


class Monitor:
    """Runs one probe per endpoint per cycle and folds outcomes into a store.

    Endpoints are probed in configuration order. With ``workers > 1`` the
    probes of a cycle run on a thread pool instead; the store serializes
    the resulting updates and results are still returned in order.

    Example:
        store = DomainStatusStore()
        with Monitor(config.endpoints, store, config.monitor) as monitor:
            monitor.run_cycle()
    """

    def __init__(
        self,
        endpoints: Iterable[EndpointConfig],
        store: DomainStatusStore,
        config: MonitorConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the monitor.

        Args:
            endpoints: Endpoints to probe each cycle, in order.
            store: Store receiving the per-domain counters.
            config: Timeout, latency threshold and concurrency settings.
            session: HTTP session to reuse. One is created (and closed by
                ``close()``) when omitted.
        """
        self._endpoints = tuple(endpoints)
        self._store = store
        self._config = config if config is not None else MonitorConfig()
        self._owns_session = session is None
        self._session = session if session is not None else create_session(self._config.user_agent)
        self._cycle_count = 0

    @property
    def cycle_count(self) -> int:
        """Number of cycles completed so far."""
        return self._cycle_count

    def run_cycle(self) -> list[ProbeResult]:
        """Probe every endpoint once and update the store.

        Endpoints whose URL has no hostname are skipped with a warning and
        leave the domain counters untouched.

        Returns:
            Results for the endpoints that were probed, in configuration order.
        """
        targets: list[tuple[EndpointConfig, str]] = []
        for endpoint in self._endpoints:
            domain = extract_domain(endpoint.url)
            if domain is None:
                logger.warning(
                    "Skipping endpoint '%s': cannot extract a hostname from URL %r",
                    endpoint.name,
                    endpoint.url,
                )
                self._store.record_skipped()
                continue
            targets.append((endpoint, domain))

        if self._config.workers > 1 and len(targets) > 1:
            results = self._probe_concurrently(targets)
        else:
            results = [self._probe(endpoint, domain) for endpoint, domain in targets]

        self._cycle_count += 1
        logger.info(
            "Cycle %d complete: %d/%d endpoints up",
            self._cycle_count,
            sum(1 for r in results if r.is_up),
            len(results),
        )
        return results

    def _probe(self, endpoint: EndpointConfig, domain: str) -> ProbeResult:
        """Probe one endpoint and record its outcome."""
        result = check_endpoint(
            endpoint,
            self._session,
            timeout=self._config.timeout,
            latency_threshold_ms=self._config.latency_threshold_ms,
            domain=domain,
        )
        self._store.record(domain, result.is_up)

        status = "UP" if result.is_up else "DOWN"
        if result.error_message is not None:
            logger.debug("%s: %s (%s, %dms)", domain, status, result.error_message, result.response_time_ms)
        else:
            logger.debug("%s: %s (%d, %dms)", domain, status, result.status_code, result.response_time_ms)
        return result

    def _probe_concurrently(self, targets: list[tuple[EndpointConfig, str]]) -> list[ProbeResult]:
        """Probe targets on a thread pool, preserving their order in the result."""
        with ThreadPoolExecutor(max_workers=min(self._config.workers, len(targets))) as executor:
            futures = [executor.submit(self._probe, endpoint, domain) for endpoint, domain in targets]
            return [future.result() for future in futures]

    def close(self) -> None:
        """Release the HTTP session if this monitor created it."""
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> "Monitor":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
