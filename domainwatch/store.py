"""Thread-safe store of cumulative per-domain probe counters."""

import threading

from .models import DomainStatus


class DomainStatusStore:
    """Mapping from hostname to cumulative request and up counters.

    Entries are created lazily and never removed. All reads and writes go
    through a single lock, so iteration never observes a half-applied update.
    ``snapshot()`` hands out copies; callers cannot mutate the live counters.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._statuses: dict[str, DomainStatus] = {}
        self._skipped = 0

    def _get_or_create_locked(self, domain: str) -> DomainStatus:
        status = self._statuses.get(domain)
        if status is None:
            status = DomainStatus()
            self._statuses[domain] = status
        return status

    def get_or_create(self, domain: str) -> DomainStatus:
        """Ensure an entry exists for ``domain`` and return a copy of it."""
        with self._lock:
            status = self._get_or_create_locked(domain)
            return DomainStatus(status.requests, status.up_count)

    def increment_requests(self, domain: str) -> None:
        """Count one probe attempt against ``domain``."""
        with self._lock:
            self._get_or_create_locked(domain).requests += 1

    def increment_up(self, domain: str) -> None:
        """Count one up outcome against ``domain``.

        Raises:
            ValueError: If the domain has no unmatched request to attribute it to.
        """
        with self._lock:
            status = self._get_or_create_locked(domain)
            if status.up_count >= status.requests:
                raise ValueError(f"up_count for {domain} cannot exceed requests ({status.requests})")
            status.up_count += 1

    def record(self, domain: str, is_up: bool) -> None:
        """Count one classified probe in a single step."""
        with self._lock:
            status = self._get_or_create_locked(domain)
            status.requests += 1
            if is_up:
                status.up_count += 1

    def record_skipped(self) -> None:
        """Count an endpoint skipped because its URL has no hostname."""
        with self._lock:
            self._skipped += 1

    @property
    def skipped(self) -> int:
        """Number of endpoint probes skipped for unparseable URLs."""
        with self._lock:
            return self._skipped

    def get(self, domain: str) -> DomainStatus | None:
        """Return a copy of the counters for ``domain``, or None if unseen."""
        with self._lock:
            status = self._statuses.get(domain)
            if status is None:
                return None
            return DomainStatus(status.requests, status.up_count)

    def snapshot(self) -> dict[str, DomainStatus]:
        """Return copies of all entries, in first-seen order."""
        with self._lock:
            return {
                domain: DomainStatus(status.requests, status.up_count)
                for domain, status in self._statuses.items()
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._statuses)

    def __contains__(self, domain: object) -> bool:
        with self._lock:
            return domain in self._statuses
