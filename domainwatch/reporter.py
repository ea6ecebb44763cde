"""Availability percentage reporting."""

import sys
from typing import TextIO

from .models import DomainStatus
from .store import DomainStatusStore

CYCLE_SEPARATOR = "=" * 64


def availability_percent(status: DomainStatus) -> int:
    """Rounded availability of one domain; 0 when nothing has been probed.

    Computed in integers so exact halves (23 of 40 is 57.5%) round up;
    the float ratio can land just below the half.
    """
    if status.requests == 0:
        return 0
    return (200 * status.up_count + status.requests) // (2 * status.requests)


def format_report(store: DomainStatusStore) -> list[str]:
    """Return one availability line per domain, without the separator."""
    return [
        f"{domain} has {availability_percent(status)}% availability percentage"
        for domain, status in store.snapshot().items()
    ]


def report_availability(store: DomainStatusStore, out: TextIO | None = None) -> list[str]:
    """Write the availability report followed by the cycle separator.

    Args:
        store: Store to read; it is not modified.
        out: Stream to write to (defaults to stdout).

    Returns:
        The availability lines that were written.
    """
    stream = out if out is not None else sys.stdout
    lines = format_report(store)
    for line in lines:
        stream.write(line + "\n")
    stream.write(CYCLE_SEPARATOR + "\n")
    stream.flush()
    return lines
