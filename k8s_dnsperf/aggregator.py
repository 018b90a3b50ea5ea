"""Reduce per-node dnsperf results into one cluster-wide summary."""

import math
from typing import Iterable

from .errors import EmptyResultSetError
from .models import PerNodeResult, RunMetadata, SummaryResult

SUMMED_FIELDS = ('queries_sent', 'queries_completed', 'queries_lost', 'queries_interrupted')

# Reported as the mean across nodes. qps is a per-node mean as well, not the
# cluster throughput.
AVERAGED_FIELDS = ('qps', 'avg_latency', 'min_latency', 'max_latency', 'latency_stdev')


def round_down(value: float, digits: int = 2) -> float:
    """Floor value at the given number of decimal places."""
    factor = 10 ** digits
    return math.floor(value * factor) / factor


def aggregate(results: Iterable[PerNodeResult], meta: RunMetadata) -> SummaryResult:
    """Sum counters and average rate/latency fields across results.

    Raises:
        EmptyResultSetError: results is empty.
    """
    results = list(results)
    if not results:
        raise EmptyResultSetError("Cannot aggregate an empty result set")

    totals = {name: 0 for name in SUMMED_FIELDS}
    sums = {name: 0.0 for name in AVERAGED_FIELDS}
    for result in results:
        for name in SUMMED_FIELDS:
            totals[name] += getattr(result, name)
        for name in AVERAGED_FIELDS:
            sums[name] += getattr(result, name)

    means = {name: round_down(total / len(results)) for name, total in sums.items()}
    return SummaryResult(
        uuid=meta.uuid,
        clients=meta.clients,
        records=meta.records,
        timestamp=meta.timestamp,
        duration=meta.duration,
        target_server=meta.target_server,
        nodes=len(results),
        **totals,
        **means,
    )
