"""Latency statistics over probe results.

Percentiles use the nearest-rank method on the ascending sample, indexing
with ``floor(n * p)``. There is no interpolation.
"""

from math import floor

from relay.probe.models import LatencyStats, Number, ProbeResult, RegionStats


def nearest_rank(sorted_values: list[Number], percentile: float) -> Number:
    if not sorted_values:
        return 0
    index = min(floor(len(sorted_values) * percentile), len(sorted_values) - 1)
    return sorted_values[index]


def _region_stats(results: list[ProbeResult]) -> RegionStats:
    times = [result.response_time for result in results]
    ordered = sorted(times)
    return RegionStats(
        count=len(results),
        successful=sum(1 for result in results if result.up),
        failed=sum(1 for result in results if not result.up),
        average=sum(times) / len(times),
        median=nearest_rank(ordered, 0.5),
        min=ordered[0],
        max=ordered[-1],
    )


def summarize(results: list[ProbeResult]) -> LatencyStats:
    """Summarize results that carry a response time.

    Results without a response time are left out of every figure. With no
    timed result at all every figure is zero.
    """
    timed = [result for result in results if result.timed]
    if not timed:
        return LatencyStats()

    overall = _region_stats(timed)
    ordered = sorted(result.response_time for result in timed)

    by_region: dict[str, RegionStats] = {}
    for region in dict.fromkeys(result.region for result in results):
        region_results = [result for result in timed if result.region == region]
        if region_results:
            by_region[region] = _region_stats(region_results)

    return LatencyStats(
        **overall.model_dump(),
        p90=nearest_rank(ordered, 0.90),
        p95=nearest_rank(ordered, 0.95),
        p99=nearest_rank(ordered, 0.99),
        by_region=by_region,
    )
