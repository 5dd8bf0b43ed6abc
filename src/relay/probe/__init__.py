"""Multi-location latency probing via the Pingdom API."""

from relay.probe.client import PingdomClient, ProbeClientError
from relay.probe.models import LatencyStats, Probe, ProbeReport, ProbeResult, RegionStats
from relay.probe.selection import partition_probes, select_probes
from relay.probe.service import ProbeService
from relay.probe.stats import nearest_rank, summarize

__all__ = [
    "LatencyStats",
    "PingdomClient",
    "Probe",
    "ProbeClientError",
    "ProbeReport",
    "ProbeResult",
    "ProbeService",
    "RegionStats",
    "nearest_rank",
    "partition_probes",
    "select_probes",
    "summarize",
]
