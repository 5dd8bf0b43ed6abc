"""Multi-location probe run: select, measure in parallel, aggregate."""

import asyncio
import logging
import random
from datetime import UTC, datetime

from relay.config.regions import RegionsConfig
from relay.observability import AuditLogger
from relay.probe.client import PingdomClient
from relay.probe.models import ProbeReport, ProbeResult, ProbeTarget
from relay.probe.selection import DEFAULT_SAMPLE_SIZE, select_probes
from relay.probe.stats import summarize

logger = logging.getLogger(__name__)


class ProbeService:
    """Times a target from a region-balanced sample of probe locations."""

    def __init__(
        self,
        client: PingdomClient,
        regions: RegionsConfig,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the probe service.

        Args:
            client: Client for the network-testing API.
            regions: Region table used to balance the sample.
            sample_size: Maximum number of locations per run.
            rng: Random source for sampling; seed it for reproducible runs.
        """
        self._client = client
        self._regions = regions
        self._sample_size = sample_size
        self._rng = rng or random.Random()

    async def run(
        self,
        host: str,
        path: str,
        audit: AuditLogger | None = None,
    ) -> ProbeReport:
        """Run one probe round against ``https://{host}{path}``.

        Raises:
            ProbeClientError: If the probe list cannot be fetched.
        """
        probes = await self._client.get_probes()
        selected_ids = select_probes(
            probes, self._regions, target_count=self._sample_size, rng=self._rng
        )
        probes_by_id = {probe.id: probe for probe in probes}

        logger.info("Running %d probe checks against %s%s", len(selected_ids), host, path)
        results: list[ProbeResult] = await asyncio.gather(
            *(self._client.run_single_test(host, path, probe_id) for probe_id in selected_ids)
        )

        for result in results:
            probe = probes_by_id.get(result.probe_id)
            if probe is None:
                result.region = self._regions.fallback.name
            else:
                result.region = self._regions.classify(probe.country).name

        stats = summarize(results)
        target = ProbeTarget(host=host, path=path, url=f"https://{host}{path}")

        if audit:
            audit.log_probe_completed(
                target_url=target.url,
                probe_count=len(results),
                successful=stats.successful,
            )

        return ProbeReport(
            target=target,
            timestamp=datetime.now(UTC).isoformat(),
            stats=stats,
            results=results,
        )
