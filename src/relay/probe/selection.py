"""Region-balanced selection of probe locations."""

import logging
import random

from relay.config.regions import RegionsConfig
from relay.probe.models import Probe

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 30


def partition_probes(probes: list[Probe], regions: RegionsConfig) -> dict[str, list[int]]:
    """Group probe ids by region code, keeping the listing order.

    Every bucket of the table appears in the result, possibly empty.
    """
    buckets: dict[str, list[int]] = {bucket.code: [] for bucket in regions.all_buckets()}
    for probe in probes:
        buckets[regions.classify(probe.country).code].append(probe.id)
    return buckets


def select_probes(
    probes: list[Probe],
    regions: RegionsConfig,
    target_count: int = DEFAULT_SAMPLE_SIZE,
    rng: random.Random | None = None,
) -> list[int]:
    """Pick up to ``target_count`` probe ids spread across regions.

    Each region contributes a random sample of up to its target. Any
    shortfall is filled at random from the probes not yet picked.
    """
    rng = rng or random.Random()
    buckets = partition_probes(probes, regions)

    selected: list[int] = []
    for bucket in regions.all_buckets():
        available = buckets[bucket.code]
        selected.extend(rng.sample(available, min(bucket.target, len(available))))

    if len(selected) < target_count:
        chosen = set(selected)
        unselected = [probe.id for probe in probes if probe.id not in chosen]
        remaining = min(target_count - len(selected), len(unselected))
        selected.extend(rng.sample(unselected, remaining))

    logger.debug(
        "Selected %d of %d probes (%s)",
        min(len(selected), target_count),
        len(probes),
        ", ".join(f"{code}={len(ids)}" for code, ids in buckets.items()),
    )
    return selected[:target_count]
