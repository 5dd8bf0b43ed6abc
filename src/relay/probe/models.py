"""Pydantic models for the multi-location probe report."""

from pydantic import BaseModel, ConfigDict, Field

Number = int | float

STATUS_UP = "up"
STATUS_ERROR = "error"
UNKNOWN_LOCATION = "unknown"


class Probe(BaseModel):
    """A measurement location offered by the network-testing API."""

    model_config = ConfigDict(extra="ignore")

    id: int
    country: str = ""
    city: str = ""
    name: str = ""
    active: bool = True
    hostname: str | None = None
    ip: str | None = None
    countryiso: str | None = None


class ProbeResult(BaseModel):
    """Outcome of one timed request from one location."""

    probe_id: int
    location: str = UNKNOWN_LOCATION
    status: str
    response_time: Number | None = None
    error: str | None = None
    region: str | None = None

    @property
    def timed(self) -> bool:
        return self.response_time is not None

    @property
    def up(self) -> bool:
        return self.status == STATUS_UP


class RegionStats(BaseModel):
    """Latency summary for a group of results."""

    count: int = 0
    successful: int = 0
    failed: int = 0
    average: Number = 0
    median: Number = 0
    min: Number = 0
    max: Number = 0


class LatencyStats(RegionStats):
    """Overall latency summary with tail percentiles and a per-region breakdown."""

    p90: Number = 0
    p95: Number = 0
    p99: Number = 0
    by_region: dict[str, RegionStats] = Field(default_factory=dict)


class ProbeTarget(BaseModel):
    host: str
    path: str
    url: str


class ProbeReport(BaseModel):
    """The rendered result of one probe run."""

    target: ProbeTarget
    timestamp: str
    stats: LatencyStats
    results: list[ProbeResult]
