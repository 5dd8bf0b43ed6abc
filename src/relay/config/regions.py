"""Region bucket table used to spread probe locations across the globe."""

from pathlib import Path
from typing import Annotated

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class RegionBucket(BaseModel):
    """A coarse geographic bucket matched by country keywords."""

    code: Annotated[str, Field(min_length=1, max_length=20)]
    name: Annotated[str, Field(min_length=1, max_length=100)]
    target: int = Field(default=0, ge=0)
    keywords: list[Annotated[str, Field(min_length=1)]] = Field(default_factory=list)

    @field_validator("keywords")
    @classmethod
    def keywords_lowercase(cls, v: list[str]) -> list[str]:
        """Store keywords lowercase for case-insensitive matching."""
        return [k.lower() for k in v]

    def matches(self, country: str) -> bool:
        """Check whether any keyword occurs in the given country text."""
        country_lower = country.lower()
        return any(keyword in country_lower for keyword in self.keywords)


class RegionsConfig(BaseModel):
    """Ordered bucket table plus the bucket that catches everything else."""

    buckets: list[RegionBucket] = Field(min_length=1)
    fallback: RegionBucket

    @model_validator(mode="after")
    def validate_unique_codes(self) -> "RegionsConfig":
        """Validate that bucket codes are unique, fallback included."""
        codes = [bucket.code for bucket in self.buckets] + [self.fallback.code]
        duplicates = sorted({code for code in codes if codes.count(code) > 1})
        if duplicates:
            raise ValueError(f"Duplicate region codes: {duplicates}")
        return self

    def classify(self, country: str | None) -> RegionBucket:
        """Return the first bucket whose keywords match, else the fallback."""
        if country:
            for bucket in self.buckets:
                if bucket.matches(country):
                    return bucket
        return self.fallback

    def all_buckets(self) -> list[RegionBucket]:
        """All buckets in selection order, fallback last."""
        return [*self.buckets, self.fallback]


DEFAULT_REGIONS: dict = {
    "buckets": [
        {
            "code": "EU",
            "name": "Europe",
            "target": 8,
            "keywords": [
                "europe", "germany", "france", "uk", "spain", "italy", "netherlands",
                "sweden", "norway", "finland", "denmark", "switzerland", "belgium",
                "austria", "ireland", "poland", "czech", "portugal", "greece",
                "hungary", "romania", "bulgaria", "croatia", "serbia", "slovenia",
                "slovakia", "estonia", "latvia", "lithuania",
            ],
        },
        {
            "code": "NA",
            "name": "North America",
            "target": 8,
            "keywords": ["united states", "canada", "mexico"],
        },
        {
            "code": "SA",
            "name": "South America",
            "target": 3,
            "keywords": [
                "brazil", "argentina", "chile", "colombia", "peru", "venezuela",
                "ecuador", "bolivia", "uruguay", "paraguay", "guyana", "suriname",
            ],
        },
        {
            "code": "APAC",
            "name": "Asia/Pacific",
            "target": 7,
            "keywords": [
                "japan", "china", "australia", "india", "singapore", "hong kong",
                "thailand", "malaysia", "indonesia", "philippines", "vietnam",
                "new zealand", "south korea", "taiwan",
            ],
        },
        {
            "code": "AF",
            "name": "Africa",
            "target": 2,
            "keywords": [
                "south africa", "egypt", "nigeria", "kenya", "morocco", "algeria",
                "tunisia", "ghana", "ethiopia", "tanzania", "uganda", "zimbabwe",
                "botswana", "namibia",
            ],
        },
    ],
    "fallback": {"code": "OTHER", "name": "Unknown", "target": 2},
}


class RegionsLoadError(Exception):
    """Raised when the region table cannot be loaded."""

    pass


def load_regions_config(config_path: str | Path | None = None) -> RegionsConfig:
    """Load the region table from YAML, or the built-in table when no path is given.

    Args:
        config_path: Path to a YAML file with ``buckets`` and ``fallback`` keys.

    Returns:
        Validated RegionsConfig instance.

    Raises:
        RegionsLoadError: If the file cannot be read or fails validation.
    """
    if config_path is None:
        return RegionsConfig.model_validate(DEFAULT_REGIONS)

    path = Path(config_path)
    if not path.exists():
        raise RegionsLoadError(f"Regions file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise RegionsLoadError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise RegionsLoadError(f"Failed to read {path}: {e}") from e

    if raw_config is None:
        raise RegionsLoadError(f"Empty regions file: {path}")

    try:
        return RegionsConfig.model_validate(raw_config)
    except ValueError as e:
        raise RegionsLoadError(f"Regions validation failed: {e}") from e
